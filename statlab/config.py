"""
Runtime configuration for StatLab.

Defaults live here as module constants; `load_settings()` applies
environment overrides after loading a local .env file.
"""

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv


PACKAGE_DIR = Path(__file__).parent
PROJECT_ROOT = PACKAGE_DIR.parent

DEFAULT_HOME = Path.home() / ".statlab"
DEFAULT_DB_NAME = "portal.db"
DEFAULT_CATALOG_PATH = PACKAGE_DIR / "data" / "course.yaml"

# Gemini models
DEFAULT_EXERCISE_MODEL = "gemini-2.5-pro"
DEFAULT_FAST_MODEL = "gemini-2.5-flash"
DEFAULT_IMAGE_MODEL = "gemini-2.5-flash-image"

# Achievement milestones (completed exercises), ascending
MILESTONES: tuple[int, ...] = (10, 20, 30, 40, 50)


@dataclass(frozen=True)
class Settings:
    """Resolved configuration for one app process."""
    home: Path
    db_path: Path
    catalog_path: Path
    gemini_api_key: str | None
    exercise_model: str = DEFAULT_EXERCISE_MODEL
    fast_model: str = DEFAULT_FAST_MODEL
    image_model: str = DEFAULT_IMAGE_MODEL

    def require_api_key(self) -> str:
        if not self.gemini_api_key:
            raise ValueError("GEMINI_API_KEY not set. Check your .env file.")
        return self.gemini_api_key


def load_settings(env_file: Path | None = None) -> Settings:
    """
    Build Settings from the environment.

    Args:
        env_file: Optional .env path (default: project root .env)
    """
    load_dotenv(env_file or PROJECT_ROOT / ".env")

    home = Path(os.environ.get("STATLAB_HOME", DEFAULT_HOME)).expanduser()
    db_path = Path(os.environ.get("STATLAB_DB_PATH", home / DEFAULT_DB_NAME)).expanduser()
    catalog_path = Path(os.environ.get("STATLAB_CATALOG", DEFAULT_CATALOG_PATH)).expanduser()

    return Settings(
        home=home,
        db_path=db_path,
        catalog_path=catalog_path,
        gemini_api_key=os.environ.get("GEMINI_API_KEY"),
        exercise_model=os.environ.get("STATLAB_EXERCISE_MODEL", DEFAULT_EXERCISE_MODEL),
        fast_model=os.environ.get("STATLAB_FAST_MODEL", DEFAULT_FAST_MODEL),
        image_model=os.environ.get("STATLAB_IMAGE_MODEL", DEFAULT_IMAGE_MODEL),
    )
