"""
Prompt loader utility for StatLab.

Loads YAML prompt templates shipped in the statlab/prompts/ directory.
"""

from pathlib import Path
from typing import Any, Iterable
import yaml


# Prompt templates ship inside the package
PROMPTS_DIR = Path(__file__).parent.parent / "prompts"


def load_prompt(
    name: str,
    prompts_dir: Path | None = None,
    required_keys: Iterable[str] = (),
) -> dict[str, Any]:
    """
    Load a prompt template by name.

    Args:
        name: Prompt name without .yaml extension (e.g., "evaluate")
        prompts_dir: Optional custom prompts directory
        required_keys: Top-level keys the template must define

    Returns:
        Dict containing the parsed YAML prompt template. Templates usually
        carry:
        - meta: model, temperature
        - system: system instruction
        - user_template: user prompt with {placeholders}

    Raises:
        FileNotFoundError: If prompt file doesn't exist
        KeyError: If a required key is missing
        yaml.YAMLError: If YAML parsing fails
    """
    dir_path = prompts_dir or PROMPTS_DIR
    file_path = dir_path / f"{name}.yaml"

    if not file_path.exists():
        raise FileNotFoundError(f"Prompt template not found: {file_path}")

    with open(file_path, "r", encoding="utf-8") as f:
        template = yaml.safe_load(f) or {}

    missing = [key for key in required_keys if key not in template]
    if missing:
        raise KeyError(f"Prompt template {name!r} is missing keys: {', '.join(missing)}")

    return template


def format_prompt(template: str, **kwargs) -> str:
    """Fill {placeholders} in a template string."""
    return template.format(**kwargs).strip()


def get_available_prompts(prompts_dir: Path | None = None) -> list[str]:
    """List prompt template names (without .yaml extension), sorted."""
    dir_path = prompts_dir or PROMPTS_DIR
    if not dir_path.exists():
        return []
    return sorted(p.stem for p in dir_path.glob("*.yaml"))
