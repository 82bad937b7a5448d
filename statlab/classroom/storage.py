"""
Storage - Key-value persistence for student state in ~/.statlab/portal.db.

Stores user state separately from course content:
- User profile
- Completed exercises per lesson
- Claimed achievements
- Login flag

Every read and write swallows storage failures after logging them. The
in-memory state held by the controller stays authoritative when a write
fails.
"""

import json
import logging
import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError

from statlab.config import DEFAULT_HOME, DEFAULT_DB_NAME
from statlab.schemas import Achievement, StudentProgress, UserProfile


logger = logging.getLogger(__name__)

DEFAULT_DB_PATH = DEFAULT_HOME / DEFAULT_DB_NAME

PROFILE_KEY = "user_profile"
PROGRESS_KEY = "student_progress"
ACHIEVEMENTS_KEY = "student_achievements"
LOGIN_KEY = "is_logged_in"

_STORAGE_ERRORS = (sqlite3.Error, OSError, ValueError, TypeError)


class KeyValueStore:
    """
    JSON values keyed by string in a single SQLite table.

    Each method opens its own connection, so instances can be shared
    across Streamlit reruns.
    """

    def __init__(self, db_path: Optional[Path] = None):
        """
        Args:
            db_path: Path to the database file (default: ~/.statlab/portal.db)
        """
        self.db_path = Path(db_path) if db_path else DEFAULT_DB_PATH
        self._ensure_database()

    def _ensure_database(self):
        """Create database and table if they don't exist."""
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            conn = self._get_connection()
            try:
                conn.execute("""
                    CREATE TABLE IF NOT EXISTS kv_store (
                        key TEXT PRIMARY KEY,
                        value TEXT NOT NULL,
                        updated_at TEXT NOT NULL
                    )
                """)
                conn.commit()
            finally:
                conn.close()
        except _STORAGE_ERRORS as e:
            logger.error(f"Could not initialise storage at {self.db_path}: {e}")

    def _get_connection(self) -> sqlite3.Connection:
        """Get a new database connection."""
        conn = sqlite3.connect(str(self.db_path))
        conn.row_factory = sqlite3.Row
        return conn

    def load(self, key: str, default: Any = None) -> Any:
        """Return the decoded value for `key`, or `default` if absent or unreadable."""
        try:
            conn = self._get_connection()
            try:
                row = conn.execute(
                    "SELECT value FROM kv_store WHERE key = ?", (key,)
                ).fetchone()
            finally:
                conn.close()
            if row is None:
                return default
            return json.loads(row["value"])
        except _STORAGE_ERRORS as e:
            logger.error(f"Could not load {key!r} from storage: {e}")
            return default

    def save(self, key: str, value: Any) -> bool:
        """Store `value` as JSON. Returns False if the write failed."""
        try:
            payload = json.dumps(value, ensure_ascii=False)
            conn = self._get_connection()
            try:
                conn.execute(
                    """INSERT INTO kv_store (key, value, updated_at)
                       VALUES (?, ?, ?)
                       ON CONFLICT(key) DO UPDATE SET
                         value = excluded.value,
                         updated_at = excluded.updated_at""",
                    (key, payload, datetime.now().isoformat())
                )
                conn.commit()
            finally:
                conn.close()
            return True
        except _STORAGE_ERRORS as e:
            logger.error(f"Could not save {key!r} to storage: {e}")
            return False

    def delete(self, key: str) -> bool:
        try:
            conn = self._get_connection()
            try:
                conn.execute("DELETE FROM kv_store WHERE key = ?", (key,))
                conn.commit()
            finally:
                conn.close()
            return True
        except _STORAGE_ERRORS as e:
            logger.error(f"Could not delete {key!r} from storage: {e}")
            return False


class ClassroomStorage:
    """Typed records on top of a KeyValueStore."""

    def __init__(self, store: KeyValueStore):
        self.store = store

    # -------------------------------------------------------------------------
    # Profile
    # -------------------------------------------------------------------------

    def load_profile(self) -> UserProfile:
        raw = self.store.load(PROFILE_KEY)
        if raw is None:
            return UserProfile()
        try:
            return UserProfile.model_validate(raw)
        except ValidationError as e:
            logger.error(f"Stored profile is invalid, using default: {e}")
            return UserProfile()

    def save_profile(self, profile: UserProfile) -> bool:
        return self.store.save(PROFILE_KEY, profile.model_dump(mode="json"))

    # -------------------------------------------------------------------------
    # Progress
    # -------------------------------------------------------------------------

    def load_progress(self) -> StudentProgress:
        """Load progress, converting stored id lists back into sets."""
        raw = self.store.load(PROGRESS_KEY)
        if not isinstance(raw, dict):
            if raw is not None:
                logger.error("Stored progress is not a mapping, starting fresh")
            return StudentProgress()

        lessons = {}
        for lesson_id, exercise_ids in raw.items():
            if not isinstance(exercise_ids, list):
                logger.warning(f"Skipping malformed progress entry for lesson {lesson_id}")
                continue
            lessons[lesson_id] = frozenset(str(ex_id) for ex_id in exercise_ids)
        return StudentProgress(lessons=lessons)

    def save_progress(self, progress: StudentProgress) -> bool:
        """Save progress with each completed set written as a sorted list."""
        serializable = {
            lesson_id: sorted(exercise_ids)
            for lesson_id, exercise_ids in progress.lessons.items()
        }
        return self.store.save(PROGRESS_KEY, serializable)

    # -------------------------------------------------------------------------
    # Achievements
    # -------------------------------------------------------------------------

    def load_achievements(self) -> dict[int, Achievement]:
        raw = self.store.load(ACHIEVEMENTS_KEY)
        if not isinstance(raw, dict):
            if raw is not None:
                logger.error("Stored achievements are not a mapping, starting fresh")
            return {}

        achievements = {}
        for key, value in raw.items():
            try:
                achievement = Achievement.model_validate(value)
                milestone = int(key)
            except (ValidationError, ValueError) as e:
                logger.warning(f"Dropping invalid stored achievement {key!r}: {e}")
                continue
            if achievement.milestone != milestone:
                logger.warning(f"Dropping achievement stored under mismatched key {key!r}")
                continue
            achievements[milestone] = achievement
        return achievements

    def save_achievements(self, achievements: dict[int, Achievement]) -> bool:
        serializable = {
            str(milestone): achievement.model_dump(mode="json")
            for milestone, achievement in sorted(achievements.items())
        }
        return self.store.save(ACHIEVEMENTS_KEY, serializable)

    # -------------------------------------------------------------------------
    # Login flag
    # -------------------------------------------------------------------------

    def load_logged_in(self) -> bool:
        return self.store.load(LOGIN_KEY, False) is True

    def save_logged_in(self) -> bool:
        return self.store.save(LOGIN_KEY, True)

    def clear_logged_in(self) -> bool:
        return self.store.delete(LOGIN_KEY)
