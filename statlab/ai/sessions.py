"""Per-lesson cache of AI chat sessions."""

import logging
from typing import Any, Callable, Optional


logger = logging.getLogger(__name__)


class ChatSessionCache:
    """
    One chat session per lesson id, created on first use.

    Sessions stay cached until the lesson is invalidated or the cache is
    cleared (e.g. on logout).
    """

    def __init__(self):
        self._sessions: dict[str, Any] = {}

    def get_or_create(self, lesson_id: str, factory: Callable[[], Any]) -> Any:
        session = self._sessions.get(lesson_id)
        if session is None:
            session = factory()
            self._sessions[lesson_id] = session
            logger.debug(f"Created chat session for lesson {lesson_id}")
        return session

    def get(self, lesson_id: str) -> Optional[Any]:
        return self._sessions.get(lesson_id)

    def invalidate(self, lesson_id: str) -> bool:
        """Drop the session for a lesson. Returns True if one existed."""
        return self._sessions.pop(lesson_id, None) is not None

    def clear(self):
        self._sessions.clear()

    def __contains__(self, lesson_id: str) -> bool:
        return lesson_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)
