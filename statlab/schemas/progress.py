"""
Progress tracking schemas for StatLab.

Defines Pydantic models for student progress including:
- Completed exercise ids per lesson
- Per-lesson star rating
"""

from pydantic import BaseModel, ConfigDict, Field


class StudentProgress(BaseModel):
    """
    Completed exercise ids keyed by lesson id.

    Sets only grow during normal operation. Instances are never mutated;
    marking an exercise complete produces a new StudentProgress.
    """
    model_config = ConfigDict(frozen=True)

    lessons: dict[str, frozenset[str]] = {}

    def completed_for(self, lesson_id: str) -> frozenset[str]:
        return self.lessons.get(lesson_id, frozenset())

    def is_completed(self, lesson_id: str, exercise_id: str) -> bool:
        return exercise_id in self.completed_for(lesson_id)


class LessonStars(BaseModel):
    model_config = ConfigDict(frozen=True)

    completed_count: int = Field(..., ge=0)
    total_count: int = Field(..., ge=0)
    stars: int = Field(..., ge=0, le=3)
