"""
Navigator - Lesson sequencing and the curriculum tree.

Provides:
- Next/previous lesson navigation in course order
- Curriculum tree annotated with stars and completion counts
- Status indicators for the sidebar
"""

from dataclasses import dataclass
from typing import Optional

from statlab.schemas import Course, Lesson, LessonStars, StudentProgress, Unit

from .loader import find_lesson
from .progress import iter_lessons, lesson_stars


@dataclass
class NavigationLesson:
    """Lesson with navigation metadata."""
    lesson: Lesson
    stars: LessonStars
    is_current: bool


@dataclass
class NavigationUnit:
    """Unit with lessons and navigation metadata."""
    unit: Unit
    lessons: list[NavigationLesson]
    completed_count: int    # Completed exercises across the unit
    total_count: int        # Exercises across the unit


class Navigator:
    """
    Navigate through the course.

    Built from a course snapshot and a progress snapshot; create a new
    navigator when either changes.
    """

    def __init__(self, course: Course, progress: StudentProgress):
        self.course = course
        self.progress = progress
        self._lesson_order = [lesson.id for lesson in iter_lessons(course)]
        self._lesson_index = {lid: idx for idx, lid in enumerate(self._lesson_order)}
        self._unit_for_lesson = {
            lesson.id: unit for unit in course.units for lesson in unit.lessons
        }

    @property
    def total_lessons(self) -> int:
        return len(self._lesson_order)

    # -------------------------------------------------------------------------
    # Navigation
    # -------------------------------------------------------------------------

    def get_first_lesson_id(self) -> Optional[str]:
        return self._lesson_order[0] if self._lesson_order else None

    def get_next_lesson_id(self, lesson_id: str) -> Optional[str]:
        """ID of the lesson after this one, or None at the end of the course."""
        idx = self._lesson_index.get(lesson_id)
        if idx is None or idx + 1 >= len(self._lesson_order):
            return None
        return self._lesson_order[idx + 1]

    def get_previous_lesson_id(self, lesson_id: str) -> Optional[str]:
        idx = self._lesson_index.get(lesson_id)
        if idx is None or idx == 0:
            return None
        return self._lesson_order[idx - 1]

    def get_lesson_position(self, lesson_id: str) -> tuple[int, int]:
        """
        Get lesson position as (current, total).

        Returns (0, total) if lesson not found.
        """
        if lesson_id not in self._lesson_index:
            return (0, len(self._lesson_order))
        return (self._lesson_index[lesson_id] + 1, len(self._lesson_order))

    def get_unit_for_lesson(self, lesson_id: str) -> Optional[Unit]:
        return self._unit_for_lesson.get(lesson_id)

    def get_recommended_lesson_id(self) -> Optional[str]:
        """First lesson that still has incomplete exercises, else the first lesson."""
        for lesson in iter_lessons(self.course):
            stars = lesson_stars(lesson, self.progress)
            if stars.completed_count < stars.total_count:
                return lesson.id
        return self.get_first_lesson_id()

    # -------------------------------------------------------------------------
    # Curriculum Tree
    # -------------------------------------------------------------------------

    def get_navigation_tree(self, current_lesson_id: Optional[str] = None) -> list[NavigationUnit]:
        """Full course tree with per-lesson stars and per-unit exercise counts."""
        tree = []
        for unit in self.course.units:
            nav_lessons = []
            completed_count = 0
            total_count = 0

            for lesson in unit.lessons:
                stars = lesson_stars(lesson, self.progress)
                completed_count += stars.completed_count
                total_count += stars.total_count
                nav_lessons.append(NavigationLesson(
                    lesson=lesson,
                    stars=stars,
                    is_current=lesson.id == current_lesson_id,
                ))

            tree.append(NavigationUnit(
                unit=unit,
                lessons=nav_lessons,
                completed_count=completed_count,
                total_count=total_count,
            ))

        return tree

    def get_status_indicator(self, lesson_id: str, current_lesson_id: Optional[str] = None) -> str:
        """
        Get status indicator for sidebar display.

        Returns:
            → for the current lesson
            ✓ for fully completed
            ◐ for started
            ○ for not started (or no exercises yet)
        """
        if lesson_id == current_lesson_id:
            return "→"

        lesson = find_lesson(self.course, lesson_id)
        if lesson is None:
            return "○"
        stars = lesson_stars(lesson, self.progress)

        if stars.total_count and stars.completed_count >= stars.total_count:
            return "✓"
        elif stars.completed_count > 0:
            return "◐"
        return "○"
