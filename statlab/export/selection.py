"""
Exercise selection for export.

Picks the exercises of a lesson, its unit or the whole course and the
solution tiers to print with each one.
"""

from dataclasses import dataclass
from enum import Enum

from statlab.errors import ExportError
from statlab.schemas import Course, Exercise

from statlab.classroom.loader import find_lesson, find_unit_for_lesson


class ExportScope(str, Enum):
    LESSON = "lesson"
    UNIT = "unit"
    COURSE = "course"


class SolutionDetail(str, Enum):
    """How much of each solution to print. Tiers are cumulative."""
    NONE = "none"
    HINT = "hint"
    GUIDE = "guide"
    FULL = "full"


SOLUTION_SECTION_TITLES = {
    "hint": "Hint",
    "starting_guide": "Starting Guide",
    "full_solution": "Full Solution",
}

_DETAIL_FIELDS = {
    SolutionDetail.NONE: (),
    SolutionDetail.HINT: ("hint",),
    SolutionDetail.GUIDE: ("hint", "starting_guide"),
    SolutionDetail.FULL: ("hint", "starting_guide", "full_solution"),
}


@dataclass(frozen=True)
class ExportSelection:
    title: str
    subtitle: str
    exercises: tuple[Exercise, ...]


def select_exercises(course: Course, scope: ExportScope | str, lesson_id: str) -> ExportSelection:
    """
    Collect the exercises to export around the given lesson.

    Args:
        course: Current course tree
        scope: lesson, unit (the lesson's unit) or course
        lesson_id: Lesson the export starts from

    Raises:
        KeyError: If the lesson doesn't exist
        ExportError: If the selection holds no exercises
    """
    scope = ExportScope(scope)
    lesson = find_lesson(course, lesson_id)
    unit = find_unit_for_lesson(course, lesson_id)
    if lesson is None or unit is None:
        raise KeyError(f"Lesson not found: {lesson_id}")

    if scope is ExportScope.LESSON:
        selection = ExportSelection(lesson.title, unit.title, tuple(lesson.exercises))
    elif scope is ExportScope.UNIT:
        exercises = tuple(ex for l in unit.lessons for ex in l.exercises)
        selection = ExportSelection(unit.title, course.title, exercises)
    else:
        exercises = tuple(
            ex for u in course.units for l in u.lessons for ex in l.exercises
        )
        selection = ExportSelection(course.title, "All exercises", exercises)

    if not selection.exercises:
        raise ExportError("There are no exercises to export in this selection.")
    return selection


def solution_sections(exercise: Exercise, detail: SolutionDetail | str) -> list[tuple[str, str]]:
    """
    Solution parts to print for an exercise.

    Returns:
        List of (section title, markdown) pairs in tier order
    """
    fields = _DETAIL_FIELDS[SolutionDetail(detail)]
    return [
        (SOLUTION_SECTION_TITLES[field], getattr(exercise.solution, field))
        for field in fields
    ]


def export_filename(selection: ExportSelection) -> str:
    """File name for the exported PDF, e.g. 'descriptive_statistics.pdf'."""
    stem = (selection.title or "exercises").replace(" ", "_").replace("/", "_").lower()
    return f"{stem}.pdf"
