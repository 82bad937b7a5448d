"""
Course loader - Seed the course tree from the YAML catalog and append exercises.

Provides:
- Catalog loading and validation
- Lesson / unit lookup
- Append-only exercise creation with per-lesson unique ids
"""

import logging
import time
from pathlib import Path
from typing import Optional, Sequence

import yaml

from statlab.config import DEFAULT_CATALOG_PATH
from statlab.schemas import Course, Exercise, ExerciseDraft, Lesson, Unit


logger = logging.getLogger(__name__)


def load_course(catalog_path: Optional[Path] = None) -> Course:
    """
    Load the seed course from a YAML catalog.

    Args:
        catalog_path: Path to catalog file (default: statlab/data/course.yaml)

    Raises:
        FileNotFoundError: If the catalog doesn't exist
        pydantic.ValidationError: If the catalog doesn't match the Course schema
        ValueError: If exercise ids repeat within a lesson
    """
    path = Path(catalog_path or DEFAULT_CATALOG_PATH)
    if not path.exists():
        raise FileNotFoundError(f"Course catalog not found: {path}")

    with open(path, "r", encoding="utf-8") as f:
        raw = yaml.safe_load(f)

    course = Course.model_validate(raw)
    for unit in course.units:
        for lesson in unit.lessons:
            ids = [ex.id for ex in lesson.exercises]
            if len(ids) != len(set(ids)):
                raise ValueError(f"Duplicate exercise ids in lesson {lesson.id}")

    logger.info(f"Loaded course '{course.title}' with {len(course.units)} units from {path}")
    return course


def find_lesson(course: Course, lesson_id: str) -> Optional[Lesson]:
    for unit in course.units:
        for lesson in unit.lessons:
            if lesson.id == lesson_id:
                return lesson
    return None


def load_lesson_content(lesson: Lesson, catalog_path: Optional[Path] = None) -> Optional[str]:
    """
    Read a lesson's markdown, resolved relative to the catalog's directory.

    Returns None when the lesson has no content reference or the file can't
    be read.
    """
    if not lesson.content_path:
        return None
    base = Path(catalog_path or DEFAULT_CATALOG_PATH).parent
    path = base / lesson.content_path
    try:
        return path.read_text(encoding="utf-8")
    except OSError as e:
        logger.warning(f"Could not load content for lesson {lesson.id} from {path}: {e}")
        return None


def find_unit_for_lesson(course: Course, lesson_id: str) -> Optional[Unit]:
    for unit in course.units:
        if any(lesson.id == lesson_id for lesson in unit.lessons):
            return unit
    return None


def find_exercise(lesson: Lesson, exercise_id: str) -> Optional[Exercise]:
    for exercise in lesson.exercises:
        if exercise.id == exercise_id:
            return exercise
    return None


def assign_exercise_ids(
    lesson: Lesson,
    drafts: Sequence[ExerciseDraft],
    now_ms: Optional[int] = None,
) -> list[Exercise]:
    """
    Give drafts ids of the form ex-<millis>-<index>, unique within the lesson.

    A colliding id (two saves within the same millisecond) gets a numeric
    suffix.
    """
    stamp = now_ms if now_ms is not None else int(time.time() * 1000)
    taken = {ex.id for ex in lesson.exercises}
    exercises = []
    for index, draft in enumerate(drafts):
        candidate = f"ex-{stamp}-{index}"
        suffix = 1
        while candidate in taken:
            candidate = f"ex-{stamp}-{index}-{suffix}"
            suffix += 1
        taken.add(candidate)
        exercises.append(Exercise(id=candidate, **draft.model_dump()))
    return exercises


def append_exercises(
    course: Course,
    lesson_id: str,
    drafts: Sequence[ExerciseDraft],
    now_ms: Optional[int] = None,
) -> tuple[Course, list[Exercise]]:
    """
    Append new exercises to a lesson.

    Returns:
        Tuple of (new course, exercises with their assigned ids). The input
        course is left untouched.

    Raises:
        KeyError: If the lesson is not part of the course
    """
    lesson = find_lesson(course, lesson_id)
    if lesson is None:
        raise KeyError(f"Lesson not found: {lesson_id}")

    new_exercises = assign_exercise_ids(lesson, drafts, now_ms)
    if not new_exercises:
        return course, []

    units = []
    for unit in course.units:
        if any(l.id == lesson_id for l in unit.lessons):
            lessons = [
                l.model_copy(update={"exercises": [*l.exercises, *new_exercises]})
                if l.id == lesson_id else l
                for l in unit.lessons
            ]
            unit = unit.model_copy(update={"lessons": lessons})
        units.append(unit)

    logger.info(f"Appended {len(new_exercises)} exercise(s) to lesson {lesson_id}")
    return course.model_copy(update={"units": units}), new_exercises
