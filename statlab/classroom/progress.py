"""
Progress - Completed-exercise bookkeeping and aggregate statistics.

Provides:
- Idempotent, copy-on-write marking of completed exercises
- The single authoritative exercise count for a course
- Course-wide aggregate and per-lesson star ratings
"""

from statlab.schemas import Course, Lesson, LessonStars, StudentProgress


def mark_complete(progress: StudentProgress, lesson_id: str, exercise_id: str) -> StudentProgress:
    """
    Mark an exercise complete for a lesson.

    Returns the same object when the exercise is already complete, so
    callers can detect a no-op with an identity check. Otherwise returns a
    new StudentProgress; the input is never modified.
    """
    if progress.is_completed(lesson_id, exercise_id):
        return progress

    lessons = dict(progress.lessons)
    lessons[lesson_id] = progress.completed_for(lesson_id) | {exercise_id}
    return StudentProgress(lessons=lessons)


def iter_lessons(course: Course):
    """Yield every lesson of the course in unit order."""
    for unit in course.units:
        yield from unit.lessons


def count_exercises(course: Course) -> int:
    """Total exercises in the course. Milestone filtering and aggregates both use this."""
    return sum(len(lesson.exercises) for lesson in iter_lessons(course))


def completed_in_lesson(lesson: Lesson, progress: StudentProgress) -> int:
    """Completed exercises that still exist in the lesson; stale ids are ignored."""
    return len(progress.completed_for(lesson.id) & {exercise.id for exercise in lesson.exercises})


def aggregate(course: Course, progress: StudentProgress) -> tuple[int, int]:
    """
    Course-wide completion.

    Returns:
        Tuple of (completed exercises, total exercises)
    """
    completed = sum(completed_in_lesson(lesson, progress) for lesson in iter_lessons(course))
    return completed, count_exercises(course)


def completion_percent(completed: int, total: int) -> float:
    """Completion as a percentage rounded to one decimal, 0 for an empty course."""
    if total <= 0:
        return 0.0
    return round(min(completed, total) / total * 100, 1)


def lesson_stars(lesson: Lesson, progress: StudentProgress) -> LessonStars:
    """
    Star rating for a lesson.

    0 stars with nothing completed, 1 star above 0%, 2 stars from 50%
    (inclusive), 3 stars at 100%.
    """
    completed_count = completed_in_lesson(lesson, progress)
    total_count = len(lesson.exercises)
    if total_count == 0:
        return LessonStars(completed_count=0, total_count=0, stars=0)

    # Integer comparisons keep the 50% boundary exact
    stars = 0
    if completed_count > 0:
        stars = 1
    if completed_count * 2 >= total_count:
        stars = 2
    if completed_count >= total_count:
        stars = 3

    return LessonStars(
        completed_count=completed_count,
        total_count=total_count,
        stars=stars,
    )
