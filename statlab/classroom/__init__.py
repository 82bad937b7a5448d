"""
StatLab Classroom - Runtime components for the course portal.

This module provides:
- Course loading and append-only exercise creation
- Progress bookkeeping and star ratings
- Milestone achievement rules
- KeyValueStore / ClassroomStorage: Persistence
- Navigator: Lesson sequencing and the curriculum tree
- Classroom: Single owner of application state
"""

from .loader import (
    load_course,
    find_lesson,
    find_unit_for_lesson,
    load_lesson_content,
    find_exercise,
    assign_exercise_ids,
    append_exercises,
)

from .progress import (
    mark_complete,
    iter_lessons,
    count_exercises,
    aggregate,
    completion_percent,
    lesson_stars,
)

from .achievements import (
    MilestoneNarrative,
    load_narratives,
    validate_milestone,
    available_milestones,
    milestone_status,
    previous_milestone,
    build_artifact_request,
)

from .storage import (
    KeyValueStore,
    ClassroomStorage,
)

from .navigator import (
    Navigator,
    NavigationLesson,
    NavigationUnit,
)

from .controller import (
    Classroom,
    ClassroomState,
)

__all__ = [
    # Loader
    "load_course",
    "find_lesson",
    "find_unit_for_lesson",
    "load_lesson_content",
    "find_exercise",
    "assign_exercise_ids",
    "append_exercises",
    # Progress
    "mark_complete",
    "iter_lessons",
    "count_exercises",
    "aggregate",
    "completion_percent",
    "lesson_stars",
    # Achievements
    "MilestoneNarrative",
    "load_narratives",
    "validate_milestone",
    "available_milestones",
    "milestone_status",
    "previous_milestone",
    "build_artifact_request",
    # Storage
    "KeyValueStore",
    "ClassroomStorage",
    # Navigator
    "Navigator",
    "NavigationLesson",
    "NavigationUnit",
    # Controller
    "Classroom",
    "ClassroomState",
]
