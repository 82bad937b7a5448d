"""
StatLab Schemas - Pydantic models for the statistics course portal.

This module exports all schema classes for:
- Course: course tree, exercises, three-tier solutions
- Progress: completed exercises per lesson, star ratings
- Achievement: milestone rewards, display state, user profile
- Material: generated lesson material, evaluations, chat messages
"""

# Course schemas
from .course import (
    Difficulty,
    ExerciseType,
    Solution,
    ExerciseDraft,
    Exercise,
    Lesson,
    Unit,
    Course,
)

# Progress schemas
from .progress import (
    StudentProgress,
    LessonStars,
)

# Achievement schemas
from .achievement import (
    ArtifactType,
    MilestoneStatus,
    Achievement,
    AchievementDisplayState,
    UserProfile,
    ArtifactRequest,
    ArtifactResult,
)

# Material schemas
from .material import (
    StructuredLesson,
    GenerationOptions,
    EvaluationResult,
    Evaluation,
    ChatMessage,
)

__all__ = [
    # Course
    'Difficulty',
    'ExerciseType',
    'Solution',
    'ExerciseDraft',
    'Exercise',
    'Lesson',
    'Unit',
    'Course',
    # Progress
    'StudentProgress',
    'LessonStars',
    # Achievement
    'ArtifactType',
    'MilestoneStatus',
    'Achievement',
    'AchievementDisplayState',
    'UserProfile',
    'ArtifactRequest',
    'ArtifactResult',
    # Material
    'StructuredLesson',
    'GenerationOptions',
    'EvaluationResult',
    'Evaluation',
    'ChatMessage',
]
