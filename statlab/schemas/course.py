"""
Course content schemas for StatLab.

Defines Pydantic models for the course tree:
- Course -> Units -> Lessons -> Exercises
- Three-tier worked solutions (hint, starting guide, full solution)
"""

from pydantic import BaseModel, ConfigDict, Field
from enum import Enum


class Difficulty(str, Enum):
    EASY = "Easy"
    MEDIUM = "Medium"
    HARD = "Hard"


class ExerciseType(str, Enum):
    CONCEPTUAL = "Conceptual"
    CALCULATION = "Calculation"
    DATA_INTERPRETATION = "Data Interpretation"


class Solution(BaseModel):
    """Graduated disclosure levels of a worked solution (markdown)."""
    model_config = ConfigDict(frozen=True)

    hint: str = Field(..., min_length=1)
    starting_guide: str = Field(..., min_length=1)
    full_solution: str = Field(..., min_length=1)


class ExerciseDraft(BaseModel):
    """An exercise as returned by the generator, before it gets an id."""
    model_config = ConfigDict(frozen=True)

    problem_statement: str = Field(..., min_length=1)
    difficulty: Difficulty
    type: ExerciseType
    solution: Solution


class Exercise(ExerciseDraft):
    id: str = Field(..., min_length=1)  # unique within its lesson


class Lesson(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    content_path: str = ""
    exercises: list[Exercise] = []


class Unit(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    lessons: list[Lesson] = []


class Course(BaseModel):
    model_config = ConfigDict(frozen=True)

    title: str
    units: list[Unit] = []
