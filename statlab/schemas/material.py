"""
Generated teaching material and feedback schemas for StatLab.

Defines Pydantic models for:
- Structured lesson material (four required sections)
- Material generation options
- Answer evaluation results
- Chat transcript messages
"""

from pydantic import BaseModel, ConfigDict, Field
from typing import ClassVar, Literal, Union
from enum import Enum

from .course import ExerciseDraft


class StructuredLesson(BaseModel):
    """Four-section lesson material. Each value is an HTML fragment."""
    introduction: str = Field(..., min_length=1)
    theory: str = Field(..., min_length=1)
    examples: str = Field(..., min_length=1)
    reflection_questions: str = Field(..., min_length=1)

    SECTION_FIELDS: ClassVar[tuple[str, ...]] = ("introduction", "theory", "examples", "reflection_questions")

    def as_text(self) -> str:
        """All four sections in reading order, separated by blank lines."""
        return "\n\n".join(getattr(self, field) for field in self.SECTION_FIELDS)


class GenerationOptions(BaseModel):
    model_config = ConfigDict(frozen=True)

    focus: str = ""
    length: Literal["short", "medium", "long"] = "medium"
    level: Literal["beginner", "intermediate", "advanced"] = "intermediate"
    use_emojis: bool = True


class EvaluationResult(str, Enum):
    CORRECT = "correct"
    PARTIALLY_CORRECT = "partially_correct"
    INCORRECT = "incorrect"
    EVALUATION_ERROR = "evaluation_error"


class Evaluation(BaseModel):
    model_config = ConfigDict(frozen=True)

    result: EvaluationResult
    feedback: str = ""


class ChatMessage(BaseModel):
    model_config = ConfigDict(frozen=True)

    role: Literal["user", "model"]
    content: Union[ExerciseDraft, str]
    timestamp: float
