"""
Response parsing for the Gemini gateway.

Every parser turns a raw model response into either a validated schema
object or None; the gateway maps None to its error value.
"""

import base64
import json
import logging
import re
from typing import Any, Optional

from pydantic import ValidationError

from statlab.schemas import (
    Evaluation,
    EvaluationResult,
    ExerciseDraft,
    StructuredLesson,
)


logger = logging.getLogger(__name__)

EVALUATION_LABELS = {
    "correct": EvaluationResult.CORRECT,
    "partially correct": EvaluationResult.PARTIALLY_CORRECT,
    "incorrect": EvaluationResult.INCORRECT,
}


def response_text(response: Any) -> Optional[str]:
    """Text of a response, falling back to the first candidate's first part."""
    text = getattr(response, "text", None)
    if text:
        return text
    candidates = getattr(response, "candidates", None)
    if candidates:
        content = candidates[0].content
        if content and content.parts:
            return content.parts[0].text
    return None


# -----------------------------------------------------------------------------
# Answer evaluation
# -----------------------------------------------------------------------------

def _normalize_label(line: str) -> str:
    label = line.strip().strip("*_#`'\"").strip()
    label = re.sub(r"[.!:]+$", "", label)
    return re.sub(r"\s+", " ", label).lower()


def parse_evaluation(text: Optional[str], fallback_feedback: str = "") -> Evaluation:
    """
    Classify an evaluation reply by its first line.

    The first line must be exactly one of Correct / Partially Correct /
    Incorrect (case, surrounding emphasis and trailing punctuation are
    ignored). Anything else is an EVALUATION_ERROR; the rest of the reply
    becomes the feedback either way.
    """
    if not text or not text.strip():
        return Evaluation(result=EvaluationResult.EVALUATION_ERROR, feedback=fallback_feedback)

    first_line, _, rest = text.strip().partition("\n")
    result = EVALUATION_LABELS.get(_normalize_label(first_line))
    feedback = rest.strip()

    if result is None:
        logger.warning(f"Unrecognized evaluation label: {first_line[:50]!r}")
        return Evaluation(
            result=EvaluationResult.EVALUATION_ERROR,
            feedback=feedback or fallback_feedback,
        )
    return Evaluation(result=result, feedback=feedback)


# -----------------------------------------------------------------------------
# Exercises
# -----------------------------------------------------------------------------

def parse_exercise_args(args: Any) -> Optional[ExerciseDraft]:
    """Validate function-call arguments as an ExerciseDraft."""
    if not isinstance(args, dict):
        logger.error(f"Exercise call arguments are not an object: {type(args).__name__}")
        return None
    try:
        return ExerciseDraft.model_validate(args)
    except ValidationError as e:
        logger.error(f"AI response has a malformed exercise: {e}")
        return None


def find_function_call(response: Any, name: str) -> Optional[Any]:
    for call in getattr(response, "function_calls", None) or []:
        if call.name == name:
            return call
    return None


# -----------------------------------------------------------------------------
# Lesson material
# -----------------------------------------------------------------------------

def extract_json_from_response(text: str) -> dict:
    """Extract a JSON object from model output, handling markdown code blocks."""
    code_block_pattern = r'```(?:json)?\s*([\s\S]*?)```'
    for match in re.findall(code_block_pattern, text):
        try:
            return json.loads(match.strip())
        except json.JSONDecodeError:
            continue

    try:
        data = json.loads(text.strip())
    except json.JSONDecodeError as e:
        raise ValueError(f"Could not extract JSON from response: {e}") from e
    if not isinstance(data, dict):
        raise ValueError("Response JSON is not an object")
    return data


def parse_structured_lesson(text: Optional[str]) -> Optional[StructuredLesson]:
    if not text:
        return None
    try:
        return StructuredLesson.model_validate(extract_json_from_response(text))
    except (ValueError, ValidationError) as e:
        logger.error(f"Invalid lesson material from AI: {e}. Raw text: {text[:200]!r}")
        return None


# -----------------------------------------------------------------------------
# Images
# -----------------------------------------------------------------------------

def extract_image_base64(response: Any) -> Optional[str]:
    """Base64 of the first inline image in the first candidate, if any."""
    candidates = getattr(response, "candidates", None)
    if not candidates:
        return None
    content = candidates[0].content
    for part in (content.parts if content and content.parts else []):
        inline = getattr(part, "inline_data", None)
        if inline is not None and inline.data:
            data = inline.data
            if isinstance(data, str):
                return data
            return base64.b64encode(data).decode("ascii")
    return None
