"""
StatLab AI - Gemini access for exercise authoring, feedback and rewards.

This module provides:
- GeminiGateway: async operations returning payloads or error values
- ChatSessionCache: per-lesson chat contexts
- Response parsers (evaluation labels, exercise tool calls, lesson JSON, images)
"""

from .gateway import (
    GeminiGateway,
    build_exercise_prompt,
    build_material_prompt,
    exercise_declaration,
)

from .parsing import (
    EVALUATION_LABELS,
    parse_evaluation,
    parse_exercise_args,
    parse_structured_lesson,
    extract_image_base64,
    extract_json_from_response,
    response_text,
)

from .sessions import ChatSessionCache

__all__ = [
    # Gateway
    "GeminiGateway",
    "build_exercise_prompt",
    "build_material_prompt",
    "exercise_declaration",
    # Parsing
    "EVALUATION_LABELS",
    "parse_evaluation",
    "parse_exercise_args",
    "parse_structured_lesson",
    "extract_image_base64",
    "extract_json_from_response",
    "response_text",
    # Sessions
    "ChatSessionCache",
]
