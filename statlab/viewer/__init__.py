"""
StatLab Viewer - Rendering components for the portal.

This module provides:
- Exercise cards, solution tiers and evaluation feedback
- Stars, progress bar and milestone labels
- Generated lesson material
- The achievement reward panel
"""

from .exercise import (
    get_exercise_css,
    render_difficulty_badge,
    render_type_badge,
    render_exercise_header,
    solution_tiers,
    next_tier_label,
    render_feedback,
    DIFFICULTY_COLORS,
    SOLUTION_TIERS,
)

from .progress import (
    get_progress_css,
    render_stars_text,
    render_lesson_stars,
    render_progress_bar,
    milestone_label,
)

from .material import (
    get_material_css,
    render_structured_lesson,
)

from .achievement import (
    get_achievement_css,
    render_achievement_panel,
    decode_artifact,
)

__all__ = [
    # Exercise
    "get_exercise_css",
    "render_difficulty_badge",
    "render_type_badge",
    "render_exercise_header",
    "solution_tiers",
    "next_tier_label",
    "render_feedback",
    "DIFFICULTY_COLORS",
    "SOLUTION_TIERS",
    # Progress
    "get_progress_css",
    "render_stars_text",
    "render_lesson_stars",
    "render_progress_bar",
    "milestone_label",
    # Material
    "get_material_css",
    "render_structured_lesson",
    # Achievement
    "get_achievement_css",
    "render_achievement_panel",
    "decode_artifact",
]
