"""
Exercise renderer - Exercise cards, badges, solution tiers and feedback.

Provides:
- Difficulty and type badges
- Exercise card header
- Progressive solution tiers (hint → starting guide → full solution)
- Evaluation feedback box
"""

import html
from typing import Optional

from statlab.schemas import (
    Difficulty,
    Evaluation,
    EvaluationResult,
    Exercise,
    ExerciseDraft,
    ExerciseType,
)


DIFFICULTY_COLORS = {
    Difficulty.EASY: "#2E7D32",
    Difficulty.MEDIUM: "#EF6C00",
    Difficulty.HARD: "#C62828",
}

TYPE_ICONS = {
    ExerciseType.CONCEPTUAL: "💡",
    ExerciseType.CALCULATION: "🧮",
    ExerciseType.DATA_INTERPRETATION: "📊",
}

# Order matters: each tier is revealed after the previous one
SOLUTION_TIERS = (
    ("hint", "Hint"),
    ("starting_guide", "Starting guide"),
    ("full_solution", "Full solution"),
)

FEEDBACK_STYLES = {
    EvaluationResult.CORRECT: ("feedback-correct", "✅", "Correct"),
    EvaluationResult.PARTIALLY_CORRECT: ("feedback-partial", "🟡", "Partially correct"),
    EvaluationResult.INCORRECT: ("feedback-incorrect", "❌", "Incorrect"),
    EvaluationResult.EVALUATION_ERROR: ("feedback-error", "⚠️", "Could not evaluate"),
}


def get_exercise_css() -> str:
    """Get CSS styles for exercise display."""
    return """
    <style>
    .exercise-header {
        display: flex;
        align-items: center;
        gap: 0.6em;
        margin: 1em 0 0.5em 0;
    }
    .exercise-number {
        font-weight: 700;
        font-size: 1.1em;
        color: #1a237e;
    }
    .exercise-badge {
        display: inline-block;
        padding: 0.15em 0.6em;
        border-radius: 10px;
        font-size: 0.8em;
        font-weight: 600;
        color: white;
    }
    .exercise-type {
        display: inline-block;
        padding: 0.15em 0.6em;
        border-radius: 10px;
        font-size: 0.8em;
        background: #e8eaf6;
        color: #283593;
    }
    .exercise-done {
        color: #2E7D32;
        font-size: 0.9em;
        font-weight: 600;
    }
    .feedback-box {
        border-radius: 8px;
        padding: 0.8em 1em;
        margin: 0.8em 0;
        border-left: 4px solid;
    }
    .feedback-title {
        font-weight: 700;
        margin-bottom: 0.3em;
    }
    .feedback-correct { background: #e8f5e9; border-color: #2E7D32; }
    .feedback-partial { background: #fffde7; border-color: #F9A825; }
    .feedback-incorrect { background: #ffebee; border-color: #C62828; }
    .feedback-error { background: #eceff1; border-color: #546E7A; }
    </style>
    """


def render_difficulty_badge(difficulty: Difficulty) -> str:
    color = DIFFICULTY_COLORS.get(difficulty, "#607D8B")
    return (
        f'<span class="exercise-badge" style="background:{color}">'
        f'{html.escape(difficulty.value)}</span>'
    )


def render_type_badge(exercise_type: ExerciseType) -> str:
    icon = TYPE_ICONS.get(exercise_type, "")
    return f'<span class="exercise-type">{icon} {html.escape(exercise_type.value)}</span>'


def render_exercise_header(
    exercise: Exercise | ExerciseDraft,
    number: int,
    completed: bool = False,
    title: Optional[str] = None,
) -> str:
    """
    Render the header line of an exercise card.

    The problem statement itself is markdown and is rendered separately.

    Args:
        exercise: Exercise or draft to describe
        number: 1-based position within the lesson
        completed: Whether the student already solved it
        title: Heading to show instead of "Exercise <number>"
    """
    parts = ['<div class="exercise-header">']
    parts.append(f'<span class="exercise-number">{html.escape(title or f"Exercise {number}")}</span>')
    parts.append(render_difficulty_badge(exercise.difficulty))
    parts.append(render_type_badge(exercise.type))
    if completed:
        parts.append('<span class="exercise-done">✓ Completed</span>')
    parts.append('</div>')
    return ''.join(parts)


def solution_tiers(exercise: Exercise | ExerciseDraft, revealed: int) -> list[tuple[str, str]]:
    """
    Solution tiers visible after `revealed` reveals.

    Returns:
        List of (label, markdown) pairs, at most three
    """
    count = max(0, min(revealed, len(SOLUTION_TIERS)))
    return [
        (label, getattr(exercise.solution, field))
        for field, label in SOLUTION_TIERS[:count]
    ]


def next_tier_label(revealed: int) -> Optional[str]:
    """Button label for the next tier, or None when everything is shown."""
    if revealed >= len(SOLUTION_TIERS):
        return None
    return f"Show {SOLUTION_TIERS[revealed][1].lower()}"


def render_feedback(evaluation: Evaluation) -> str:
    """Render an evaluation result with its feedback text."""
    css_class, icon, title = FEEDBACK_STYLES[evaluation.result]
    parts = [f'<div class="feedback-box {css_class}">']
    parts.append(f'<div class="feedback-title">{icon} {title}</div>')
    if evaluation.feedback:
        feedback = html.escape(evaluation.feedback).replace("\n", "<br>")
        parts.append(f'<div class="feedback-text">{feedback}</div>')
    parts.append('</div>')
    return ''.join(parts)
