"""
Material renderer - Generated lesson material.

Section bodies of a StructuredLesson are HTML produced by the model and are
inserted as-is; section titles are escaped.
"""

import html

from statlab.schemas import StructuredLesson


MATERIAL_SECTIONS = (
    ("introduction", "Introduction", "📖"),
    ("theory", "Theory", "📐"),
    ("examples", "Worked examples", "🧪"),
    ("reflection_questions", "Reflection questions", "🤔"),
)


def get_material_css() -> str:
    """Get CSS styles for generated material."""
    return """
    <style>
    .material-section {
        background: #fafafa;
        border-radius: 10px;
        padding: 1em 1.2em;
        margin: 1em 0;
        border-left: 4px solid #5C6BC0;
    }
    .material-title {
        font-weight: 700;
        color: #303F9F;
        font-size: 1.1em;
        margin-bottom: 0.5em;
    }
    </style>
    """


def render_structured_lesson(lesson: StructuredLesson) -> str:
    """Render the four material sections in order."""
    parts = []
    for field, title, icon in MATERIAL_SECTIONS:
        parts.append('<div class="material-section">')
        parts.append(f'<div class="material-title">{icon} {html.escape(title)}</div>')
        parts.append(f'<div class="material-body">{getattr(lesson, field)}</div>')
        parts.append('</div>')
    return ''.join(parts)
