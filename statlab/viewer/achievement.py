"""
Achievement renderer - The milestone reward panel.

Provides:
- Loading / error / artifact views of an AchievementDisplayState
- Decoding of stored artifact content for st.image
"""

import base64
import binascii
import html
import logging
from typing import Optional

from statlab.schemas import AchievementDisplayState


logger = logging.getLogger(__name__)


def get_achievement_css() -> str:
    """Get CSS styles for the reward panel."""
    return """
    <style>
    .achievement-panel {
        background: linear-gradient(135deg, #fff8e1, #ffecb3);
        border-radius: 14px;
        padding: 1.2em 1.5em;
        margin: 1em 0;
        border: 1px solid #FFD54F;
    }
    .achievement-milestone {
        font-size: 0.85em;
        color: #8D6E63;
        text-transform: uppercase;
        letter-spacing: 0.05em;
    }
    .achievement-title {
        font-size: 1.4em;
        font-weight: 700;
        color: #4E342E;
        margin: 0.2em 0 0.5em 0;
    }
    .achievement-narrative {
        color: #5D4037;
        line-height: 1.6;
        font-style: italic;
    }
    .achievement-loading {
        color: #6D4C41;
    }
    .achievement-error {
        background: #ffebee;
        border-radius: 8px;
        padding: 0.8em 1em;
        color: #B71C1C;
    }
    </style>
    """


def render_achievement_panel(display: AchievementDisplayState) -> str:
    """
    Render the text part of the reward panel.

    The artifact image itself is shown with st.image from decode_artifact().
    """
    parts = ['<div class="achievement-panel">']
    parts.append(f'<div class="achievement-milestone">Milestone: {display.milestone} exercises</div>')

    if display.is_loading:
        parts.append(
            '<div class="achievement-loading">'
            'Generating your reward... this can take a little while.</div>'
        )
    elif display.error:
        parts.append(f'<div class="achievement-error">{html.escape(display.error)}</div>')
    else:
        if display.title:
            parts.append(f'<div class="achievement-title">{html.escape(display.title)}</div>')
        if display.narrative:
            parts.append(f'<div class="achievement-narrative">{html.escape(display.narrative)}</div>')

    parts.append('</div>')
    return ''.join(parts)


def decode_artifact(display: AchievementDisplayState) -> Optional[bytes]:
    """Raw artifact bytes, or None when there is nothing valid to show."""
    if display.is_loading or display.error or not display.content_base64:
        return None
    try:
        return base64.b64decode(display.content_base64, validate=True)
    except (binascii.Error, ValueError) as e:
        logger.warning(f"Stored artifact for milestone {display.milestone} is not valid base64: {e}")
        return None
