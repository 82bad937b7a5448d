"""
Progress renderer - Stars, the course progress bar and milestone labels.
"""

import html

from statlab.classroom.progress import completion_percent
from statlab.schemas import LessonStars, MilestoneStatus


MAX_STARS = 3

MILESTONE_ICONS = {
    MilestoneStatus.LOCKED: "🔒",
    MilestoneStatus.UNLOCKABLE: "🎁",
    MilestoneStatus.CLAIMED: "🏆",
}


def get_progress_css() -> str:
    """Get CSS styles for progress display."""
    return """
    <style>
    .progress-box {
        background: #f5f7fa;
        border-radius: 10px;
        padding: 0.8em 1em;
        margin-bottom: 1em;
    }
    .progress-label {
        display: flex;
        justify-content: space-between;
        font-size: 0.9em;
        color: #455A64;
        margin-bottom: 0.4em;
    }
    .progress-track {
        background: #dfe4ea;
        border-radius: 6px;
        height: 10px;
        overflow: hidden;
    }
    .progress-fill {
        background: linear-gradient(90deg, #42A5F5, #1E88E5);
        height: 100%;
    }
    .lesson-stars {
        color: #FFB300;
        letter-spacing: 0.1em;
    }
    .lesson-stars .empty {
        color: #CFD8DC;
    }
    </style>
    """


def render_stars_text(stars: int) -> str:
    """Plain-text stars, e.g. ★★☆ for 2 of 3."""
    filled = max(0, min(stars, MAX_STARS))
    return "★" * filled + "☆" * (MAX_STARS - filled)


def render_lesson_stars(lesson_stars: LessonStars) -> str:
    filled = max(0, min(lesson_stars.stars, MAX_STARS))
    title = f"{lesson_stars.completed_count}/{lesson_stars.total_count} exercises completed"
    return (
        f'<span class="lesson-stars" title="{html.escape(title)}">'
        f'{"★" * filled}<span class="empty">{"★" * (MAX_STARS - filled)}</span></span>'
    )


def render_progress_bar(completed: int, total: int) -> str:
    """Course-wide progress bar with a completed/total label."""
    percent = completion_percent(completed, total)
    return f"""
    <div class="progress-box">
        <div class="progress-label">
            <span>{completed} / {total} exercises</span>
            <span>{percent:g}%</span>
        </div>
        <div class="progress-track"><div class="progress-fill" style="width:{percent}%"></div></div>
    </div>
    """


def milestone_label(milestone: int, status: MilestoneStatus) -> str:
    """Button label for a milestone, e.g. '🎁 20 exercises'."""
    return f"{MILESTONE_ICONS[status]} {milestone} exercises"
