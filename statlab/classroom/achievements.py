"""
Achievements - Milestone unlocking and reward artifact lineage.

A milestone moves Locked -> Unlockable -> Claimed. Unlockable is derived from
progress on every render and never stored. Claimed means an Achievement
record exists; records are created once and never replaced.

Artifacts form a chain: the reward for a milestone is generated from the
artifact of the milestone just before it. The first milestone starts from
the student's profile photo, or from a generic subject when there is none.

The claim/generate/persist sequence itself lives in the controller, which
owns the single in-flight flag.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Mapping, Optional, Sequence

from statlab.config import MILESTONES
from statlab.errors import MissingPrerequisiteError
from statlab.schemas import (
    Achievement,
    AchievementDisplayState,
    ArtifactRequest,
    ArtifactResult,
    MilestoneStatus,
    UserProfile,
)
from statlab.utils.prompt_loader import load_prompt


logger = logging.getLogger(__name__)

ARTIFACT_MIME_TYPE = "image/png"


@dataclass(frozen=True)
class MilestoneNarrative:
    """Title, story text and image prompt for one milestone."""
    title: str
    narrative: str
    prompt: str
    generic_prompt: Optional[str] = None  # first milestone without a profile photo


def load_narratives(prompts_dir: Optional[Path] = None) -> dict[int, MilestoneNarrative]:
    """Load milestone narratives from the achievements prompt template."""
    template = load_prompt("achievements", prompts_dir, required_keys=("milestones",))
    return {
        int(milestone): MilestoneNarrative(
            title=entry["title"],
            narrative=entry["narrative"],
            prompt=entry["prompt"].strip(),
            generic_prompt=(entry.get("generic_prompt") or "").strip() or None,
        )
        for milestone, entry in template["milestones"].items()
    }


# -----------------------------------------------------------------------------
# Unlock derivation
# -----------------------------------------------------------------------------

def validate_milestone(milestone: int, milestones: Sequence[int] = MILESTONES) -> int:
    if milestone not in milestones:
        raise ValueError(f"Unknown milestone: {milestone}")
    return milestone


def available_milestones(total_exercises: int, milestones: Sequence[int] = MILESTONES) -> list[int]:
    """Milestones reachable with the current course size."""
    return [m for m in milestones if m <= total_exercises]


def is_unlocked(milestone: int, completed: int, test_mode: bool = False) -> bool:
    return test_mode or completed >= milestone


def milestone_status(
    milestone: int,
    completed: int,
    achievements: Mapping[int, Achievement],
    test_mode: bool = False,
) -> MilestoneStatus:
    """Derive a milestone's status from progress, stored records and test mode."""
    if milestone in achievements:
        return MilestoneStatus.CLAIMED
    if is_unlocked(milestone, completed, test_mode):
        return MilestoneStatus.UNLOCKABLE
    return MilestoneStatus.LOCKED


def previous_milestone(milestone: int, milestones: Sequence[int] = MILESTONES) -> Optional[int]:
    """The milestone immediately before `milestone` in the fixed sequence."""
    ordered = sorted(milestones)
    index = ordered.index(validate_milestone(milestone, ordered))
    return ordered[index - 1] if index > 0 else None


# -----------------------------------------------------------------------------
# Generation input
# -----------------------------------------------------------------------------

def build_artifact_request(
    milestone: int,
    profile: UserProfile,
    achievements: Mapping[int, Achievement],
    narratives: Mapping[int, MilestoneNarrative],
    milestones: Sequence[int] = MILESTONES,
) -> ArtifactRequest:
    """
    Resolve the input image and prompt for a milestone artifact.

    Raises:
        MissingPrerequisiteError: If the preceding milestone has no artifact
        ValueError: If the milestone is unknown or has no narrative
    """
    validate_milestone(milestone, milestones)
    step = narratives.get(milestone)
    if step is None:
        raise ValueError(f"No narrative configured for milestone {milestone}")

    previous = previous_milestone(milestone, milestones)
    if previous is None:
        if profile.has_photo:
            return ArtifactRequest(
                milestone=milestone,
                title=step.title,
                narrative=step.narrative,
                prompt=step.prompt,
                input_image_base64=profile.photo_base64,
                input_image_mime_type=profile.photo_mime_type,
            )
        return ArtifactRequest(
            milestone=milestone,
            title=step.title,
            narrative=step.narrative,
            prompt=step.generic_prompt or step.prompt,
        )

    prior = achievements.get(previous)
    if prior is None or not prior.content_base64:
        raise MissingPrerequisiteError(milestone, previous)

    return ArtifactRequest(
        milestone=milestone,
        title=step.title,
        narrative=step.narrative,
        prompt=step.prompt,
        input_image_base64=prior.content_base64,
        input_image_mime_type=ARTIFACT_MIME_TYPE,
    )


def create_achievement(
    milestone: int,
    result: ArtifactResult,
    unlocked_at: Optional[datetime] = None,
) -> Achievement:
    return Achievement(
        milestone=milestone,
        unlocked_at=unlocked_at or datetime.now(),
        artifact_type=result.artifact_type,
        title=result.title,
        narrative=result.narrative,
        content_base64=result.content_base64,
    )


# -----------------------------------------------------------------------------
# Display records
# -----------------------------------------------------------------------------

def loading_display(milestone: int) -> AchievementDisplayState:
    return AchievementDisplayState(milestone=milestone, is_loading=True)


def display_from_achievement(achievement: Achievement) -> AchievementDisplayState:
    """Non-loading display copying every field of a stored achievement."""
    return AchievementDisplayState(
        milestone=achievement.milestone,
        is_loading=False,
        artifact_type=achievement.artifact_type,
        title=achievement.title,
        narrative=achievement.narrative,
        content_base64=achievement.content_base64,
    )


def error_display(milestone: int, error: Exception | str) -> AchievementDisplayState:
    """
    Failed-claim display. A missing prerequisite keeps its own message;
    any other failure is wrapped in a generic retry prompt.
    """
    if isinstance(error, MissingPrerequisiteError):
        message = str(error)
    else:
        reason = str(error).strip() or "unknown error"
        message = f"Failed to generate the reward: {reason} Please try again."
    return AchievementDisplayState(milestone=milestone, is_loading=False, error=message)
