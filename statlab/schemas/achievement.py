"""
Achievement schemas for StatLab.

Defines Pydantic models for the milestone reward system:
- Persisted achievements (one per milestone, immutable)
- Ephemeral display state while a claim is in flight or shown
- User profile used as generation input
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict


class ArtifactType(str, Enum):
    IMAGE = "image"


class MilestoneStatus(str, Enum):
    """Derived status of a milestone; never stored."""
    LOCKED = "locked"
    UNLOCKABLE = "unlockable"
    CLAIMED = "claimed"


class Achievement(BaseModel):
    model_config = ConfigDict(frozen=True)

    milestone: int
    unlocked_at: datetime
    artifact_type: ArtifactType = ArtifactType.IMAGE
    title: str
    narrative: str
    content_base64: Optional[str] = None


class AchievementDisplayState(BaseModel):
    """What the achievement dialog shows. Not persisted."""
    model_config = ConfigDict(frozen=True)

    milestone: int
    is_loading: bool = False
    artifact_type: Optional[ArtifactType] = None
    title: Optional[str] = None
    narrative: Optional[str] = None
    content_base64: Optional[str] = None
    error: Optional[str] = None


class UserProfile(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str = "Student"
    email: str = "student@statlab.local"
    photo_base64: Optional[str] = None
    photo_mime_type: Optional[str] = None

    @property
    def has_photo(self) -> bool:
        return bool(self.photo_base64 and self.photo_mime_type)


class ArtifactRequest(BaseModel):
    """Everything the gateway needs to generate one milestone artifact."""
    model_config = ConfigDict(frozen=True)

    milestone: int
    title: str
    narrative: str
    prompt: str
    input_image_base64: Optional[str] = None
    input_image_mime_type: Optional[str] = None


class ArtifactResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    artifact_type: ArtifactType = ArtifactType.IMAGE
    title: str
    narrative: str
    content_base64: str
