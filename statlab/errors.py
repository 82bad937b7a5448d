"""Exception types raised inside StatLab and converted at the controller boundary."""


class StatLabError(Exception):
    """Base class for StatLab domain errors."""


class AchievementError(StatLabError):
    """Achievement artifact could not be generated."""


class MissingPrerequisiteError(AchievementError):
    """The preceding milestone's artifact is required but absent."""

    def __init__(self, milestone: int, previous: int):
        self.milestone = milestone
        self.previous = previous
        super().__init__(
            f"The artifact from milestone {previous} is required to generate "
            f"the reward for milestone {milestone}."
        )


class ExportError(StatLabError):
    """Nothing to export for the requested scope."""
