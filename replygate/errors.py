"""
Error taxonomy for replygate.

Only store failures (and the pause-all abort built on them) are meant to reach
operators. Classification, skill and retrieval failures are recovered inside the
component that raised them.
"""


class ReplyGateError(Exception):
    """Base class for all replygate errors."""


class StoreUnavailable(ReplyGateError):
    """The TTL store could not be reached or rejected an operation."""

    def __init__(self, message: str, key: str | None = None):
        super().__init__(message)
        self.key = key


class PauseAllError(StoreUnavailable):
    """
    Pausing every known contact failed while lifting the global pause.

    The global pause is left in place whenever this is raised.
    """

    def __init__(self, message: str, paused: int = 0, total: int | None = None):
        super().__init__(message)
        self.paused = paused
        self.total = total

    @property
    def partial(self) -> bool:
        """True when some, but not all, contacts were paused."""
        return self.paused > 0 and self.total is not None and self.paused < self.total


class SkillError(ReplyGateError):
    """Base class for skill lifecycle errors."""

    def __init__(self, skill_id: str, message: str):
        super().__init__(message)
        self.skill_id = skill_id


class SkillNotActivatedError(SkillError):
    """A skill was executed before activation (a programming error)."""

    def __init__(self, skill_id: str):
        super().__init__(skill_id, f"Skill {skill_id} is not activated")


class SkillPermissionError(SkillError):
    """A skill requested permissions that were not granted."""

    def __init__(self, skill_id: str, missing: list[str]):
        super().__init__(
            skill_id,
            f"Skill {skill_id} requires ungranted permissions: {', '.join(missing)}",
        )
        self.missing = missing


class SkillRegistrationError(SkillError):
    """Duplicate or unknown skill id."""


class SkillTimeout(SkillError):
    """A skill did not finish within its timeout."""

    def __init__(self, skill_id: str, timeout_seconds: float):
        super().__init__(
            skill_id,
            f"Skill {skill_id} execution timed out after {timeout_seconds:.2f}s",
        )
        self.timeout_seconds = timeout_seconds


class ClassificationFailure(ReplyGateError):
    """The classifier call failed or returned an unusable label."""


class RetrievalFailure(ReplyGateError):
    """A retrieval strategy failed."""
