"""Engine error taxonomy.

Having no active roadmap is not an error: operations return ``None`` for that
state so callers can offer to generate a plan.
"""


class StudyPathError(Exception):
    """Base class for engine errors."""


class InvalidGoalError(StudyPathError, ValueError):
    """Roadmap generation input is malformed (non-positive score or time budget)."""


class GenerationFailedError(StudyPathError):
    """The content generator failed or returned unusable output."""


class ContentGenerationFailedError(GenerationFailedError):
    """Daily activity generation failed; no session was persisted."""


class NotFoundError(StudyPathError, ValueError):
    """Referenced roadmap, session, item or resource does not exist (for this learner)."""

    def __init__(self, kind: str, identifier: object) -> None:
        super().__init__(f"{kind} {identifier} not found")
        self.kind = kind
        self.identifier = identifier


class InvalidProgressValueError(StudyPathError, ValueError):
    """A progress or score value fell outside [0, 100]."""


class ConcurrentModificationError(StudyPathError):
    """The store detected a conflicting write on a single-writer entity."""
