"""Database models."""

from studypath.models.learner import Learner
from studypath.models.roadmap import Roadmap
from studypath.models.study_session import StudySession

__all__ = [
    "Learner",
    "Roadmap",
    "StudySession",
]
