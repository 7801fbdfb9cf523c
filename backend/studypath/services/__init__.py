"""Service layer modules."""

from studypath.services import (
    calibration_service,
    learner_service,
    mistake_service,
    progress_service,
    roadmap_orchestrator,
    roadmap_service,
    session_materializer,
)
from studypath.services.roadmap_orchestrator import RoadmapOrchestrator

__all__ = [
    "RoadmapOrchestrator",
    "calibration_service",
    "learner_service",
    "mistake_service",
    "progress_service",
    "roadmap_orchestrator",
    "roadmap_service",
    "session_materializer",
]
