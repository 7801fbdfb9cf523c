"""Engine entry point: process lifespan and orchestrator wiring."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from studypath import models  # noqa: F401  (registers tables on Base.metadata)
from studypath.agent.content_generator import ContentGenerator, LLMContentGenerator
from studypath.core.clock import Clock
from studypath.core.config import get_settings
from studypath.core.database import close_db, init_db
from studypath.core.logging import configure_logging, get_logger
from studypath.services.roadmap_orchestrator import RoadmapOrchestrator

settings = get_settings()
logger = get_logger(__name__)


def create_orchestrator(
    generator: ContentGenerator | None = None, clock: Clock | None = None
) -> RoadmapOrchestrator:
    """Build the orchestrator, defaulting to the LLM-backed content generator."""
    return RoadmapOrchestrator(generator or LLMContentGenerator(), clock=clock, settings=settings)


@asynccontextmanager
async def lifespan(
    generator: ContentGenerator | None = None, clock: Clock | None = None
) -> AsyncIterator[RoadmapOrchestrator]:
    """Process lifespan manager."""
    # Startup
    configure_logging(debug=settings.DEBUG)
    logger.info(
        "Starting StudyPath",
        version=settings.APP_VERSION,
        env=settings.ENV,
        debug=settings.DEBUG,
    )
    await init_db()
    yield create_orchestrator(generator, clock)
    # Shutdown
    logger.info("Shutting down StudyPath")
    await close_db()
