"""Shared fixtures: in-memory database, fixed clock and a scripted content generator."""

import os

# Test-mode settings, applied before the cached settings are first read
os.environ.setdefault("ENV", "test")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from studypath.core.clock import FixedClock
from studypath.core.config import Settings
from studypath.core.database import Base, enable_sqlite_savepoints
from studypath.models import Learner
from studypath.schemas.learner import CompetencyProfile, LearnerPreferences, SkillMatrixEntry
from studypath.schemas.roadmap import RoadmapGoal, Weakness
from studypath.services import learner_service
from studypath.services.roadmap_orchestrator import RoadmapOrchestrator
from tests.helpers import MONDAY, FakeContentGenerator


@pytest_asyncio.fixture
async def test_engine():
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", poolclass=StaticPool)
    enable_sqlite_savepoints(engine)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def test_session(test_engine) -> AsyncSession:
    session_factory = async_sessionmaker(
        test_engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
    )
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(MONDAY)


@pytest.fixture
def generator() -> FakeContentGenerator:
    return FakeContentGenerator()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        RESOURCE_AUTO_COMPLETE_SECONDS=5,
        MISSED_SKIP_LIMIT=2,
        DAILY_FALLBACK_ENABLED=False,
        MISTAKE_PRACTICE_LIMIT=40,
    )


@pytest.fixture
def orchestrator(
    generator: FakeContentGenerator, clock: FixedClock, settings: Settings
) -> RoadmapOrchestrator:
    return RoadmapOrchestrator(generator, clock=clock, settings=settings)


@pytest.fixture
def goal() -> RoadmapGoal:
    return RoadmapGoal(
        user_prompt="Reach 750 on the exam",
        current_score=450,
        target_score=750,
        study_time_per_day=60,
        study_days_per_week=5,
        weaknesses=[
            Weakness(skill_key="grammar", skill_name="Grammar", severity="high", accuracy=42),
            Weakness(skill_key="listening", skill_name="Listening", severity="medium"),
        ],
    )


@pytest_asyncio.fixture
async def learner(test_session: AsyncSession) -> Learner:
    return await learner_service.create_learner(
        test_session,
        username="learner",
        email="learner@test.com",
        preferences=LearnerPreferences(study_days_of_week=[1, 2, 3, 4, 5], current_level="B1"),
        competency=CompetencyProfile(
            current_level="B1",
            skill_matrix=[
                SkillMatrixEntry(skill="grammar", current_accuracy=42),
                SkillMatrixEntry(skill="vocabulary", current_accuracy=55),
                SkillMatrixEntry(skill="reading", current_accuracy=81),
            ],
        ),
    )

