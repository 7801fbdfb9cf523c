"""Tests for the engine entry point."""

import pytest

from studypath.agent.content_generator import LLMContentGenerator
from studypath.core.clock import FixedClock
from studypath.core.database import get_db_session
from studypath.main import create_orchestrator, lifespan
from studypath.schemas.learner import LearnerPreferences
from studypath.schemas.roadmap import RoadmapGoal
from studypath.services import learner_service
from tests.helpers import MONDAY, FakeContentGenerator


def test_default_orchestrator_uses_llm_generator():
    orchestrator = create_orchestrator()

    assert isinstance(orchestrator.generator, LLMContentGenerator)
    assert orchestrator.settings.MISSED_SKIP_LIMIT == 2


@pytest.mark.asyncio
async def test_lifespan_end_to_end(goal: RoadmapGoal):
    generator = FakeContentGenerator()

    async with lifespan(generator, FixedClock(MONDAY)) as orchestrator:
        async with get_db_session() as db:
            learner = await learner_service.create_learner(
                db, username="lifespan", preferences=LearnerPreferences(current_level="B2")
            )
            roadmap = await orchestrator.generate_roadmap(db, learner.id, goal)
            today = await orchestrator.get_today_session(db, learner.id)

        assert today.roadmap_id == roadmap.id
        assert today.session.day_number == 1

        async with get_db_session() as db:
            active = await orchestrator.get_active_roadmap(db, learner.id)
            assert active.id == roadmap.id
