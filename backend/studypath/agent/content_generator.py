"""Content generator collaborator.

The engine depends only on the ``ContentGenerator`` protocol. The LLM-backed
implementation below produces the three payload shapes (roadmap, daily
activities, week days) and validates each into its tagged boundary model.
It never substitutes default content: a failure surfaces as
``GenerationFailedError`` (or ``ContentGenerationFailedError`` for daily
activities) and the caller decides whether to retry.
"""

from typing import Protocol, TypeVar

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import HumanMessage, SystemMessage
from pydantic import BaseModel

from studypath.agent.llm import get_llm
from studypath.agent.llm_utils import normalize_keys, parse_llm_json_response
from studypath.core.errors import ContentGenerationFailedError, GenerationFailedError
from studypath.core.logging import get_logger
from studypath.schemas.generation import (
    DailyActivityContext,
    GeneratedActivities,
    GeneratedRoadmap,
    GeneratedWeek,
    RoadmapContext,
    WeekPlanContext,
)

logger = get_logger(__name__)

T = TypeVar("T", bound=BaseModel)


class ContentGenerator(Protocol):
    async def generate_roadmap(self, context: RoadmapContext) -> GeneratedRoadmap: ...

    async def generate_daily_activities(
        self, context: DailyActivityContext
    ) -> GeneratedActivities: ...

    async def generate_week_days(self, context: WeekPlanContext) -> GeneratedWeek: ...


# ============================================================================
# Prompts
# ============================================================================

ROADMAP_SYSTEM_PROMPT = """
You are an expert exam-preparation coach. Build a multi-week study roadmap that
closes the learner's diagnosed weaknesses within their time budget.

Rules:
1. Order weeks from foundations to exam-style practice; most severe weaknesses first.
2. Every week targets a small set of skills and domains.
3. Respect the learner's minutes per day and study days per week.
4. Daily focuses are optional; include them at least for week 1 when you can.

Return ONLY JSON with exactly these snake_case fields:
{
  "current_level": "B1",
  "total_weeks": 8,
  "learning_strategy": {"foundation_focus": 60, "domain_focus": 40},
  "phase_summary": [
    {"week_range": "1-2", "phase_title": "...", "description": "...", "key_focus_areas": ["..."]}
  ],
  "weekly_focuses": [
    {
      "week_number": 1,
      "title": "...",
      "summary": "...",
      "focus_skills": ["..."],
      "target_weaknesses": [
        {"skill_key": "...", "skill_name": "...", "severity": "high",
         "category": "...", "accuracy": 42}
      ],
      "recommended_domains": ["..."],
      "foundation_weight": 60,
      "expected_progress": 10,
      "daily_focuses": [
        {"focus": "...", "target_skills": ["..."], "suggested_domains": ["..."],
         "estimated_minutes": 60, "foundation_weight": 50, "is_critical": false}
      ]
    }
  ]
}
"""

DAILY_SYSTEM_PROMPT = """
You plan a single study session. Split the available minutes into 2-4
activities that train the day's target skills, reviewing catch-up skills first
when any are listed.

Return ONLY JSON:
{
  "activities": [
    {"title": "...", "description": "...", "estimated_time": 15,
     "activity_type": "learn | practice | review | drill",
     "resource_type": "article | video | personalized_guide | vocabulary_set",
     "skills_to_improve": ["..."], "total_questions": 10}
  ],
  "reasoning": "one sentence"
}
"""

WEEK_SYSTEM_PROMPT = """
You re-plan the remaining days of a study week. Produce exactly one daily
focus per listed study day, in order. Skills and domains the learner already
covered this week should be de-prioritized, not repeated.

Return ONLY JSON:
{
  "daily_focuses": [
    {"focus": "...", "target_skills": ["..."], "suggested_domains": ["..."],
     "estimated_minutes": 60, "foundation_weight": 50, "is_critical": false}
  ]
}
"""


def _roadmap_prompt(context: RoadmapContext) -> str:
    weaknesses = "\n".join(
        f"- {w.skill_name} ({w.skill_key}): severity={w.severity}, "
        f"category={w.category or 'n/a'}, "
        f"accuracy={w.accuracy if w.accuracy is not None else 'n/a'}"
        for w in context.weaknesses
    )
    return (
        f"Learner goal: {context.user_prompt}\n"
        f"Current level: {context.current_level or 'unknown'}\n"
        f"Current score: {context.current_score} -> target score: {context.target_score}\n"
        f"Study time: {context.study_time_per_day} minutes/day, "
        f"{context.study_days_per_week} days/week\n"
        f"Diagnosed weaknesses:\n{weaknesses or '- none provided'}"
    )


def _daily_prompt(context: DailyActivityContext) -> str:
    lowest = ", ".join(f"{s.skill} ({s.current_accuracy:.0f}%)" for s in context.lowest_skills)
    return (
        f"Week {context.week_number}: {context.week_title}\n{context.week_summary}\n"
        f"Today's focus: {context.focus}\n"
        f"Target skills: {', '.join(context.target_skills) or 'n/a'}\n"
        f"Suggested domains: {', '.join(context.suggested_domains) or 'n/a'}\n"
        f"Available minutes: {context.available_minutes}\n"
        f"Learner level: {context.current_level}\n"
        f"Lowest skills: {lowest or 'n/a'}\n"
        f"Catch-up skills from skipped days: {', '.join(context.catch_up_skills) or 'none'}"
    )


def _week_prompt(context: WeekPlanContext) -> str:
    return (
        f"Week {context.week_number}: {context.week_title}\n{context.week_summary}\n"
        f"Week focus skills: {', '.join(context.focus_skills) or 'n/a'}\n"
        f"Recommended domains: {', '.join(context.recommended_domains) or 'n/a'}\n"
        f"Study days to plan (0=Sunday): {context.days_of_week}\n"
        f"Minutes per day: {context.minutes_per_day}\n"
        f"Learner level: {context.current_level}\n"
        f"Already covered skills: {', '.join(context.covered_skills) or 'none'}\n"
        f"Already covered domains: {', '.join(context.covered_domains) or 'none'}"
    )


# ============================================================================
# LLM implementation
# ============================================================================


class LLMContentGenerator:
    """``ContentGenerator`` backed by a LangChain chat model."""

    def __init__(self, llm: BaseChatModel | None = None) -> None:
        self._llm = llm

    @property
    def llm(self) -> BaseChatModel:
        return self._llm if self._llm is not None else get_llm()

    async def generate_roadmap(self, context: RoadmapContext) -> GeneratedRoadmap:
        return await self._invoke(
            GeneratedRoadmap,
            ROADMAP_SYSTEM_PROMPT,
            _roadmap_prompt(context),
            GenerationFailedError,
        )

    async def generate_daily_activities(
        self, context: DailyActivityContext
    ) -> GeneratedActivities:
        return await self._invoke(
            GeneratedActivities,
            DAILY_SYSTEM_PROMPT,
            _daily_prompt(context),
            ContentGenerationFailedError,
        )

    async def generate_week_days(self, context: WeekPlanContext) -> GeneratedWeek:
        return await self._invoke(
            GeneratedWeek,
            WEEK_SYSTEM_PROMPT,
            _week_prompt(context),
            GenerationFailedError,
        )

    async def _invoke(
        self,
        schema: type[T],
        system_prompt: str,
        user_prompt: str,
        error_cls: type[GenerationFailedError],
    ) -> T:
        messages = [SystemMessage(content=system_prompt), HumanMessage(content=user_prompt)]

        try:
            # json_mode keeps OpenAI-compatible providers without tool calling working
            structured_llm = self.llm.with_structured_output(schema, method="json_mode")
            result = await structured_llm.ainvoke(messages)
            if isinstance(result, schema):
                return result
            return schema.model_validate(normalize_keys(result))
        except Exception as structured_error:
            logger.warning(
                "Structured output failed, falling back to manual JSON parsing",
                payload=schema.__name__,
                error=str(structured_error),
            )

        try:
            resp = await self.llm.ainvoke(messages)
            data = normalize_keys(parse_llm_json_response(str(resp.content)))
            result = schema.model_validate(data)
        except Exception as fallback_error:
            logger.error(
                "Content generation failed",
                payload=schema.__name__,
                error=str(fallback_error),
                exc_info=True,
            )
            raise error_cls(f"Content generator returned no usable {schema.__name__}") from (
                fallback_error
            )

        logger.info("Content generated (fallback parser)", payload=schema.__name__)
        return result
