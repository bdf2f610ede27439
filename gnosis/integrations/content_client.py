"""
Content Service Client

Async HTTP client for a remote content generation service. Implements the
ContentGenerator protocol.

Endpoints:
    POST /v1/recommendations  -> RecommendationResponse
    POST /v1/activities       -> ActivityResponse

Usage:
    async with ContentServiceClient(settings.content_api_url) as client:
        draft = await client.generate_recommendation(skill, profile, assessments)
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any, TypeVar

import httpx
from loguru import logger
from pydantic import BaseModel, Field

from config import Settings
from gnosis.core.errors import ContentGenerationError
from gnosis.core.models import (
    AssessmentRecord,
    ContentType,
    Difficulty,
    LearnerPatternProfile,
    Skill,
    StepKind,
)
from gnosis.integrations.protocols import ActivityContent, ActivityStep, RecommendationDraft

# Recent per-skill results sent as context with a recommendation request
ASSESSMENT_CONTEXT_SIZE = 5

ResponseModel = TypeVar("ResponseModel", bound=BaseModel)


# =============================================================================
# Response Models
# =============================================================================


class RecommendationResponse(BaseModel):
    title: str
    description: str
    difficulty_level: Difficulty
    content_type: ContentType
    estimated_duration_minutes: int = Field(..., ge=1)
    reasoning: str = ""
    learning_objectives: list[str] = Field(default_factory=list)

    def to_draft(self) -> RecommendationDraft:
        return RecommendationDraft(
            title=self.title,
            description=self.description,
            difficulty=self.difficulty_level,
            content_type=self.content_type,
            estimated_duration_minutes=self.estimated_duration_minutes,
            reasoning=self.reasoning,
            learning_objectives=list(self.learning_objectives),
        )


class ActivityStepModel(BaseModel):
    id: str
    type: StepKind
    title: str
    content: str = ""
    time_estimate_minutes: float = Field(5.0, gt=0)
    cognitive_load: float = Field(0.5, ge=0, le=1)
    hints: list[str] = Field(default_factory=list)


class ActivityResponse(BaseModel):
    title: str
    objectives: list[str] = Field(default_factory=list)
    steps: list[ActivityStepModel] = Field(..., min_length=1)

    def to_content(self) -> ActivityContent:
        return ActivityContent(
            title=self.title,
            objectives=list(self.objectives),
            steps=[
                ActivityStep(
                    step_id=step.id,
                    kind=step.type,
                    title=step.title,
                    body=step.content,
                    time_estimate_minutes=step.time_estimate_minutes,
                    cognitive_load=step.cognitive_load,
                    hints=list(step.hints),
                )
                for step in self.steps
            ],
        )


# =============================================================================
# Client
# =============================================================================


class ContentServiceClient:
    """
    HTTP client for the remote content service.

    Transport errors, non-2xx responses and malformed bodies all surface as
    ContentGenerationError so callers can fall back or retry.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str | None = None,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @classmethod
    def from_settings(cls, settings: Settings) -> ContentServiceClient:
        if not settings.content_api_url:
            raise ValueError("content_api_url is not configured")
        return cls(
            settings.content_api_url,
            api_key=settings.content_api_key,
            timeout=settings.content_api_timeout,
        )

    async def __aenter__(self) -> ContentServiceClient:
        self._ensure_client()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            headers = {"Content-Type": "application/json"}
            if self.api_key:
                headers["Authorization"] = f"Bearer {self.api_key}"

            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers=headers,
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def _post(self, path: str, payload: dict[str, Any], model: type[ResponseModel]) -> ResponseModel:
        client = self._ensure_client()
        try:
            response = await client.post(path, json=payload)
            response.raise_for_status()
            return model.model_validate(response.json())
        except httpx.HTTPStatusError as e:
            logger.warning(f"Content service returned {e.response.status_code} for {path}")
            raise ContentGenerationError(
                f"{path} returned HTTP {e.response.status_code}", cause=e
            ) from e
        except httpx.RequestError as e:
            logger.warning(f"Content service unreachable ({path}): {e}")
            raise ContentGenerationError(f"{path} request failed: {e}", cause=e) from e
        except ValueError as e:
            # Invalid JSON or a body that fails model validation
            logger.warning(f"Content service sent an invalid body for {path}: {e}")
            raise ContentGenerationError(f"{path} returned an invalid body", cause=e) from e

    # =========================================================================
    # ContentGenerator
    # =========================================================================

    async def generate_recommendation(
        self,
        skill: Skill,
        profile: LearnerPatternProfile,
        skill_assessments: Sequence[AssessmentRecord],
    ) -> RecommendationDraft:
        payload = {
            "skill": {
                "skill_id": skill.skill_id,
                "name": skill.name,
                "category": skill.category,
                "current_level": skill.current_level,
                "max_level": skill.max_level,
                "mastery_percentage": skill.mastery_percentage,
                "is_unlocked": skill.is_unlocked,
            },
            "profile": profile.to_dict(),
            "recent_assessments": [
                {
                    "score": a.score,
                    "assessment_type": a.assessment_type,
                    "difficulty_level": a.difficulty_level,
                    "content_format": a.content_format,
                }
                for a in skill_assessments[:ASSESSMENT_CONTEXT_SIZE]
            ],
        }
        response = await self._post("/v1/recommendations", payload, RecommendationResponse)
        logger.debug(f"Content service drafted '{response.title}' for {skill.skill_id}")
        return response.to_draft()

    async def generate_activity(
        self,
        skill_id: str,
        difficulty: Difficulty,
        content_type: ContentType,
        duration_minutes: int,
        profile: LearnerPatternProfile | None = None,
    ) -> ActivityContent:
        payload = {
            "skill_id": skill_id,
            "difficulty_level": difficulty.value,
            "content_type": content_type.value,
            "duration_minutes": duration_minutes,
            "profile": profile.to_dict() if profile else None,
        }
        response = await self._post("/v1/activities", payload, ActivityResponse)
        logger.debug(f"Content service built '{response.title}' with {len(response.steps)} steps")
        return response.to_content()
