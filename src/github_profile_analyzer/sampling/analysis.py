from logging import Logger
from typing import Any, Protocol

from fastmcp.utilities.logging import get_logger
from pydantic import BaseModel, ValidationError

from github_profile_analyzer.clients.errors.inference import EmptyResponseError, InvalidResponseError
from github_profile_analyzer.clients.inference import InferenceClient
from github_profile_analyzer.clients.models.github import ProfileData
from github_profile_analyzer.models.analysis import AnalysisOutcome, AnalysisResult, GrowthRoadmap, InsufficientDataSignal
from github_profile_analyzer.sampling.extract import parse_json_object
from github_profile_analyzer.sampling.prompts import (
    ANALYSIS_SYSTEM_PROMPT,
    ROADMAP_SYSTEM_PROMPT,
    build_analysis_prompt,
    build_roadmap_prompt,
)

INSUFFICIENT_DATA_SENTINEL = "insufficient_data"


class TextGenerator(Protocol):
    async def generate(self, system_prompt: str, user_prompt: str, action: str) -> str: ...


class AnalysisEngine:
    """Turns a profile snapshot into a structured judgment by prompting the local model."""

    inference_client: TextGenerator
    logger: Logger

    def __init__(self, inference_client: TextGenerator | None = None, logger: Logger | None = None):
        self.inference_client = inference_client or InferenceClient()
        self.logger = logger or get_logger(name=__name__)

    async def _generate_object(self, action: str, system_prompt: str, user_prompt: str) -> dict[str, Any]:
        text: str = await self.inference_client.generate(system_prompt=system_prompt, user_prompt=user_prompt, action=action)

        if not text.strip():
            raise EmptyResponseError(action=action)

        try:
            return parse_json_object(text=text)
        except ValueError as e:
            # The raw model output is only ever logged, never returned to the caller
            self.logger.error(f"Model returned unparseable output for {action}: {e}\n{text}")  # noqa: TRY400
            raise InvalidResponseError(action=action, message=str(e)) from e

    def _validate[T: BaseModel](self, action: str, obj: dict[str, Any], model: type[T]) -> T:
        try:
            return model.model_validate(obj)
        except ValidationError as e:
            self.logger.error(f"Model output for {action} did not match {model.__name__}: {e}")  # noqa: TRY400
            raise InvalidResponseError(action=action, message=f"Response did not match {model.__name__}") from e

    async def generate_analysis(self, profile_data: ProfileData) -> AnalysisOutcome:
        """Produce the full analysis, or the model's signal that there was nothing to analyze."""

        action = f"Analysis of {profile_data.user.login}"

        obj = await self._generate_object(
            action=action, system_prompt=ANALYSIS_SYSTEM_PROMPT, user_prompt=build_analysis_prompt(profile_data=profile_data)
        )

        if obj.get("error") == INSUFFICIENT_DATA_SENTINEL:
            self.logger.info(f"Model reported insufficient data for {profile_data.user.login}")
            return InsufficientDataSignal()

        return self._validate(action=action, obj=obj, model=AnalysisResult)

    async def generate_roadmap(self, profile_data: ProfileData) -> GrowthRoadmap:
        """Produce a growth roadmap from the user's contribution history."""

        action = f"Growth roadmap for {profile_data.user.login}"

        obj = await self._generate_object(
            action=action, system_prompt=ROADMAP_SYSTEM_PROMPT, user_prompt=build_roadmap_prompt(profile_data=profile_data)
        )

        return self._validate(action=action, obj=obj, model=GrowthRoadmap)
