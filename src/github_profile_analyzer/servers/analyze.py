import asyncio
from collections.abc import AsyncGenerator
from contextlib import aclosing, suppress
from enum import StrEnum
from logging import Logger
from typing import Any, Protocol

from fastmcp import FastMCP
from fastmcp.exceptions import ToolError
from fastmcp.tools import Tool
from fastmcp.utilities.logging import get_logger
from pydantic import BaseModel, ValidationError
from starlette.requests import Request
from starlette.responses import JSONResponse, Response, StreamingResponse
from starlette.routing import Route

from github_profile_analyzer.clients.cache import AnalysisCache, build_cache_key
from github_profile_analyzer.clients.errors.base import AnalyzerError, ErrorKind
from github_profile_analyzer.clients.errors.github import RateLimitError
from github_profile_analyzer.clients.models.github import CamelModel, GitHubDataPayload, ProfileData
from github_profile_analyzer.models.analysis import (
    AnalysisOutcome,
    AnalysisResponse,
    AnalysisResult,
    ErrorResponse,
    FullAnalysisResponse,
    GrowthResponse,
    GrowthRoadmap,
    InsufficientDataResponse,
    InsufficientDataSignal,
)
from github_profile_analyzer.servers.shared.annotations import FORCE_REFRESH, USERNAME
from github_profile_analyzer.servers.shared.errors import (
    INTERNAL_SERVER_ERROR,
    STATUS_CODE_BY_KIND,
    UNEXPECTED_FAILURE_MESSAGE,
    InputInvalidError,
    public_message_for,
    status_code_for,
)
from github_profile_analyzer.servers.shared.streaming import STREAMING_HEADERS, STREAMING_MEDIA_TYPE, EventChannel, StreamEvent
from github_profile_analyzer.utilities.input import parse_github_input

ANALYZE_PATH = "/api/analyze"

BAD_REQUEST = 400


class ProfileFetcher(Protocol):
    async def aggregate(self, username: str) -> ProfileData: ...


class ProfileAnalyzer(Protocol):
    async def generate_analysis(self, profile_data: ProfileData) -> AnalysisOutcome: ...

    async def generate_roadmap(self, profile_data: ProfileData) -> GrowthRoadmap: ...


class AnalysisState(StrEnum):
    IDLE = "idle"
    FETCHING_PROFILE = "fetching_profile"
    CACHE_CHECK = "cache_check"
    INSUFFICIENT_DATA = "insufficient_data"
    GROWTH = "growth"
    ANALYZING = "analyzing"
    DONE = "done"
    ERROR = "error"


class AnalysisRun:
    """Tracks the state of a single request."""

    def __init__(self, username: str, logger: Logger):
        self.username = username
        self.logger = logger
        self.state = AnalysisState.IDLE

    def transition(self, state: AnalysisState) -> None:
        self.logger.info(f"Analysis of {self.username}: {self.state} -> {state}")
        self.state = state


class AnalyzeRequest(CamelModel):
    username: str
    force_refresh: bool = False
    stream: bool = False


class BufferedResult(BaseModel):
    status_code: int
    payload: dict[str, Any]


class AnalyzeServer:
    """Runs a profile analysis and delivers it either as one response or as a stream of events."""

    profile_fetcher: ProfileFetcher
    profile_analyzer: ProfileAnalyzer
    cache: AnalysisCache[AnalysisResponse]
    logger: Logger

    def __init__(
        self,
        profile_fetcher: ProfileFetcher,
        profile_analyzer: ProfileAnalyzer,
        cache: AnalysisCache[AnalysisResponse],
        logger: Logger | None = None,
    ):
        self.profile_fetcher = profile_fetcher
        self.profile_analyzer = profile_analyzer
        self.cache = cache
        self.logger = logger or get_logger(name=__name__)

    def register_tools(self, fastmcp: FastMCP[Any]) -> FastMCP[Any]:
        fastmcp.add_tool(tool=Tool.from_function(fn=self.analyze_github_profile))
        return fastmcp

    def register_routes(self, fastmcp: FastMCP[Any]) -> FastMCP[Any]:
        _ = fastmcp.custom_route(path=ANALYZE_PATH, methods=["POST"])(self.handle_analyze_request)
        return fastmcp

    def routes(self) -> list[Route]:
        return [Route(path=ANALYZE_PATH, endpoint=self.handle_analyze_request, methods=["POST"])]

    def _error_event(self, run: AnalysisRun, error: AnalyzerError) -> StreamEvent:
        run.transition(AnalysisState.ERROR)

        status_code = status_code_for(error=error)

        if status_code == INTERNAL_SERVER_ERROR:
            self.logger.error(f"Analysis of {run.username} failed: {error}")
        else:
            self.logger.info(f"Analysis of {run.username} ended with {error.kind}: {error}")

        reset_timestamp: int | None = None
        if error.kind == ErrorKind.RATE_LIMITED and isinstance(error, RateLimitError):
            reset_timestamp = error.reset_timestamp

        error_response = ErrorResponse(
            error=public_message_for(error=error),
            status=status_code,
            reset_timestamp=reset_timestamp,
        )

        return StreamEvent.error(data=error_response.to_payload(), status_code=status_code)

    def _insufficient_data_event(self, run: AnalysisRun, github_data: GitHubDataPayload) -> StreamEvent:
        run.transition(AnalysisState.INSUFFICIENT_DATA)

        self.logger.info(f"Not enough data to analyze {run.username}")

        return StreamEvent.error(
            data=InsufficientDataResponse(github_data=github_data).to_payload(),
            status_code=STATUS_CODE_BY_KIND[ErrorKind.INSUFFICIENT_DATA],
        )

    async def _generate_roadmap(self, profile_data: ProfileData) -> GrowthRoadmap | None:
        try:
            return await self.profile_analyzer.generate_roadmap(profile_data=profile_data)
        except AnalyzerError as e:
            self.logger.warning(f"Roadmap generation for {profile_data.user.login} failed, continuing without one: {e}")
            return None

    async def run_analysis(self, raw_username: str, force_refresh: bool = False) -> AsyncGenerator[StreamEvent, None]:
        """Run one analysis, yielding events as they become available and exactly one terminal event."""

        run = AnalysisRun(username=raw_username, logger=self.logger)

        try:
            parsed = parse_github_input(raw=raw_username)

            if parsed.username is None:
                raise InputInvalidError(message=parsed.error or "Username is required")

            run.username = parsed.username

            run.transition(AnalysisState.FETCHING_PROFILE)
            yield StreamEvent.status(step="github", message="Fetching GitHub data...")

            profile_data: ProfileData = await self.profile_fetcher.aggregate(username=parsed.username)
            github_data = GitHubDataPayload.from_profile_data(profile_data=profile_data)

            yield StreamEvent.github_data(data=github_data.model_dump(mode="json", by_alias=True))

            run.transition(AnalysisState.CACHE_CHECK)
            cache_key = build_cache_key(username=parsed.username, updated_at=profile_data.user.updated_at)

            if not force_refresh and (cached := self.cache.get(key=cache_key)) is not None:
                self.logger.info(f"Serving cached analysis of {run.username}")
                run.transition(AnalysisState.DONE)
                yield StreamEvent.complete(data=cached.model_copy(update={"cached": True}).to_payload())
                return

            if not profile_data.has_original_repositories and profile_data.has_pull_requests:
                run.transition(AnalysisState.GROWTH)
                yield StreamEvent.status(step="ai", message="Generating growth roadmap...")

                growth_response = GrowthResponse(github_data=github_data, roadmap=await self._generate_roadmap(profile_data=profile_data))
                self.cache.set(key=cache_key, value=growth_response)

                run.transition(AnalysisState.DONE)
                yield StreamEvent.complete(data=growth_response.to_payload())
                return

            if profile_data.user.public_repos == 0 and not profile_data.has_original_repositories and not profile_data.has_pull_requests:
                yield self._insufficient_data_event(run=run, github_data=github_data)
                return

            run.transition(AnalysisState.ANALYZING)
            yield StreamEvent.status(step="ai", message="AI is analyzing your profile...")

            outcome: AnalysisOutcome = await self.profile_analyzer.generate_analysis(profile_data=profile_data)

            match outcome:
                case InsufficientDataSignal():
                    yield self._insufficient_data_event(run=run, github_data=github_data)
                case AnalysisResult():
                    full_response = FullAnalysisResponse(github_data=github_data, analysis=outcome, low_data=len(profile_data.readmes) == 0)
                    self.cache.set(key=cache_key, value=full_response)

                    run.transition(AnalysisState.DONE)
                    yield StreamEvent.complete(data=full_response.to_payload())

        except AnalyzerError as e:
            yield self._error_event(run=run, error=e)
        except Exception:
            run.transition(AnalysisState.ERROR)
            self.logger.exception(f"Unexpected error analyzing {run.username}")
            yield StreamEvent.error(
                data=ErrorResponse(error=UNEXPECTED_FAILURE_MESSAGE, status=INTERNAL_SERVER_ERROR).to_payload(),
                status_code=INTERNAL_SERVER_ERROR,
            )

    async def analyze(self, raw_username: str, force_refresh: bool = False) -> BufferedResult:
        """Run one analysis to completion and return only its terminal event."""

        async with aclosing(self.run_analysis(raw_username=raw_username, force_refresh=force_refresh)) as events:
            async for event in events:
                if event.is_terminal:
                    return BufferedResult(status_code=event.status_code, payload=event.data)

        msg = f"Analysis of {raw_username} finished without a result"
        raise RuntimeError(msg)

    async def stream_analysis(self, raw_username: str, force_refresh: bool = False) -> AsyncGenerator[str, None]:
        """Run one analysis in the background and yield encoded events as they arrive.

        If the consumer stops iterating, the run is cancelled and anything it still sends is dropped."""

        channel = EventChannel(logger=self.logger)

        async def produce() -> None:
            try:
                async with aclosing(self.run_analysis(raw_username=raw_username, force_refresh=force_refresh)) as events:
                    async for event in events:
                        _ = channel.send(event=event)
            finally:
                channel.close()

        producer = asyncio.create_task(produce())

        try:
            async with aclosing(channel.frames()) as frames:
                async for frame in frames:
                    yield frame
        finally:
            channel.close()

            if not producer.done():
                self.logger.info(f"Client disconnected, cancelling analysis of {raw_username}")
                _ = producer.cancel()

            with suppress(asyncio.CancelledError):
                await producer

    async def handle_analyze_request(self, request: Request) -> Response:
        body: bytes = await request.body()

        try:
            analyze_request = AnalyzeRequest.model_validate_json(body)
        except ValidationError:
            return JSONResponse(content={"error": "Invalid request body"}, status_code=BAD_REQUEST)

        if analyze_request.stream:
            return StreamingResponse(
                content=self.stream_analysis(raw_username=analyze_request.username, force_refresh=analyze_request.force_refresh),
                media_type=STREAMING_MEDIA_TYPE,
                headers=STREAMING_HEADERS,
            )

        result = await self.analyze(raw_username=analyze_request.username, force_refresh=analyze_request.force_refresh)

        return JSONResponse(content=result.payload, status_code=result.status_code)

    async def analyze_github_profile(self, username: USERNAME, force_refresh: FORCE_REFRESH = False) -> dict[str, Any]:
        """Analyze a GitHub profile the way a technical recruiter would.

        Returns a score breakdown, README critiques and concrete improvements for users with their own
        repositories, or a growth roadmap for users who only contribute to other people's projects."""

        result = await self.analyze(raw_username=username, force_refresh=force_refresh)

        if result.status_code != 200:  # noqa: PLR2004
            raise ToolError(str(result.payload.get("error", UNEXPECTED_FAILURE_MESSAGE)))

        return result.payload
