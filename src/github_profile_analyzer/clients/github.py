import os
import time
from collections.abc import Awaitable, Callable, Mapping
from logging import Logger
from typing import TYPE_CHECKING, Any

from fastmcp.utilities.logging import get_logger
from githubkit import GitHub as GitHubKit
from githubkit import TokenAuthStrategy, UnauthAuthStrategy
from githubkit.exception import GitHubException as GitHubKitGitHubException
from githubkit.exception import RequestFailed as GitHubKitRequestFailed
from githubkit.response import Response as GitHubKitResponse
from githubkit.retry import RetryServerError
from pydantic import BaseModel, ValidationError

from github_profile_analyzer.clients.errors.github import RateLimitError, RequestError, UserNotFoundError
from github_profile_analyzer.clients.models.github import (
    DEFAULT_COMMITS_PER_REPOSITORY,
    DEFAULT_PULL_REQUESTS_LIMIT,
    CommitInfo,
    GitHubUser,
    PullRequestInfo,
    Repository,
)
from github_profile_analyzer.servers.shared.utility import decode_content

if TYPE_CHECKING:
    from githubkit.versions.v2022_11_28.models import ContentFile as GitHubKitContentFile
    from githubkit.versions.v2022_11_28.models import FullRepository as GitHubKitFullRepository
    from githubkit.versions.v2022_11_28.models import SearchIssuesGetResponse200 as GitHubKitSearchIssuesGetResponse200

NOT_FOUND_ERROR = 404
FORBIDDEN_ERROR = 403
TOO_MANY_REQUESTS_ERROR = 429

RATE_LIMIT_REMAINING_HEADER = "x-ratelimit-remaining"
RATE_LIMIT_RESET_HEADER = "x-ratelimit-reset"

REPOSITORIES_PER_PAGE = 100

logger: Logger = get_logger(name=__name__)


def get_github_token() -> str | None:
    env_vars: list[str] = ["GITHUB_TOKEN", "GITHUB_PERSONAL_ACCESS_TOKEN"]
    for env_var in env_vars:
        if token := os.environ.get(env_var):
            return token
    return None


def get_githubkit_client(token: str | None = None) -> GitHubKit[Any]:
    # Retry server errors, never rate limits: an exhausted quota is reported to the user instead
    retry_server_error = RetryServerError()

    if token := token or get_github_token():
        return GitHubKit[TokenAuthStrategy](auth=TokenAuthStrategy(token=token), auto_retry=retry_server_error)

    logger.warning("No GITHUB_TOKEN set, GitHub requests will be unauthenticated and heavily rate limited.")

    return GitHubKit[UnauthAuthStrategy](auth=UnauthAuthStrategy(), auto_retry=retry_server_error)


def parse_rate_limit(headers: Mapping[str, str]) -> tuple[int, int]:
    """Read the remaining quota and the reset timestamp from GitHub response headers.

    Missing or malformed headers are treated as quota remaining."""

    try:
        remaining = int(headers.get(RATE_LIMIT_REMAINING_HEADER) or "1")
    except ValueError:
        remaining = 1

    try:
        reset_timestamp = int(headers.get(RATE_LIMIT_RESET_HEADER) or "0")
    except ValueError:
        reset_timestamp = 0

    return remaining, reset_timestamp


class RateLimitGuard:
    """Remembers an exhausted GitHub quota so that later calls fail without touching the network."""

    reset_timestamp: int | None

    def __init__(self, clock: Callable[[], float] = time.time):
        self.clock = clock
        self.reset_timestamp = None

    def check(self, action: str) -> None:
        """Raise if a previously observed exhausted quota has not reset yet."""

        if self.reset_timestamp is None:
            return

        if self.clock() < self.reset_timestamp:
            raise RateLimitError(reset_timestamp=self.reset_timestamp, action=action)

        self.reset_timestamp = None

    def observe(self, headers: Mapping[str, str], action: str) -> None:
        """Raise if the response headers report an exhausted quota."""

        remaining, reset_timestamp = parse_rate_limit(headers)

        if remaining <= 0:
            self.reset_timestamp = reset_timestamp
            raise RateLimitError(reset_timestamp=reset_timestamp, action=action)


def language_bytes(language: Any) -> dict[str, int]:  # pyright: ignore[reportAny]
    """githubkit models the languages endpoint as an open object keyed by language name."""

    items = language.items() if isinstance(language, Mapping) else language.model_dump().items()  # pyright: ignore[reportAny]

    return {str(name): int(byte_count) for name, byte_count in items}  # pyright: ignore[reportAny]


class GitHubProfileClient:
    """Read-only access to the parts of the GitHub API needed to profile a user."""

    githubkit_client: GitHubKit[Any]
    logger: Logger
    rate_limit_guard: RateLimitGuard

    log_requests: bool
    log_responses: bool
    log_on_error: bool

    def __init__(
        self,
        githubkit_client: GitHubKit[Any] | None = None,
        logger: Logger | None = None,
        rate_limit_guard: RateLimitGuard | None = None,
        log_requests: bool = True,
        log_responses: bool = False,
        log_on_error: bool = True,
    ):
        self.githubkit_client = githubkit_client or get_githubkit_client()
        self.logger = logger or get_logger(name=__name__)
        self.rate_limit_guard = rate_limit_guard or RateLimitGuard()
        self.log_requests = log_requests
        self.log_responses = log_responses
        self.log_on_error = log_on_error

    def _get_loggers(
        self, log_request: bool | None = None, log_response: bool | None = None, log_on_error: bool | None = None
    ) -> tuple[Callable[[str], Any], Callable[[str], Any], Callable[[str], Any]]:
        request_logger = self.logger.info if log_request or self.log_requests else self.logger.debug
        response_logger = self.logger.info if log_response or self.log_responses else self.logger.debug
        error_logger = self.logger.exception if log_on_error or self.log_on_error else self.logger.debug
        return request_logger, response_logger, error_logger

    async def _perform_rest_request[T](
        self,
        action: str,
        log_request: bool | None = None,
        log_response: bool | None = None,
        log_on_error: bool | None = None,
        *,
        method: Callable[..., Awaitable[GitHubKitResponse[T]]],
        **request_args: Any,  # pyright: ignore[reportAny]
    ) -> T | None:
        """Perform a request, enforce the rate limit contract, and extract the response.

        Returns None when the resource does not exist.

        Raises:
            RateLimitError: If the quota is exhausted, before or after the request.
            RequestError: If the request fails for any other reason.
        """

        request_logger, response_logger, error_logger = self._get_loggers(
            log_request=log_request, log_response=log_response, log_on_error=log_on_error
        )

        self.rate_limit_guard.check(action=action)

        request_logger(f"Performing {action} using {method.__name__} with kwargs {request_args}")

        try:
            response: GitHubKitResponse[T] = await method(**request_args)
        except GitHubKitRequestFailed as e:
            status_code: int = e.response.status_code

            if status_code in (FORBIDDEN_ERROR, TOO_MANY_REQUESTS_ERROR):
                self.rate_limit_guard.observe(headers=e.response.headers, action=action)

            if status_code == NOT_FOUND_ERROR:
                return None

            error_logger(f"RequestFailed error performing {action} using {method.__name__} with kwargs {request_args}: {e}")

            raise RequestError(action=action, message=str(e), status_code=status_code) from e
        except GitHubKitGitHubException as e:
            error_logger(f"Error performing {action} using {method.__name__} with kwargs {request_args}: {e}")

            raise RequestError(action=action, message=str(e)) from e

        self.rate_limit_guard.observe(headers=response.headers, action=action)

        try:
            extracted_response: T = response.parsed_data
        except ValidationError as e:
            error_logger(f"Unexpected response shape performing {action} with kwargs {request_args}: {e}")

            raise RequestError(action=action, message="Unexpected response shape") from e

        response_logger(f"Extracted response for {action} using {method.__name__} with kwargs {request_args}: {extracted_response}")

        return extracted_response

    async def get_user(self, username: str) -> GitHubUser:
        """Get the profile of a user."""

        if user := await self._perform_rest_request(
            action="Get user",
            method=self.githubkit_client.rest.users.async_get_by_username,
            username=username,
        ):
            return GitHubUser.from_githubkit_user(user=user)

        raise UserNotFoundError(username=username)

    async def list_repositories(self, username: str) -> list[Repository]:
        """List the repositories owned by a user, most recently updated first."""

        minimal_repositories = await self._perform_rest_request(
            action="List repositories",
            method=self.githubkit_client.rest.repos.async_list_for_user,
            username=username,
            type="owner",
            sort="updated",
            per_page=REPOSITORIES_PER_PAGE,
        )

        if minimal_repositories is None:
            raise UserNotFoundError(username=username)

        return [Repository.from_minimal_repository(minimal_repository=repository) for repository in minimal_repositories]

    async def search_pull_requests(self, username: str, limit: int = DEFAULT_PULL_REQUESTS_LIMIT) -> list[PullRequestInfo]:
        """Search for the most recent pull requests authored by a user.

        The star counts of the target repositories are not filled in."""

        search_results: GitHubKitSearchIssuesGetResponse200 | None = await self._perform_rest_request(
            action="Search pull requests",
            method=self.githubkit_client.rest.search.async_issues_and_pull_requests,
            q=f"author:{username} type:pr",
            sort="created",
            order="desc",
            per_page=limit,
        )

        if search_results is None:
            return []

        return [PullRequestInfo.from_githubkit_search_result_item(item=item) for item in search_results.items[:limit]]

    async def get_repository_stars(self, owner: str, repo: str) -> int:
        """Get the number of stars a repository has, 0 if it does not exist."""

        repository: GitHubKitFullRepository | None = await self._perform_rest_request(
            action="Get repository",
            log_request=False,
            method=self.githubkit_client.rest.repos.async_get,
            owner=owner,
            repo=repo,
        )

        return repository.stargazers_count if repository else 0

    async def get_readme(self, owner: str, repo: str) -> str:
        """Get the decoded README of a repository, empty if it has none."""

        readme: GitHubKitContentFile | None = await self._perform_rest_request(
            action="Get readme",
            log_request=False,
            method=self.githubkit_client.rest.repos.async_get_readme,
            owner=owner,
            repo=repo,
        )

        if readme is None:
            return ""

        if readme.encoding == "base64":
            return decode_content(readme.content)

        return readme.content

    async def list_commits(self, owner: str, repo: str, author: str, limit: int = DEFAULT_COMMITS_PER_REPOSITORY) -> list[CommitInfo]:
        """List the most recent commits to a repository by the author."""

        commits = await self._perform_rest_request(
            action="List commits",
            log_request=False,
            method=self.githubkit_client.rest.repos.async_list_commits,
            owner=owner,
            repo=repo,
            author=author,
            per_page=limit,
        )

        if commits is None:
            return []

        return [CommitInfo.from_githubkit_commit(repo_name=repo, commit=commit) for commit in commits[:limit]]

    async def get_languages(self, owner: str, repo: str) -> dict[str, int]:
        """Get the number of bytes of code per language in a repository."""

        languages: BaseModel | None = await self._perform_rest_request(
            action="List languages",
            log_request=False,
            method=self.githubkit_client.rest.repos.async_list_languages,
            owner=owner,
            repo=repo,
        )

        if languages is None:
            return {}

        return language_bytes(languages)
