import asyncio
from collections.abc import Awaitable
from datetime import UTC, datetime
from logging import Logger
from typing import Protocol

from fastmcp.utilities.logging import get_logger

from github_profile_analyzer.clients.errors.base import AnalyzerError, ErrorKind
from github_profile_analyzer.clients.models.github import (
    DEFAULT_COMMIT_REPOSITORIES_LIMIT,
    DEFAULT_COMMITS_PER_REPOSITORY,
    DEFAULT_FORKED_REPOSITORIES_LIMIT,
    DEFAULT_LANGUAGE_REPOSITORIES_LIMIT,
    DEFAULT_PULL_REQUESTS_LIMIT,
    DEFAULT_README_REPOSITORIES_LIMIT,
    DEFAULT_TOP_REPOSITORIES_LIMIT,
    CommitInfo,
    GitHubUser,
    ProfileData,
    PullRequestInfo,
    PullRequestStats,
    Repository,
    RepositoryReadme,
    merge_language_stats,
    merge_recent_commits,
    rank_forked_repositories,
    rank_original_repositories,
    truncate_text,
)


class ProfileSource(Protocol):
    async def get_user(self, username: str) -> GitHubUser: ...

    async def list_repositories(self, username: str) -> list[Repository]: ...

    async def search_pull_requests(self, username: str, limit: int = DEFAULT_PULL_REQUESTS_LIMIT) -> list[PullRequestInfo]: ...

    async def get_repository_stars(self, owner: str, repo: str) -> int: ...

    async def get_readme(self, owner: str, repo: str) -> str: ...

    async def list_commits(self, owner: str, repo: str, author: str, limit: int = DEFAULT_COMMITS_PER_REPOSITORY) -> list[CommitInfo]: ...

    async def get_languages(self, owner: str, repo: str) -> dict[str, int]: ...


def leaf_exceptions(exception_group: BaseExceptionGroup[BaseException]) -> list[BaseException]:
    exceptions: list[BaseException] = []

    for exception in exception_group.exceptions:
        if isinstance(exception, BaseExceptionGroup):
            exceptions.extend(leaf_exceptions(exception_group=exception))  # pyright: ignore[reportUnknownArgumentType]
        else:
            exceptions.append(exception)

    return exceptions


def first_exception(exception_group: BaseExceptionGroup[BaseException]) -> BaseException:
    """The exception to surface for a failed group. A missing user outranks any other failure."""

    exceptions = leaf_exceptions(exception_group=exception_group)

    for exception in exceptions:
        if isinstance(exception, AnalyzerError) and exception.kind == ErrorKind.NOT_FOUND:
            return exception

    return exceptions[0]


def repository_owner(repository: Repository, default: str) -> str:
    owner, _, _ = repository.full_name.partition("/")
    return owner or default


class ProfileAggregator:
    """Assembles a profile snapshot from a profile source in two concurrent phases.

    The first phase fetches the user, their repositories and their pull requests. Any failure there fails the
    aggregation and cancels the remaining requests. The second phase enriches the top repositories with READMEs,
    commits and languages, where a failed fetch only leaves that item empty."""

    profile_source: ProfileSource
    logger: Logger

    def __init__(self, profile_source: ProfileSource, logger: Logger | None = None):
        self.profile_source = profile_source
        self.logger = logger or get_logger(name=__name__)

    async def _optional[T](self, action: str, awaitable: Awaitable[T], default: T) -> T:
        try:
            return await awaitable
        except AnalyzerError as e:
            self.logger.warning(f"Skipping {action}: {e}")
            return default

    async def get_pull_requests(self, username: str) -> list[PullRequestInfo]:
        """Search the user's pull requests and attach the star count of each target repository."""

        pull_requests = await self.profile_source.search_pull_requests(username=username, limit=DEFAULT_PULL_REQUESTS_LIMIT)

        unique_repositories: list[tuple[str, str]] = list(dict.fromkeys((pr.repo_owner, pr.repo_name) for pr in pull_requests))

        stars: list[int] = await asyncio.gather(
            *[
                self._optional(
                    action=f"stars of {owner}/{repo}",
                    awaitable=self.profile_source.get_repository_stars(owner=owner, repo=repo),
                    default=0,
                )
                for owner, repo in unique_repositories
            ]
        )

        stars_by_repository = dict(zip(unique_repositories, stars, strict=True))

        return [
            pull_request.model_copy(update={"repo_stars": stars_by_repository.get((pull_request.repo_owner, pull_request.repo_name), 0)})
            for pull_request in pull_requests
        ]

    async def get_readmes(self, owner: str, repositories: list[Repository]) -> list[RepositoryReadme]:
        contents: list[str] = await asyncio.gather(
            *[
                self._optional(
                    action=f"readme of {repository.full_name}",
                    awaitable=self.profile_source.get_readme(owner=repository_owner(repository, owner), repo=repository.name),
                    default="",
                )
                for repository in repositories
            ]
        )

        return [
            RepositoryReadme(repo_name=repository.name, content=truncate_text(text=content))
            for repository, content in zip(repositories, contents, strict=True)
            if content.strip()
        ]

    async def get_recent_commits(self, owner: str, author: str, repositories: list[Repository]) -> list[CommitInfo]:
        commits: list[list[CommitInfo]] = await asyncio.gather(
            *[
                self._optional(
                    action=f"commits of {repository.full_name}",
                    awaitable=self.profile_source.list_commits(
                        owner=repository_owner(repository, owner),
                        repo=repository.name,
                        author=author,
                        limit=DEFAULT_COMMITS_PER_REPOSITORY,
                    ),
                    default=[],
                )
                for repository in repositories
            ]
        )

        return merge_recent_commits(commits_by_repository=commits)

    async def get_language_stats(self, owner: str, repositories: list[Repository]) -> dict[str, int]:
        languages: list[dict[str, int]] = await asyncio.gather(
            *[
                self._optional(
                    action=f"languages of {repository.full_name}",
                    awaitable=self.profile_source.get_languages(owner=repository_owner(repository, owner), repo=repository.name),
                    default={},
                )
                for repository in repositories
            ]
        )

        return merge_language_stats(language_stats=languages)

    async def aggregate(self, username: str, now: datetime | None = None) -> ProfileData:
        """Fetch everything needed to analyze the user.

        Raises:
            UserNotFoundError: If the user does not exist.
            RateLimitError: If the GitHub quota is exhausted.
            RequestError: If fetching the user, their repositories or their pull requests fails.
        """

        now = now or datetime.now(tz=UTC)

        self.logger.info(f"Fetching GitHub data for {username}")

        try:
            async with asyncio.TaskGroup() as task_group:
                user_task = task_group.create_task(self.profile_source.get_user(username=username))
                repositories_task = task_group.create_task(self.profile_source.list_repositories(username=username))
                pull_requests_task = task_group.create_task(self.get_pull_requests(username=username))
        except BaseExceptionGroup as exception_group:
            exception = first_exception(exception_group=exception_group)

            # Searching the pull requests of a missing user fails with a 422, not a 404. When that cancelled
            # the user lookup, the lookup decides whether the user exists.
            if isinstance(exception, AnalyzerError) and exception.kind == ErrorKind.UPSTREAM_ERROR and user_task.cancelled():
                _ = await self.profile_source.get_user(username=username)

            raise exception from None

        user: GitHubUser = user_task.result()
        repositories: list[Repository] = repositories_task.result()
        pull_requests: list[PullRequestInfo] = pull_requests_task.result()

        top_repos = rank_original_repositories(repositories=repositories, now=now)[:DEFAULT_TOP_REPOSITORIES_LIMIT]
        forked_repos = rank_forked_repositories(repositories=repositories)[:DEFAULT_FORKED_REPOSITORIES_LIMIT]

        readme_repos = top_repos[:DEFAULT_README_REPOSITORIES_LIMIT]
        commit_repos = top_repos[:DEFAULT_COMMIT_REPOSITORIES_LIMIT]
        language_repos = [*top_repos, *forked_repos][:DEFAULT_LANGUAGE_REPOSITORIES_LIMIT]

        readmes, recent_commits, language_stats = await asyncio.gather(
            self.get_readmes(owner=user.login, repositories=readme_repos),
            self.get_recent_commits(owner=user.login, author=user.login, repositories=commit_repos),
            self.get_language_stats(owner=user.login, repositories=language_repos),
        )

        self.logger.info(
            f"Fetched GitHub data for {username}: {len(top_repos)} original and {len(forked_repos)} forked repositories, "
            + f"{len(readmes)} readmes, {len(recent_commits)} commits, {len(pull_requests)} pull requests"
        )

        return ProfileData(
            user=user,
            top_repos=top_repos,
            forked_repos=forked_repos,
            readmes=readmes,
            recent_commits=recent_commits,
            language_stats=language_stats,
            total_stars=sum(repository.stargazers_count for repository in top_repos),
            total_forks=sum(repository.forks_count for repository in top_repos),
            pull_requests=pull_requests,
            pr_stats=PullRequestStats.from_pull_requests(pull_requests=pull_requests, username=user.login),
        )
