import asyncio
from datetime import UTC, datetime, timedelta
from typing import Any

from github_profile_analyzer.clients.errors.github import RequestError, UserNotFoundError
from github_profile_analyzer.clients.models.github import (
    CommitInfo,
    GitHubUser,
    ProfileData,
    PullRequestInfo,
    PullRequestStats,
    Repository,
    RepositoryReadme,
)
from github_profile_analyzer.models.analysis import AnalysisOutcome, GrowthRoadmap

NOW = datetime(2025, 6, 1, tzinfo=UTC)


def make_user(login: str = "octocat", **overrides: Any) -> GitHubUser:
    fields: dict[str, Any] = {
        "login": login,
        "name": "The Octocat",
        "bio": "Building things",
        "avatar_url": f"https://avatars.githubusercontent.com/{login}",
        "html_url": f"https://github.com/{login}",
        "location": "San Francisco",
        "public_repos": 8,
        "followers": 20,
        "following": 3,
        "created_at": datetime(2015, 1, 1, tzinfo=UTC),
        "updated_at": datetime(2025, 5, 1, tzinfo=UTC),
    }
    fields.update(overrides)
    return GitHubUser(**fields)  # pyright: ignore[reportAny]


def make_repository(name: str, owner: str = "octocat", stars: int = 0, fork: bool = False, **overrides: Any) -> Repository:
    fields: dict[str, Any] = {
        "name": name,
        "full_name": f"{owner}/{name}",
        "stargazers_count": stars,
        "fork": fork,
        "pushed_at": NOW - timedelta(days=400),
    }
    fields.update(overrides)
    return Repository(**fields)  # pyright: ignore[reportAny]


def make_pull_request(
    title: str, owner: str = "torvalds", repo: str = "linux", state: str = "closed", merged: bool = True, days_ago: int = 1
) -> PullRequestInfo:
    return PullRequestInfo(
        title=title,
        repo_full_name=f"{owner}/{repo}",
        repo_owner=owner,
        repo_name=repo,
        state=state,  # pyright: ignore[reportArgumentType]
        merged=merged,
        url=f"https://github.com/{owner}/{repo}/pull/{days_ago}",
        created_at=NOW - timedelta(days=days_ago),
        body=f"Body of {title}",
    )


def make_commit(repo_name: str, sha: str, days_ago: int, message: str = "Fix things") -> CommitInfo:
    return CommitInfo(repo_name=repo_name, message=message, date=NOW - timedelta(days=days_ago), sha=sha)


def make_profile_data(
    user: GitHubUser | None = None,
    top_repos: list[Repository] | None = None,
    forked_repos: list[Repository] | None = None,
    readmes: list[RepositoryReadme] | None = None,
    pull_requests: list[PullRequestInfo] | None = None,
) -> ProfileData:
    user = user or make_user()
    top_repos = top_repos or []
    pull_requests = pull_requests or []

    return ProfileData(
        user=user,
        top_repos=top_repos,
        forked_repos=forked_repos or [],
        readmes=readmes or [],
        language_stats={"Python": 3000, "Go": 1000} if top_repos else {},
        total_stars=sum(repository.stargazers_count for repository in top_repos),
        total_forks=sum(repository.forks_count for repository in top_repos),
        pull_requests=pull_requests,
        pr_stats=PullRequestStats.from_pull_requests(pull_requests=pull_requests, username=user.login),
    )


class FakeProfileSource:
    """An in-memory GitHub that records the calls made to it."""

    def __init__(
        self,
        user: GitHubUser | None = None,
        repositories: list[Repository] | None = None,
        pull_requests: list[PullRequestInfo] | None = None,
        stars: dict[str, int] | None = None,
        readmes: dict[str, str] | None = None,
        commits: dict[str, list[CommitInfo]] | None = None,
        languages: dict[str, dict[str, int]] | None = None,
    ):
        self.user = user
        self.repositories = repositories or []
        self.pull_requests = pull_requests or []
        self.stars = stars or {}
        self.readmes = readmes or {}
        self.commits = commits or {}
        self.languages = languages or {}
        self.failures: dict[str, Exception] = {}
        self.calls: list[tuple[str, str]] = []

    def _record(self, method: str, target: str) -> None:
        self.calls.append((method, target))

        if failure := self.failures.get(f"{method}:{target}") or self.failures.get(method):
            raise failure

    def called(self, method: str) -> list[str]:
        return [target for called_method, target in self.calls if called_method == method]

    async def get_user(self, username: str) -> GitHubUser:
        self._record("get_user", username)
        if self.user is None:
            raise UserNotFoundError(username=username)
        return self.user

    async def list_repositories(self, username: str) -> list[Repository]:
        self._record("list_repositories", username)
        return self.repositories

    async def search_pull_requests(self, username: str, limit: int = 10) -> list[PullRequestInfo]:
        self._record("search_pull_requests", username)
        return self.pull_requests[:limit]

    async def get_repository_stars(self, owner: str, repo: str) -> int:
        self._record("get_repository_stars", f"{owner}/{repo}")
        return self.stars.get(f"{owner}/{repo}", 0)

    async def get_readme(self, owner: str, repo: str) -> str:
        self._record("get_readme", f"{owner}/{repo}")
        return self.readmes.get(repo, "")

    async def list_commits(self, owner: str, repo: str, author: str, limit: int = 3) -> list[CommitInfo]:
        self._record("list_commits", f"{owner}/{repo}")
        return self.commits.get(repo, [])[:limit]

    async def get_languages(self, owner: str, repo: str) -> dict[str, int]:
        self._record("get_languages", f"{owner}/{repo}")
        return self.languages.get(repo, {})


class FakeProfileFetcher:
    """Hands out prepared profile snapshots, or raises a prepared error."""

    def __init__(self, profile_data: ProfileData | None = None, error: Exception | None = None):
        self.profile_data = profile_data
        self.error = error
        self.calls: list[str] = []
        self.release: asyncio.Event | None = None
        self.cancelled = False

    async def aggregate(self, username: str) -> ProfileData:
        self.calls.append(username)

        if self.release is not None:
            try:
                _ = await self.release.wait()
            except asyncio.CancelledError:
                self.cancelled = True
                raise

        if self.error is not None:
            raise self.error

        assert self.profile_data is not None
        return self.profile_data


class FakeProfileAnalyzer:
    """Returns prepared model outcomes and counts the calls made."""

    def __init__(
        self,
        outcome: AnalysisOutcome | None = None,
        roadmap: GrowthRoadmap | None = None,
        error: Exception | None = None,
        roadmap_error: Exception | None = None,
    ):
        self.outcome = outcome
        self.roadmap = roadmap
        self.error = error
        self.roadmap_error = roadmap_error
        self.analysis_calls = 0
        self.roadmap_calls = 0

    async def generate_analysis(self, profile_data: ProfileData) -> AnalysisOutcome:
        self.analysis_calls += 1
        if self.error is not None:
            raise self.error
        assert self.outcome is not None
        return self.outcome

    async def generate_roadmap(self, profile_data: ProfileData) -> GrowthRoadmap:
        self.roadmap_calls += 1
        if self.roadmap_error is not None:
            raise self.roadmap_error
        return self.roadmap or GrowthRoadmap()

    @property
    def inference_calls(self) -> int:
        return self.analysis_calls + self.roadmap_calls


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def request_error(action: str = "List commits") -> RequestError:
    return RequestError(action=action, message="boom", status_code=502)


class FakeTextGenerator:
    """Returns prepared model text and records the prompts it was given."""

    def __init__(self, text: str = "", error: Exception | None = None):
        self.text = text
        self.error = error
        self.prompts: list[tuple[str, str]] = []

    async def generate(self, system_prompt: str, user_prompt: str, action: str) -> str:
        self.prompts.append((system_prompt, user_prompt))
        if self.error is not None:
            raise self.error
        return self.text
