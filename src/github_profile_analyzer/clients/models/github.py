from collections.abc import Iterable, Sequence
from datetime import UTC, datetime, timedelta
from typing import Any, Literal, Self
from urllib.parse import urlparse

from githubkit.utils import UNSET
from githubkit.versions.v2022_11_28.models import Commit as GitHubKitCommit
from githubkit.versions.v2022_11_28.models import IssueSearchResultItem as GitHubKitIssueSearchResultItem
from githubkit.versions.v2022_11_28.models import MinimalRepository as GitHubKitMinimalRepository
from githubkit.versions.v2022_11_28.models import PrivateUser as GitHubKitPrivateUser
from githubkit.versions.v2022_11_28.models import PublicUser as GitHubKitPublicUser
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

DEFAULT_TOP_REPOSITORIES_LIMIT = 5
DEFAULT_FORKED_REPOSITORIES_LIMIT = 10
DEFAULT_README_REPOSITORIES_LIMIT = 3
DEFAULT_COMMIT_REPOSITORIES_LIMIT = 5
DEFAULT_COMMITS_PER_REPOSITORY = 3
DEFAULT_RECENT_COMMITS_LIMIT = 10
DEFAULT_LANGUAGE_REPOSITORIES_LIMIT = 15
DEFAULT_PULL_REQUESTS_LIMIT = 10

DEFAULT_README_TRUNCATE_CHARACTERS = 3000
DEFAULT_PULL_REQUEST_BODY_CHARACTERS = 500
TRUNCATION_MARKER = "\n\n[... truncated for analysis ...]"

RECENCY_WINDOW = timedelta(days=180)
RECENCY_BOOST = 50

EPOCH = datetime.fromtimestamp(0, tz=UTC)


def unset_to_none(value: Any) -> Any:  # pyright: ignore[reportAny]
    """githubkit marks fields the API omitted as UNSET, we treat them as missing."""
    return None if value is UNSET else value


def truncate_text(text: str, max_characters: int = DEFAULT_README_TRUNCATE_CHARACTERS) -> str:
    if len(text) <= max_characters:
        return text

    return text[:max_characters] + TRUNCATION_MARKER


def owner_repository_from_api_url(repository_url: str) -> tuple[str, str]:
    """Get owner and repository from an API URL like https://api.github.com/repos/owner/repository."""

    parts = [part for part in urlparse(repository_url).path.split("/") if part]

    if len(parts) < 2:  # noqa: PLR2004
        return "", ""

    return parts[-2], parts[-1]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class GitHubUser(BaseModel):
    """A GitHub user profile."""

    model_config = ConfigDict(frozen=True)

    login: str = Field(description="The handle of the user.")
    name: str | None = Field(default=None, description="The display name of the user.")
    bio: str | None = Field(default=None, description="The bio of the user.")
    avatar_url: str = Field(default="", description="The URL of the user's avatar.")
    html_url: str = Field(default="", description="The URL of the user's profile.")
    company: str | None = Field(default=None, description="The company of the user.")
    location: str | None = Field(default=None, description="The location of the user.")
    blog: str | None = Field(default=None, description="The website of the user.")
    twitter_username: str | None = Field(default=None, description="The Twitter handle of the user.")
    public_repos: int = Field(default=0, description="The number of public repositories.")
    public_gists: int = Field(default=0, description="The number of public gists.")
    followers: int = Field(default=0, description="The number of followers.")
    following: int = Field(default=0, description="The number of users followed.")
    created_at: datetime = Field(description="When the account was created.")
    updated_at: datetime = Field(description="When the profile was last updated.")

    @classmethod
    def from_githubkit_user(cls, user: GitHubKitPublicUser | GitHubKitPrivateUser) -> Self:
        return cls(
            login=user.login,
            name=user.name,
            bio=user.bio,
            avatar_url=user.avatar_url,
            html_url=user.html_url,
            company=user.company,
            location=user.location,
            blog=user.blog,
            twitter_username=unset_to_none(user.twitter_username),
            public_repos=user.public_repos,
            public_gists=user.public_gists,
            followers=user.followers,
            following=user.following,
            created_at=user.created_at,
            updated_at=user.updated_at,
        )


class RepositoryLicense(BaseModel):
    """A repository license."""

    model_config = ConfigDict(frozen=True)

    spdx_id: str | None = Field(default=None, description="The SPDX identifier of the license.")
    name: str = Field(description="The name of the license.")


class Repository(BaseModel):
    """A repository owned by the user."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(description="The name of the repository.")
    full_name: str = Field(description="The owner and name of the repository.")
    description: str | None = Field(default=None, description="The description of the repository.")
    html_url: str = Field(default="", description="The URL of the repository.")
    language: str | None = Field(default=None, description="The primary language of the repository.")
    stargazers_count: int = Field(default=0, description="The number of stars the repository has.")
    forks_count: int = Field(default=0, description="The number of forks the repository has.")
    watchers_count: int = Field(default=0, description="The number of watchers the repository has.")
    open_issues_count: int = Field(default=0, description="The number of open issues.")
    topics: list[str] = Field(default_factory=list, description="The topics of the repository.")
    license: RepositoryLicense | None = Field(default=None, description="The license of the repository.")
    created_at: datetime | None = Field(default=None, description="When the repository was created.")
    updated_at: datetime | None = Field(default=None, description="When the repository was updated.")
    pushed_at: datetime | None = Field(default=None, description="When the repository was last pushed to.")
    fork: bool = Field(default=False, description="Whether the repository is a fork.")
    has_wiki: bool = Field(default=False, description="Whether the repository has a wiki.")
    has_pages: bool = Field(default=False, description="Whether the repository publishes GitHub Pages.")
    homepage: str | None = Field(default=None, description="The homepage of the repository.")

    @classmethod
    def from_minimal_repository(cls, minimal_repository: GitHubKitMinimalRepository) -> Self:
        repository_license: RepositoryLicense | None = None

        if githubkit_license := unset_to_none(minimal_repository.license_):
            repository_license = RepositoryLicense(spdx_id=unset_to_none(githubkit_license.spdx_id), name=githubkit_license.name)

        return cls(
            name=minimal_repository.name,
            full_name=minimal_repository.full_name,
            description=minimal_repository.description,
            html_url=minimal_repository.html_url,
            language=unset_to_none(minimal_repository.language),
            stargazers_count=unset_to_none(minimal_repository.stargazers_count) or 0,
            forks_count=unset_to_none(minimal_repository.forks_count) or 0,
            watchers_count=unset_to_none(minimal_repository.watchers_count) or 0,
            open_issues_count=unset_to_none(minimal_repository.open_issues_count) or 0,
            topics=unset_to_none(minimal_repository.topics) or [],
            license=repository_license,
            created_at=unset_to_none(minimal_repository.created_at),
            updated_at=unset_to_none(minimal_repository.updated_at),
            pushed_at=unset_to_none(minimal_repository.pushed_at),
            fork=minimal_repository.fork,
            has_wiki=unset_to_none(minimal_repository.has_wiki) or False,
            has_pages=unset_to_none(minimal_repository.has_pages) or False,
            homepage=unset_to_none(minimal_repository.homepage),
        )

    def is_recently_pushed(self, now: datetime) -> bool:
        return self.pushed_at is not None and self.pushed_at > now - RECENCY_WINDOW

    def ranking_score(self, now: datetime) -> int:
        """Stars plus a flat boost for repositories pushed to in the last 180 days."""
        return self.stargazers_count + (RECENCY_BOOST if self.is_recently_pushed(now=now) else 0)


class CommitInfo(CamelModel):
    """A recent commit authored by the user."""

    repo_name: str = Field(description="The repository the commit belongs to.")
    message: str = Field(description="The first line of the commit message.")
    date: datetime | None = Field(default=None, description="When the commit was authored.")
    sha: str = Field(description="The abbreviated commit SHA.")

    @classmethod
    def from_githubkit_commit(cls, repo_name: str, commit: GitHubKitCommit) -> Self:
        author = commit.commit.author

        return cls(
            repo_name=repo_name,
            message=commit.commit.message.split("\n")[0],
            date=unset_to_none(author.date) if author else None,
            sha=commit.sha[:7],
        )


class RepositoryReadme(CamelModel):
    """The README of a repository."""

    repo_name: str = Field(description="The repository the README belongs to.")
    content: str = Field(description="The decoded, truncated README content.")


class PullRequestInfo(CamelModel):
    """A pull request authored by the user, with the star count of the repository it targets."""

    title: str = Field(description="The title of the pull request.")
    repo_full_name: str = Field(description="The owner and name of the target repository.")
    repo_owner: str = Field(description="The owner of the target repository.")
    repo_name: str = Field(description="The name of the target repository.")
    state: Literal["open", "closed"] = Field(description="The state of the pull request.")
    merged: bool = Field(description="Whether the pull request was merged.")
    repo_stars: int = Field(default=0, description="The number of stars the target repository has.")
    url: str = Field(default="", description="The URL of the pull request.")
    created_at: datetime = Field(description="When the pull request was opened.")
    body: str = Field(default="", description="The truncated description of the pull request.")

    @classmethod
    def from_githubkit_search_result_item(
        cls, item: GitHubKitIssueSearchResultItem, body_characters: int = DEFAULT_PULL_REQUEST_BODY_CHARACTERS
    ) -> Self:
        repo_owner, repo_name = owner_repository_from_api_url(item.repository_url)

        pull_request = unset_to_none(item.pull_request)
        merged: bool = pull_request is not None and unset_to_none(pull_request.merged_at) is not None

        return cls(
            title=item.title,
            repo_full_name=f"{repo_owner}/{repo_name}",
            repo_owner=repo_owner,
            repo_name=repo_name,
            state="open" if item.state == "open" else "closed",
            merged=merged,
            url=item.html_url,
            created_at=item.created_at,
            body=(unset_to_none(item.body) or "")[:body_characters],
        )


class PullRequestStats(CamelModel):
    """Statistics derived from the user's pull requests."""

    total: int = 0
    merged: int = 0
    open: int = 0
    closed: int = 0
    acceptance_rate: int = Field(default=0, description="Merged as a percentage of closed, rounded.")
    third_party_merged: int = Field(default=0, description="Merged pull requests into repositories owned by someone else.")

    @classmethod
    def from_pull_requests(cls, pull_requests: Sequence[PullRequestInfo], username: str) -> Self:
        total = len(pull_requests)
        merged = sum(1 for pull_request in pull_requests if pull_request.merged)
        open_count = sum(1 for pull_request in pull_requests if pull_request.state == "open")
        closed = total - open_count
        third_party_merged = sum(
            1 for pull_request in pull_requests if pull_request.merged and pull_request.repo_owner.lower() != username.lower()
        )

        return cls(
            total=total,
            merged=merged,
            open=open_count,
            closed=closed,
            acceptance_rate=round_half_up(merged / closed * 100) if closed > 0 else 0,
            third_party_merged=third_party_merged,
        )


def round_half_up(value: float) -> int:
    """Round like a person would, 62.5 -> 63, instead of Python's banker's rounding."""
    return int(value + 0.5)


class ProfileData(CamelModel):
    """An immutable snapshot of everything gathered about a user for a single request."""

    user: GitHubUser
    top_repos: list[Repository] = Field(default_factory=list)
    forked_repos: list[Repository] = Field(default_factory=list)
    readmes: list[RepositoryReadme] = Field(default_factory=list)
    recent_commits: list[CommitInfo] = Field(default_factory=list)
    language_stats: dict[str, int] = Field(default_factory=dict)
    total_stars: int = 0
    total_forks: int = 0
    pull_requests: list[PullRequestInfo] = Field(default_factory=list)
    pr_stats: PullRequestStats = Field(default_factory=PullRequestStats)

    @property
    def has_original_repositories(self) -> bool:
        return len(self.top_repos) > 0

    @property
    def has_pull_requests(self) -> bool:
        return self.pr_stats.total > 0


class GitHubDataPayload(CamelModel):
    """The client-safe subset of the profile snapshot."""

    user: GitHubUser
    top_repos: list[Repository]
    forked_repos: list[Repository]
    language_stats: dict[str, int]
    total_stars: int
    total_forks: int
    pull_requests: list[PullRequestInfo]
    pr_stats: PullRequestStats

    @classmethod
    def from_profile_data(cls, profile_data: ProfileData) -> Self:
        return cls(
            user=profile_data.user,
            top_repos=profile_data.top_repos,
            forked_repos=profile_data.forked_repos,
            language_stats=profile_data.language_stats,
            total_stars=profile_data.total_stars,
            total_forks=profile_data.total_forks,
            pull_requests=profile_data.pull_requests,
            pr_stats=profile_data.pr_stats,
        )


def rank_original_repositories(repositories: Iterable[Repository], now: datetime | None = None) -> list[Repository]:
    """Non-fork repositories ordered by stars plus recency boost, highest first. Ties keep their listing order."""

    now = now or datetime.now(tz=UTC)

    originals = [repository for repository in repositories if not repository.fork]

    return sorted(originals, key=lambda repository: repository.ranking_score(now=now), reverse=True)


def rank_forked_repositories(repositories: Iterable[Repository]) -> list[Repository]:
    """Forked repositories ordered by stars, highest first."""

    forks = [repository for repository in repositories if repository.fork]

    return sorted(forks, key=lambda repository: repository.stargazers_count, reverse=True)


def merge_recent_commits(commits_by_repository: Iterable[Sequence[CommitInfo]], limit: int = DEFAULT_RECENT_COMMITS_LIMIT) -> list[CommitInfo]:
    """Flatten per-repository commits, drop duplicates, and keep the newest `limit`."""

    seen: set[tuple[str, str]] = set()
    commits: list[CommitInfo] = []

    for repository_commits in commits_by_repository:
        for commit in repository_commits:
            if (commit.repo_name, commit.sha) in seen:
                continue
            seen.add((commit.repo_name, commit.sha))
            commits.append(commit)

    commits.sort(key=lambda commit: commit.date or EPOCH, reverse=True)

    return commits[:limit]


def merge_language_stats(language_stats: Iterable[dict[str, int]]) -> dict[str, int]:
    """Sum byte counts per language, ordered by bytes then name."""

    merged: dict[str, int] = {}

    for stats in language_stats:
        for language, byte_count in stats.items():
            merged[language] = merged.get(language, 0) + byte_count

    return dict(sorted(merged.items(), key=lambda item: (-item[1], item[0])))
