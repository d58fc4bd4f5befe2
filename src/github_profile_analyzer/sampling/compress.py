"""Deterministic text and record compaction applied before anything is sent to the model."""

import re
from collections.abc import Mapping, Sequence
from typing import Any

from github_profile_analyzer.clients.models.github import CommitInfo, PullRequestInfo, Repository

DEFAULT_README_CHARACTERS = 800
ELLIPSIS = "…"
COMMIT_MESSAGE_CHARACTERS = 80

HTML_COMMENT_PATTERN = re.compile(r"<!--.*?-->", flags=re.DOTALL)
HTML_TAG_PATTERN = re.compile(r"<[^>]+>")
BOILERPLATE_SECTION_PATTERN = re.compile(
    r"^#+[ \t]*(?:Licen[cs]e|Contributors?|Contributing|Acknowledgements?|Authors?)\b.*?(?=^#+\s|\Z)",
    flags=re.MULTILINE | re.DOTALL | re.IGNORECASE,
)
IMAGE_PATTERN = re.compile(r"!\[.*?\]\(.*?\)")
BLANK_LINES_PATTERN = re.compile(r"\n{3,}")
TRAILING_PARTIAL_WORD_PATTERN = re.compile(r"\s+\S*\Z")


def strip_readme(text: str, max_characters: int = DEFAULT_README_CHARACTERS) -> str:
    """Reduce a README to the prose that describes the project.

    HTML, boilerplate sections (license, contributors, acknowledgements, authors) and images are removed, blank
    runs are collapsed, and the result is cut at a word boundary with an ellipsis if it exceeds `max_characters`."""

    text = HTML_COMMENT_PATTERN.sub("", text)
    text = HTML_TAG_PATTERN.sub("", text)
    text = BOILERPLATE_SECTION_PATTERN.sub("", text)
    text = IMAGE_PATTERN.sub("", text)
    text = BLANK_LINES_PATTERN.sub("\n\n", text)
    text = text.strip()

    if len(text) <= max_characters:
        return text

    return TRAILING_PARTIAL_WORD_PATTERN.sub("", text[:max_characters]) + ELLIPSIS


def _is_empty(value: Any) -> bool:  # pyright: ignore[reportAny]
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    return isinstance(value, list) and len(value) == 0  # pyright: ignore[reportUnknownArgumentType]


def strip_empty(value: Any) -> Any:  # pyright: ignore[reportAny]
    """Recursively drop None, blank strings and empty lists from dictionaries and lists."""

    if isinstance(value, Mapping):
        stripped = {key: strip_empty(item) for key, item in value.items()}  # pyright: ignore[reportUnknownVariableType, reportAny]
        return {key: item for key, item in stripped.items() if not _is_empty(item)}  # pyright: ignore[reportUnknownVariableType, reportAny]

    if isinstance(value, list):
        stripped_items = [strip_empty(item) for item in value]  # pyright: ignore[reportUnknownVariableType, reportAny]
        return [item for item in stripped_items if item is not None]  # pyright: ignore[reportAny]

    return value


def repository_to_compact_line(repository: Repository) -> str:
    details: list[str] = []

    if repository.stargazers_count > 0:
        details.append(f"★{repository.stargazers_count}")
    if repository.language:
        details.append(f"Lang:{repository.language}")
    if repository.forks_count > 0:
        details.append(f"Forks:{repository.forks_count}")
    if repository.license:
        details.append("Licensed")
    if repository.topics:
        details.append(f"[{','.join(repository.topics)}]")

    line = f"- {repository.name}"

    if repository.description:
        line += f": {repository.description}"

    if details:
        line += f" ({', '.join(details)})"

    return line


def repositories_to_compact_list(repositories: Sequence[Repository]) -> str:
    return "\n".join(repository_to_compact_line(repository=repository) for repository in repositories)


def pull_request_status(pull_request: PullRequestInfo) -> str:
    if pull_request.merged:
        return "✓merged"
    return pull_request.state


def pull_requests_to_compact_list(pull_requests: Sequence[PullRequestInfo]) -> str:
    return "\n".join(
        f"- {pull_request.title} → {pull_request.repo_full_name} ({pull_request_status(pull_request)}, ★{pull_request.repo_stars})"
        for pull_request in pull_requests
    )


def commits_to_compact_list(commits: Sequence[CommitInfo]) -> str:
    lines: list[str] = []

    for commit in commits:
        date = commit.date.date().isoformat() if commit.date else "unknown"
        lines.append(f"- [{date}] {commit.repo_name}: {commit.message[:COMMIT_MESSAGE_CHARACTERS]}")

    return "\n".join(lines)


def language_shares(language_stats: Mapping[str, int]) -> str:
    """Render byte counts as whole percentage shares, largest first."""

    total = sum(language_stats.values())

    if total == 0:
        return ""

    ordered = sorted(language_stats.items(), key=lambda item: (-item[1], item[0]))

    return ", ".join(f"{language}:{round(byte_count / total * 100)}%" for language, byte_count in ordered)
