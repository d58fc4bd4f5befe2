import re

from pydantic import BaseModel

GITHUB_URL_PATTERN = re.compile(r"^(?:https?://)?(?:www\.)?github\.com/([^/\s?#]+)/?(?:[?#].*)?$", flags=re.IGNORECASE)
URL_SCHEME_PATTERN = re.compile(r"^https?://", flags=re.IGNORECASE)
GITHUB_USERNAME_PATTERN = re.compile(r"^[a-zA-Z0-9](?:[a-zA-Z0-9]|-(?=[a-zA-Z0-9])){0,38}$")
WHITESPACE_PATTERN = re.compile(r"\s+")

MAX_USERNAME_LENGTH = 39


class ParsedInput(BaseModel):
    """Either a valid username, an error message to show the user, or neither when the input was blank."""

    username: str | None = None
    error: str | None = None


def validate_username(username: str) -> ParsedInput:
    if len(username) > MAX_USERNAME_LENGTH:
        return ParsedInput(error="GitHub usernames cannot exceed 39 characters.")
    if username.startswith("-") or username.endswith("-"):
        return ParsedInput(error="GitHub usernames cannot start or end with a hyphen.")
    if "--" in username:
        return ParsedInput(error="GitHub usernames cannot contain consecutive hyphens.")
    if not GITHUB_USERNAME_PATTERN.match(username):
        return ParsedInput(error="GitHub usernames can only contain letters, numbers, and single hyphens.")

    return ParsedInput(username=username)


def parse_github_input(raw: str) -> ParsedInput:
    """Turn a username or a GitHub profile URL into a validated username."""

    text = raw.strip()

    if not text:
        return ParsedInput()

    if match := GITHUB_URL_PATTERN.match(text):
        extracted = match.group(1).strip("/").strip()

        if not extracted:
            return ParsedInput(error="Could not extract a username from that URL.")

        return validate_username(username=extracted)

    if URL_SCHEME_PATTERN.match(text) or ".com/" in text or ".org/" in text:
        return ParsedInput(error="Please provide a valid GitHub profile URL.")

    sanitized = WHITESPACE_PATTERN.sub("", text.strip("/"))

    if not sanitized or "/" in sanitized:
        return ParsedInput(error="That doesn't look like a valid GitHub username.")

    return validate_username(username=sanitized)
