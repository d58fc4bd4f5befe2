from datetime import UTC, datetime

from github_profile_analyzer.clients.errors.base import AnalyzerError, ErrorKind, ExtraInfoType


class RequestError(AnalyzerError):
    """A request error from the GitHub profile client."""

    def __init__(
        self,
        action: str,
        message: str | None = None,
        status_code: int | None = None,
        extra_info: ExtraInfoType | None = None,
    ):
        if not extra_info:
            extra_info = {}

        self.status_code: int = status_code or 500

        super().__init__(
            kind=ErrorKind.UPSTREAM_ERROR,
            message="A request error occured.",
            extra_info={"action": action, "message": message, "status": str(self.status_code), **extra_info},
        )


class UserNotFoundError(AnalyzerError):
    """The requested GitHub user does not exist."""

    def __init__(self, username: str):
        self.username: str = username

        super().__init__(kind=ErrorKind.NOT_FOUND, message=f'User "{username}" not found')


class RateLimitError(AnalyzerError):
    """The GitHub API quota is exhausted."""

    def __init__(self, reset_timestamp: int, action: str | None = None):
        self.reset_timestamp: int = reset_timestamp

        reset_at = datetime.fromtimestamp(reset_timestamp, tz=UTC).strftime("%H:%M:%S UTC")

        super().__init__(
            kind=ErrorKind.RATE_LIMITED,
            message=f"GitHub API rate limit exceeded. Resets at {reset_at}",
            extra_info={"action": action},
        )
