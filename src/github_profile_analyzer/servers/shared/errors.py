from github_profile_analyzer.clients.errors.base import AnalyzerError, ErrorKind


class InputInvalidError(AnalyzerError):
    """The submitted identifier is not a usable GitHub username."""

    def __init__(self, message: str):
        super().__init__(kind=ErrorKind.INPUT_INVALID, message=message)


STATUS_CODE_BY_KIND: dict[ErrorKind, int] = {
    ErrorKind.INPUT_INVALID: 400,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.INSUFFICIENT_DATA: 422,
    ErrorKind.RATE_LIMITED: 429,
}

INTERNAL_SERVER_ERROR = 500

MODEL_FAILURE_MESSAGE = "AI analysis failed. Please try again."
UPSTREAM_FAILURE_MESSAGE = "Failed to fetch GitHub data."
UNEXPECTED_FAILURE_MESSAGE = "An unexpected error occurred"


def status_code_for(error: AnalyzerError) -> int:
    return STATUS_CODE_BY_KIND.get(error.kind, INTERNAL_SERVER_ERROR)


def public_message_for(error: AnalyzerError) -> str:
    """The message shown to the user. Model and upstream details stay in the server logs."""

    if error.kind.is_model_failure:
        return MODEL_FAILURE_MESSAGE

    if error.kind == ErrorKind.UPSTREAM_ERROR:
        return UPSTREAM_FAILURE_MESSAGE

    return error.detail
