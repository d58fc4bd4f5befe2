from github_profile_analyzer.clients.errors.base import AnalyzerError, ErrorKind, ExtraInfoType


class InferenceError(AnalyzerError):
    """A failure calling or reading from the local inference endpoint."""

    def __init__(self, kind: ErrorKind, message: str, extra_info: ExtraInfoType | None = None):
        super().__init__(kind=kind, message=message, extra_info=extra_info)


class InferenceTimeoutError(InferenceError):
    def __init__(self, timeout: float):
        super().__init__(
            kind=ErrorKind.MODEL_TIMEOUT,
            message="AI Service Timeout. The model took too long to respond.",
            extra_info={"timeout": f"{timeout}s"},
        )


class InferenceUnavailableError(InferenceError):
    def __init__(self, url: str, message: str | None = None):
        super().__init__(
            kind=ErrorKind.MODEL_UNAVAILABLE,
            message="AI Service Unavailable. Unable to connect to the inference endpoint.",
            extra_info={"url": url, "message": message},
        )


class InferenceUnauthorizedError(InferenceError):
    def __init__(self, status_code: int):
        self.status_code: int = status_code

        super().__init__(
            kind=ErrorKind.MODEL_UNAUTHORIZED,
            message="AI Service Unauthorized. Check API Key configuration.",
            extra_info={"status": str(status_code)},
        )


class InferenceServiceError(InferenceError):
    def __init__(self, status_code: int, body: str):
        self.status_code: int = status_code
        self.body: str = body

        super().__init__(kind=ErrorKind.MODEL_SERVICE_ERROR, message=f"AI Service Error ({status_code}): {body}")


class EmptyResponseError(InferenceError):
    def __init__(self, action: str):
        super().__init__(kind=ErrorKind.MODEL_EMPTY_RESPONSE, message="AI Service returned empty response.", extra_info={"action": action})


class InvalidResponseError(InferenceError):
    """The model returned text that could not be read as the expected JSON object."""

    def __init__(self, action: str, message: str | None = None):
        super().__init__(
            kind=ErrorKind.MODEL_INVALID_RESPONSE,
            message="AI Service returned invalid JSON.",
            extra_info={"action": action, "message": message},
        )
