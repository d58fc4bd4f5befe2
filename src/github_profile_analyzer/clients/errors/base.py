from enum import StrEnum

ExtraInfoType = dict[str, str | None]


class ErrorKind(StrEnum):
    """The kind of failure, used to decide how an error is surfaced."""

    INPUT_INVALID = "input_invalid"
    NOT_FOUND = "not_found"
    RATE_LIMITED = "rate_limited"
    UPSTREAM_ERROR = "upstream_error"
    INSUFFICIENT_DATA = "insufficient_data"
    MODEL_TIMEOUT = "model_timeout"
    MODEL_UNAVAILABLE = "model_unavailable"
    MODEL_UNAUTHORIZED = "model_unauthorized"
    MODEL_SERVICE_ERROR = "model_service_error"
    MODEL_EMPTY_RESPONSE = "model_empty_response"
    MODEL_INVALID_RESPONSE = "model_invalid_response"

    @property
    def is_model_failure(self) -> bool:
        return self.value.startswith("model_")


class AnalyzerError(Exception):
    """An error from the GitHub Profile Analyzer."""

    kind: ErrorKind

    def __init__(self, kind: ErrorKind, message: str, extra_info: ExtraInfoType | None = None):
        self.kind = kind
        self.detail = message

        msg = message
        if extra_info:
            msg += " (" + ", ".join([f"{key}: {value}" for key, value in extra_info.items() if value is not None]) + ")"
        super().__init__(msg)
