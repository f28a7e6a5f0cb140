"""Application errors and how they are rendered as HTTP responses."""

from __future__ import annotations

import logging
from http import HTTPStatus

logger = logging.getLogger(__name__)


def _status_body(code: int, brief: str | None = None, cause: str | None = None) -> dict:
    status = HTTPStatus(code)
    error = {"code": int(status), "name": status.phrase, "brief": brief or status.phrase}
    if cause is not None:
        error["cause"] = cause
    return {"error": error}


class AppError(Exception):
    """Base error for the application; unknown subclasses render as 500."""

    def render(self) -> tuple[int, dict]:
        """Return the status code and JSON body describing this error."""
        message = f"Unknown error happened: {self}"
        return 500, _status_body(500, message, cause=str(self))


class PublicError(AppError):
    """An error whose message may be shown to the client."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return f"public: `{self.message}`"

    def render(self) -> tuple[int, dict]:
        return 500, _status_body(500, self.message)


class InternalError(AppError):
    """An error whose message is logged but hidden from the client."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return f"internal: `{self.message}`"

    def render(self) -> tuple[int, dict]:
        logger.error("internal error: %s", self.message)
        return 500, _status_body(500)


class HttpStatusError(AppError):
    """An error carrying its own HTTP status code."""

    def __init__(self, code: int, brief: str | None = None) -> None:
        self.code = int(HTTPStatus(code))
        self.brief = brief or HTTPStatus(code).phrase
        super().__init__(self.brief)

    def __str__(self) -> str:
        return f"http status error: `{self.code} {self.brief}`"

    def render(self) -> tuple[int, dict]:
        return self.code, _status_body(self.code, self.brief)


def error_responses() -> dict[str, str]:
    """Describe the error responses an endpoint may produce, keyed by status code."""
    return {
        "500": "Internal server error",
        "404": "Not found",
        "400": "Bad request",
    }