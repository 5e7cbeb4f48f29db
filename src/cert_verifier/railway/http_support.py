"""
HTTP integration — ErrorCode → HTTP status mapping and error response bodies.

    body, status = build_response(result, success_status=201)
    return build_fastapi_response(result, success_status=201)
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, TypeVar

from fastapi.responses import JSONResponse

from cert_verifier.railway.failure import ErrorCode, FailureDescription
from cert_verifier.railway.result import Result

T = TypeVar("T")


class HttpStatusMapper:
    """Maps ErrorCode values to HTTP status codes."""

    _CODE_TO_STATUS: dict[ErrorCode, int] = {
        # Caller-correctable (4xx)
        ErrorCode.VALIDATION_ERROR: 400,
        ErrorCode.EMPTY_OR_HEADER_ONLY_FILE: 400,
        ErrorCode.ROW_VALIDATION_ERROR: 400,
        ErrorCode.NO_VALID_ROWS: 400,
        ErrorCode.NOT_FOUND: 404,
        ErrorCode.DUPLICATE_IN_STORE: 409,
        ErrorCode.PAYLOAD_TOO_LARGE: 413,
        ErrorCode.UNSUPPORTED_MEDIA_TYPE: 415,
        # Infrastructure (5xx)
        ErrorCode.STORE_UNAVAILABLE: 503,
        ErrorCode.UNKNOWN_ERROR: 500,
    }

    @classmethod
    def map_error_code(cls, code: ErrorCode) -> int:
        return cls._CODE_TO_STATUS.get(code, 500)

    @classmethod
    def map_failure(cls, failure: FailureDescription) -> int:
        return cls.map_error_code(failure.code)


@dataclass(frozen=True, slots=True)
class ErrorResponse:
    """
    Error response body.

        {
            "error_code": "ROW_VALIDATION_ERROR",
            "message": "Import rejected: 1 row error(s). Line 3: ...",
            "details": ["Line 3: ..."],
            "timestamp": "2026-02-17T10:30:00+00:00"
        }
    """

    error_code: str
    message: str
    details: list[str]
    timestamp: str

    @staticmethod
    def from_failure(failure: FailureDescription) -> ErrorResponse:
        return ErrorResponse(
            error_code=failure.code.value,
            message=failure.message,
            details=list(failure.details),
            timestamp=failure.timestamp.isoformat(),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
            "timestamp": self.timestamp,
        }


def build_response(
    result: Result[T],
    success_status: int = 200,
    render: Callable[[T], Any] | None = None,
) -> tuple[Any, int]:
    """
    Build a (body, status_code) tuple from a Result.

    `render` turns the success value into a JSON-serializable body;
    without it the value is returned as-is.
    """
    return result.either(
        on_success=lambda value: (
            render(value) if render is not None else value,
            success_status,
        ),
        on_failure=lambda error: (
            ErrorResponse.from_failure(error).to_dict(),
            HttpStatusMapper.map_failure(error),
        ),
    )


def build_fastapi_response(
    result: Result[T],
    success_status: int = 200,
    render: Callable[[T], Any] | None = None,
) -> JSONResponse:
    """Build a FastAPI JSONResponse from a Result."""
    body, status = build_response(result, success_status, render)
    return JSONResponse(content=body, status_code=status)
