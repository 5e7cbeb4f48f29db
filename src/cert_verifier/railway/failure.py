"""
Failure description — structured error information for the failure track.

Every failure carries an ErrorCode, a human-readable message and, for
row-level import problems, the full list of row messages in `details`.
The message is what a caller shows to the user; `details` lets a client
render the complete row-by-row report.
"""

from __future__ import annotations

import traceback
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum, unique


@unique
class ErrorCode(Enum):
    """
    Error codes for the failure track, grouped by who can fix them.

    - Caller-correctable input: the uploaded file or request body is wrong
    - Conflicts with stored data
    - Infrastructure: the store or the service itself is at fault
    """

    # --- Caller-correctable input ---
    VALIDATION_ERROR = "VALIDATION_ERROR"
    """Malformed request input (missing fields, undecodable body)."""

    EMPTY_OR_HEADER_ONLY_FILE = "EMPTY_OR_HEADER_ONLY_FILE"
    """Uploaded file has no data rows after the header."""

    ROW_VALIDATION_ERROR = "ROW_VALIDATION_ERROR"
    """One or more rows failed validation; the report lists them."""

    NO_VALID_ROWS = "NO_VALID_ROWS"
    """Every data row of the file failed validation."""

    PAYLOAD_TOO_LARGE = "PAYLOAD_TOO_LARGE"
    """Uploaded file exceeds the configured size ceiling."""

    UNSUPPORTED_MEDIA_TYPE = "UNSUPPORTED_MEDIA_TYPE"
    """Uploaded file is not of an accepted content type."""

    NOT_FOUND = "NOT_FOUND"
    """Requested resource does not exist."""

    # --- Conflicts with stored data ---
    DUPLICATE_IN_STORE = "DUPLICATE_IN_STORE"
    """Certificate numbers already exist in the store."""

    # --- Infrastructure ---
    STORE_UNAVAILABLE = "STORE_UNAVAILABLE"
    """Database connectivity or query failure."""

    UNKNOWN_ERROR = "UNKNOWN_ERROR"
    """Unexpected, unclassified failure."""


@dataclass(frozen=True, slots=True)
class FailureDescription:
    """
    Immutable failure descriptor.

    >>> desc = FailureDescription(ErrorCode.NO_VALID_ROWS, "No valid rows")
    >>> desc.code
    <ErrorCode.NO_VALID_ROWS: 'NO_VALID_ROWS'>
    >>> desc.details
    ()
    """

    code: ErrorCode
    message: str
    exception: BaseException | None = field(default=None, repr=False)
    details: tuple[str, ...] = ()
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    def full_stack_trace(self) -> str:
        """Message followed by the formatted exception chain, if any."""
        if self.exception is None:
            return self.message
        tb = "".join(
            traceback.format_exception(
                type(self.exception), self.exception, self.exception.__traceback__
            )
        )
        return f"{self.message}\n{tb}"
