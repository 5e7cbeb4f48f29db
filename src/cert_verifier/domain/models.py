"""
Domain models — immutable data structures for certificates, import rows,
and verification attempts.

All models are frozen dataclasses. Row validation produces a tagged
outcome per row (Valid | Invalid) so the import decision is taken only
after every row has been examined.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum, unique
from typing import TypeAlias
from uuid import UUID, uuid4


@unique
class CertificateStatus(str, Enum):
    """Lifecycle state of an issued certificate."""

    ACTIVE = "active"
    EXPIRED = "expired"
    REVOKED = "revoked"


@dataclass(frozen=True, slots=True)
class CertificateRecord:
    """
    An issued credential.

    Maps to the `certificates` table. `certificate_number` is unique across
    the store; `created_at` / `updated_at` are assigned by the store and are
    None until the record has been persisted.
    """

    certificate_number: str
    first_name: str
    last_name: str
    course_name: str
    provider_name: str
    issue_date: date
    expiration_date: date | None = None
    status: CertificateStatus = CertificateStatus.ACTIVE
    provider_id: UUID | None = None
    id: UUID = field(default_factory=uuid4)
    created_at: datetime | None = None
    updated_at: datetime | None = None


# ─────────────────────── Import ───────────────────────


@dataclass(frozen=True, slots=True)
class ImportRow:
    """One non-blank data line of an uploaded file, split into raw column values."""

    line_number: int
    values: tuple[str, ...]


@unique
class RowErrorKind(str, Enum):
    INSUFFICIENT_COLUMNS = "insufficient_columns"
    FIELD_VALIDATION = "field_validation"
    DUPLICATE_IN_FILE = "duplicate_in_file"
    FUTURE_ISSUE_DATE = "future_issue_date"
    EXPIRATION_BEFORE_ISSUE = "expiration_before_issue"


@dataclass(frozen=True, slots=True)
class RowError:
    """A single row-scoped validation failure."""

    line_number: int
    kind: RowErrorKind
    message: str
    field_name: str | None = None

    def describe(self) -> str:
        return f"Line {self.line_number}: {self.message}"


@dataclass(frozen=True, slots=True)
class Valid:
    """Row passed every check; `record` is ready to insert once tagged with a provider."""

    row: ImportRow
    record: CertificateRecord


@dataclass(frozen=True, slots=True)
class Invalid:
    """Row failed one or more checks and is excluded from the insert set."""

    row: ImportRow
    errors: tuple[RowError, ...]


RowOutcome: TypeAlias = Valid | Invalid


@dataclass(frozen=True, slots=True)
class ImportSummary:
    """Result of a successful import: the records that were inserted."""

    provider_id: UUID
    inserted: list[CertificateRecord] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.inserted)


# ─────────────────────── Verification ───────────────────────


@dataclass(frozen=True, slots=True)
class VerificationRequest:
    """A public lookup: the holder's names and the certificate number."""

    first_name: str
    last_name: str
    certificate_number: str
    ip_address: str = "unknown"
    user_agent: str = "unknown"


@dataclass(frozen=True, slots=True)
class VerificationLogEntry:
    """
    Audit record of one verification attempt.

    Maps to the `verification_logs` table. `certificate_id` is set only
    when the attempt matched a certificate.
    """

    first_name: str
    last_name: str
    certificate_number: str
    success: bool
    certificate_id: UUID | None = None
    ip_address: str | None = None
    user_agent: str | None = None
    id: UUID = field(default_factory=uuid4)
    created_at: datetime | None = None


@dataclass(frozen=True, slots=True)
class VerificationOutcome:
    success: bool
    certificate: CertificateRecord | None = None
