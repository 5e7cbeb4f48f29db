"""
Importer — the bulk certificate import pipeline.

Domain layer: no I/O of its own. The file parser and the certificate
store are injected as ports, and "today" is a parameter so the temporal
rules are deterministic under test.

The stages are connected via flat_map:

  parse(text)
    → validate every row (Valid | Invalid), fail-closed on any error
      → reject numbers that already exist in the store
        → tag with provider_id, status=active
          → insert_many (single transaction)

Policy: FAIL-CLOSED. Either every data row of the file is valid and the
whole file is inserted, or nothing is inserted and the caller receives a
bounded, row-addressed error report. There is no partial import.

Manual entry and editing of a single certificate apply the same row rules.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from dataclasses import replace
from datetime import date
from uuid import UUID

import structlog

from cert_verifier.domain.models import (
    CertificateRecord,
    CertificateStatus,
    ImportRow,
    ImportSummary,
    Invalid,
    RowError,
    Valid,
)
from cert_verifier.domain.ports import CertificateStore, ImportFileParser
from cert_verifier.domain.validation import COLUMNS, validate_row, validate_rows
from cert_verifier.railway import ErrorCode, FailureDescription, Result

log = structlog.get_logger()

DEFAULT_MAX_REPORTED_ERRORS = 5


def summarize_errors(errors: Sequence[RowError], limit: int = DEFAULT_MAX_REPORTED_ERRORS) -> str:
    """
    One user-facing message: the first `limit` row errors plus an overflow count.

    >>> from cert_verifier.domain.models import RowErrorKind
    >>> e = RowError(3, RowErrorKind.FUTURE_ISSUE_DATE, "issue_date 2999-01-01 is in the future")
    >>> summarize_errors([e])
    'Import rejected: 1 row error(s). Line 3: issue_date 2999-01-01 is in the future'
    """
    shown = "; ".join(error.describe() for error in errors[:limit])
    message = f"Import rejected: {len(errors)} row error(s). {shown}"
    remaining = len(errors) - limit
    if remaining > 0:
        message += f"; and {remaining} more error(s)"
    return message


def _collect_valid(
    rows: list[ImportRow],
    today: date,
    max_reported_errors: int,
) -> Result[list[CertificateRecord]]:
    """Validate all rows; succeed only if none failed."""
    records: list[CertificateRecord] = []
    errors: list[RowError] = []
    for outcome in validate_rows(rows, today):
        match outcome:
            case Valid(record=record):
                records.append(record)
            case Invalid(errors=row_errors):
                errors.extend(row_errors)

    if not errors:
        return Result.success(records)

    code = ErrorCode.ROW_VALIDATION_ERROR if records else ErrorCode.NO_VALID_ROWS
    return Result.failure(
        code,
        summarize_errors(errors, max_reported_errors),
        details=[error.describe() for error in errors],
    )


def _reject_existing(
    records: list[CertificateRecord],
    store: CertificateStore,
) -> Result[list[CertificateRecord]]:
    """Best-effort pre-check: fail the whole batch if any number is already stored."""
    numbers = [record.certificate_number for record in records]

    def _check(existing: set[str]) -> Result[list[CertificateRecord]]:
        conflicting = [number for number in numbers if number in existing]
        if conflicting:
            return Result.failure(
                ErrorCode.DUPLICATE_IN_STORE,
                f"Certificate numbers already exist: {', '.join(conflicting)}",
                details=conflicting,
            )
        return Result.success(records)

    return store.find_existing_numbers(numbers).flat_map(_check)


def _tag(records: list[CertificateRecord], provider_id: UUID) -> list[CertificateRecord]:
    return [
        replace(record, provider_id=provider_id, status=CertificateStatus.ACTIVE)
        for record in records
    ]


def _log_rejection(provider_id: UUID, operation: str) -> Callable[[FailureDescription], None]:
    def _log(error: FailureDescription) -> None:
        log.warning(
            f"{operation}.rejected",
            provider_id=str(provider_id),
            error_code=error.code.value,
            errors=len(error.details),
        )

    return _log


def run_import(
    text: str,
    provider_id: UUID,
    parser: ImportFileParser,
    store: CertificateStore,
    today: date | None = None,
    max_reported_errors: int = DEFAULT_MAX_REPORTED_ERRORS,
) -> Result[ImportSummary]:
    """
    Import one uploaded file for a provider.

    The file size ceiling is enforced by the caller before `text` is
    decoded; this function sees only the decoded text.

    Returns Result[ImportSummary] with the inserted records on success, or
    the failure from the first failing stage:
      EMPTY_OR_HEADER_ONLY_FILE, ROW_VALIDATION_ERROR, NO_VALID_ROWS,
      DUPLICATE_IN_STORE, STORE_UNAVAILABLE.
    """
    current_day = today or date.today()
    return (
        parser.parse(text)
        .flat_map(lambda rows: _collect_valid(rows, current_day, max_reported_errors))
        .flat_map(lambda records: _reject_existing(records, store))
        .map(lambda records: _tag(records, provider_id))
        .flat_map(store.insert_many)
        .map(lambda inserted: ImportSummary(provider_id=provider_id, inserted=inserted))
        .peek(
            lambda summary: log.info(
                "importer.completed",
                provider_id=str(provider_id),
                inserted=summary.count,
            )
        )
        .peek_failure(_log_rejection(provider_id, "importer"))
    )


def _validate_fields(
    fields: Mapping[str, str | None], today: date
) -> Result[CertificateRecord]:
    """Apply the import row rules to one form submission keyed by column name."""
    row = ImportRow(
        line_number=1,
        values=tuple((fields.get(column) or "").strip() for column in COLUMNS),
    )
    match validate_row(row, today, set()):
        case Valid(record=record):
            return Result.success(record)
        case Invalid(errors=errors):
            return Result.failure(
                ErrorCode.ROW_VALIDATION_ERROR,
                "Certificate rejected: " + "; ".join(e.message for e in errors),
                details=[e.message for e in errors],
            )
    raise TypeError("unreachable")  # pragma: no cover


def create_certificate(
    fields: Mapping[str, str | None],
    provider_id: UUID,
    store: CertificateStore,
    today: date | None = None,
) -> Result[CertificateRecord]:
    """
    Manual entry of a single certificate.

    `fields` is keyed by the import column names; the same validation,
    existence check and insert path as a one-row import is used.
    """
    return (
        _validate_fields(fields, today or date.today())
        .flat_map(lambda record: _reject_existing([record], store))
        .map(lambda records: _tag(records, provider_id))
        .flat_map(store.insert_many)
        .map(lambda inserted: inserted[0])
        .peek(
            lambda record: log.info(
                "certificate.created",
                provider_id=str(provider_id),
                certificate_number=record.certificate_number,
            )
        )
        .peek_failure(_log_rejection(provider_id, "certificate"))
    )


def list_certificates(
    provider_id: UUID, store: CertificateStore
) -> Result[list[CertificateRecord]]:
    """All of a provider's certificates, newest first."""
    return store.list_provider_certificates(provider_id)


def update_certificate(
    certificate_id: UUID,
    fields: Mapping[str, str | None],
    status: CertificateStatus,
    provider_id: UUID,
    store: CertificateStore,
    today: date | None = None,
) -> Result[CertificateRecord]:
    """
    Edit one of the provider's certificates, including its status.

    The submitted fields pass the same rules as manual entry. A missing
    expiration_date clears the stored one. Setting status to revoked or
    expired takes the certificate out of public verification.

    Failures: ROW_VALIDATION_ERROR, NOT_FOUND (unknown id or another
    provider's certificate), DUPLICATE_IN_STORE, STORE_UNAVAILABLE.
    """
    return (
        _validate_fields(fields, today or date.today())
        .map(
            lambda record: replace(
                record, id=certificate_id, provider_id=provider_id, status=status
            )
        )
        .flat_map(store.update_certificate)
        .peek(
            lambda record: log.info(
                "certificate.updated",
                provider_id=str(provider_id),
                certificate_id=str(record.id),
                status=record.status.value,
            )
        )
        .peek_failure(_log_rejection(provider_id, "certificate_update"))
    )
