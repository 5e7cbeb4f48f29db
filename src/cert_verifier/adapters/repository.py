"""
PostgreSQL repository adapter — certificate and verification-log persistence.

Adapter layer — implements the CertificateStore and VerificationStore ports
using psycopg (v3) with parameterized queries.

Batch insert is ALL-OR-NOTHING:
  1. BEGIN transaction
  2. INSERT ... RETURNING for every record
  3. COMMIT (or automatic ROLLBACK on the first failure → nothing stored)

The unique index on certificates.certificate_number is what actually
prevents two concurrent imports from claiming the same number; a
UniqueViolation here is reported as DUPLICATE_IN_STORE naming the numbers
that now exist, every other database error as STORE_UNAVAILABLE.

No ORM — raw parameterized SQL.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import replace
from typing import Any, TypeVar
from uuid import UUID

import psycopg
import structlog
from psycopg import errors

from cert_verifier.domain.models import (
    CertificateRecord,
    CertificateStatus,
    VerificationLogEntry,
)
from cert_verifier.railway import ErrorCode, FailureDescription, Result

log = structlog.get_logger()

T = TypeVar("T")

_CERT_COLUMNS = """
    id, certificate_number, first_name, last_name, course_name, provider_name,
    issue_date, expiration_date, status, provider_id, created_at, updated_at
"""

_SELECT_EXISTING = """
SELECT certificate_number FROM certificates
WHERE certificate_number = ANY(%s)
"""

_INSERT_CERT = f"""
INSERT INTO certificates (
    id, certificate_number, first_name, last_name, course_name, provider_name,
    issue_date, expiration_date, status, provider_id
) VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s::certificate_status, %s)
RETURNING {_CERT_COLUMNS}
"""

_SELECT_BY_PROVIDER = f"""
SELECT {_CERT_COLUMNS} FROM certificates
WHERE provider_id = %s
ORDER BY created_at DESC
"""

_UPDATE_CERT = f"""
UPDATE certificates SET
    certificate_number = %s,
    first_name = %s,
    last_name = %s,
    course_name = %s,
    provider_name = %s,
    issue_date = %s,
    expiration_date = %s,
    status = %s::certificate_status,
    updated_at = now()
WHERE id = %s AND provider_id = %s
RETURNING {_CERT_COLUMNS}
"""

_SELECT_ACTIVE_MATCH = f"""
SELECT {_CERT_COLUMNS} FROM certificates
WHERE certificate_number = %s
  AND lower(first_name) = lower(%s)
  AND lower(last_name) = lower(%s)
  AND status = 'active'
"""

_INSERT_LOG = """
INSERT INTO verification_logs (
    id, certificate_id, first_name, last_name, certificate_number,
    success, ip_address, user_agent
) VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
RETURNING created_at
"""


def _to_record(row: tuple[Any, ...]) -> CertificateRecord:
    """Map a row selected with _CERT_COLUMNS to a CertificateRecord."""
    (
        id_,
        number,
        first_name,
        last_name,
        course_name,
        provider_name,
        issue_date,
        expiration_date,
        status,
        provider_id,
        created_at,
        updated_at,
    ) = row
    return CertificateRecord(
        id=id_,
        certificate_number=number,
        first_name=first_name,
        last_name=last_name,
        course_name=course_name,
        provider_name=provider_name,
        issue_date=issue_date,
        expiration_date=expiration_date,
        status=CertificateStatus(status),
        provider_id=provider_id,
        created_at=created_at,
        updated_at=updated_at,
    )


def _log_store_failure(operation: str) -> Callable[[FailureDescription], None]:
    def _log(error: FailureDescription) -> None:
        log.error(
            "repository.store_unavailable",
            operation=operation,
            error=error.full_stack_trace(),
        )

    return _log


class PsycopgCertificateRepository:
    """
    Persist certificates and verification attempts to PostgreSQL.

    Implements both the CertificateStore and VerificationStore ports.
    One connection per call; exceptions never leave this class.
    """

    def __init__(self, dsn: str) -> None:
        self._dsn = dsn

    def _guarded(
        self, computation: Callable[[], T], operation: str, message: str
    ) -> Result[T]:
        return Result.from_computation(
            computation, ErrorCode.STORE_UNAVAILABLE, message
        ).peek_failure(_log_store_failure(operation))

    def _duplicate(
        self, candidates: Sequence[str], exc: errors.UniqueViolation
    ) -> Result[T]:
        """DUPLICATE_IN_STORE naming whichever candidates exist after the rollback."""
        conflicting = self.find_existing_numbers(candidates).either(
            lambda existing: [number for number in candidates if number in existing],
            lambda _: [],
        )
        log.warning("repository.unique_violation", conflicting=conflicting)
        message = "Certificate numbers already exist"
        if conflicting:
            message += ": " + ", ".join(conflicting)
        return Result.failure(ErrorCode.DUPLICATE_IN_STORE, message, exc, details=conflicting)

    # ─────────────────────── CertificateStore ───────────────────────

    def find_existing_numbers(self, numbers: Sequence[str]) -> Result[set[str]]:
        if not numbers:
            return Result.success(set())
        return self._guarded(
            lambda: self._select_existing(list(numbers)),
            "find_existing_numbers",
            "Failed to check existing certificate numbers",
        )

    def _select_existing(self, numbers: list[str]) -> set[str]:
        with psycopg.connect(self._dsn) as conn:
            rows = conn.execute(_SELECT_EXISTING, (numbers,)).fetchall()
        return {row[0] for row in rows}

    def insert_many(
        self, records: Sequence[CertificateRecord]
    ) -> Result[list[CertificateRecord]]:
        """
        Insert all records in a single transaction.

        If any INSERT fails, psycopg rolls the transaction back and no
        record from this batch is stored.
        """
        try:
            inserted = self._transactional_insert(records)
        except errors.UniqueViolation as e:
            return self._duplicate([record.certificate_number for record in records], e)
        except psycopg.Error as e:
            return Result.failure(
                ErrorCode.STORE_UNAVAILABLE,
                "Failed to persist certificates to database",
                e,
            ).peek_failure(_log_store_failure("insert_many"))
        log.info("repository.inserted", rows=len(inserted))
        return Result.success(inserted)

    def _transactional_insert(
        self, records: Sequence[CertificateRecord]
    ) -> list[CertificateRecord]:
        with psycopg.connect(self._dsn) as conn, conn.transaction(), conn.cursor() as cur:
            inserted: list[CertificateRecord] = []
            for record in records:
                cur.execute(
                    _INSERT_CERT,
                    (
                        record.id,
                        record.certificate_number,
                        record.first_name,
                        record.last_name,
                        record.course_name,
                        record.provider_name,
                        record.issue_date,
                        record.expiration_date,
                        record.status.value,
                        record.provider_id,
                    ),
                )
                row = cur.fetchone()
                if row is None:
                    raise psycopg.DataError(
                        f"INSERT RETURNING produced no row for {record.certificate_number!r}"
                    )
                inserted.append(_to_record(row))
            return inserted

    def list_provider_certificates(self, provider_id: UUID) -> Result[list[CertificateRecord]]:
        return self._guarded(
            lambda: self._select_by_provider(provider_id),
            "list_provider_certificates",
            "Failed to list certificates",
        )

    def _select_by_provider(self, provider_id: UUID) -> list[CertificateRecord]:
        with psycopg.connect(self._dsn) as conn:
            rows = conn.execute(_SELECT_BY_PROVIDER, (provider_id,)).fetchall()
        return [_to_record(row) for row in rows]

    def update_certificate(self, record: CertificateRecord) -> Result[CertificateRecord]:
        """
        Overwrite the editable fields of the certificate with `record.id`.

        Only a certificate owned by `record.provider_id` is touched;
        otherwise NOT_FOUND.
        """
        try:
            row = self._update(record)
        except errors.UniqueViolation as e:
            return self._duplicate([record.certificate_number], e)
        except psycopg.Error as e:
            return Result.failure(
                ErrorCode.STORE_UNAVAILABLE, "Failed to update certificate", e
            ).peek_failure(_log_store_failure("update_certificate"))

        if row is None:
            return Result.failure(
                ErrorCode.NOT_FOUND, f"Certificate {record.id} not found for this provider"
            )
        log.info("repository.updated", certificate_id=str(record.id))
        return Result.success(_to_record(row))

    def _update(self, record: CertificateRecord) -> tuple[Any, ...] | None:
        with psycopg.connect(self._dsn) as conn:
            return conn.execute(
                _UPDATE_CERT,
                (
                    record.certificate_number,
                    record.first_name,
                    record.last_name,
                    record.course_name,
                    record.provider_name,
                    record.issue_date,
                    record.expiration_date,
                    record.status.value,
                    record.id,
                    record.provider_id,
                ),
            ).fetchone()

    # ─────────────────────── VerificationStore ───────────────────────

    def find_active(
        self,
        certificate_number: str,
        first_name: str,
        last_name: str,
    ) -> Result[list[CertificateRecord]]:
        return self._guarded(
            lambda: self._select_active(certificate_number, first_name, last_name),
            "find_active",
            "Failed to look up certificate",
        )

    def _select_active(
        self, certificate_number: str, first_name: str, last_name: str
    ) -> list[CertificateRecord]:
        with psycopg.connect(self._dsn) as conn:
            rows = conn.execute(
                _SELECT_ACTIVE_MATCH, (certificate_number, first_name, last_name)
            ).fetchall()
        return [_to_record(row) for row in rows]

    def log_attempt(self, entry: VerificationLogEntry) -> Result[VerificationLogEntry]:
        return self._guarded(
            lambda: self._insert_log(entry),
            "log_attempt",
            "Failed to record verification attempt",
        )

    def _insert_log(self, entry: VerificationLogEntry) -> VerificationLogEntry:
        with psycopg.connect(self._dsn) as conn:
            row = conn.execute(
                _INSERT_LOG,
                (
                    entry.id,
                    entry.certificate_id,
                    entry.first_name,
                    entry.last_name,
                    entry.certificate_number,
                    entry.success,
                    entry.ip_address,
                    entry.user_agent,
                ),
            ).fetchone()
        return replace(entry, created_at=row[0] if row else None)
