"""
In-memory fake of the certificate repository for unit tests.

Mimics the behaviour that matters to the domain layer:
  - certificate_number uniqueness (unique index) on insert and update
  - all-or-nothing batch insert
  - store-assigned timestamps
  - case-insensitive name match on active certificates
Switches let a test simulate an unreachable database.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import replace
from datetime import UTC, datetime
from uuid import UUID

from cert_verifier.domain.models import (
    CertificateRecord,
    CertificateStatus,
    VerificationLogEntry,
)
from cert_verifier.railway import ErrorCode, Result


class InMemoryCertificateStore:
    """Dict-backed CertificateStore + VerificationStore."""

    def __init__(self, existing: Iterable[CertificateRecord] = ()) -> None:
        self.certificates: dict[str, CertificateRecord] = {
            record.certificate_number: record for record in existing
        }
        self.logs: list[VerificationLogEntry] = []
        self.unavailable = False
        self.log_unavailable = False
        self.existence_checks: list[list[str]] = []
        self.insert_batches: list[list[CertificateRecord]] = []

    def _down(self) -> Result:
        return Result.failure(ErrorCode.STORE_UNAVAILABLE, "connection refused")

    # ─────────────────────── CertificateStore ───────────────────────

    def find_existing_numbers(self, numbers: Sequence[str]) -> Result[set[str]]:
        if self.unavailable:
            return self._down()
        self.existence_checks.append(list(numbers))
        return Result.success({n for n in numbers if n in self.certificates})

    def insert_many(
        self, records: Sequence[CertificateRecord]
    ) -> Result[list[CertificateRecord]]:
        if self.unavailable:
            return self._down()
        self.insert_batches.append(list(records))

        numbers = [record.certificate_number for record in records]
        conflicting = sorted(
            {n for n in numbers if n in self.certificates or numbers.count(n) > 1}
        )
        if conflicting:
            return Result.failure(
                ErrorCode.DUPLICATE_IN_STORE,
                f"Certificate numbers already exist: {', '.join(conflicting)}",
                details=conflicting,
            )

        now = datetime.now(UTC)
        stored = [replace(record, created_at=now, updated_at=now) for record in records]
        for record in stored:
            self.certificates[record.certificate_number] = record
        return Result.success(stored)

    def list_provider_certificates(self, provider_id: UUID) -> Result[list[CertificateRecord]]:
        if self.unavailable:
            return self._down()
        owned = [r for r in self.certificates.values() if r.provider_id == provider_id]
        # insertion order stands in for created_at ties
        return Result.success(list(reversed(owned)))

    def update_certificate(self, record: CertificateRecord) -> Result[CertificateRecord]:
        if self.unavailable:
            return self._down()
        current = next(
            (
                r
                for r in self.certificates.values()
                if r.id == record.id and r.provider_id == record.provider_id
            ),
            None,
        )
        if current is None:
            return Result.failure(
                ErrorCode.NOT_FOUND, f"Certificate {record.id} not found for this provider"
            )
        taken = self.certificates.get(record.certificate_number)
        if taken is not None and taken.id != record.id:
            return Result.failure(
                ErrorCode.DUPLICATE_IN_STORE,
                f"Certificate numbers already exist: {record.certificate_number}",
                details=[record.certificate_number],
            )

        stored = replace(
            record, created_at=current.created_at, updated_at=datetime.now(UTC)
        )
        self.certificates = {
            (stored.certificate_number if number == current.certificate_number else number): (
                stored if number == current.certificate_number else existing
            )
            for number, existing in self.certificates.items()
        }
        return Result.success(stored)

    # ─────────────────────── VerificationStore ───────────────────────

    def find_active(
        self,
        certificate_number: str,
        first_name: str,
        last_name: str,
    ) -> Result[list[CertificateRecord]]:
        if self.unavailable:
            return self._down()
        record = self.certificates.get(certificate_number)
        if (
            record is not None
            and record.status is CertificateStatus.ACTIVE
            and record.first_name.lower() == first_name.lower()
            and record.last_name.lower() == last_name.lower()
        ):
            return Result.success([record])
        return Result.success([])

    def log_attempt(self, entry: VerificationLogEntry) -> Result[VerificationLogEntry]:
        if self.unavailable or self.log_unavailable:
            return self._down()
        stored = replace(entry, created_at=datetime.now(UTC))
        self.logs.append(stored)
        return Result.success(stored)
