"""
Ports — Protocol-based interfaces for the persistence adapters.

The importer and the verification lookup depend only on these contracts,
so they run unchanged against PostgreSQL in production and against an
in-memory fake in tests.

Uniqueness of certificate_number is enforced by the store itself; the
importer's existence check is a best-effort pre-check, not the guarantee.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol, runtime_checkable
from uuid import UUID

from cert_verifier.domain.models import CertificateRecord, ImportRow, VerificationLogEntry
from cert_verifier.railway import Result


@runtime_checkable
class ImportFileParser(Protocol):
    """
    Port: split uploaded file text into data rows.

    The header line is consumed by the parser; a file without at least one
    data row fails with EMPTY_OR_HEADER_ONLY_FILE.
    """

    def parse(self, text: str) -> Result[list[ImportRow]]: ...


@runtime_checkable
class CertificateStore(Protocol):
    """Port: read, insert and edit a provider's certificates."""

    def find_existing_numbers(self, numbers: Sequence[str]) -> Result[set[str]]:
        """
        Return the subset of `numbers` already present in the store.

        One query for the whole candidate set. Fails with STORE_UNAVAILABLE
        on connectivity or query errors.
        """
        ...

    def insert_many(
        self, records: Sequence[CertificateRecord]
    ) -> Result[list[CertificateRecord]]:
        """
        Insert all records in one transaction and return them as persisted.

        All-or-nothing: on any failure nothing is committed. A unique-index
        violation fails with DUPLICATE_IN_STORE, anything else with
        STORE_UNAVAILABLE.
        """
        ...

    def list_provider_certificates(self, provider_id: UUID) -> Result[list[CertificateRecord]]:
        """Return every certificate owned by the provider, newest first."""
        ...

    def update_certificate(self, record: CertificateRecord) -> Result[CertificateRecord]:
        """
        Overwrite the stored certificate with `record.id` and return it as persisted.

        Fails with NOT_FOUND when no certificate with that id belongs to
        `record.provider_id`, and with DUPLICATE_IN_STORE when the new
        certificate_number is taken by another certificate.
        """
        ...


@runtime_checkable
class VerificationStore(Protocol):
    """Port: look up active certificates and record verification attempts."""

    def find_active(
        self,
        certificate_number: str,
        first_name: str,
        last_name: str,
    ) -> Result[list[CertificateRecord]]:
        """
        Return active certificates with exactly this number whose holder
        names match case-insensitively.
        """
        ...

    def log_attempt(self, entry: VerificationLogEntry) -> Result[VerificationLogEntry]:
        """Persist one audit entry and return it as stored."""
        ...


@runtime_checkable
class CertificateRepository(CertificateStore, VerificationStore, Protocol):
    """Port: everything the HTTP surface needs from persistence."""
