"""
Shared test fixtures for the cert-verifier test suite.

Provides a fixed "today", a provider id, an in-memory store, and a
helper that assembles CSV upload text from rows.
"""

from __future__ import annotations

from datetime import date
from uuid import UUID

import pytest

from cert_verifier.adapters.csv_parser import TEMPLATE_COLUMNS
from cert_verifier.domain.models import CertificateRecord
from tests.fakes import InMemoryCertificateStore

TODAY = date(2026, 6, 1)
PROVIDER_ID = UUID("11111111-2222-3333-4444-555555555555")
HEADER = ",".join(TEMPLATE_COLUMNS)


def csv_text(*rows: str, header: str = HEADER) -> str:
    """Join a header and data lines into upload text."""
    return "\n".join([header, *rows]) + "\n"


def make_record(
    certificate_number: str = "CERT001",
    first_name: str = "John",
    last_name: str = "Doe",
    **overrides: object,
) -> CertificateRecord:
    """Create a minimal CertificateRecord for testing."""
    fields: dict[str, object] = {
        "course_name": "Safety Training",
        "provider_name": "ABC Training",
        "issue_date": date(2025, 1, 1),
        "expiration_date": date(2026, 1, 1),
    }
    fields.update(overrides)
    return CertificateRecord(
        certificate_number=certificate_number,
        first_name=first_name,
        last_name=last_name,
        **fields,  # type: ignore[arg-type]
    )


@pytest.fixture()
def today() -> date:
    return TODAY


@pytest.fixture()
def provider_id() -> UUID:
    return PROVIDER_ID


@pytest.fixture()
def store() -> InMemoryCertificateStore:
    """An empty in-memory certificate store."""
    return InMemoryCertificateStore()
