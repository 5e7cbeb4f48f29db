"""
Integration tests for PsycopgCertificateRepository.

Tests run against a real PostgreSQL instance via testcontainers and
verify the all-or-nothing batch insert, the existence check, listing and
editing a provider's certificates, the active-certificate lookup and the
verification audit log.

Markers: @pytest.mark.integration — requires Docker + PostgreSQL.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import date
from uuid import uuid4

import psycopg
import pytest

from cert_verifier.adapters.csv_parser import CsvCertificateParser
from cert_verifier.adapters.repository import PsycopgCertificateRepository
from cert_verifier.domain.models import (
    CertificateStatus,
    VerificationLogEntry,
    VerificationRequest,
)
from cert_verifier.importer import run_import
from cert_verifier.railway import ErrorCode
from cert_verifier.verification import verify_certificate
from tests.assertions import ResultAssertions
from tests.conftest import PROVIDER_ID, TODAY, csv_text, make_record

pytestmark = pytest.mark.integration


def _count(dsn: str, table: str) -> int:
    with psycopg.connect(dsn) as conn:
        row = conn.execute(f"SELECT count(*) FROM {table}").fetchone()  # noqa: S608
    assert row is not None
    return row[0]


class TestInsertMany:
    def test_inserts_and_returns_store_timestamps(self, dsn: str) -> None:
        """
        GIVEN two new records
        WHEN insert_many is called
        THEN both are stored and returned with created_at/updated_at set.
        """
        repo = PsycopgCertificateRepository(dsn)
        records = [
            make_record("A1", provider_id=PROVIDER_ID),
            make_record("A2", expiration_date=None, provider_id=PROVIDER_ID),
        ]

        inserted = ResultAssertions.assert_success(repo.insert_many(records))

        assert [r.certificate_number for r in inserted] == ["A1", "A2"]
        assert all(r.created_at is not None and r.updated_at is not None for r in inserted)
        assert inserted[1].expiration_date is None
        assert inserted[0].status is CertificateStatus.ACTIVE
        assert inserted[0].provider_id == PROVIDER_ID
        assert _count(dsn, "certificates") == 2

    def test_unique_violation_rolls_back_whole_batch(self, dsn: str) -> None:
        """
        GIVEN A1 is already stored
        WHEN a batch of [B1, A1] is inserted
        THEN DUPLICATE_IN_STORE naming A1, and B1 is not stored either.
        """
        repo = PsycopgCertificateRepository(dsn)
        ResultAssertions.assert_success(repo.insert_many([make_record("A1")]))

        result = repo.insert_many([make_record("B1"), make_record("A1")])

        error = ResultAssertions.assert_failure(result, ErrorCode.DUPLICATE_IN_STORE)
        assert error.details == ("A1",)
        assert error.message == "Certificate numbers already exist: A1"
        assert _count(dsn, "certificates") == 1

    def test_unreachable_database(self) -> None:
        repo = PsycopgCertificateRepository("postgresql://nobody:x@127.0.0.1:1/none")

        result = repo.insert_many([make_record()])

        ResultAssertions.assert_failure(result, ErrorCode.STORE_UNAVAILABLE)


class TestFindExistingNumbers:
    def test_returns_only_stored_numbers(self, dsn: str) -> None:
        repo = PsycopgCertificateRepository(dsn)
        repo.insert_many([make_record("A1"), make_record("A2")])

        existing = ResultAssertions.assert_success(repo.find_existing_numbers(["A2", "Z9"]))

        assert existing == {"A2"}

    def test_empty_input(self, dsn: str) -> None:
        repo = PsycopgCertificateRepository(dsn)

        assert ResultAssertions.assert_success(repo.find_existing_numbers([])) == set()


class TestListProviderCertificates:
    def test_newest_first_for_one_provider(self, dsn: str) -> None:
        repo = PsycopgCertificateRepository(dsn)
        repo.insert_many([make_record("L1", provider_id=PROVIDER_ID)])
        repo.insert_many([make_record("L2", provider_id=PROVIDER_ID)])
        repo.insert_many([make_record("X1", provider_id=uuid4())])

        records = ResultAssertions.assert_success(repo.list_provider_certificates(PROVIDER_ID))

        assert [r.certificate_number for r in records] == ["L2", "L1"]

    def test_unknown_provider_is_empty(self, dsn: str) -> None:
        repo = PsycopgCertificateRepository(dsn)

        assert ResultAssertions.assert_success(repo.list_provider_certificates(uuid4())) == []


class TestUpdateCertificate:
    def test_overwrites_fields_and_bumps_updated_at(self, dsn: str) -> None:
        """
        GIVEN a stored active certificate
        WHEN it is updated with a new number, no expiration and status expired
        THEN the row is overwritten in place and updated_at moves forward.
        """
        repo = PsycopgCertificateRepository(dsn)
        (stored,) = ResultAssertions.assert_success(
            repo.insert_many([make_record("U1", provider_id=PROVIDER_ID)])
        )

        changed = replace(
            stored,
            certificate_number="U1-R",
            expiration_date=None,
            status=CertificateStatus.EXPIRED,
        )
        updated = ResultAssertions.assert_success(repo.update_certificate(changed))

        assert updated.id == stored.id
        assert updated.certificate_number == "U1-R"
        assert updated.expiration_date is None
        assert updated.status is CertificateStatus.EXPIRED
        assert updated.created_at == stored.created_at
        assert updated.updated_at is not None and stored.updated_at is not None
        assert updated.updated_at > stored.updated_at
        assert ResultAssertions.assert_success(repo.find_active("U1-R", "John", "Doe")) == []

    def test_other_provider_is_not_found(self, dsn: str) -> None:
        repo = PsycopgCertificateRepository(dsn)
        (stored,) = ResultAssertions.assert_success(
            repo.insert_many([make_record("U2", provider_id=PROVIDER_ID)])
        )

        result = repo.update_certificate(replace(stored, provider_id=uuid4()))

        ResultAssertions.assert_failure(result, ErrorCode.NOT_FOUND)

    def test_number_collision_names_the_number(self, dsn: str) -> None:
        repo = PsycopgCertificateRepository(dsn)
        stored, _ = ResultAssertions.assert_success(
            repo.insert_many(
                [
                    make_record("U3", provider_id=PROVIDER_ID),
                    make_record("U4", provider_id=PROVIDER_ID),
                ]
            )
        )

        result = repo.update_certificate(replace(stored, certificate_number="U4"))

        error = ResultAssertions.assert_failure(result, ErrorCode.DUPLICATE_IN_STORE)
        assert error.details == ("U4",)


class TestFindActive:
    def test_case_insensitive_names_active_only(self, dsn: str) -> None:
        repo = PsycopgCertificateRepository(dsn)
        repo.insert_many(
            [
                make_record("A1", "John", "Doe"),
                make_record("R1", "John", "Doe", status=CertificateStatus.REVOKED),
            ]
        )

        active = ResultAssertions.assert_success(repo.find_active("A1", "JOHN", "doe"))
        revoked = ResultAssertions.assert_success(repo.find_active("R1", "John", "Doe"))

        assert [r.certificate_number for r in active] == ["A1"]
        assert revoked == []


class TestLogAttempt:
    def test_log_entry_stored(self, dsn: str) -> None:
        repo = PsycopgCertificateRepository(dsn)
        entry = VerificationLogEntry(
            first_name="John",
            last_name="Doe",
            certificate_number="NOPE",
            success=False,
            ip_address="unknown",
            user_agent="pytest",
        )

        stored = ResultAssertions.assert_success(repo.log_attempt(entry))

        assert stored.created_at is not None
        assert _count(dsn, "verification_logs") == 1


class TestEndToEnd:
    def test_import_then_verify(self, dsn: str) -> None:
        """
        GIVEN a CSV file imported for a provider
        WHEN one of its certificates is verified
        THEN the lookup succeeds and the attempt is logged.
        """
        repo = PsycopgCertificateRepository(dsn)
        text = csv_text(
            "E1,Jane,Smith,First Aid,ABC Training,2025-01-10,2027-01-10",
            'E2,John,Doe,"Training, Advanced",ABC Training,2025-02-01,',
        )

        summary = ResultAssertions.assert_success(
            run_import(text, PROVIDER_ID, CsvCertificateParser(), repo, today=TODAY)
        )
        outcome = ResultAssertions.assert_success(
            verify_certificate(VerificationRequest("jane", "SMITH", "E1"), repo)
        )

        assert summary.count == 2
        assert outcome.success is True
        assert outcome.certificate is not None
        assert outcome.certificate.issue_date == date(2025, 1, 10)
        assert _count(dsn, "verification_logs") == 1

    def test_second_import_of_same_file_is_rejected(self, dsn: str) -> None:
        repo = PsycopgCertificateRepository(dsn)
        text = csv_text("E1,Jane,Smith,First Aid,ABC Training,2025-01-10,")
        run_import(text, PROVIDER_ID, CsvCertificateParser(), repo, today=TODAY)

        result = run_import(text, PROVIDER_ID, CsvCertificateParser(), repo, today=TODAY)

        error = ResultAssertions.assert_failure(result, ErrorCode.DUPLICATE_IN_STORE)
        assert error.details == ("E1",)
        assert _count(dsn, "certificates") == 1
