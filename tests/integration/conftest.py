"""
Integration test fixtures — PostgreSQL testcontainer and schema setup.

Provides a real PostgreSQL instance for each test session via testcontainers.
Creates the certificates and verification_logs tables matching the
production schema. Each test gets a clean database via truncation.
"""

from __future__ import annotations

import psycopg
import pytest
from testcontainers.postgres import PostgresContainer

DDL = """
CREATE TYPE certificate_status AS ENUM ('active', 'expired', 'revoked');

CREATE TABLE certificates (
    id                  UUID PRIMARY KEY,
    certificate_number  TEXT NOT NULL UNIQUE,
    first_name          TEXT NOT NULL,
    last_name           TEXT NOT NULL,
    course_name         TEXT NOT NULL,
    provider_name       TEXT NOT NULL,
    issue_date          DATE NOT NULL,
    expiration_date     DATE,
    status              certificate_status NOT NULL DEFAULT 'active',
    provider_id         UUID,
    created_at          TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT now(),
    updated_at          TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT now()
);

CREATE TABLE verification_logs (
    id                  UUID PRIMARY KEY,
    certificate_id      UUID REFERENCES certificates(id),
    first_name          TEXT NOT NULL,
    last_name           TEXT NOT NULL,
    certificate_number  TEXT NOT NULL,
    success             BOOLEAN NOT NULL,
    ip_address          TEXT,
    user_agent          TEXT,
    created_at          TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT now()
);
"""

TRUNCATE_ALL = """
TRUNCATE verification_logs, certificates CASCADE;
"""


@pytest.fixture(scope="session")
def postgres_container() -> PostgresContainer:
    """Start a PostgreSQL container for the entire test session."""
    with PostgresContainer("postgres:16-alpine") as pg:
        dsn = pg.get_connection_url().replace("postgresql+psycopg2", "postgresql")
        with psycopg.connect(dsn) as conn:
            conn.execute(DDL)
            conn.commit()
        yield pg


@pytest.fixture()
def dsn(postgres_container: PostgresContainer) -> str:
    """Return a psycopg-compatible DSN and truncate all tables before each test."""
    connection_url = postgres_container.get_connection_url().replace(
        "postgresql+psycopg2", "postgresql"
    )
    with psycopg.connect(connection_url) as conn:
        conn.execute(TRUNCATE_ALL)
        conn.commit()
    return connection_url
