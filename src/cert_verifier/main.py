"""
Application entry point — logging setup, adapter wiring, server launch.

Composition root: the ONLY place where concrete adapters are created.
The importer and the verification lookup depend on Protocol ports only.

Responsibilities:
  1. Configure structlog
  2. Load and validate configuration from environment
  3. Create the concrete parser and repository
  4. Start uvicorn serving cert_verifier.asgi:app
"""

from __future__ import annotations

import logging
import sys
from typing import TypeAlias

import structlog
import uvicorn

from cert_verifier import __version__
from cert_verifier.adapters.csv_parser import CsvCertificateParser
from cert_verifier.adapters.repository import PsycopgCertificateRepository
from cert_verifier.config import AppSettings


def configure_structlog(log_level: str = "INFO") -> None:
    """Configure structlog for structured, human-readable console output."""
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, log_level.upper(), logging.INFO)
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


_Adapters: TypeAlias = tuple[CsvCertificateParser, PsycopgCertificateRepository]


def create_adapters(settings: AppSettings) -> _Adapters:
    """Instantiate the CSV parser and the PostgreSQL repository."""
    parser = CsvCertificateParser()
    repository = PsycopgCertificateRepository(dsn=settings.database.get_dsn())
    return parser, repository


def main() -> None:
    """Validate configuration and serve the HTTP API."""
    try:
        settings = AppSettings()
    except Exception as e:
        print(f"FATAL: Configuration error — {e}", file=sys.stderr)  # noqa: T201
        sys.exit(1)

    configure_structlog(settings.log_level)
    log = structlog.get_logger()

    log.info(
        "app.starting",
        version=__version__,
        log_level=settings.log_level,
        host=settings.server.host,
        port=settings.server.port,
        max_file_bytes=settings.importer.max_file_bytes,
    )

    uvicorn.run(
        "cert_verifier.asgi:app",
        host=settings.server.host,
        port=settings.server.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
