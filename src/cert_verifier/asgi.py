"""
FastAPI + Uvicorn ASGI application.

Exposes the importer and the verification lookup over HTTP, plus health
and info probes. Blocking domain calls (psycopg) run in a worker thread
via asyncio.to_thread so the event loop stays free.

Entry point for production: uvicorn cert_verifier.asgi:app --host 0.0.0.0 --port 8000
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from typing import Any, TypeVar
from uuid import UUID

import structlog
from fastapi import FastAPI, File, Request, UploadFile
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, ConfigDict, Field

from cert_verifier import __version__
from cert_verifier.adapters.csv_parser import TEMPLATE_FILENAME, build_template
from cert_verifier.config import AppSettings, ImporterSettings
from cert_verifier.domain.models import (
    CertificateRecord,
    CertificateStatus,
    ImportSummary,
    VerificationOutcome,
    VerificationRequest,
)
from cert_verifier.domain.ports import CertificateRepository, ImportFileParser
from cert_verifier.importer import (
    create_certificate,
    list_certificates,
    run_import,
    update_certificate,
)
from cert_verifier.main import configure_structlog, create_adapters
from cert_verifier.railway import ErrorCode, Result
from cert_verifier.railway.http_support import build_fastapi_response
from cert_verifier.verification import verify_certificate

T = TypeVar("T")

# ─────────────────────── Global State ───────────────────────
# Set during startup; replaced with fakes in tests.

_settings: AppSettings | None = None
_parser: ImportFileParser | None = None
_repository: CertificateRepository | None = None
_error_message: str | None = None
log = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Load settings and wire adapters on startup."""
    global _settings, _parser, _repository, _error_message

    log.info("asgi.startup")

    try:
        settings = AppSettings()
    except Exception as e:
        _error_message = f"Configuration error: {e}"
        log.error("asgi.startup_error", error=_error_message)
        raise

    configure_structlog(settings.log_level)
    _settings = settings
    _parser, _repository = create_adapters(settings)

    log.info(
        "asgi.startup_complete",
        version=__version__,
        max_file_bytes=settings.importer.max_file_bytes,
    )

    yield

    log.info("asgi.shutdown")


app = FastAPI(
    title="cert-verifier",
    description="Certificate bulk import and public verification",
    version=__version__,
    lifespan=lifespan,
)


# ─────────────────────── Helpers ───────────────────────


def _importer_settings() -> ImporterSettings:
    return _settings.importer if _settings is not None else ImporterSettings()


def _unavailable() -> JSONResponse:
    return JSONResponse(
        status_code=503,
        content={"status": "unavailable", "reason": "Service not initialized"},
    )


async def _run(operation: str, fn: Callable[[], Result[T]]) -> Result[T]:
    """Run a blocking domain call off the event loop; unexpected errors become UNKNOWN_ERROR."""
    try:
        return await asyncio.to_thread(fn)
    except Exception as e:
        log.error(f"{operation}.exception", error=str(e))
        return Result.failure(ErrorCode.UNKNOWN_ERROR, "Unexpected server error", e)


def _certificate_payload(record: CertificateRecord) -> dict[str, Any]:
    return {
        "id": str(record.id),
        "certificate_number": record.certificate_number,
        "first_name": record.first_name,
        "last_name": record.last_name,
        "course_name": record.course_name,
        "provider_name": record.provider_name,
        "issue_date": record.issue_date.isoformat(),
        "expiration_date": record.expiration_date.isoformat() if record.expiration_date else None,
        "status": record.status.value,
        "provider_id": str(record.provider_id) if record.provider_id else None,
        "created_at": record.created_at.isoformat() if record.created_at else None,
        "updated_at": record.updated_at.isoformat() if record.updated_at else None,
    }


def _summary_payload(summary: ImportSummary) -> dict[str, Any]:
    return {
        "status": "success",
        "inserted": summary.count,
        "certificates": [_certificate_payload(r) for r in summary.inserted],
    }


def _outcome_payload(outcome: VerificationOutcome) -> dict[str, Any]:
    body: dict[str, Any] = {"success": outcome.success}
    if outcome.certificate is not None:
        body["certificate"] = _certificate_payload(outcome.certificate)
    return body


async def _read_upload(file: UploadFile, limits: ImporterSettings) -> Result[str]:
    """Enforce content type and size ceiling, then decode the upload as UTF-8."""
    content_type = (file.content_type or "").split(";")[0].strip().lower()
    if content_type not in limits.allowed_content_types:
        return Result.failure(
            ErrorCode.UNSUPPORTED_MEDIA_TYPE,
            f"Please select a CSV file (got content type {content_type or 'none'!r})",
        )

    content = await file.read(limits.max_file_bytes + 1)
    if len(content) > limits.max_file_bytes:
        return Result.failure(
            ErrorCode.PAYLOAD_TOO_LARGE,
            f"File exceeds the maximum size of {limits.max_file_bytes} bytes",
        )

    try:
        return Result.success(content.decode("utf-8"))
    except UnicodeDecodeError as e:
        return Result.failure(ErrorCode.VALIDATION_ERROR, "File is not valid UTF-8 text", e)


# ─────────────────────── Request bodies ───────────────────────


class VerifyBody(BaseModel):
    """Accepts the camelCase keys sent by the web client as well as snake_case."""

    model_config = ConfigDict(populate_by_name=True)

    first_name: str | None = Field(default=None, alias="firstName")
    last_name: str | None = Field(default=None, alias="lastName")
    certificate_number: str | None = Field(default=None, alias="certificateNumber")


class CertificateBody(BaseModel):
    certificate_number: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    course_name: str | None = None
    provider_name: str | None = None
    issue_date: str | None = None
    expiration_date: str | None = None


class CertificateUpdateBody(CertificateBody):
    status: CertificateStatus = CertificateStatus.ACTIVE


# ─────────────────────── Endpoints ───────────────────────


@app.get("/health")
async def health() -> JSONResponse:
    """Liveness: 200 once the repository is wired, 503 otherwise."""
    if _error_message:
        return JSONResponse(
            status_code=503,
            content={"status": "unhealthy", "error": _error_message},
        )
    if _repository is None:
        return JSONResponse(
            status_code=503,
            content={"status": "unhealthy", "reason": "repository not initialized"},
        )
    return JSONResponse(status_code=200, content={"status": "healthy"})


@app.get("/info")
async def info() -> dict[str, Any]:
    return {
        "name": "cert-verifier",
        "version": __version__,
        "repository_ready": _repository is not None,
        "has_error": _error_message is not None,
    }


@app.get("/certificates/template")
async def download_template() -> Response:
    """CSV template: header row plus one example row."""
    return Response(
        content=build_template(),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{TEMPLATE_FILENAME}"'},
    )


@app.post("/providers/{provider_id}/certificates/import")
async def import_certificates(provider_id: UUID, file: UploadFile = File(...)) -> Response:
    """
    Bulk-import a CSV file for a provider.

    201 with the inserted certificates, or an error body:
    400 (file/row validation), 409 (numbers already stored),
    413 (too large), 415 (not CSV), 503 (store unavailable).
    """
    if _repository is None or _parser is None:
        return _unavailable()

    parser, repository = _parser, _repository
    limits = _importer_settings()
    log.info("import.received", provider_id=str(provider_id), filename=file.filename)

    upload = await _read_upload(file, limits)
    if upload.is_failure():
        return build_fastapi_response(upload)

    result = await _run(
        "import",
        lambda: run_import(
            upload.value(),
            provider_id,
            parser,
            repository,
            max_reported_errors=limits.max_reported_errors,
        ),
    )
    return build_fastapi_response(result, success_status=201, render=_summary_payload)


@app.post("/providers/{provider_id}/certificates")
async def add_certificate(provider_id: UUID, body: CertificateBody) -> Response:
    """Manual entry of a single certificate."""
    if _repository is None:
        return _unavailable()

    repository = _repository
    result = await _run(
        "certificate",
        lambda: create_certificate(body.model_dump(), provider_id, repository),
    )
    return build_fastapi_response(result, success_status=201, render=_certificate_payload)


@app.get("/providers/{provider_id}/certificates")
async def list_provider_certificates(provider_id: UUID) -> Response:
    """The provider's certificates, newest first."""
    if _repository is None:
        return _unavailable()

    repository = _repository
    result = await _run("certificate_list", lambda: list_certificates(provider_id, repository))
    return build_fastapi_response(
        result,
        render=lambda records: {"certificates": [_certificate_payload(r) for r in records]},
    )


@app.patch("/providers/{provider_id}/certificates/{certificate_id}")
async def edit_certificate(
    provider_id: UUID, certificate_id: UUID, body: CertificateUpdateBody
) -> Response:
    """
    Edit a certificate's fields and status.

    200 with the stored certificate, 400 (validation), 404 (unknown id for
    this provider), 409 (number taken), 503 (store unavailable).
    """
    if _repository is None:
        return _unavailable()

    repository = _repository
    result = await _run(
        "certificate_update",
        lambda: update_certificate(
            certificate_id,
            body.model_dump(exclude={"status"}),
            body.status,
            provider_id,
            repository,
        ),
    )
    return build_fastapi_response(result, render=_certificate_payload)


@app.post("/verify")
async def verify(body: VerifyBody, request: Request) -> Response:
    """Public certificate verification; every attempt is audit-logged."""
    if _repository is None:
        return _unavailable()

    repository = _repository
    verification_request = VerificationRequest(
        first_name=body.first_name or "",
        last_name=body.last_name or "",
        certificate_number=body.certificate_number or "",
        ip_address=request.headers.get("x-forwarded-for", "unknown"),
        user_agent=request.headers.get("user-agent", "unknown"),
    )
    result = await _run(
        "verification",
        lambda: verify_certificate(verification_request, repository),
    )
    return build_fastapi_response(result, render=_outcome_payload)


if __name__ == "__main__":
    # For local testing: python -m uvicorn cert_verifier.asgi:app --reload
    import uvicorn

    uvicorn.run("cert_verifier.asgi:app", host="0.0.0.0", port=8000, log_level="info")
