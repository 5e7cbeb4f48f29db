"""
Certificate verification — public lookup by holder name and certificate number.

A certificate verifies when exactly one ACTIVE certificate has this exact
number and the holder's first and last name match case-insensitively.

Every attempt, successful or not, is written to the verification audit
log. A failure to write the audit entry is logged and does not change
the answer given to the caller.
"""

from __future__ import annotations

import structlog

from cert_verifier.domain.models import (
    CertificateRecord,
    VerificationLogEntry,
    VerificationOutcome,
    VerificationRequest,
)
from cert_verifier.domain.ports import VerificationStore
from cert_verifier.railway import ErrorCode, Result

log = structlog.get_logger()


def _normalized(request: VerificationRequest) -> Result[VerificationRequest]:
    trimmed = VerificationRequest(
        first_name=request.first_name.strip(),
        last_name=request.last_name.strip(),
        certificate_number=request.certificate_number.strip(),
        ip_address=request.ip_address,
        user_agent=request.user_agent,
    )
    return Result.success(trimmed).ensure(
        lambda r: bool(r.first_name and r.last_name and r.certificate_number),
        ErrorCode.VALIDATION_ERROR,
        "Missing required fields",
    )


def _record_attempt(
    request: VerificationRequest,
    matches: list[CertificateRecord],
    store: VerificationStore,
) -> VerificationOutcome:
    certificate = matches[0] if len(matches) == 1 else None
    success = certificate is not None

    entry = VerificationLogEntry(
        first_name=request.first_name,
        last_name=request.last_name,
        certificate_number=request.certificate_number,
        success=success,
        certificate_id=certificate.id if certificate else None,
        ip_address=request.ip_address,
        user_agent=request.user_agent,
    )
    store.log_attempt(entry).peek_failure(
        lambda err: log.warning(
            "verification.log_failed",
            certificate_number=request.certificate_number,
            error=err.message,
        )
    )

    log.info(
        "verification.attempt",
        certificate_number=request.certificate_number,
        success=success,
    )
    return VerificationOutcome(success=success, certificate=certificate)


def verify_certificate(
    request: VerificationRequest,
    store: VerificationStore,
) -> Result[VerificationOutcome]:
    """
    Verify one certificate and audit the attempt.

    Fails with VALIDATION_ERROR when a field is blank, or STORE_UNAVAILABLE
    when the lookup itself cannot be performed. A non-matching lookup is a
    successful Result carrying VerificationOutcome(success=False).
    """
    return _normalized(request).flat_map(
        lambda req: store.find_active(
            req.certificate_number, req.first_name, req.last_name
        ).map(lambda matches: _record_attempt(req, matches, store))
    )
