"""
Railway-oriented result types used throughout cert_verifier.

    from cert_verifier.railway import ErrorCode, Result

    def check_number(number: str) -> Result[str]:
        if not number:
            return Result.failure(ErrorCode.VALIDATION_ERROR, "certificate_number is required")
        return Result.success(number)
"""

from cert_verifier.railway.failure import ErrorCode, FailureDescription
from cert_verifier.railway.result import Failure, Result, Success

__all__ = [
    "Result",
    "Success",
    "Failure",
    "ErrorCode",
    "FailureDescription",
]
