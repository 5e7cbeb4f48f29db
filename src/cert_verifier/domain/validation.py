"""
Row validation — ImportRow → Valid | Invalid.

Pure functions, no I/O. Every check of a row runs and all of its failures
are collected; one bad row never stops the remaining rows from being
examined.

Column contract (positional):
  0 certificate_number   non-empty, ≤ 50
  1 first_name           non-empty, ≤ 100
  2 last_name            non-empty, ≤ 100
  3 course_name          ≤ 200
  4 provider_name        ≤ 200
  5 issue_date           YYYY-MM-DD, not after today
  6 expiration_date      optional, YYYY-MM-DD, not before issue_date
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date

from cert_verifier.domain.models import (
    CertificateRecord,
    ImportRow,
    Invalid,
    RowError,
    RowErrorKind,
    RowOutcome,
    Valid,
)

COLUMNS: tuple[str, ...] = (
    "certificate_number",
    "first_name",
    "last_name",
    "course_name",
    "provider_name",
    "issue_date",
    "expiration_date",
)

MIN_COLUMNS = 6

_DATE_PATTERN = re.compile(r"\d{4}-\d{2}-\d{2}", re.ASCII)


@dataclass(frozen=True, slots=True)
class _TextRule:
    index: int
    name: str
    max_length: int
    required: bool


_TEXT_RULES: tuple[_TextRule, ...] = (
    _TextRule(0, "certificate_number", 50, required=True),
    _TextRule(1, "first_name", 100, required=True),
    _TextRule(2, "last_name", 100, required=True),
    _TextRule(3, "course_name", 200, required=False),
    _TextRule(4, "provider_name", 200, required=False),
)


def _check_text(row: ImportRow, rule: _TextRule) -> RowError | None:
    value = row.values[rule.index]
    if rule.required and not value:
        return RowError(
            row.line_number,
            RowErrorKind.FIELD_VALIDATION,
            f"{rule.name} is required",
            rule.name,
        )
    if len(value) > rule.max_length:
        return RowError(
            row.line_number,
            RowErrorKind.FIELD_VALIDATION,
            f"{rule.name} must be at most {rule.max_length} characters",
            rule.name,
        )
    return None


def _parse_date(row: ImportRow, value: str, name: str) -> date | RowError:
    """Strict YYYY-MM-DD that must also be a real calendar date."""
    if _DATE_PATTERN.fullmatch(value):
        try:
            return date.fromisoformat(value)
        except ValueError:
            pass
    return RowError(
        row.line_number,
        RowErrorKind.FIELD_VALIDATION,
        f"{name} must be a valid date in YYYY-MM-DD format, got {value!r}",
        name,
    )


def validate_row(row: ImportRow, today: date, seen_numbers: set[str]) -> RowOutcome:
    """
    Validate one row.

    `seen_numbers` is shared across the rows of one file: a certificate
    number is added the first time it passes its own field check, and any
    later row carrying the same number fails with DUPLICATE_IN_FILE.
    """
    if len(row.values) < MIN_COLUMNS:
        return Invalid(
            row,
            (
                RowError(
                    row.line_number,
                    RowErrorKind.INSUFFICIENT_COLUMNS,
                    f"expected at least {MIN_COLUMNS} columns, found {len(row.values)}",
                ),
            ),
        )

    errors: list[RowError] = []
    for rule in _TEXT_RULES:
        error = _check_text(row, rule)
        if error is not None:
            errors.append(error)

    number = row.values[0]
    if not any(e.field_name == "certificate_number" for e in errors):
        if number in seen_numbers:
            errors.append(
                RowError(
                    row.line_number,
                    RowErrorKind.DUPLICATE_IN_FILE,
                    f"certificate_number {number!r} appears earlier in the file",
                    "certificate_number",
                )
            )
        else:
            seen_numbers.add(number)

    issue = _parse_date(row, row.values[5], "issue_date")
    expiration_raw = row.values[6] if len(row.values) > MIN_COLUMNS else ""
    expiration = _parse_date(row, expiration_raw, "expiration_date") if expiration_raw else None

    for parsed in (issue, expiration):
        if isinstance(parsed, RowError):
            errors.append(parsed)

    if isinstance(issue, date):
        if issue > today:
            errors.append(
                RowError(
                    row.line_number,
                    RowErrorKind.FUTURE_ISSUE_DATE,
                    f"issue_date {issue.isoformat()} is in the future",
                    "issue_date",
                )
            )
        if isinstance(expiration, date) and expiration < issue:
            errors.append(
                RowError(
                    row.line_number,
                    RowErrorKind.EXPIRATION_BEFORE_ISSUE,
                    "expiration_date is before issue_date",
                    "expiration_date",
                )
            )

    if errors or not isinstance(issue, date):
        return Invalid(row, tuple(errors))

    return Valid(
        row,
        CertificateRecord(
            certificate_number=number,
            first_name=row.values[1],
            last_name=row.values[2],
            course_name=row.values[3],
            provider_name=row.values[4],
            issue_date=issue,
            expiration_date=expiration if isinstance(expiration, date) else None,
        ),
    )


def validate_rows(rows: Iterable[ImportRow], today: date) -> list[RowOutcome]:
    """Validate every row of one file, in order, with in-file duplicate tracking."""
    seen_numbers: set[str] = set()
    return [validate_row(row, today, seen_numbers) for row in rows]
