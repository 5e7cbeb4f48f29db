"""
CSV parser adapter — uploaded file text → ImportRow list.

Implements a deliberately minimal CSV dialect:
  - a double quote toggles the "inside field" state and is not kept
  - a comma inside quotes is literal data, outside quotes it separates fields
  - every field is trimmed of surrounding whitespace

Escaped quotes ("") inside quoted fields and quoted fields spanning several
lines are NOT supported. Files produced from the template never need either.

The first non-blank line is the header and is discarded. Blank lines are
skipped but physical line numbers are preserved so errors point at the
exact line in the user's file.
"""

from __future__ import annotations

import structlog

from cert_verifier.domain.models import ImportRow
from cert_verifier.domain.validation import COLUMNS
from cert_verifier.railway import ErrorCode, Result

log = structlog.get_logger()

TEMPLATE_COLUMNS = COLUMNS

TEMPLATE_EXAMPLE_ROW: tuple[str, ...] = (
    "CERT001",
    "John",
    "Doe",
    "Safety Training",
    "ABC Training",
    "2025-01-01",
    "2026-01-01",
)

TEMPLATE_FILENAME = "certificate_template.csv"

_BOM = "\ufeff"


def split_csv_line(line: str) -> tuple[str, ...]:
    """
    Split one line into trimmed column values.

    >>> split_csv_line('CERT1, Jane ,"Training, Advanced"')
    ('CERT1', 'Jane', 'Training, Advanced')
    """
    values: list[str] = []
    current: list[str] = []
    in_quotes = False

    for char in line:
        if char == '"':
            in_quotes = not in_quotes
        elif char == "," and not in_quotes:
            values.append("".join(current).strip())
            current = []
        else:
            current.append(char)

    values.append("".join(current).strip())
    return tuple(values)


def build_template() -> str:
    """Header row plus one example row, newline-terminated."""
    return ",".join(TEMPLATE_COLUMNS) + "\n" + ",".join(TEMPLATE_EXAMPLE_ROW) + "\n"


class CsvCertificateParser:
    """Turn raw upload text into data rows, dropping the header."""

    def parse(self, text: str) -> Result[list[ImportRow]]:
        """
        Parse file text into ImportRows.

        Fails with EMPTY_OR_HEADER_ONLY_FILE when fewer than two non-blank
        lines (header + one data row) are present.
        """
        if text.startswith(_BOM):
            text = text[len(_BOM):]

        lines = [
            (number, line)
            for number, line in enumerate(text.split("\n"), start=1)
            if line.strip()
        ]

        if len(lines) < 2:
            log.info("csv.empty_or_header_only", non_blank_lines=len(lines))
            return Result.failure(
                ErrorCode.EMPTY_OR_HEADER_ONLY_FILE,
                "File must contain a header row and at least one data row",
            )

        rows = [
            ImportRow(line_number=number, values=split_csv_line(line))
            for number, line in lines[1:]
        ]
        log.debug("csv.parsed", data_rows=len(rows))
        return Result.success(rows)
