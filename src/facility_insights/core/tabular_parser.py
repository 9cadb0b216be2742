from __future__ import annotations

import csv
import io
import logging
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Tuple

logger = logging.getLogger(__name__)

# Row problems we report but never reject
SHORT_ROW = "short_row"             # padded with "" up to header width
LONG_ROW = "long_row"               # extra trailing fields dropped
UNCLOSED_QUOTE = "unclosed_quote"   # quote still open at end of input; line read on its own
MALFORMED_ROW = "malformed_row"     # csv could not read the row at all; dropped


@dataclass
class RowWarning:
    line_number: int      # 1-based physical line where the row starts
    expected: int
    actual: int
    kind: str


@dataclass
class ParsedTable:
    fields: List[str]
    records: List[Dict[str, str]]
    warnings: List[RowWarning] = field(default_factory=list)


def _quote_open_after(line: str, in_quotes: bool) -> bool:
    """
    Track whether a double-quoted field is still open at the end of `line`.

    Follows the csv module's reading: a quote opens a field only at its start
    (leading spaces allowed), "" inside quotes is a literal quote, and any
    other quote is data.
    """
    at_field_start = not in_quotes
    i = 0
    while i < len(line):
        ch = line[i]
        if in_quotes:
            if ch == '"':
                if line[i + 1:i + 2] == '"':
                    i += 2
                    continue
                in_quotes = False
        elif ch == ",":
            at_field_start = True
        elif ch == '"' and at_field_start:
            in_quotes = True
            at_field_start = False
        elif ch not in " \r\n":
            at_field_start = False
        i += 1
    return in_quotes


def _logical_rows(text: str) -> Iterator[Tuple[int, List[str], bool]]:
    """
    Group physical lines into logical rows.

    Yields (start line, lines, unclosed). A quoted field may run over several
    lines; when a quote is never closed only its own line is yielded, flagged,
    and grouping restarts on the following line.
    """
    lines = io.StringIO(text, newline="").readlines()
    start = 0
    while start < len(lines):
        if not lines[start].strip():
            start += 1
            continue

        end = start
        in_quotes = _quote_open_after(lines[start], False)
        while in_quotes and end + 1 < len(lines):
            end += 1
            in_quotes = _quote_open_after(lines[end], True)

        if in_quotes:
            yield start + 1, [lines[start].rstrip("\r\n") + '"'], True
            start += 1
        else:
            yield start + 1, lines[start:end + 1], False
            start = end + 1


def _read_row(chunk: List[str]) -> Optional[List[str]]:
    try:
        row = next(csv.reader(chunk, skipinitialspace=True), [])
    except csv.Error as exc:
        logger.warning("Unreadable row skipped: %s", exc)
        return None
    return [v.strip() for v in row]


def parse_table(text: str) -> ParsedTable:
    """
    Parse comma-delimited text whose first non-blank line is the header.

    Behaviour:
      - Header fields are trimmed and used as record keys.
      - Blank lines are skipped; they never produce an empty record.
      - Fields may be double-quoted; "" inside quotes is a literal quote and
        commas (or newlines) inside quotes are data.
      - A quote that is never closed only affects its own line: that line is
        read as if the quote closed at its end, and parsing carries on with
        the next line.
      - Every value is returned as a trimmed string. Interpreting numbers and
        yes/no flags is left to the aggregation layer.
      - Rows shorter than the header are padded with "", longer rows are cut
        to the header width. All of these are reported in ParsedTable.warnings.
    """
    if not text or not text.strip():
        return ParsedTable(fields=[], records=[])

    header: List[str] = []
    records: List[Dict[str, str]] = []
    warnings: List[RowWarning] = []

    for line_number, chunk, unclosed in _logical_rows(text):
        values = _read_row(chunk)
        width = len(header)

        if values is None:
            warnings.append(RowWarning(line_number=line_number, expected=width, actual=0, kind=MALFORMED_ROW))
            continue

        if not header:
            header = values
            if unclosed:
                warnings.append(
                    RowWarning(line_number=line_number, expected=len(header), actual=len(header), kind=UNCLOSED_QUOTE)
                )
            continue

        kind = None
        if unclosed:
            kind = UNCLOSED_QUOTE
        elif len(values) < width:
            kind = SHORT_ROW
        elif len(values) > width:
            kind = LONG_ROW
        if kind is not None:
            warnings.append(RowWarning(line_number=line_number, expected=width, actual=len(values), kind=kind))

        if len(values) < width:
            values.extend([""] * (width - len(values)))
        values = values[:width]

        records.append(dict(zip(header, values)))

    if warnings:
        logger.warning(
            "Parsed %s records with %s problem rows (first at line %s: %s, expected %s fields, got %s).",
            len(records),
            len(warnings),
            warnings[0].line_number,
            warnings[0].kind,
            warnings[0].expected,
            warnings[0].actual,
        )

    return ParsedTable(fields=header, records=records, warnings=warnings)


def parse_records(text: str) -> List[Dict[str, str]]:
    """Convenience wrapper returning only the parsed records."""
    return parse_table(text).records
