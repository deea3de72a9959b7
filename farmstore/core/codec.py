"""Text encoding for the flat record files used by the farm store.

Rows are comma separated. A value that contains a comma is wrapped in double
quotes; double quotes inside a value are stripped and newlines are collapsed
to spaces. This is best-effort quoting, not escaping: a value containing a
quote character does not survive a round trip unchanged.
"""

from __future__ import annotations

import datetime as dt
import re
from typing import Iterable, Sequence

from .models import SaleLine

DELIMITER = ","
QUOTE = '"'

LINE_SEPARATOR = ";"
FIELD_SEPARATOR = "|"
LINE_FIELD_COUNT = 7

_NEWLINES = re.compile(r"\r\n|\r|\n")
_INTEGER = re.compile(r"[+-]?\d+")


def make_safe(value: str | None) -> str:
    """Return ``value`` ready to be written as one field of a record line."""

    if value is None:
        return ""
    cleaned = _NEWLINES.sub(" ", value.replace(QUOTE, ""))
    if DELIMITER in cleaned:
        return f"{QUOTE}{cleaned}{QUOTE}"
    return cleaned


def encode_row(fields: Sequence[str | None]) -> str:
    return DELIMITER.join(make_safe(field) for field in fields)


def decode_row(line: str) -> list[str]:
    """Split one record line into its fields.

    Every quote character toggles the quoted state and is dropped. Unbalanced
    quotes never raise; the quoted span just runs to the end of the line.
    """

    fields: list[str] = []
    current: list[str] = []
    quoted = False
    for char in line:
        if char == QUOTE:
            quoted = not quoted
        elif char == DELIMITER and not quoted:
            fields.append("".join(current))
            current = []
        else:
            current.append(char)
    fields.append("".join(current))
    return fields


def encode_rows(rows: Iterable[Sequence[str | None]]) -> list[str]:
    return [encode_row(row) for row in rows]


def decode_rows(lines: Iterable[str]) -> list[list[str]]:
    return [decode_row(line) for line in lines]


# ----------------------------------------------------------------------
# Scalars
# ----------------------------------------------------------------------
def parse_int(value: str | None) -> int:
    """Return ``value`` as an int, or 0 when it is not a plain integer."""

    text = (value or "").strip()
    if not _INTEGER.fullmatch(text):
        return 0
    return int(text)


def parse_float(value: str | None) -> float:
    """Return ``value`` as a float, or 0.0 when it cannot be read as one."""

    text = (value or "").strip()
    if not text:
        return 0.0
    try:
        return float(text)
    except ValueError:
        return 0.0


def parse_bool(value: str | None) -> bool:
    return (value or "").strip().lower() == "true"


def parse_datetime(value: str | None) -> dt.datetime | None:
    """Parse an ISO date-time as a naive local value; blank or invalid gives None."""

    text = (value or "").strip()
    if not text:
        return None
    try:
        stamp = dt.datetime.fromisoformat(text)
    except ValueError:
        return None
    if stamp.tzinfo is not None:
        stamp = stamp.astimezone().replace(tzinfo=None)
    return stamp


def none_if_blank(value: str | None) -> str | None:
    if value is None or not value.strip():
        return None
    return value


def blank_if_none(value: str | None) -> str:
    return "" if value is None else value


def format_float(value: float) -> str:
    return repr(float(value))


def format_bool(value: bool) -> str:
    return "true" if value else "false"


def format_datetime(value: dt.datetime | None) -> str:
    return "" if value is None else value.isoformat()


# ----------------------------------------------------------------------
# Sale lines
# ----------------------------------------------------------------------
def _strip_separators(value: str | None) -> str:
    if value is None:
        return ""
    return value.replace(FIELD_SEPARATOR, "/").replace(LINE_SEPARATOR, "/")


def encode_lines(lines: Iterable[SaleLine]) -> str:
    """Pack sale lines into the single ``linesJson`` column.

    Despite the column name this is not JSON: each line is seven
    ``|``-separated values and lines are joined with ``;``.
    """

    parts = []
    for line in lines:
        parts.append(
            FIELD_SEPARATOR.join(
                [
                    _strip_separators(line.item_type),
                    _strip_separators(line.ref_id),
                    _strip_separators(line.description),
                    str(line.qty),
                    format_float(line.unit_price),
                    format_bool(line.taxable),
                    format_float(line.line_total),
                ]
            )
        )
    return LINE_SEPARATOR.join(parts)


def decode_lines(text: str | None) -> list[SaleLine]:
    lines: list[SaleLine] = []
    if text is None or not text.strip():
        return lines
    for part in text.split(LINE_SEPARATOR):
        values = part.split(FIELD_SEPARATOR)
        if len(values) < LINE_FIELD_COUNT:
            continue
        lines.append(
            SaleLine(
                item_type=values[0],
                ref_id=values[1],
                description=values[2],
                qty=parse_int(values[3]),
                unit_price=parse_float(values[4]),
                taxable=parse_bool(values[5]),
                line_total=parse_float(values[6]),
            )
        )
    return lines


__all__ = [
    "decode_lines",
    "decode_row",
    "decode_rows",
    "encode_lines",
    "encode_row",
    "encode_rows",
    "parse_bool",
    "parse_datetime",
    "parse_float",
    "parse_int",
]
