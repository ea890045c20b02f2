"""SQL literal encoding for dump files.

``encode_value`` turns one column value into the literal text written
into an ``INSERT`` statement.  It is the only place where value escaping
happens; identifiers go through ``quote_ident`` and are additionally
checked against the table catalog before use.

Usage:
    from db_backup.backup.encoder import encode_value, quote_ident

    encode_value("O'Brien")        # "'O''Brien'"
    encode_value(None)             # "NULL"
    quote_ident("users")           # '"users"'
"""

import json
import math
import re
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import Any, Callable

NULL_LITERAL = "NULL"

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"
DATE_FORMAT = "%Y-%m-%d"
TIME_FORMAT = "%H:%M:%S"

_IDENT_RE = re.compile(r"^\w+$")

BinaryEncoder = Callable[[bytes], str]


def quote_ident(name: str) -> str:
    """Quote a table or column name for interpolation into SQL text.

    Only word characters are accepted, so the quoted result can never
    terminate the identifier early.

    Raises:
        ValueError: If ``name`` is empty or contains non-word characters.
    """
    if not name or not _IDENT_RE.match(name):
        raise ValueError(f"Invalid SQL identifier: {name!r}")
    return f'"{name}"'


def quote_text(text: str) -> str:
    """Quote a string literal, doubling embedded single quotes."""
    return "'" + text.replace("'", "''") + "'"


def hex_escape_binary(data: bytes) -> str:
    """PostgreSQL ``bytea`` hex input: ``'\\x00FF'``."""
    return "'\\x" + data.hex().upper() + "'"


def blob_literal(data: bytes) -> str:
    """SQL blob literal as SQLite reads it: ``X'00FF'``."""
    return "X'" + data.hex().upper() + "'"


def _format_timedelta(value: timedelta) -> str:
    total = int(value.total_seconds())
    sign = "-" if total < 0 else ""
    hours, rest = divmod(abs(total), 3600)
    minutes, seconds = divmod(rest, 60)
    return f"{sign}{hours:02d}:{minutes:02d}:{seconds:02d}"


def encode_value(value: Any, encode_binary: BinaryEncoder = hex_escape_binary) -> str:
    """Encode a column value as a SQL literal.

    Supported types:

    - ``None`` -> ``NULL``
    - ``bool`` -> ``true`` / ``false``
    - ``int``, ``float``, ``Decimal`` -> unquoted decimal text
      (non-finite floats become ``'NaN'``, ``'Infinity'``, ``'-Infinity'``)
    - ``datetime`` -> ``'YYYY-MM-DD HH:MM:SS'``
    - ``date`` -> ``'YYYY-MM-DD'``
    - ``time``, ``timedelta`` -> ``'HH:MM:SS'``
    - ``bytes``, ``bytearray``, ``memoryview`` -> ``encode_binary(value)``,
      ``'\\x<hex>'`` by default
    - ``dict``, ``list`` -> quoted JSON text
    - anything else -> ``str(value)`` quoted, with ``'`` doubled

    Args:
        value: Raw value as returned by the database driver.
        encode_binary: Literal form for binary values; each adapter
            supplies the one its database reads back as binary.

    Returns:
        Literal text safe to embed in a generated statement.

    Example:
        >>> encode_value(datetime(2024, 1, 5, 8, 30))
        "'2024-01-05 08:30:00'"
    """
    if value is None:
        return NULL_LITERAL

    # bool before int: bool is an int subclass
    if isinstance(value, bool):
        return "true" if value else "false"

    if isinstance(value, int):
        return str(value)

    if isinstance(value, float):
        if math.isnan(value):
            return "'NaN'"
        if math.isinf(value):
            return "'Infinity'" if value > 0 else "'-Infinity'"
        return repr(value)

    if isinstance(value, Decimal):
        if not value.is_finite():
            return quote_text(str(value))
        return str(value)

    # datetime before date: datetime is a date subclass
    if isinstance(value, datetime):
        return quote_text(value.strftime(TIMESTAMP_FORMAT))

    if isinstance(value, date):
        return quote_text(value.strftime(DATE_FORMAT))

    if isinstance(value, time):
        return quote_text(value.strftime(TIME_FORMAT))

    if isinstance(value, timedelta):
        return quote_text(_format_timedelta(value))

    if isinstance(value, (bytes, bytearray, memoryview)):
        return encode_binary(bytes(value))

    if isinstance(value, (dict, list)):
        return quote_text(json.dumps(value, default=str, ensure_ascii=False))

    return quote_text(str(value))


def encode_row(
    values: list[Any], encode_binary: BinaryEncoder = hex_escape_binary
) -> str:
    """Encode a list of values as a parenthesized ``VALUES`` tuple body."""
    return ", ".join(encode_value(v, encode_binary) for v in values)
