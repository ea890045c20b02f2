"""Dump file parsing.

Extracts row-insert statements and header metadata from dump text.
Statements are located by their ``INSERT INTO "<table>" (<cols>) VALUES (``
prefix and then scanned character by character, so semicolons,
parentheses and line breaks inside string literals never end a
statement.  Comment lines are ignored wherever they appear.

Usage:
    from db_backup.backup.parser import parse_header, parse_statements

    text = Path("db_backup_20260101_020000.sql").read_text(encoding="utf-8-sig")
    groups = parse_statements(text)     # {"departments": ["INSERT INTO ...", ...]}
    header = parse_header(text)         # DumpHeader(schema_version="2.0", ...)
"""

import logging
import re

from db_backup.backup.models import DumpHeader

logger = logging.getLogger(__name__)

_INSERT_RE = re.compile(
    r'INSERT\s+INTO\s+"?(\w+)"?\s*\(([^)]*)\)\s*VALUES\s*\(',
    re.IGNORECASE,
)

_VERSION_RE = re.compile(r"^--\s*SCHEMA_VERSION:\s*(\S+)", re.MULTILINE)
_CREATED_RE = re.compile(r"^--\s*CREATED_AT:\s*(.+?)\s*$", re.MULTILINE)
_MACHINE_RE = re.compile(r"^--\s*MACHINE_NAME:\s*(.+?)\s*$", re.MULTILINE)
_FOOTER_RE = re.compile(
    r"^--\s*BACKUP COMPLETE:\s*(\d+)\s+total records", re.MULTILINE | re.IGNORECASE
)
_TABLE_RE = re.compile(r"^--\s*TABLE:\s*(\w+)\s*$", re.IGNORECASE)
_RECORDS_RE = re.compile(r"^--\s*Records:\s*(\d+)\s*$", re.IGNORECASE)


def _find_values_end(text: str, start: int) -> int:
    """Return the index of the ``)`` closing a value list, or -1.

    ``start`` is the position just after the opening parenthesis.
    Single-quoted literals are skipped, with ``''`` read as an escaped
    quote inside a literal.
    """
    depth = 1
    in_quote = False
    i = start
    n = len(text)
    while i < n:
        ch = text[i]
        if in_quote:
            if ch == "'":
                if i + 1 < n and text[i + 1] == "'":
                    i += 2
                    continue
                in_quote = False
        elif ch == "'":
            in_quote = True
        elif ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
            if depth == 0:
                return i
        i += 1
    return -1


def _skip_whitespace(text: str, pos: int) -> int:
    n = len(text)
    while pos < n and text[pos] in " \t\r\n":
        pos += 1
    return pos


def parse_statements(text: str) -> dict[str, list[str]]:
    """Group every complete row-insert statement by table.

    Args:
        text: Full dump file contents.

    Returns:
        Mapping of lower-cased table name to statement texts (without the
        trailing ``;``) in file order.  Unterminated statements are left
        out.

    Example:
        groups = parse_statements(text)
        groups["users"][0]   # 'INSERT INTO "users" ("user_id", ...) VALUES (1, ...)'
    """
    groups: dict[str, list[str]] = {}
    pos = 0

    while True:
        match = _INSERT_RE.search(text, pos)
        if match is None:
            break

        close = _find_values_end(text, match.end())
        if close == -1:
            logger.warning(
                "Ignoring unterminated INSERT for %s at offset %d",
                match.group(1), match.start(),
            )
            # Resume on the next line so later complete statements are still found
            next_line = text.find("\n", match.start())
            if next_line == -1:
                break
            pos = next_line + 1
            continue

        end = _skip_whitespace(text, close + 1)
        if end >= len(text) or text[end] != ";":
            logger.warning(
                "Ignoring INSERT for %s without terminator at offset %d",
                match.group(1), match.start(),
            )
            pos = close + 1
            continue

        table = match.group(1).lower()
        groups.setdefault(table, []).append(text[match.start():close + 1])
        pos = end + 1

    return groups


def parse_header(text: str) -> DumpHeader:
    """Extract header and footer metadata.

    Each field is looked up independently; a missing field is ``None``.
    """
    version = _VERSION_RE.search(text)
    created = _CREATED_RE.search(text)
    machine = _MACHINE_RE.search(text)
    footer = _FOOTER_RE.search(text)

    return DumpHeader(
        schema_version=version.group(1) if version else None,
        created_at=created.group(1) if created else None,
        machine_name=machine.group(1) if machine else None,
        declared_total=int(footer.group(1)) if footer else None,
    )


def parse_section_counts(text: str) -> dict[str, int]:
    """Read the per-table ``-- Records: n`` lines.

    A ``-- Records:`` line is attributed to the most recent
    ``-- TABLE:`` line.  Tables are keyed lower-cased.
    """
    counts: dict[str, int] = {}
    current: str | None = None

    for line in text.splitlines():
        stripped = line.strip()
        if not stripped.startswith("--"):
            continue
        table_match = _TABLE_RE.match(stripped)
        if table_match:
            current = table_match.group(1).lower()
            continue
        records_match = _RECORDS_RE.match(stripped)
        if records_match and current is not None:
            counts[current] = int(records_match.group(1))
            current = None

    return counts
