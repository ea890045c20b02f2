"""Tests for dump text parsing."""

from db_backup.backup.parser import parse_header, parse_section_counts, parse_statements


# ============================================================================
# Test: Statement Extraction
# ============================================================================


class TestParseStatements:
    """Statements are found by prefix and scanned with quote awareness."""

    def test_groups_by_table(self) -> None:
        """Statements are grouped per table in file order."""
        text = (
            'INSERT INTO "departments" ("dept_id") VALUES (1);\n'
            'INSERT INTO "users" ("user_id") VALUES (10);\n'
            'INSERT INTO "departments" ("dept_id") VALUES (2);\n'
        )
        groups = parse_statements(text)
        assert list(groups) == ["departments", "users"]
        assert groups["departments"] == [
            'INSERT INTO "departments" ("dept_id") VALUES (1)',
            'INSERT INTO "departments" ("dept_id") VALUES (2)',
        ]

    def test_table_names_lowercased(self) -> None:
        """Table keys are lower-cased; unquoted names are accepted."""
        groups = parse_statements("insert into Users (user_id) values (1);")
        assert list(groups) == ["users"]

    def test_semicolon_and_parens_in_literal(self) -> None:
        """A literal containing ';' and ')' does not end the statement."""
        text = 'INSERT INTO "departments" ("dept_name") VALUES (\'O\'\'Brien; (Ops)\');\n'
        groups = parse_statements(text)
        assert groups["departments"] == [
            'INSERT INTO "departments" ("dept_name") VALUES (\'O\'\'Brien; (Ops)\')'
        ]

    def test_multiline_literal(self) -> None:
        """A literal spanning lines stays in one statement."""
        text = 'INSERT INTO "users" ("name") VALUES (\'Bob\nSmith\');\n'
        groups = parse_statements(text)
        assert groups["users"][0].endswith("('Bob\nSmith')")

    def test_comment_lines_ignored(self) -> None:
        """Header and section comments produce no statements."""
        text = (
            "-- =====\n-- TABLE: users\n-- =====\n"
            'INSERT INTO "users" ("user_id") VALUES (1);\n'
            "-- Records: 1\n"
        )
        assert parse_statements(text) == {"users": ['INSERT INTO "users" ("user_id") VALUES (1)']}

    def test_unterminated_statement_skipped(self) -> None:
        """An unclosed literal drops that statement but not later ones."""
        text = (
            'INSERT INTO "users" ("name") VALUES (\'broken);\n'
            'INSERT INTO "departments" ("dept_id") VALUES (1);\n'
        )
        groups = parse_statements(text)
        assert "users" not in groups
        assert groups["departments"] == ['INSERT INTO "departments" ("dept_id") VALUES (1)']

    def test_missing_terminator_skipped(self) -> None:
        """A statement cut short before ';' is ignored."""
        text = 'INSERT INTO "users" ("user_id") VALUES (1)'
        assert parse_statements(text) == {}

    def test_empty_text(self) -> None:
        """No statements in empty text."""
        assert parse_statements("") == {}


# ============================================================================
# Test: Header and Section Counts
# ============================================================================


class TestParseHeader:
    """Header fields are extracted independently."""

    def test_all_fields(self, make_dump) -> None:
        """Version, timestamp, host and footer total are read."""
        path = make_dump({"users": ['INSERT INTO "users" ("user_id") VALUES (1);']})
        header = parse_header(path.read_text(encoding="utf-8-sig"))
        assert header.schema_version == "2.0"
        assert header.created_at == "2026-01-01 02:00:00"
        assert header.machine_name == "front-desk"
        assert header.declared_total == 1

    def test_missing_fields_are_none(self) -> None:
        """Absent lines leave fields as None."""
        header = parse_header("-- db-backup Database Backup\n")
        assert header.schema_version is None
        assert header.declared_total is None

    def test_format_info_unknown(self) -> None:
        """Operator display shows 'unknown' for missing fields."""
        info = parse_header("").format_info()
        assert "Version: unknown" in info
        assert "From: unknown" in info

    def test_section_counts(self, make_dump) -> None:
        """Per-table Records lines are attributed to their section."""
        path = make_dump({
            "departments": [
                'INSERT INTO "departments" ("dept_id") VALUES (1);',
                'INSERT INTO "departments" ("dept_id") VALUES (2);',
            ],
            "users": [],
        })
        counts = parse_section_counts(path.read_text(encoding="utf-8-sig"))
        assert counts == {"departments": 2, "users": 0}
