"""Tests for the tabular store adapter."""

import tempfile
from pathlib import Path

import pandas as pd
import pytest

from ingest.store import read_table, replace_rows, upsert_by_key, write_table, write_tables


class TestReadTable:
    """Tests for read_table function."""

    def test_missing_file_returns_default_header(self):
        """Test that a missing table reads as empty with the default header."""
        with tempfile.TemporaryDirectory() as tmpdir:
            header, frame = read_table(Path(tmpdir) / "games.csv", ["match_id", "ot"])

            assert header == ["match_id", "ot"]
            assert frame.empty
            assert list(frame.columns) == ["match_id", "ot"]

    def test_empty_file_returns_default_header(self):
        """Test that a zero-byte table reads as empty."""
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "games.csv"
            path.write_text("")

            header, frame = read_table(path, ["match_id"])

            assert header == ["match_id"]
            assert frame.empty

    def test_keeps_cells_as_strings(self):
        """Test that ids keep leading zeros and blanks stay blank."""
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "players.csv"
            path.write_text("\ufeffplayer_id,steam_id,g\n007,,3\n")

            header, frame = read_table(path)

            assert header == ["player_id", "steam_id", "g"]
            assert frame.loc[0, "player_id"] == "007"
            assert frame.loc[0, "steam_id"] == ""
            assert frame.loc[0, "g"] == "3"


class TestWriteTable:
    """Tests for write_table function."""

    def test_writes_in_header_order(self):
        """Test that columns follow the header and missing ones are blank."""
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "out.csv"
            frame = pd.DataFrame([{"b": "2", "a": "1"}])

            write_table(path, ["a", "b", "c"], frame)

            assert path.read_text().splitlines() == ["a,b,c", "1,2,"]

    def test_strips_embedded_newlines(self):
        """Test that a newline inside a cell cannot split the row."""
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "out.csv"
            frame = pd.DataFrame([{"a": "line one\nline two", "b": " x "}])

            write_table(path, ["a", "b"], frame)

            _, back = read_table(path)
            assert len(back) == 1
            assert back.loc[0, "a"] == "line oneline two"
            assert back.loc[0, "b"] == "x"

    def test_no_temp_files_left(self):
        """Test that the atomic write leaves no temp files behind."""
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "out.csv"

            write_table(path, ["a"], pd.DataFrame([{"a": "1"}]))
            write_table(path, ["a"], pd.DataFrame([{"a": "2"}]))

            assert [p.name for p in Path(tmpdir).iterdir()] == ["out.csv"]
            assert path.read_text().splitlines() == ["a", "2"]

    def test_round_trip_is_byte_identical(self):
        """Test that reading and rewriting an untouched table changes nothing."""
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "players.csv"
            original = "player_id,name,steam_id\nP1,Alice,101\nP2,Bob,\n"
            path.write_text(original)

            header, frame = read_table(path)
            write_table(path, header, frame)

            assert path.read_text() == original


class TestUpsertByKey:
    """Tests for upsert_by_key function."""

    def test_updates_only_given_fields(self):
        """Test that an update keeps cells not present in the new row."""
        frame = pd.DataFrame([
            {"match_id": "M1", "week": "1", "status": "scheduled"},
            {"match_id": "M2", "week": "1", "status": "scheduled"},
        ])

        out, action = upsert_by_key(frame, "match_id", "M2", {"status": "final"})

        assert action == "update"
        assert out.loc[1, "status"] == "final"
        assert out.loc[1, "week"] == "1"
        assert out.loc[0, "status"] == "scheduled"
        assert frame.loc[1, "status"] == "scheduled"

    def test_inserts_missing_key(self):
        """Test that an unknown key appends a row."""
        frame = pd.DataFrame([{"match_id": "M1", "ot": "0"}])

        out, action = upsert_by_key(frame, "match_id", "M2", {"match_id": "M2", "ot": "1"})

        assert action == "insert"
        assert list(out["match_id"]) == ["M1", "M2"]
        assert out.loc[1, "ot"] == "1"

    def test_inserts_into_empty_table(self):
        """Test that an empty table takes the new row."""
        frame = pd.DataFrame(columns=["match_id", "ot"], dtype=str)

        out, action = upsert_by_key(frame, "match_id", "M1", {"match_id": "M1", "ot": "0"})

        assert action == "insert"
        assert len(out) == 1
        assert list(out.columns) == ["match_id", "ot"]


class TestReplaceRows:
    """Tests for replace_rows function."""

    def test_replaces_all_rows_for_key(self):
        """Test that every row of the match is replaced, others kept."""
        frame = pd.DataFrame([
            {"match_id": "M1", "player_name": "Alice"},
            {"match_id": "M2", "player_name": "Bob"},
            {"match_id": "M1", "player_name": "Cara"},
        ])

        out = replace_rows(frame, "match_id", "M1", [{"match_id": "M1", "player_name": "Dale"}])

        assert list(out["player_name"]) == ["Bob", "Dale"]
        assert list(out.index) == [0, 1]

    def test_replace_with_same_rows_is_stable(self):
        """Test that replacing a match with identical rows is a no-op."""
        rows = [{"match_id": "M1", "player_name": "Alice"}]
        frame = replace_rows(pd.DataFrame(columns=["match_id", "player_name"], dtype=str), "match_id", "M1", rows)

        again = replace_rows(frame, "match_id", "M1", rows)

        pd.testing.assert_frame_equal(frame, again)


class TestWriteTables:
    """Tests for write_tables function."""

    def test_writes_every_table(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            first = Path(tmpdir) / "a.csv"
            second = Path(tmpdir) / "sub" / "b.csv"

            write_tables([
                (first, ["a"], pd.DataFrame([{"a": "1"}])),
                (second, ["b"], pd.DataFrame([{"b": "2"}])),
            ])

            assert first.read_text().splitlines() == ["a", "1"]
            assert second.read_text().splitlines() == ["b", "2"]

    def test_staging_failure_leaves_every_table_untouched(self):
        """Test that a table failing to stage keeps the earlier tables from being replaced."""
        with tempfile.TemporaryDirectory() as tmpdir:
            first = Path(tmpdir) / "a.csv"
            first.write_text("a\nold\n")
            blocker = Path(tmpdir) / "blocker"
            blocker.write_text("not a directory")

            with pytest.raises(OSError):
                write_tables([
                    (first, ["a"], pd.DataFrame([{"a": "new"}])),
                    (blocker / "b.csv", ["b"], pd.DataFrame([{"b": "2"}])),
                ])

            assert first.read_text() == "a\nold\n"
            assert sorted(p.name for p in Path(tmpdir).iterdir()) == ["a.csv", "blocker"]
