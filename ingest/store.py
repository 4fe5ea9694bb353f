"""Tabular store adapter: whole-table CSV reads and atomic rewrites."""

import os
import tempfile
from pathlib import Path
from typing import Optional

import pandas as pd


def read_table(
    file_path: Path, default_header: Optional[list[str]] = None
) -> tuple[list[str], pd.DataFrame]:
    """
    Read a CSV table with every cell kept as a string.

    Blank cells stay blank (no NaN coercion) so a round trip through
    read_table/write_table leaves untouched cells byte-identical.

    Args:
        file_path: CSV file to read
        default_header: Header to report when the file is missing or empty

    Returns:
        Tuple of (header in on-disk order, DataFrame of string cells)
    """
    header = list(default_header or [])
    file_path = Path(file_path)
    if not file_path.exists():
        return header, pd.DataFrame(columns=header, dtype=str)

    try:
        frame = pd.read_csv(
            file_path,
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=True,
            encoding="utf-8-sig",
        )
    except pd.errors.EmptyDataError:
        return header, pd.DataFrame(columns=header, dtype=str)

    frame.columns = [str(c).strip() for c in frame.columns]
    return list(frame.columns), frame


def _stage_table(file_path: Path, header: list[str], frame: pd.DataFrame) -> str:
    """Write a table to a temp file beside file_path and return the temp path."""
    file_path.parent.mkdir(parents=True, exist_ok=True)

    out = frame.reindex(columns=header).fillna("").astype(str)
    out = out.replace(r"\r?\n", "", regex=True)
    out = out.apply(lambda col: col.str.strip())

    # Write to temp file in same directory
    temp_fd, temp_path = tempfile.mkstemp(
        dir=file_path.parent, prefix=".tmp_", suffix=".csv"
    )

    try:
        with os.fdopen(temp_fd, "w", newline="", encoding="utf-8") as f:
            out.to_csv(f, index=False)
    except (OSError, IOError):
        # Clean up temp file on error
        if os.path.exists(temp_path):
            os.unlink(temp_path)
        raise
    return temp_path


def write_table(file_path: Path, header: list[str], frame: pd.DataFrame) -> None:
    """
    Replace a CSV table atomically using temp file + rename.

    Columns are written in header order. Columns the frame lacks are written
    blank and embedded newlines are stripped from every cell so a value can
    never break the row structure.

    Args:
        file_path: Target file path
        header: Column order to write
        frame: Full table contents
    """
    write_tables([(file_path, header, frame)])


def write_tables(tables: list[tuple[Path, list[str], pd.DataFrame]]) -> None:
    """
    Replace several CSV tables as one unit.

    Every table is staged to a temp file first; only when all of them are on
    disk are the temp files renamed over their targets. A failure while
    staging removes every temp file and leaves all targets untouched. The
    renames themselves run last and are not rolled back.

    Args:
        tables: (file path, header, frame) per table
    """
    staged: list[tuple[str, Path]] = []
    try:
        for file_path, header, frame in tables:
            file_path = Path(file_path)
            staged.append((_stage_table(file_path, header, frame), file_path))
    except (OSError, IOError):
        for temp_path, _ in staged:
            if os.path.exists(temp_path):
                os.unlink(temp_path)
        raise

    # Atomic renames
    for i, (temp_path, file_path) in enumerate(staged):
        try:
            os.replace(temp_path, file_path)
        except (OSError, IOError):
            for pending, _ in staged[i:]:
                if os.path.exists(pending):
                    os.unlink(pending)
            raise


def _append_rows(frame: pd.DataFrame, rows: list[dict]) -> pd.DataFrame:
    """Append dict rows to a string table, keeping existing column order first."""
    if not rows:
        return frame.reset_index(drop=True)

    addition = pd.DataFrame(rows).fillna("").astype(str)
    if frame.empty:
        columns = list(dict.fromkeys([*frame.columns, *addition.columns]))
        return addition.reindex(columns=columns, fill_value="")

    return pd.concat([frame, addition], ignore_index=True).fillna("")


def upsert_by_key(
    frame: pd.DataFrame, key: str, value, new_row: dict
) -> tuple[pd.DataFrame, str]:
    """
    Merge new_row into the row whose key column equals value, or append it.

    Only the fields present in new_row are overwritten on update; every other
    cell of the matched row is kept.

    Returns:
        Tuple of (new table, "update" or "insert")
    """
    if key in frame.columns:
        matches = frame.index[frame[key].astype(str) == str(value)]
    else:
        matches = []

    if len(matches) == 0:
        return _append_rows(frame, [new_row]), "insert"

    out = frame.copy()
    idx = matches[0]
    for col, val in new_row.items():
        if col not in out.columns:
            out[col] = ""
        out.loc[idx, col] = str(val)
    return out, "update"


def replace_rows(
    frame: pd.DataFrame, key: str, value, new_rows: list[dict]
) -> pd.DataFrame:
    """Delete every row whose key column equals value, then append new_rows."""
    if key in frame.columns:
        kept = frame[frame[key].astype(str) != str(value)]
    else:
        kept = frame
    return _append_rows(kept.reset_index(drop=True), new_rows)
