"""
CSV loading for the housing dataset.

Every cell is interpreted as a literal where possible (int, then float) and
kept as its raw string otherwise. Parsing returns an explicit result instead
of raising, so callers never catch an exception to learn that a cell is text.

The missing-value marker ("NA") is NOT converted to NaN: pandas' default NA
detection is switched off and the token travels through the pipeline until
imputation replaces it.
"""

import csv
import math
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Union

import pandas as pd
from pandas.errors import EmptyDataError, ParserError

from .exceptions import CSVFormatError, FileAccessError


@dataclass(frozen=True)
class ParsedCell:
    """Result of interpreting one raw CSV cell."""
    value: Any
    parsed: bool


def parse_cell(raw: str) -> ParsedCell:
    """
    Interpret a raw cell as an int or float literal.

    Args:
        raw: Cell text exactly as read from the file

    Returns:
        ParsedCell with the number and parsed=True, or the unchanged string
        and parsed=False
    """
    text = raw.strip()
    # int()/float() accept '1_000', 'nan' and 'inf'; none of those are data literals here
    if not text or '_' in text:
        return ParsedCell(raw, False)

    try:
        return ParsedCell(int(text), True)
    except ValueError:
        pass

    try:
        number = float(text)
    except ValueError:
        return ParsedCell(raw, False)

    if not math.isfinite(number):
        return ParsedCell(raw, False)
    return ParsedCell(number, True)


def load_records(path: Union[str, Path]) -> pd.DataFrame:
    """
    Read a CSV file into a record frame (one row per record).

    The header row supplies field names; every other cell goes through
    parse_cell. The file handle is closed before this function returns,
    whether or not parsing succeeds.

    Args:
        path: Path to the CSV file

    Returns:
        DataFrame of parsed cell values, in file order

    Raises:
        FileAccessError: file is missing or unreadable
        CSVFormatError: file is empty or has rows that do not match the header
    """
    csv_path = Path(path)
    if not csv_path.is_file():
        raise FileAccessError(f"Expected dataset at {csv_path}, file not found")

    try:
        with open(csv_path, 'r', encoding='utf-8', newline='') as infile:
            _check_field_counts(infile, csv_path)
            infile.seek(0)
            raw = pd.read_csv(infile, dtype=str, keep_default_na=False, na_filter=False)
    except (EmptyDataError, ParserError, UnicodeDecodeError, csv.Error) as exc:
        raise CSVFormatError(f"Failed to parse dataset at {csv_path}: {exc}") from exc
    except OSError as exc:
        raise FileAccessError(f"Could not read dataset at {csv_path}: {exc}") from exc

    return pd.DataFrame(
        {col: raw[col].map(lambda cell: parse_cell(cell).value) for col in raw.columns},
        index=raw.index
    )


def _check_field_counts(infile, csv_path: Path) -> None:
    # pandas pads short rows with '' once NA detection is off, so count fields here
    reader = csv.reader(infile)
    header = next(reader, None)
    if header is None:
        return

    bad_lines = [
        reader.line_num for row in reader
        if row and len(row) != len(header)
    ]
    if bad_lines:
        raise CSVFormatError(
            f"Lines {bad_lines[:5]} in {csv_path} do not have {len(header)} fields like the header"
        )


def write_csv(records: pd.DataFrame, path: Union[str, Path]) -> None:
    """
    Write a record frame back to CSV, header first.

    Useful for inspecting the dataset after any pipeline stage.

    Args:
        records: Record frame to write
        path: Destination file (parent directories are created)
    """
    out_path = Path(path)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    with open(out_path, 'w', encoding='utf-8', newline='') as outfile:
        records.to_csv(outfile, index=False)
