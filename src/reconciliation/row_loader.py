# -*- coding: utf-8 -*-
"""Load spreadsheet files and pasted text into raw rows.

Each raw row maps the original header to the cell value (str, int, float or
None) and carries its spreadsheet row number under _row_index, the header
being row 1.
"""

import io
import logging
from pathlib import Path
from typing import Dict, List, Union

import pandas as pd

from src.reconciliation.models import ROW_INDEX_KEY, LooseValue
from src.utils.data_cleaning import cell_text

logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS = (".csv", ".xlsx", ".xls")
CLIPBOARD_DELIMITERS = ("\t", ";", ",")


def _loose(value) -> LooseValue:
    if value is None or (isinstance(value, float) and value != value):
        return None
    if isinstance(value, pd.Timestamp):
        return value.to_pydatetime().isoformat()
    if hasattr(value, "item"):
        value = value.item()
    if isinstance(value, bool):
        return str(value)
    if isinstance(value, (int, float, str)):
        return value
    return str(value)


def frame_to_rows(df: pd.DataFrame) -> List[Dict[str, LooseValue]]:
    """Raw rows from a DataFrame whose first data row is spreadsheet row 2."""
    df = df.dropna(how="all")
    headers = [cell_text(col) for col in df.columns]
    rows = []
    for position, values in zip(df.index, df.itertuples(index=False, name=None)):
        row: Dict[str, LooseValue] = {
            header: _loose(value) for header, value in zip(headers, values)
        }
        row[ROW_INDEX_KEY] = int(position) + 2
        rows.append(row)
    return rows


def _sniff_csv(path: Path) -> str:
    with open(path, "r", encoding="utf-8-sig") as f:
        header = f.readline()
    return max(CLIPBOARD_DELIMITERS, key=header.count)


def load_raw_rows(path: Union[str, Path]) -> List[Dict[str, LooseValue]]:
    """Read a CSV or Excel file into raw rows.

    Args:
        path: .csv, .xlsx or .xls file with a header row

    Returns:
        List of raw rows (first sheet for Excel workbooks).

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If the extension is unsupported or the file has no data row
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")

    extension = path.suffix.lower()
    if extension not in SUPPORTED_EXTENSIONS:
        raise ValueError(
            f"Unsupported file type {extension!r}, expected one of {', '.join(SUPPORTED_EXTENSIONS)}"
        )

    if extension == ".csv":
        df = pd.read_csv(path, sep=_sniff_csv(path), dtype=str, keep_default_na=False, encoding="utf-8-sig")
        df = df.mask(df.eq(""))
    else:
        engine = "openpyxl" if extension == ".xlsx" else None
        df = pd.read_excel(path, sheet_name=0, engine=engine)

    rows = frame_to_rows(df)
    if not rows:
        raise ValueError(f"{path.name} must contain a header row and at least one data row")

    logger.info(f"Loaded {len(rows)} rows from {path.name} ({len(df.columns)} columns)")
    return rows


def detect_delimiter(text: str) -> str:
    """Delimiter of pasted tabular text: tab, then semicolon, then comma."""
    first_line = text.strip().splitlines()[0] if text.strip() else ""
    for delimiter in CLIPBOARD_DELIMITERS:
        if delimiter in first_line:
            return delimiter
    return CLIPBOARD_DELIMITERS[0]


def parse_clipboard_data(text: str) -> List[Dict[str, LooseValue]]:
    """Raw rows from text copied out of a spreadsheet.

    Raises:
        ValueError: If there is no header row plus at least one data row
    """
    lines = [line for line in text.strip().splitlines() if line.strip()]
    if len(lines) < 2:
        raise ValueError("Pasted data must contain a header row and at least one data row")

    df = pd.read_csv(
        io.StringIO("\n".join(lines)),
        sep=detect_delimiter(text),
        dtype=str,
        keep_default_na=False,
        skipinitialspace=True,
    )
    df.columns = [cell_text(col) for col in df.columns]
    df = df.apply(lambda col: col.str.strip())
    df = df.mask(df.eq(""))
    return frame_to_rows(df)
