"""
Tabular input parsing: delimited text with a header row -> ordered rows.
"""

from __future__ import annotations

import csv
import io
import logging
from typing import List, Optional, Union

import pandas as pd

from .errors import RowParseError
from .models import Row

logger = logging.getLogger(__name__)


def parse_rows(source: Union[bytes, str], delimiter: Optional[str] = None) -> List[Row]:
    """
    Parse a CSV-like file into a list of rows keyed by column header.

    Every value is kept as a string; empty cells become "". Row order and
    column order follow the file. When `delimiter` is None the separator is
    sniffed from the header line.
    """
    if isinstance(source, bytes):
        try:
            text = source.decode("utf-8-sig")
        except UnicodeDecodeError:
            text = source.decode("latin-1")
    else:
        text = source

    if not text.strip():
        raise RowParseError("The uploaded data file is empty.")

    try:
        df = pd.read_csv(
            io.StringIO(text),
            sep=delimiter or _sniff_delimiter(text),
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=True,
        )
    except (pd.errors.ParserError, pd.errors.EmptyDataError, csv.Error) as exc:
        raise RowParseError(f"Could not parse data file: {exc}") from exc

    df.columns = [str(c).strip() for c in df.columns]
    rows: List[Row] = df.to_dict(orient="records")
    logger.info("Parsed %d rows with columns %s", len(rows), list(df.columns)[:10])
    return rows


def _sniff_delimiter(text: str) -> str:
    header = text.lstrip("\ufeff").splitlines()[0]
    try:
        return csv.Sniffer().sniff(header, delimiters=",;\t|").delimiter
    except csv.Error:
        # single-column files have nothing to sniff
        return ","
