"""
Statement Data
==============
The tabular statement shared by every part of the dashboard, plus the
numeric conventions of the report templates.

A statement is a flat list of rows aligned to a header row. Column 0 holds the
row label; the remaining columns hold prior-year totals, monthly periods,
the current-year total and a YoY variance, all as display strings
("1,234", "-1,234" or "(1,234)", "" for blank).
"""

import io
import math
import re
from copy import deepcopy
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List, Optional, Union

import pandas as pd

from app_logging import get_logger

logger = get_logger(__name__)


class StatementNotFoundError(FileNotFoundError):
    """Raised when a statement CSV does not exist."""


class NegativeStyle(str, Enum):
    MINUS = "minus"
    PARENTHESES = "parentheses"


_PAREN_NUMBER = re.compile(r"^\(\s*[\d,]+(\.\d+)?\s*\)$")
_STRIP_CHARS = re.compile(r"[,$%\s]")


# =============================================================================
# NUMERIC CELLS
# =============================================================================

def parse_number(cell: Optional[str]) -> float:
    """
    Parse a display cell into a float.

    Handles thousands separators, currency/percent signs, parenthesis
    negatives and the unicode minus. Blank, "-" and unparsable cells are 0.
    """
    if cell is None:
        return 0.0
    text = str(cell).strip()
    if not text or text == "-":
        return 0.0

    negative = False
    if text.startswith("(") and text.endswith(")"):
        negative = True
        text = text[1:-1]

    text = _STRIP_CHARS.sub("", text).replace("\u2212", "-")
    try:
        value = float(text)
    except ValueError:
        return 0.0
    if not math.isfinite(value):
        return 0.0
    return -value if negative else value


def format_number(value: float, style: NegativeStyle = NegativeStyle.MINUS) -> str:
    """
    Format a number the way the source sheets do: rounded to an integer
    (half up), thousands separators, negatives per `style`.
    """
    rounded = int(math.floor(value + 0.5))
    if rounded == 0:
        return "0"
    body = f"{abs(rounded):,}"
    if rounded > 0:
        return body
    if style == NegativeStyle.PARENTHESES:
        return f"({body})"
    return f"-{body}"


def is_blank(cell: Optional[str]) -> bool:
    return cell is None or not str(cell).strip()


# =============================================================================
# TABULAR STATEMENT
# =============================================================================

@dataclass
class TabularStatement:
    """Headers plus rows of display strings; row order carries the hierarchy."""
    headers: List[str] = field(default_factory=list)
    rows: List[List[str]] = field(default_factory=list)

    @property
    def width(self) -> int:
        return len(self.headers)

    def __len__(self) -> int:
        return len(self.rows)

    def copy(self) -> "TabularStatement":
        return TabularStatement(headers=list(self.headers), rows=deepcopy(self.rows))

    def label(self, index: int) -> str:
        row = self.rows[index]
        return str(row[0]) if row else ""

    def find_row(self, pattern: str) -> int:
        """Index of the first row whose label matches `pattern`, or -1."""
        regex = re.compile(pattern, re.IGNORECASE)
        for i, row in enumerate(self.rows):
            if row and row[0] and regex.search(str(row[0])):
                return i
        return -1

    def normalized(self) -> "TabularStatement":
        """Copy with every short row padded with blanks to the header width."""
        rows = []
        for row in self.rows:
            cells = [("" if c is None else str(c)) for c in row]
            if len(cells) < self.width:
                cells.extend([""] * (self.width - len(cells)))
            rows.append(cells)
        return TabularStatement(headers=list(self.headers), rows=rows)

    def to_frame(self) -> pd.DataFrame:
        width = max([self.width] + [len(r) for r in self.rows]) if self.rows else self.width
        headers = list(self.headers) + [f"col_{i}" for i in range(self.width, width)]
        padded = [list(r) + [""] * (width - len(r)) for r in self.rows]
        return pd.DataFrame(padded, columns=_dedupe(headers))

    @classmethod
    def from_frame(cls, df: pd.DataFrame) -> "TabularStatement":
        headers = [str(c) for c in df.columns]
        rows = df.fillna("").astype(str).values.tolist()
        return cls(headers=headers, rows=rows)

    def to_dict(self) -> dict:
        return {"headers": list(self.headers), "rows": [list(r) for r in self.rows]}


def _dedupe(headers: List[str]) -> List[str]:
    seen = {}
    out = []
    for h in headers:
        if h in seen:
            seen[h] += 1
            out.append(f"{h}.{seen[h]}")
        else:
            seen[h] = 0
            out.append(h)
    return out


def detect_negative_style(statement: TabularStatement) -> NegativeStyle:
    """PARENTHESES if any value cell uses "(1,234)" notation, else MINUS."""
    for row in statement.rows:
        for cell in row[1:]:
            if cell and _PAREN_NUMBER.match(str(cell).strip()):
                return NegativeStyle.PARENTHESES
    return NegativeStyle.MINUS


# =============================================================================
# CSV LOADING
# =============================================================================

def decode_csv_bytes(raw: bytes) -> str:
    """
    Decode CSV bytes: UTF-8 first, then EUC-KR/CP949 (Korean Excel exports)
    when UTF-8 fails or yields replacement characters.
    """
    try:
        text = raw.decode("utf-8-sig")
        if "\ufffd" not in text:
            return text
    except UnicodeDecodeError:
        pass
    logger.debug("CSV is not valid UTF-8, decoding as cp949")
    return raw.decode("cp949", errors="replace")


def parse_csv_text(text: str) -> TabularStatement:
    """Parse CSV text into a statement; the first line is the header row."""
    text = text.lstrip("\ufeff")
    if not text.strip():
        return TabularStatement()
    try:
        df = pd.read_csv(
            io.StringIO(text),
            header=None,
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=True,
        )
    except pd.errors.EmptyDataError:
        return TabularStatement()

    values = df.fillna("").astype(str).values.tolist()
    if not values:
        return TabularStatement()
    headers = [h.strip() for h in values[0]]
    return TabularStatement(headers=headers, rows=values[1:])


def load_statement(path: Union[str, Path]) -> TabularStatement:
    """Load a statement CSV from disk."""
    path = Path(path)
    if not path.exists():
        raise StatementNotFoundError(f"Statement file not found: {path}")
    statement = parse_csv_text(decode_csv_bytes(path.read_bytes()))
    logger.debug("Loaded %s: %d rows x %d columns", path.name, len(statement), statement.width)
    return statement
