"""In-memory result rows.

Rows are tuples of text; the engine's dynamically typed values are flattened at
the boundary so callers always see strings, with SQL NULL rendered as NULL_TEXT.
"""
from __future__ import annotations
import math
from collections.abc import Sequence
from typing import Any, Iterable, Iterator, List, Tuple

NULL_TEXT = "NULL"

Row = Tuple[str, ...]


def to_text(value: Any) -> str:
    """Render an engine value as the engine itself would as text."""
    if value is None:
        return NULL_TEXT
    if isinstance(value, str):
        return value
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value).decode("utf-8", errors="replace")
    if isinstance(value, float):
        if math.isnan(value):
            return NULL_TEXT
        if math.isinf(value):
            return "Inf" if value > 0 else "-Inf"
        text = "%.15g" % value
        # SQLite always keeps a decimal point on REAL values (1.0, 1.0e+20)
        if "." not in text:
            if "e" in text:
                mantissa, exponent = text.split("e", 1)
                text = f"{mantissa}.0e{exponent}"
            else:
                text += ".0"
        return text
    return str(value)


class RowStore(Sequence):
    """Ordered, clearable collection of text rows.

    The owning connection clears and refills it on every execute; readers get
    the Sequence interface and should not hold on to it across executes.
    """

    def __init__(self) -> None:
        self._rows: List[Row] = []
        self.columns: Tuple[str, ...] = ()

    def append(self, fields: Iterable[str]) -> None:
        self._rows.append(tuple(fields))

    def clear(self) -> None:
        self._rows.clear()
        self.columns = ()

    def __len__(self) -> int:
        return len(self._rows)

    def __getitem__(self, index):
        return self._rows[index]

    def __iter__(self) -> Iterator[Row]:
        return iter(self._rows)

    def __repr__(self) -> str:
        return f"RowStore(rows={len(self._rows)}, columns={list(self.columns)})"

    def format(self) -> str:
        """Pipe-delimited rendering, one line per row: ``|a|b|``."""
        return "".join("|" + "".join(f"{field}|" for field in row) + "\n" for row in self._rows)
