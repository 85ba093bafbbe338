"""
Append-only table buffers for flattened rows.

Each entity type accumulates rows and a column list in first-seen order.
Rows are never rewritten; short rows are padded with empty cells when the
table is rendered.
"""

import json
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Set


@dataclass
class Row:
    """One flattened record of one entity type."""
    row_id: Optional[int] = None
    values: Dict[str, Any] = field(default_factory=dict)
    # Columns whose value is a child link written by the flattener
    links: Set[str] = field(default_factory=set)


def format_value(value: Any) -> str:
    """Render a JSON value as CSV cell text."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)):
        return repr(value)
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False)


class TableBuffer:
    """Rows and column set of one output table."""

    def __init__(self, name: str):
        self.name = name
        self.columns: List[str] = []
        self._column_set: Set[str] = set()
        self.rows: List[Row] = []
        self.link_columns: Set[str] = set()
        self.primary_key: List[str] = []
        self.incremental: Optional[bool] = None

    def add_columns(self, columns) -> None:
        for column in columns:
            if column not in self._column_set:
                self._column_set.add(column)
                self.columns.append(column)

    def append(self, row: Row) -> None:
        self.add_columns(row.values.keys())
        self.rows.append(row)

    def render_row(self, row: Row) -> List[str]:
        """
        Render a row to full width.

        Cells of link columns that do not hold a link (scalar values recorded
        before the field was promoted) render empty.
        """
        cells = []
        for column in self.columns:
            if column in self.link_columns and column not in row.links:
                cells.append("")
            else:
                cells.append(format_value(row.values.get(column)))
        return cells

    def render(self) -> Iterator[List[str]]:
        for row in self.rows:
            yield self.render_row(row)

    def __len__(self) -> int:
        return len(self.rows)


class TableSink:
    """Owns the table buffers of one run."""

    def __init__(self):
        self._tables: Dict[str, TableBuffer] = {}

    def _table(self, name: str) -> TableBuffer:
        table = self._tables.get(name)
        if table is None:
            table = TableBuffer(name)
            self._tables[name] = table
        return table

    def append(self, name: str, row: Row) -> None:
        """Add a row, extending the table's columns with any new ones."""
        self._table(name).append(row)

    def get_table(self, name: str) -> Optional[TableBuffer]:
        return self._tables.get(name)

    def declare_columns(self, name: str, columns: List[str]) -> None:
        """Fix columns up front so they appear even when never filled."""
        self._table(name).add_columns(columns)

    def mark_link_column(self, name: str, column: str) -> None:
        self._table(name).link_columns.add(column)

    def set_primary_key(self, name: str, columns: List[str]) -> None:
        self._table(name).primary_key = list(columns)

    def set_incremental(self, name: str, incremental: Optional[bool]) -> None:
        self._table(name).incremental = incremental

    def tables(self) -> List[TableBuffer]:
        """All tables in creation order."""
        return list(self._tables.values())

    def row_count(self) -> int:
        return sum(len(table) for table in self._tables.values())
