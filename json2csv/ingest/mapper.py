"""
Explicit mapping flattener.

When a mapping is configured, tables and columns are exactly those the
mapping declares, regardless of document shape; no structure inference
takes place.
"""

import hashlib
import json
from typing import Any, Dict, List, Optional

from json2csv.common.exceptions import MappingError
from json2csv.config.parameters import ColumnMapping, MappingEntry, TableMapping
from json2csv.ingest.flattener import FILE_NAME_COLUMN, ROW_NR_COLUMN, as_items
from json2csv.ingest.table_sink import Row, TableSink, format_value


def value_at(record: Any, path: str) -> Any:
    """Value at a dotted path inside an object, None when absent."""
    current = record
    for segment in path.split("."):
        if not isinstance(current, dict):
            return None
        current = current.get(segment)
    return current


class Mapper:
    """
    Maps objects to rows of one table (and its child tables).

    Child tables receive a parent key column. Its value is the parent's
    primary key values joined with ",", or, when the parent declares no
    primary key, an md5 digest of the parent object which is then also
    written to the parent table as `{table}_pk`.
    """

    def __init__(
        self,
        mapping: Dict[str, MappingEntry],
        table_name: str,
        sink: TableSink,
        parent_key_column: Optional[str] = None,
        parent_key_primary: bool = False,
        incremental: Optional[bool] = None,
        add_file_name: bool = False,
        append_row_nr: bool = False,
        is_root: bool = True,
    ):
        self.mapping = mapping
        self.table_name = table_name
        self.sink = sink
        self.parent_key_column = parent_key_column
        self.add_file_name = add_file_name and is_root
        self.append_row_nr = append_row_nr
        self.rows_emitted = 0

        self.columns: Dict[str, str] = {}
        self.primary_key: List[str] = []
        self.children: Dict[str, "Mapper"] = {}

        for path, entry in mapping.items():
            if isinstance(entry, ColumnMapping):
                self.columns[path] = entry.destination
                if entry.primary_key:
                    self.primary_key.append(entry.destination)

        needs_key = any(
            isinstance(entry, TableMapping) and not entry.parent_key.disable
            for entry in mapping.values()
        )
        self.synthetic_key = (
            f"{table_name}_pk" if needs_key and not self.primary_key else None)

        declared = list(self.columns.values())
        if self.synthetic_key:
            declared.append(self.synthetic_key)
        if parent_key_column:
            declared.append(parent_key_column)
        if self.add_file_name:
            declared.append(FILE_NAME_COLUMN)
        if self.append_row_nr:
            declared.append(ROW_NR_COLUMN)
        # Mapped destinations are unique, so a repeat is a generated column
        seen = set()
        for column in declared:
            if column in seen:
                raise MappingError(
                    f"Column '{column}' of table '{table_name}' collides with a generated column")
            seen.add(column)
        sink.declare_columns(table_name, declared)

        table_primary_key = list(self.primary_key)
        if parent_key_column and parent_key_primary:
            table_primary_key.append(parent_key_column)
        sink.set_primary_key(table_name, table_primary_key)
        if incremental is not None:
            sink.set_incremental(table_name, incremental)

        # Children after the parent so tables keep declaration order
        for path, entry in mapping.items():
            if isinstance(entry, TableMapping):
                self.children[path] = self._child_mapper(entry)

    def _child_mapper(self, entry: TableMapping) -> "Mapper":
        parent_key = entry.parent_key
        column = None
        if not parent_key.disable:
            column = parent_key.destination or f"{self.table_name}_pk"

        return Mapper(
            mapping=entry.table_mapping,
            table_name=entry.destination,
            sink=self.sink,
            parent_key_column=column,
            parent_key_primary=parent_key.primary_key,
            incremental=entry.incremental,
            add_file_name=False,
            append_row_nr=self.append_row_nr,
            is_root=False,
        )

    def parse(
        self,
        document: Any,
        file_name: Optional[str] = None,
        document_nr: Optional[int] = None,
        parent_key_value: Optional[str] = None,
    ) -> int:
        """
        Map a document (object or array of objects) to rows.

        Returns:
            Number of rows emitted in this table and all child tables
        """
        emitted = 0
        for record in as_items(document):
            emitted += self._map_record(record, file_name, document_nr, parent_key_value)
        return emitted

    def _map_record(
        self,
        record: Any,
        file_name: Optional[str],
        document_nr: Optional[int],
        parent_key_value: Optional[str],
    ) -> int:
        row = Row()
        for path, destination in self.columns.items():
            row.values[destination] = value_at(record, path)

        if self.synthetic_key:
            digest_source = json.dumps(record, sort_keys=True, ensure_ascii=False)
            row.values[self.synthetic_key] = hashlib.md5(digest_source.encode()).hexdigest()
        if self.parent_key_column and parent_key_value is not None:
            row.values[self.parent_key_column] = parent_key_value
        if self.add_file_name and file_name is not None:
            row.values[FILE_NAME_COLUMN] = file_name
        if self.append_row_nr and document_nr is not None:
            row.values[ROW_NR_COLUMN] = document_nr

        self.sink.append(self.table_name, row)
        self.rows_emitted += 1
        emitted = 1

        key_value = self._key_value(row)
        for path, child in self.children.items():
            emitted += child.parse(
                value_at(record, path),
                file_name=file_name,
                document_nr=document_nr,
                parent_key_value=key_value,
            )
        return emitted

    def _key_value(self, row: Row) -> Optional[str]:
        if self.primary_key:
            return ",".join(format_value(row.values.get(column)) for column in self.primary_key)
        if self.synthetic_key:
            return row.values[self.synthetic_key]
        return None
