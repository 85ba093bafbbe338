"""
Structure-inferring JSON flattener.

Walks one document at a time against the run's Structure, emitting one
row per object into the TableSink. Nested objects and arrays become rows
of child entity types, linked back to their parent row:

    {"id": "1", "items": [{"sku": "A"}, {"sku": "B"}]}

    root:        id=1, items=<parent row id>
    root_items:  sku=A, JSON_parentId=<parent row id>
                 sku=B, JSON_parentId=<parent row id>

A bare object is treated as a one-element array, so fields that are
sometimes an object and sometimes an array land in the same child table.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from json2csv.common.exceptions import ReservedColumnError
from json2csv.ingest.structure import Structure, detect_json_type
from json2csv.ingest.table_sink import Row, TableSink

logger = logging.getLogger(__name__)

PARENT_ID_COLUMN = "JSON_parentId"
FILE_NAME_COLUMN = "keboola_file_name_col"
ROW_NR_COLUMN = "keboola_row_nr_col"

# Field name for non-object values that end up as rows
SCALAR_ITEM_FIELD = "data"


@dataclass
class _DocumentContext:
    file_name: Optional[str] = None
    document_nr: Optional[int] = None


def as_record(value: Any) -> Dict[str, Any]:
    """Wrap a non-object value so it can be flattened as a row."""
    if isinstance(value, dict):
        return value
    return {SCALAR_ITEM_FIELD: value}


def as_items(value: Any) -> List[Any]:
    """Elements a nested value contributes: null none, object/scalar one."""
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]


class Flattener:
    """
    Flattens documents into per-entity-type rows.

    The Structure and TableSink are owned by the caller and shared across
    all documents of a run; later documents may promote fields that earlier
    documents recorded as scalars.
    """

    def __init__(
        self,
        structure: Structure,
        sink: TableSink,
        add_file_name: bool = False,
        append_row_nr: bool = False,
    ):
        """
        Initialize flattener.

        Args:
            structure: Run-wide structure model
            sink: Run-wide table buffers
            add_file_name: Add the source file name to root-level rows
            append_row_nr: Add the document ordinal to every row
        """
        self.structure = structure
        self.sink = sink
        self.add_file_name = add_file_name
        self.append_row_nr = append_row_nr
        self.rows_emitted = 0

        # Generated columns a source field must not shadow
        self.reserved_columns = {PARENT_ID_COLUMN}
        if add_file_name:
            self.reserved_columns.add(FILE_NAME_COLUMN)
        if append_row_nr:
            self.reserved_columns.add(ROW_NR_COLUMN)

    def process(
        self,
        document: Any,
        root_type: str,
        file_name: Optional[str] = None,
        document_nr: Optional[int] = None,
    ) -> int:
        """
        Flatten one document.

        A root array is an implicit array of root-typed entities, each
        flattened independently with no parent.

        Args:
            document: Document root (already resolved and classified)
            root_type: Entity type name for the root
            file_name: Source file name (for add_file_name)
            document_nr: 1-based ordinal of the document in the run

        Returns:
            Number of rows emitted for this document

        Raises:
            ReservedColumnError: If a field is named like a generated column
        """
        before = self.rows_emitted
        context = _DocumentContext(file_name=file_name, document_nr=document_nr)

        self.structure.ensure_entity(root_type)
        self.structure.documents_observed += 1

        for item in as_items(document):
            self._flatten(as_record(item), root_type, None, context)

        emitted = self.rows_emitted - before
        logger.debug(
            f"Flattened document into {emitted} rows",
            extra={"extra_fields": {"root_type": root_type, "file_name": file_name}},
        )
        return emitted

    def _flatten(
        self,
        record: Dict[str, Any],
        entity: str,
        parent_id: Optional[int],
        context: _DocumentContext,
    ) -> int:
        # Id first: children need it as their foreign key
        row = Row(row_id=self.structure.allocate_row_id(entity))

        for key, value in record.items():
            if key in self.reserved_columns:
                raise ReservedColumnError(entity, key)
            descriptor = self.structure.observe_field(entity, key, detect_json_type(value))

            if descriptor.is_child_link:
                self.sink.mark_link_column(entity, key)
                produced = self._flatten_children(
                    value, descriptor.child_type, row.row_id, context)
                if produced:
                    row.values[key] = row.row_id
                    row.links.add(key)
                else:
                    row.values[key] = None
            else:
                row.values[key] = value

        if parent_id is not None:
            row.values[PARENT_ID_COLUMN] = parent_id
        elif self.add_file_name and context.file_name is not None:
            row.values[FILE_NAME_COLUMN] = context.file_name

        if self.append_row_nr and context.document_nr is not None:
            row.values[ROW_NR_COLUMN] = context.document_nr

        self.sink.append(entity, row)
        self.rows_emitted += 1
        return row.row_id

    def _flatten_children(
        self,
        value: Any,
        child_type: str,
        parent_id: int,
        context: _DocumentContext,
    ) -> int:
        items = as_items(value)
        if not items:
            return 0

        self.sink.set_primary_key(child_type, [PARENT_ID_COLUMN])
        for item in items:
            self._flatten(as_record(item), child_type, parent_id, context)
        return len(items)
