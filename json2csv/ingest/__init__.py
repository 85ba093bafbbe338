"""
Ingest module for JSON flattening.

Provides root path resolution, structure inference, flattening and
explicit mapping of JSON documents into table buffers.
"""

from json2csv.ingest.structure import (
    Structure,
    JsonType,
    FieldDescriptor,
    ScalarColumn,
    ChildLink,
    detect_json_type,
)
from json2csv.ingest.table_sink import TableSink, TableBuffer, Row
from json2csv.ingest.flattener import Flattener
from json2csv.ingest.mapper import Mapper
from json2csv.ingest.parser import JsonToCsvParser
from json2csv.ingest.path_resolver import resolve_path, default_type_name
from json2csv.ingest.type_classifier import classify_root

__all__ = [  # ruff: noqa: RUF022
    # Structure inference
    "Structure",
    "JsonType",
    "FieldDescriptor",
    "ScalarColumn",
    "ChildLink",
    "detect_json_type",
    # Buffers
    "TableSink",
    "TableBuffer",
    "Row",
    # Flattening
    "Flattener",
    "Mapper",
    "JsonToCsvParser",
    # Roots
    "resolve_path",
    "default_type_name",
    "classify_root",
]
