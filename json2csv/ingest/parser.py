"""
Parser facade selecting the flattening mode.

With an explicit mapping the Mapper decides tables and columns; without one
the Flattener infers them from the documents.
"""

from typing import Any, Optional

from json2csv.config.parameters import Parameters
from json2csv.ingest.flattener import Flattener
from json2csv.ingest.mapper import Mapper
from json2csv.ingest.path_resolver import default_type_name
from json2csv.ingest.structure import Structure
from json2csv.ingest.table_sink import TableSink
from json2csv.ingest.type_classifier import classify_root

MODE_INFERENCE = "inference"
MODE_MAPPING = "mapping"


class JsonToCsvParser:
    """Turns resolved document roots into rows of a TableSink."""

    def __init__(self, parameters: Parameters):
        self.default_type = default_type_name(parameters.root_node)
        self.sink = TableSink()
        self.structure: Optional[Structure] = None
        self.flattener: Optional[Flattener] = None
        self.mapper: Optional[Mapper] = None

        mapping = parameters.parsed_mapping()
        if mapping:
            self.mapper = Mapper(
                mapping,
                self.default_type,
                self.sink,
                add_file_name=parameters.add_file_name,
                append_row_nr=parameters.append_row_nr,
            )
        else:
            self.structure = Structure()
            self.flattener = Flattener(
                self.structure,
                self.sink,
                add_file_name=parameters.add_file_name,
                append_row_nr=parameters.append_row_nr,
            )

    @property
    def mode(self) -> str:
        return MODE_MAPPING if self.mapper is not None else MODE_INFERENCE

    def parse(
        self,
        root: Any,
        file_name: Optional[str] = None,
        document_nr: Optional[int] = None,
    ) -> int:
        """
        Flatten one document root.

        Args:
            root: Document value at the configured root path
            file_name: Source file name
            document_nr: 1-based ordinal of the document in the run

        Returns:
            Number of rows emitted
        """
        if self.mapper is not None:
            return self.mapper.parse(root, file_name=file_name, document_nr=document_nr)

        type_name, value = classify_root(root, self.default_type)
        return self.flattener.process(
            value, type_name, file_name=file_name, document_nr=document_nr)
