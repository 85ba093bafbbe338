"""
JSON to CSV processor.

Main orchestrator for a run: discovers input files, flattens each document
in name order, then writes all tables and manifests at once. Any failure
aborts the run before output is written.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional, Union

from json2csv.common.exceptions import FileAccessError, Json2CsvError, MalformedInputError
from json2csv.common.logging_config import PerformanceTracker, get_structured_logger
from json2csv.common.metrics import (
    document_size_bytes,
    documents_processed_total,
    rows_flattened_total,
    track_run,
)
from json2csv.config.parameters import Parameters
from json2csv.ingest.folder_scanner import FolderScanner
from json2csv.ingest.parser import JsonToCsvParser
from json2csv.ingest.path_resolver import resolve_path
from json2csv.output.materializer import ResultMaterializer

logger = logging.getLogger(__name__)
run_logger = get_structured_logger(__name__)


def _reject_constant(name: str) -> Any:
    raise ValueError(f"Invalid JSON constant {name}")


def read_json(path: Union[str, Path]) -> Any:
    """
    Read and decode one input file.

    Raises:
        FileAccessError: If the file cannot be read
        MalformedInputError: If the content is not valid UTF-8 JSON
    """
    path = Path(path)
    try:
        raw = path.read_bytes()
    except OSError as e:
        raise FileAccessError(f"Failed to read file {path}: {e}", path=str(path)) from e

    try:
        return json.loads(raw.decode("utf-8-sig"), parse_constant=_reject_constant)
    except UnicodeDecodeError as e:
        raise MalformedInputError(path.name, f"not UTF-8 ({e})") from e
    except ValueError as e:
        raise MalformedInputError(path.name, str(e)) from e


class Processor:
    """
    Converts a directory of JSON files into CSV tables.

    One processor instance can run several conversions; each run gets a
    fresh parser (structure model and table buffers).
    """

    def __init__(self, parameters: Parameters, scanner: Optional[FolderScanner] = None):
        """
        Initialize processor.

        Args:
            parameters: Run parameters from config.json
            scanner: File discovery (defaults to FolderScanner)
        """
        self.parameters = parameters
        self.scanner = scanner or FolderScanner()

    @track_run
    def convert(self, data_dir: Union[str, Path]) -> Dict[str, Any]:
        """
        Convert `{data_dir}/in/{in_type}/` into `{data_dir}/out/tables/`.

        Returns:
            Run summary
        """
        data_dir = Path(data_dir)
        return self.process_files(
            data_dir / "in" / self.parameters.in_type.value,
            data_dir / "out" / "tables",
        )

    def process_files(self, input_dir: Union[str, Path], output_dir: Union[str, Path]) -> Dict[str, Any]:
        """
        Flatten every file under `input_dir` and write the results.

        Args:
            input_dir: Directory with input JSON files
            output_dir: Output tables directory

        Returns:
            Dictionary with run results
        """
        parser = JsonToCsvParser(self.parameters)
        files, stats = self.scanner.scan_folder_with_stats(input_dir)
        run_logger.info(
            f"Found {stats['total_files']} input files",
            mode=parser.mode,
            input_dir=str(input_dir),
            **stats,
        )

        with PerformanceTracker("flatten_documents", logger, documents=len(files)):
            for document_nr, file_info in enumerate(files, start=1):
                self.process_file(parser, file_info, document_nr)

        logger.info("Writing results..")
        materializer = ResultMaterializer(
            output_dir,
            incremental=self.parameters.incremental,
            column_types=self.parameters.column_types,
        )
        with PerformanceTracker("write_results", logger):
            written = materializer.materialize(parser.sink, parser.structure)

        summary: Dict[str, Any] = {
            "mode": parser.mode,
            "documents": len(files),
            "rows": parser.sink.row_count(),
            "tables": written,
        }
        if parser.structure is not None:
            structure_summary = parser.structure.get_summary()
            summary["structure_hash"] = structure_summary["structure_hash"]
            run_logger.debug("Inferred structure", **structure_summary)
        return summary

    def process_file(self, parser: JsonToCsvParser, file_info: Dict[str, Any], document_nr: int) -> int:
        """
        Flatten a single input file.

        Args:
            parser: Parser of the current run
            file_info: File metadata from the scanner
            document_nr: 1-based ordinal of the file in the run

        Returns:
            Number of rows emitted

        Raises:
            Json2CsvError: On unreadable, malformed or root-less documents
        """
        name = file_info["name"]
        run_logger.info(
            f"Parsing file {name}",
            file=file_info["relative_path"],
            size_bytes=file_info["size_bytes"],
        )
        document_size_bytes.observe(file_info["size_bytes"])

        try:
            document = read_json(file_info["path"])
            root = resolve_path(document, self.parameters.root_node)
            rows = parser.parse(root, file_name=name, document_nr=document_nr)
        except Json2CsvError as e:
            documents_processed_total.labels(status="failure").inc()
            run_logger.error(f"Error processing file {name}: {e}", file=file_info["relative_path"])
            raise

        documents_processed_total.labels(status="success").inc()
        rows_flattened_total.labels(mode=parser.mode).inc(rows)
        return rows
