"""
Result materializer.

Writes every non-empty table buffer as `{name}.csv` with a JSON manifest
sidecar `{name}.csv.manifest` into the output tables directory. Files are
written to a staging directory first and moved into place once all of them
have been written.
"""

import csv
import json
import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

from json2csv.common.exceptions import FileAccessError
from json2csv.common.metrics import tables_written_total
from json2csv.ingest.flattener import FILE_NAME_COLUMN, PARENT_ID_COLUMN, ROW_NR_COLUMN
from json2csv.ingest.structure import Structure
from json2csv.ingest.table_sink import TableBuffer, TableSink

logger = logging.getLogger(__name__)

MANIFEST_SUFFIX = ".manifest"
BASETYPE_KEY = "KBC.datatype.basetype"

SYNTHETIC_COLUMN_TYPES = {
    PARENT_ID_COLUMN: "INTEGER",
    ROW_NR_COLUMN: "INTEGER",
    FILE_NAME_COLUMN: "STRING",
}


def table_file_name(table_name: str) -> str:
    """CSV file name for a table; path separators are not allowed in names."""
    safe = table_name.replace("/", "_").replace("\\", "_")
    return f"{safe}.csv"


def table_file_names(table_names: Iterable[str]) -> List[str]:
    """
    CSV file names for tables, one distinct file per table.

    Names that map to an already used file (e.g. `a/b` and `a_b`) get a
    numeric suffix in table order: `a_b.csv`, `a_b_2.csv`.
    """
    used = set()
    file_names = []
    for table_name in table_names:
        file_name = table_file_name(table_name)
        stem = file_name[:-len(".csv")]
        suffix = 2
        while file_name in used:
            file_name = f"{stem}_{suffix}.csv"
            suffix += 1
        if file_name != table_file_name(table_name):
            logger.warning(f"Table '{table_name}' written as {file_name} to avoid a name clash")
        used.add(file_name)
        file_names.append(file_name)
    return file_names


class ResultMaterializer:
    """Writes table buffers and manifests to disk."""

    def __init__(
        self,
        output_dir: Union[str, Path],
        incremental: bool = False,
        column_types: bool = False,
    ):
        """
        Initialize materializer.

        Args:
            output_dir: Output tables directory
            incremental: Run-level incremental flag for manifests
            column_types: Add column base type metadata to manifests
        """
        self.output_dir = Path(output_dir)
        self.incremental = incremental
        self.column_types = column_types

    def materialize(self, sink: TableSink, structure: Optional[Structure] = None) -> List[str]:
        """
        Write all tables with at least one row.

        Args:
            sink: Table buffers of the run
            structure: Inferred structure (for column type metadata)

        Returns:
            Names of the CSV files written

        Raises:
            FileAccessError: If the directory or any file cannot be written
        """
        tables = [table for table in sink.tables() if len(table) > 0]
        if not tables:
            logger.info("No results parsed.")
            return []

        try:
            self.output_dir.mkdir(parents=True, exist_ok=True)
            staging = Path(tempfile.mkdtemp(prefix=".json2csv-", dir=self.output_dir.parent))
        except OSError as e:
            raise FileAccessError(
                f"Failed to create output directory {self.output_dir}: {e}",
                path=str(self.output_dir),
            ) from e

        file_names = table_file_names(table.name for table in tables)
        try:
            for table, file_name in zip(tables, file_names):
                logger.info(f"Writing result file: {file_name}")
                self._write_csv(table, staging / file_name)
                self._write_manifest(
                    self.build_manifest(table, structure),
                    staging / f"{file_name}{MANIFEST_SUFFIX}",
                )
            self._publish(staging, file_names)
        finally:
            shutil.rmtree(staging, ignore_errors=True)

        tables_written_total.inc(len(file_names))
        return file_names

    def _publish(self, staging: Path, file_names: List[str]) -> None:
        # Renames within one filesystem; nothing reaches output_dir unless
        # every file was written
        for file_name in file_names:
            for name in (file_name, f"{file_name}{MANIFEST_SUFFIX}"):
                target = self.output_dir / name
                try:
                    os.replace(staging / name, target)
                except OSError as e:
                    raise FileAccessError(
                        f"Failed to move {name} into {self.output_dir}: {e}",
                        path=str(target),
                    ) from e

    def build_manifest(self, table: TableBuffer, structure: Optional[Structure] = None) -> Dict[str, Any]:
        """Manifest contents for one table."""
        manifest: Dict[str, Any] = {
            "incremental": table.incremental if table.incremental is not None else self.incremental,
            "primary_key": list(table.primary_key),
        }

        if self.column_types:
            manifest["columns"] = list(table.columns)
            manifest["column_metadata"] = {
                column: [{"key": BASETYPE_KEY, "value": self._base_type(table, column, structure)}]
                for column in table.columns
            }

        return manifest

    def _base_type(self, table: TableBuffer, column: str, structure: Optional[Structure]) -> str:
        if structure is not None:
            entity = structure.get_entity(table.name)
            if entity is not None and column in entity.fields:
                return structure.column_base_type(table.name, column)
        return SYNTHETIC_COLUMN_TYPES.get(column, "STRING")

    def _write_csv(self, table: TableBuffer, path: Path) -> None:
        try:
            with open(path, "w", encoding="utf-8", newline="") as f:
                writer = csv.writer(f, quoting=csv.QUOTE_ALL, lineterminator="\n")
                writer.writerow(table.columns)
                for cells in table.render():
                    writer.writerow(cells)
        except OSError as e:
            raise FileAccessError(f"Failed to write table {path}: {e}", path=str(path)) from e

    def _write_manifest(self, manifest: Dict[str, Any], path: Path) -> None:
        try:
            with open(path, "w", encoding="utf-8") as f:
                json.dump(manifest, f)
        except OSError as e:
            raise FileAccessError(f"Failed to write manifest {path}: {e}", path=str(path)) from e
