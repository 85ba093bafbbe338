"""
Input folder scanner.

Recursively discovers input files and yields their metadata in name-sorted
order, which is the order documents are flattened in.
"""

import logging
import os
from pathlib import Path
from typing import Generator, Union

from json2csv.common.exceptions import FileAccessError

logger = logging.getLogger(__name__)

MANIFEST_SUFFIX = ".manifest"


class FolderScanner:
    """
    Recursively discovers input files in a folder.

    Manifest sidecars written by the host next to input files are skipped.
    """

    def __init__(self, ignore_suffixes=(MANIFEST_SUFFIX,)):
        """
        Initialize folder scanner.

        Args:
            ignore_suffixes: File name suffixes to skip
        """
        self.ignore_suffixes = tuple(ignore_suffixes)

    def should_ignore(self, path: Path) -> bool:
        """Check if a file is a sidecar rather than input."""
        return path.name.endswith(self.ignore_suffixes)

    def scan_folder(self, folder_path: Union[str, Path]) -> Generator[dict, None, None]:
        """
        Recursively scan folder and yield file metadata, sorted by path.

        Args:
            folder_path: Path to folder to scan

        Yields:
            Dictionary containing:
            - path: Absolute file path
            - relative_path: Path relative to scan root (posix)
            - name: File name
            - size_bytes: File size in bytes

        Raises:
            FileAccessError: If folder doesn't exist, is not a directory,
                or a file cannot be stat'ed
        """
        root = Path(folder_path).resolve()

        if not root.exists():
            raise FileAccessError(f"Input folder not found: {folder_path}", path=str(folder_path))

        if not root.is_dir():
            raise FileAccessError(f"Not a directory: {folder_path}", path=str(folder_path))

        found = []
        ignored_count = 0

        for dirpath, dirnames, filenames in os.walk(root):
            current_dir = Path(dirpath)
            for filename in filenames:
                file_path = current_dir / filename
                if self.should_ignore(file_path):
                    ignored_count += 1
                    continue
                found.append(file_path)

        found.sort(key=lambda p: p.relative_to(root).as_posix())

        for file_path in found:
            try:
                size_bytes = file_path.stat().st_size
            except OSError as e:
                raise FileAccessError(
                    f"Failed to stat {file_path}: {e}", path=str(file_path)) from e

            yield {
                'path': str(file_path),
                'relative_path': file_path.relative_to(root).as_posix(),
                'name': file_path.name,
                'size_bytes': size_bytes,
            }

        logger.info(
            f"Scan complete: {len(found)} files found, {ignored_count} manifests skipped"
        )

    def scan_folder_with_stats(self, folder_path: Union[str, Path]) -> tuple[list[dict], dict]:
        """
        Scan folder and return files with statistics.

        Args:
            folder_path: Path to folder to scan

        Returns:
            Tuple of (files list, stats dict)
        """
        files = []
        stats = {
            'total_files': 0,
            'total_size_bytes': 0,
        }

        for file_info in self.scan_folder(folder_path):
            files.append(file_info)
            stats['total_files'] += 1
            stats['total_size_bytes'] += file_info['size_bytes']

        return files, stats
