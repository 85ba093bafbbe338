"""Root path extraction for input documents."""

from typing import Any, Optional

from json2csv.common.exceptions import PathNotFoundError

DEFAULT_TYPE_NAME = "root"


def split_path(path: Optional[str]) -> list:
    """Split a dotted path into segments (empty path gives no segments)."""
    if not path:
        return []
    return path.split(".")


def resolve_path(document: Any, path: Optional[str]) -> Any:
    """
    Follow a dotted path of field accessors into a document.

    Args:
        document: Decoded JSON value
        path: Dotted path (e.g. "data.root_el"); empty or None for no root

    Returns:
        The sub-value at the path

    Raises:
        PathNotFoundError: If a segment is absent on the current node
    """
    current = document
    for segment in split_path(path):
        if not isinstance(current, dict) or segment not in current:
            raise PathNotFoundError(path, segment)
        current = current[segment]
    return current


def default_type_name(path: Optional[str]) -> str:
    """Type name for documents under `path`: its last segment, or "root"."""
    segments = split_path(path)
    return segments[-1] if segments else DEFAULT_TYPE_NAME
