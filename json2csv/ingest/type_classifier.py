"""Entity type naming for document roots."""

from typing import Any, Tuple


def classify_root(value: Any, default_type: str) -> Tuple[str, Any]:
    """
    Determine the entity type name of a document root.

    An object with exactly one key, e.g. `{"order": {...}}`, is a typed
    wrapper: the key names the type and the wrapped value is flattened.
    Anything else keeps the default type and is flattened as-is.

    Args:
        value: Document root (after root path resolution)
        default_type: Fallback type name

    Returns:
        Tuple of (type_name, value_to_flatten)
    """
    if isinstance(value, dict) and len(value) == 1:
        key, inner = next(iter(value.items()))
        if isinstance(key, str) and key:
            return key, inner
    return default_type, value
