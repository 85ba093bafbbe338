"""
Incremental structure inference for JSON documents.

Keeps, for every entity type seen during a run, the fields it carries and
whether each field is a scalar column or a link to a child entity type.
Later documents merge into the model: scalar type conflicts widen to
string, and a field that is ever seen nested becomes a child link for the
rest of the run.
"""

import hashlib
import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union


class JsonType(str, Enum):
    """Enumeration of JSON data types."""
    NULL = "null"
    BOOLEAN = "boolean"
    INTEGER = "integer"
    FLOAT = "float"
    STRING = "string"
    ARRAY = "array"
    OBJECT = "object"

    @property
    def is_nested(self) -> bool:
        return self in (JsonType.ARRAY, JsonType.OBJECT)


# Base types reported in manifest column metadata
BASE_TYPES = {
    JsonType.NULL: "STRING",
    JsonType.BOOLEAN: "BOOLEAN",
    JsonType.INTEGER: "INTEGER",
    JsonType.FLOAT: "NUMERIC",
    JsonType.STRING: "STRING",
}


def detect_json_type(value: Any) -> JsonType:
    """
    Detect the JSON type of a value.

    Args:
        value: The value to check

    Returns:
        JsonType enum value
    """
    if value is None:
        return JsonType.NULL
    elif isinstance(value, bool):
        return JsonType.BOOLEAN
    elif isinstance(value, int):
        return JsonType.INTEGER
    elif isinstance(value, float):
        return JsonType.FLOAT
    elif isinstance(value, str):
        return JsonType.STRING
    elif isinstance(value, list):
        return JsonType.ARRAY
    elif isinstance(value, dict):
        return JsonType.OBJECT
    else:
        return JsonType.STRING  # Fallback


@dataclass(frozen=True)
class ScalarColumn:
    """Field flattened into a column of its own entity type."""
    data_type: JsonType


@dataclass(frozen=True)
class ChildLink:
    """Field flattened into rows of a child entity type."""
    child_type: str
    container: JsonType  # OBJECT or ARRAY


FieldShape = Union[ScalarColumn, ChildLink]


def merge_scalar_types(current: JsonType, observed: JsonType) -> JsonType:
    """
    Merge two scalar types.

    Null never conflicts. Differing non-null types widen to string.
    """
    if observed == JsonType.NULL or observed == current:
        return current
    if current == JsonType.NULL:
        return observed
    return JsonType.STRING


def merge_shape(current: FieldShape, observed: JsonType, child_type: Optional[str] = None) -> FieldShape:
    """
    Merge an observed value type into an existing field shape.

    Promotion from scalar to child link is one-way; object and array
    containers unify as array.

    Args:
        current: Shape recorded so far
        observed: Type of the newly observed value
        child_type: Child type name, required when promoting a scalar

    Returns:
        The merged shape (may be `current` itself)
    """
    if isinstance(current, ChildLink):
        if observed == JsonType.ARRAY and current.container != JsonType.ARRAY:
            return ChildLink(current.child_type, JsonType.ARRAY)
        return current

    if observed.is_nested:
        if child_type is None:
            raise ValueError("child_type is required to promote a scalar field")
        return ChildLink(child_type, observed)

    merged = merge_scalar_types(current.data_type, observed)
    return current if merged == current.data_type else ScalarColumn(merged)


@dataclass
class FieldDescriptor:
    """Per entity type, per field: its current shape."""
    name: str
    shape: FieldShape
    observations: int = 0

    @property
    def is_child_link(self) -> bool:
        return isinstance(self.shape, ChildLink)

    @property
    def child_type(self) -> Optional[str]:
        return self.shape.child_type if isinstance(self.shape, ChildLink) else None


@dataclass
class EntityType:
    """A named row-kind; one output table."""
    name: str
    parent: Optional[str] = None
    parent_field: Optional[str] = None
    fields: Dict[str, FieldDescriptor] = field(default_factory=dict)
    last_row_id: int = 0

    def allocate_row_id(self) -> int:
        self.last_row_id += 1
        return self.last_row_id


class Structure:
    """
    Evolving schema of all entity types in one run.

    Single writer: the flattener mutates it document by document. It is
    created at run start and dropped after materialization.
    """

    def __init__(self):
        self.entity_types: Dict[str, EntityType] = {}
        # (parent type, field) -> child type name
        self._child_names: Dict[Tuple[str, str], str] = {}
        self.documents_observed = 0

    def ensure_entity(self, name: str) -> EntityType:
        """Get or create a root-level entity type."""
        entity = self.entity_types.get(name)
        if entity is None:
            entity = EntityType(name=name)
            self.entity_types[name] = entity
        return entity

    def get_entity(self, name: str) -> Optional[EntityType]:
        return self.entity_types.get(name)

    def allocate_row_id(self, entity: str) -> int:
        """Next synthetic row id for an entity type (1-based, never reused)."""
        return self.ensure_entity(entity).allocate_row_id()

    def get_child_type(self, entity: str, field_name: str) -> str:
        """
        Get or lazily create the child type name for a nested field.

        Names follow `{entity}_{field}`. If that name is already taken by a
        different (parent, field) pair, a numeric suffix is added so type
        names stay unique for the run.
        """
        key = (entity, field_name)
        existing = self._child_names.get(key)
        if existing is not None:
            return existing

        base = f"{entity}_{field_name}"
        name = base
        suffix = 2
        while name in self.entity_types:
            name = f"{base}_{suffix}"
            suffix += 1

        self.entity_types[name] = EntityType(
            name=name, parent=entity, parent_field=field_name)
        self._child_names[key] = name
        return name

    def observe_field(self, entity: str, field_name: str, json_type: JsonType) -> FieldDescriptor:
        """
        Register that `field_name` on `entity` holds a value of `json_type`.

        Args:
            entity: Entity type name
            field_name: Field (key) name
            json_type: Type of the observed value

        Returns:
            The field descriptor after merging
        """
        entity_type = self.ensure_entity(entity)
        descriptor = entity_type.fields.get(field_name)

        if descriptor is None:
            if json_type.is_nested:
                shape: FieldShape = ChildLink(
                    self.get_child_type(entity, field_name), json_type)
            else:
                shape = ScalarColumn(json_type)
            descriptor = FieldDescriptor(name=field_name, shape=shape)
            entity_type.fields[field_name] = descriptor
        else:
            child_type = None
            if json_type.is_nested and not descriptor.is_child_link:
                child_type = self.get_child_type(entity, field_name)
            descriptor.shape = merge_shape(descriptor.shape, json_type, child_type)

        descriptor.observations += 1
        return descriptor

    def is_child_link(self, entity: str, field_name: str) -> bool:
        entity_type = self.entity_types.get(entity)
        if entity_type is None:
            return False
        descriptor = entity_type.fields.get(field_name)
        return descriptor is not None and descriptor.is_child_link

    def column_base_type(self, entity: str, column: str) -> str:
        """
        Base data type of an output column for manifest metadata.

        Link columns hold synthetic row ids; unknown columns are strings.
        """
        entity_type = self.entity_types.get(entity)
        descriptor = entity_type.fields.get(column) if entity_type else None
        if descriptor is None:
            return "STRING"
        if isinstance(descriptor.shape, ChildLink):
            return "INTEGER"
        return BASE_TYPES.get(descriptor.shape.data_type, "STRING")

    def children_of(self, entity: str) -> List[str]:
        return [
            name for name, entity_type in self.entity_types.items()
            if entity_type.parent == entity
        ]

    def get_structure_hash(self) -> str:
        """
        Generate a hash representing the inferred structure.

        Returns:
            SHA-256 hash of sorted entity types, fields and shapes
        """
        schema_repr = {
            name: {
                field_name: _shape_repr(descriptor.shape)
                for field_name, descriptor in sorted(entity_type.fields.items())
            }
            for name, entity_type in sorted(self.entity_types.items())
        }

        schema_str = json.dumps(schema_repr, sort_keys=True)
        return hashlib.sha256(schema_str.encode()).hexdigest()

    def get_summary(self) -> Dict[str, Any]:
        """
        Get a summary of the inferred structure.

        Returns:
            Dictionary with entity types and their field shapes
        """
        return {
            "documents_observed": self.documents_observed,
            "entity_types": len(self.entity_types),
            "structure_hash": self.get_structure_hash(),
            "types": {
                name: {
                    "parent": entity_type.parent,
                    "children": self.children_of(name),
                    "rows": entity_type.last_row_id,
                    "fields": {
                        field_name: _shape_repr(descriptor.shape)
                        for field_name, descriptor in entity_type.fields.items()
                    },
                }
                for name, entity_type in self.entity_types.items()
            },
        }


def _shape_repr(shape: FieldShape) -> str:
    if isinstance(shape, ChildLink):
        return f"{shape.container.value}:{shape.child_type}"
    return shape.data_type.value
