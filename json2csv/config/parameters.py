"""
Component configuration (config.json) models.

The host writes `{data_dir}/config.json` with a `parameters` object; this
module validates it and turns the optional explicit mapping into typed
mapping definitions.
"""

import json
from enum import Enum
from pathlib import Path
from typing import Annotated, Any, Dict, Literal, Optional, Union

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Discriminator,
    Field,
    RootModel,
    Tag,
    ValidationError,
    field_validator,
    model_validator,
)

from json2csv.common.exceptions import ConfigError, MappingError


class InputType(str, Enum):
    """Input subdirectory selector under `{data_dir}/in/`."""
    FILES = "files"
    TABLES = "tables"


class ColumnMapping(BaseModel):
    """
    Maps a JSON path to a single output column.

    Accepts the shorthand `"path": "column"` and the full form
    `{"type": "column", "mapping": {"destination": ..., "primaryKey": ...}}`.
    """

    type: Literal["column"] = "column"
    destination: str = Field(min_length=1)
    primary_key: bool = Field(
        default=False, validation_alias=AliasChoices("primaryKey", "primary_key"))

    @model_validator(mode="before")
    @classmethod
    def _expand_shorthand(cls, value: Any) -> Any:
        if isinstance(value, str):
            return {"destination": value}
        if isinstance(value, dict) and "mapping" in value:
            inner = value["mapping"]
            if not isinstance(inner, dict):
                raise ValueError("'mapping' must be an object")
            return {"type": value.get("type", "column"), **inner}
        return value


class ParentKey(BaseModel):
    """Link column added to child rows of a table mapping."""

    destination: Optional[str] = None
    primary_key: bool = Field(
        default=False, validation_alias=AliasChoices("primaryKey", "primary_key"))
    disable: bool = False


class TableMapping(BaseModel):
    """Maps a JSON path holding object(s) to a child table."""

    type: Literal["table"] = "table"
    destination: str = Field(min_length=1)
    table_mapping: Dict[str, "MappingEntry"] = Field(
        validation_alias=AliasChoices("tableMapping", "table_mapping"))
    parent_key: ParentKey = Field(
        default_factory=ParentKey,
        validation_alias=AliasChoices("parentKey", "parent_key"))
    incremental: Optional[bool] = None

    @field_validator("parent_key", mode="before")
    @classmethod
    def _none_parent_key(cls, value: Any) -> Any:
        return {} if value is None else value

    @field_validator("table_mapping")
    @classmethod
    def _valid_children(cls, value: Dict[str, Any]) -> Dict[str, Any]:
        if not value:
            raise ValueError("tableMapping must not be empty")
        _check_entries(value)
        return value


def _entry_type(value: Any) -> Optional[str]:
    if isinstance(value, str):
        return "column"
    if isinstance(value, dict):
        return value.get("type", "column")
    return getattr(value, "type", None)


MappingEntry = Annotated[
    Union[
        Annotated[ColumnMapping, Tag("column")],
        Annotated[TableMapping, Tag("table")],
    ],
    Discriminator(_entry_type),
]


def _check_entries(entries: Dict[str, Any]) -> None:
    """Paths must be non-empty and column destinations unique per level."""
    destinations = set()
    for path, entry in entries.items():
        if not path:
            raise ValueError("mapping path must not be empty")
        if isinstance(entry, ColumnMapping):
            if entry.destination in destinations:
                raise ValueError(f"duplicate destination column '{entry.destination}'")
            destinations.add(entry.destination)


class MappingDefinition(RootModel[Dict[str, MappingEntry]]):
    """Top-level mapping: dotted JSON path to column or table entry."""

    @model_validator(mode="after")
    def _valid_entries(self) -> "MappingDefinition":
        _check_entries(self.root)
        return self


TableMapping.model_rebuild()
MappingDefinition.model_rebuild()


def parse_mapping(raw: Any) -> Dict[str, MappingEntry]:
    """
    Parse a raw mapping definition.

    Keys are dotted JSON paths relative to the mapped object, in declared
    order.

    Raises:
        MappingError: If any entry is malformed or destinations collide
    """
    try:
        return MappingDefinition.model_validate(raw).root
    except ValidationError as e:
        raise MappingError(f"Invalid mapping: {e}") from e


class Parameters(BaseModel):
    """Run parameters (`parameters` object of config.json)."""

    model_config = ConfigDict(extra="ignore")

    mapping: Dict[str, Any] = Field(default_factory=dict)
    append_row_nr: bool = False
    incremental: bool = False
    root_node: str = ""
    add_file_name: bool = False
    in_type: InputType = InputType.FILES
    column_types: bool = False
    debug: bool = False

    @field_validator("mapping", mode="before")
    @classmethod
    def _none_mapping(cls, value: Any) -> Any:
        return {} if value is None else value

    @field_validator("root_node", mode="before")
    @classmethod
    def _normalize_root_node(cls, value: Any) -> Any:
        if value is None:
            return ""
        if isinstance(value, str):
            value = value.strip()
            if value and any(not segment for segment in value.split(".")):
                raise ValueError(f"root_node '{value}' contains an empty segment")
        return value

    def parsed_mapping(self) -> Dict[str, MappingEntry]:
        """Typed view of the explicit mapping (empty for inference mode)."""
        return parse_mapping(self.mapping) if self.mapping else {}


class ComponentConfig(BaseModel):
    """Top-level config.json document."""

    model_config = ConfigDict(extra="ignore")

    parameters: Parameters = Field(default_factory=Parameters)


def load_config(config_path: Union[str, Path]) -> ComponentConfig:
    """
    Load and validate config.json.

    Args:
        config_path: Path to the config file

    Returns:
        Validated configuration

    Raises:
        ConfigError: If the file is missing, not JSON, or invalid
    """
    path = Path(config_path)
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        raise ConfigError(f"Config file not found: {path}")
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigError(f"Failed to read config file {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise ConfigError(f"Failed to parse config file {path}: {e}") from e

    try:
        config = ComponentConfig.model_validate(raw)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e

    # Fail fast on a broken mapping, before any input is read
    config.parameters.parsed_mapping()
    return config
