# Test configuration

import csv
import json
import pytest
import os
import sys

# Add project root to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))


@pytest.fixture
def data_dir(tmp_path):
    """Host data directory with empty input folders."""
    (tmp_path / "in" / "files").mkdir(parents=True)
    (tmp_path / "in" / "tables").mkdir(parents=True)
    return tmp_path


@pytest.fixture
def write_config(data_dir):
    """Write config.json with the given parameters."""
    def _write(parameters):
        path = data_dir / "config.json"
        path.write_text(json.dumps({"parameters": parameters}), encoding="utf-8")
        return path
    return _write


@pytest.fixture
def write_input(data_dir):
    """Write an input document (dicts/lists are JSON-encoded)."""
    def _write(name, content, in_type="files"):
        path = data_dir / "in" / in_type / name
        path.parent.mkdir(parents=True, exist_ok=True)
        if not isinstance(content, str):
            content = json.dumps(content)
        path.write_text(content, encoding="utf-8")
        return path
    return _write


def _read_table(path):
    with open(path, newline="", encoding="utf-8") as f:
        rows = list(csv.reader(f))
    return rows[0], rows[1:]


def _read_manifest(path):
    with open(str(path) + ".manifest", encoding="utf-8") as f:
        return json.load(f)


@pytest.fixture
def read_table():
    """Read a written CSV table as (header, rows)."""
    return _read_table


@pytest.fixture
def read_manifest():
    """Read the manifest sidecar of a written CSV table."""
    return _read_manifest
