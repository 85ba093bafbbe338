"""
Integration tests for full directory conversion.
"""

import json
import logging

import pytest

from json2csv.common.exceptions import (
    FileAccessError,
    MalformedInputError,
    PathNotFoundError,
    ReservedColumnError,
)
from json2csv.config.parameters import Parameters
from json2csv.processor import Processor, read_json


def output_files(data_dir):
    tables = data_dir / "out" / "tables"
    if not tables.exists():
        return []
    return sorted(p.name for p in tables.iterdir())


class TestReadJson:
    """Tests for input decoding."""

    def test_utf8_with_bom(self, tmp_path):
        path = tmp_path / "a.json"
        path.write_bytes(b'\xef\xbb\xbf{"a": "\xc4\x8d"}')

        assert read_json(path) == {"a": "č"}

    def test_malformed_json(self, tmp_path):
        path = tmp_path / "a.json"
        path.write_text("{oops")

        with pytest.raises(MalformedInputError) as exc_info:
            read_json(path)
        assert exc_info.value.file_name == "a.json"

    def test_non_standard_constants_rejected(self, tmp_path):
        path = tmp_path / "a.json"
        path.write_text('{"a": NaN}')

        with pytest.raises(MalformedInputError):
            read_json(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileAccessError):
            read_json(tmp_path / "missing.json")


class TestInference:
    """Tests for conversion without a mapping."""

    def test_typed_wrapper_document(self, data_dir, write_input, read_table, read_manifest):
        write_input("order.json", {"order": {"id": "1", "item-list": [{"sku": "A"}, {"sku": "B"}]}})

        summary = Processor(Parameters()).convert(data_dir)

        assert summary["mode"] == "inference"
        assert summary["documents"] == 1
        assert summary["rows"] == 3
        assert summary["tables"] == ["order.csv", "order_item-list.csv"]
        assert "structure_hash" in summary

        tables = data_dir / "out" / "tables"
        assert read_table(tables / "order.csv") == (["id", "item-list"], [["1", "1"]])
        assert read_table(tables / "order_item-list.csv") == (
            ["sku", "JSON_parentId"],
            [["A", "1"], ["B", "1"]],
        )
        assert read_manifest(tables / "order_item-list.csv") == {
            "incremental": False,
            "primary_key": ["JSON_parentId"],
        }

    def test_object_and_array_across_files(self, data_dir, write_input, read_table):
        write_input("1.json", {"order": {"id": "1", "price": {"currency": "CZK", "amount": "100"}}})
        write_input("2.json", {"order": {"id": "2", "price": [{"currency": "GBP", "amount": "100"}]}})

        Processor(Parameters()).convert(data_dir)

        tables = data_dir / "out" / "tables"
        header, rows = read_table(tables / "order.csv")
        assert header == ["id", "price"]
        assert rows == [["1", "1"], ["2", "2"]]
        assert read_table(tables / "order_price.csv") == (
            ["currency", "amount", "JSON_parentId"],
            [["CZK", "100", "1"], ["GBP", "100", "2"]],
        )

    def test_files_processed_in_name_order(self, data_dir, write_input, read_table, caplog):
        write_input("b.json", [{"id": "b"}])
        write_input("a.json", [{"id": "a"}])

        with caplog.at_level(logging.INFO, logger="json2csv"):
            Processor(Parameters()).convert(data_dir)

        _, rows = read_table(data_dir / "out" / "tables" / "root.csv")
        assert rows == [["a"], ["b"]]
        parsing = [m for m in caplog.messages if m.startswith("Parsing file")]
        assert parsing == ["Parsing file a.json", "Parsing file b.json"]
        assert "Writing result file: root.csv" in caplog.messages

    def test_add_file_name(self, data_dir, write_input, read_table):
        write_input("a.json", [{"id": 1, "items": [{"sku": "A"}]}])
        write_input("b.json", [{"id": 2}])

        Processor(Parameters(add_file_name=True)).convert(data_dir)

        tables = data_dir / "out" / "tables"
        header, rows = read_table(tables / "root.csv")
        assert header == ["id", "items", "keboola_file_name_col"]
        assert rows == [["1", "1", "a.json"], ["2", "", "b.json"]]
        header, _ = read_table(tables / "root_items.csv")
        assert "keboola_file_name_col" not in header

    def test_append_row_nr(self, data_dir, write_input, read_table):
        write_input("a.json", [{"id": 1}, {"id": 2}])
        write_input("b.json", [{"id": 3}])

        Processor(Parameters(append_row_nr=True)).convert(data_dir)

        _, rows = read_table(data_dir / "out" / "tables" / "root.csv")
        assert rows == [["1", "1"], ["2", "1"], ["3", "2"]]

    def test_root_node(self, data_dir, write_input, read_table):
        write_input("a.json", {"meta": {"page": 1}, "data": {"root_el": [{"id": 1}, {"id": 2}]}})

        Processor(Parameters(root_node="data.root_el")).convert(data_dir)

        assert output_files(data_dir) == ["root_el.csv", "root_el.csv.manifest"]
        assert read_table(data_dir / "out" / "tables" / "root_el.csv") == (
            ["id"], [["1"], ["2"]])

    def test_missing_root_node_aborts(self, data_dir, write_input):
        write_input("a.json", {"data": {"root_el": [{"id": 1}]}})
        write_input("b.json", {"data": {}})

        with pytest.raises(PathNotFoundError):
            Processor(Parameters(root_node="data.root_el")).convert(data_dir)

        assert output_files(data_dir) == []

    def test_null_root_emits_nothing(self, data_dir, write_input):
        write_input("a.json", {"data": None})

        summary = Processor(Parameters(root_node="data")).convert(data_dir)

        assert summary["rows"] == 0
        assert output_files(data_dir) == []

    def test_malformed_input_aborts(self, data_dir, write_input):
        write_input("a.json", [{"id": 1}])
        write_input("b.json", "{broken")

        with pytest.raises(MalformedInputError):
            Processor(Parameters()).convert(data_dir)

        assert output_files(data_dir) == []

    def test_generated_column_in_source_aborts(self, data_dir, write_input):
        write_input("a.json", [{"id": 1}])
        write_input("b.json", [{"id": 2, "items": [{"JSON_parentId": "source-value", "sku": "A"}]}])

        with pytest.raises(ReservedColumnError) as exc_info:
            Processor(Parameters()).convert(data_dir)

        assert exc_info.value.table == "root_items"
        assert output_files(data_dir) == []

    def test_clashing_table_names_keep_both_files(self, data_dir, write_input, read_table):
        write_input("1.json", {"a/b": {"x": 1}})
        write_input("2.json", {"a_b": {"y": 2}})

        summary = Processor(Parameters()).convert(data_dir)

        tables = data_dir / "out" / "tables"
        assert summary["tables"] == ["a_b.csv", "a_b_2.csv"]
        assert read_table(tables / "a_b.csv") == (["x"], [["1"]])
        assert read_table(tables / "a_b_2.csv") == (["y"], [["2"]])

    def test_structure_logged_at_debug(self, data_dir, write_input, caplog):
        write_input("a.json", [{"id": 1, "items": [{"sku": "A"}]}])

        with caplog.at_level(logging.DEBUG, logger="json2csv"):
            Processor(Parameters()).convert(data_dir)

        record = next(r for r in caplog.records if r.getMessage() == "Inferred structure")
        assert record.extra_fields["types"]["root"]["children"] == ["root_items"]

    def test_empty_input_directory(self, data_dir):
        summary = Processor(Parameters()).convert(data_dir)

        assert summary["documents"] == 0
        assert summary["tables"] == []
        assert output_files(data_dir) == []

    def test_missing_input_directory(self, tmp_path):
        with pytest.raises(FileAccessError):
            Processor(Parameters()).convert(tmp_path)

    def test_input_manifests_ignored(self, data_dir, write_input, read_table):
        write_input("a.json", [{"id": 1}])
        write_input("a.json.manifest", {"is_public": False})

        summary = Processor(Parameters()).convert(data_dir)

        assert summary["documents"] == 1
        assert read_table(data_dir / "out" / "tables" / "root.csv") == (["id"], [["1"]])

    def test_tables_input_type(self, data_dir, write_input, read_table):
        write_input("export.json", [{"id": 1}], in_type="tables")
        write_input("ignored.json", [{"other": 1}])

        Processor(Parameters(in_type="tables")).convert(data_dir)

        assert read_table(data_dir / "out" / "tables" / "root.csv") == (["id"], [["1"]])

    def test_incremental_and_column_types(self, data_dir, write_input, read_manifest):
        write_input("a.json", [{"id": 1, "name": "x"}])

        Processor(Parameters(incremental=True, column_types=True)).convert(data_dir)

        manifest = read_manifest(data_dir / "out" / "tables" / "root.csv")
        assert manifest["incremental"] is True
        assert manifest["columns"] == ["id", "name"]
        assert manifest["column_metadata"]["id"] == [
            {"key": "KBC.datatype.basetype", "value": "INTEGER"}]

    def test_runs_are_deterministic(self, tmp_path):
        documents = {
            "1.json": {"order": {"id": 1, "tags": "x", "items": [{"sku": "A"}]}},
            "2.json": {"order": {"id": 2, "tags": {"k": "v"}, "items": {"sku": "B", "qty": 3}}},
            "3.json": {"order": {"id": 3, "tags": None, "items": []}},
        }
        outputs = []
        for run in ("first", "second"):
            data_dir = tmp_path / run
            (data_dir / "in" / "files").mkdir(parents=True)
            for name, document in documents.items():
                (data_dir / "in" / "files" / name).write_text(json.dumps(document))

            Processor(Parameters()).convert(data_dir)

            tables = data_dir / "out" / "tables"
            outputs.append({p.name: p.read_bytes() for p in sorted(tables.iterdir())})

        assert outputs[0] == outputs[1]
        assert set(outputs[0]) == {
            "order.csv", "order.csv.manifest",
            "order_items.csv", "order_items.csv.manifest",
            "order_tags.csv", "order_tags.csv.manifest",
        }


class TestMapping:
    """Tests for conversion with an explicit mapping."""

    MAPPING = {
        "order_id": {
            "type": "column",
            "mapping": {"destination": "order_id", "primaryKey": True},
        },
        "items": {
            "type": "table",
            "destination": "order_items",
            "parentKey": {"destination": "order_id", "primaryKey": True},
            "tableMapping": {
                "item_id": {
                    "type": "column",
                    "mapping": {"destination": "item_id", "primaryKey": True},
                },
                "quantity": "quantity",
            },
        },
    }

    def test_mapping_bypasses_inference(self, data_dir, write_input, read_table, read_manifest):
        write_input("a.json", {"data": [
            {"order_id": 1, "note": {"x": 1}, "items": [
                {"item_id": "A", "quantity": 10}, {"item_id": "B", "quantity": 20}]},
            {"order_id": 2, "items": [{"item_id": "C", "quantity": 30}]},
        ]})

        summary = Processor(Parameters(root_node="data", mapping=self.MAPPING)).convert(data_dir)

        assert summary["mode"] == "mapping"
        assert "structure_hash" not in summary
        tables = data_dir / "out" / "tables"
        assert output_files(data_dir) == [
            "data.csv", "data.csv.manifest",
            "order_items.csv", "order_items.csv.manifest",
        ]
        assert read_table(tables / "data.csv") == (["order_id"], [["1"], ["2"]])
        assert read_table(tables / "order_items.csv") == (
            ["item_id", "quantity", "order_id"],
            [["A", "10", "1"], ["B", "20", "1"], ["C", "30", "2"]],
        )
        assert read_manifest(tables / "order_items.csv")["primary_key"] == ["item_id", "order_id"]
        assert read_manifest(tables / "data.csv")["primary_key"] == ["order_id"]
