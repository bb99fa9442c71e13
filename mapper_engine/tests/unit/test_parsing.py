"""Unit tests for mapper_engine.parsing (placeholders, properties, document nodes)."""

from __future__ import annotations

import io
from pathlib import Path

import pytest

from mapper_engine.parsing.node import ConfigDocument, DocumentError
from mapper_engine.parsing.properties import parse_properties, resolve_placeholders

# ---------------------------------------------------------------------------
# resolve_placeholders
# ---------------------------------------------------------------------------


class TestResolvePlaceholders:
    def test_no_placeholder_returns_text(self):
        assert resolve_placeholders("plain", {"a": 1}) == "plain"

    def test_resolves_known_variable(self):
        assert resolve_placeholders("sqlite:///${db.file}", {"db.file": "app.db"}) == "sqlite:///app.db"

    def test_non_string_values_are_stringified(self):
        assert resolve_placeholders("${size}", {"size": 5}) == "5"

    def test_default_used_when_missing(self):
        assert resolve_placeholders("${user:admin}", {}) == "admin"

    def test_variable_wins_over_default(self):
        assert resolve_placeholders("${user:admin}", {"user": "dev"}) == "dev"

    def test_unresolved_left_verbatim(self):
        assert resolve_placeholders("x=${missing}", {}) == "x=${missing}"

    def test_none_variables(self):
        assert resolve_placeholders("${a:b}", None) == "b"

    def test_multiple_placeholders(self):
        assert resolve_placeholders("${a}-${b}", {"a": "1", "b": "2"}) == "1-2"


# ---------------------------------------------------------------------------
# parse_properties
# ---------------------------------------------------------------------------


class TestParseProperties:
    def test_equals_and_colon_separators(self):
        assert parse_properties("a=1\nb: 2\n") == {"a": "1", "b": "2"}

    def test_comments_and_blank_lines_skipped(self):
        text = "# comment\n! other\n\nkey = value\n"
        assert parse_properties(text) == {"key": "value"}

    def test_value_keeps_later_separators(self):
        assert parse_properties("url=sqlite:///tmp/x.db") == {"url": "sqlite:///tmp/x.db"}

    def test_line_continuation(self):
        assert parse_properties("list=a,\\\n  b,\\\n  c") == {"list": "a,b,c"}

    def test_odd_trailing_backslashes_continue(self):
        assert parse_properties("a=x\\\\\\\ny") == {"a": "x\\\\y"}

    def test_even_trailing_backslashes_end_line(self):
        assert parse_properties("a=x\\\\\nb=2") == {"a": "x\\\\", "b": "2"}

    def test_later_keys_override(self):
        assert parse_properties("k=1\nk=2") == {"k": "2"}

    def test_key_without_value(self):
        assert parse_properties("flag") == {"flag": ""}

    def test_fixture_file(self):
        text = (Path(__file__).parents[1] / "fixtures" / "docs" / "db.properties").read_text()
        props = parse_properties(text)
        assert props["db.url"] == "sqlite://"
        assert props["greeting"] == "hello from file"


# ---------------------------------------------------------------------------
# ConfigDocument / ConfigNode
# ---------------------------------------------------------------------------


class TestConfigDocumentLoad:
    def test_load_from_yaml_text(self):
        document = ConfigDocument.load("settings:\n  cacheEnabled: true\n")
        assert document.data == {"settings": {"cacheEnabled": True}}

    def test_load_from_mapping_copies(self):
        source = {"a": 1}
        document = ConfigDocument.load(source)
        document.data["b"] = 2
        assert "b" not in source

    def test_load_from_stream(self):
        document = ConfigDocument.load(io.StringIO("namespace: blog\n"))
        assert document.root().get_string_attribute("namespace") == "blog"

    def test_load_from_path(self, tmp_path: Path):
        path = tmp_path / "doc.yaml"
        path.write_text("namespace: x\n")
        document = ConfigDocument.load(path)
        assert document.name == str(path)

    def test_empty_document_is_empty_mapping(self):
        assert ConfigDocument.load("").data == {}

    def test_non_mapping_root_rejected(self):
        with pytest.raises(DocumentError, match="mapping"):
            ConfigDocument.load("- a\n- b\n")

    def test_invalid_yaml_rejected(self):
        with pytest.raises(DocumentError, match="Invalid YAML"):
            ConfigDocument.load("a: [unclosed")


class TestConfigNode:
    def _root(self, data, variables=None):
        return ConfigDocument(data, variables).root()

    def test_eval_node_missing_returns_none(self):
        assert self._root({}).eval_node("settings") is None

    def test_eval_node_null_section_returns_none(self):
        assert self._root({"settings": None}).eval_node("settings") is None

    def test_string_attribute_resolves_placeholders(self):
        root = self._root({"url": "${host}/db"}, {"host": "localhost"})
        assert root.get_string_attribute("url") == "localhost/db"

    def test_string_attribute_renders_booleans(self):
        root = self._root({"closeConnection": False})
        assert root.get_string_attribute("closeConnection") == "false"

    def test_string_attribute_default(self):
        assert self._root({}).get_string_attribute("x", "fallback") == "fallback"

    def test_string_attribute_rejects_nested(self):
        with pytest.raises(DocumentError, match="scalar"):
            self._root({"x": {"y": 1}}).get_string_attribute("x")

    def test_children_named_by_section(self):
        root = self._root({"mappers": [{"resource": "a.yaml"}, {"package": "app.mappers"}]})
        children = root.get_children("mappers")
        assert [child.name for child in children] == ["mapper", "package"]

    def test_children_of_missing_section(self):
        assert self._root({}).get_children("mappers") == []

    def test_children_must_be_list(self):
        with pytest.raises(DocumentError, match="must be a list"):
            self._root({"mappers": {"resource": "a"}}).get_children("mappers")

    def test_children_as_properties(self):
        root = self._root({"properties": {"url": "${u}", "size": 3}}, {"u": "sqlite://"})
        assert root.get_children_as_properties() == {"url": "sqlite://", "size": 3}

    def test_children_as_properties_absent(self):
        assert self._root({"type": "POOLED"}).get_children_as_properties() == {}

    def test_as_properties(self):
        root = self._root({"settings": {"logPrefix": "${p}", "cacheEnabled": True}}, {"p": "sql."})
        assert root.eval_node("settings").as_properties() == {"logPrefix": "sql.", "cacheEnabled": True}

    def test_variables_set_later_are_visible(self):
        document = ConfigDocument({"url": "${db}"})
        node = document.root()
        document.set_variables({"db": "sqlite://"})
        assert node.get_string_attribute("url") == "sqlite://"
