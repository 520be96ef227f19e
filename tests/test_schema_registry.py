"""Tests for the node-type schema registry."""

import pytest

from flowcore.graph.node import NodeCategory
from flowcore.graph.schema_registry import (
    NODE_LIBRARY,
    SchemaCategory,
    alternative_type,
    default_config_for,
    get_schema,
    is_terminal,
    node_category_for,
    placeholder_value,
    schemas_by_category,
    switch_case_values,
)


def test_get_schema_by_type_and_category():
    schema = get_schema("if_else")
    assert schema is not None
    assert schema.category == SchemaCategory.LOGIC
    assert schema.required_properties == ("condition",)

    assert get_schema("if_else", SchemaCategory.ACTION) is None
    assert get_schema("no_such_type") is None


def test_schemas_by_category_only_returns_that_category():
    triggers = schemas_by_category(SchemaCategory.TRIGGERS)
    assert "manual_trigger" in {s.type for s in triggers}
    assert all(s.category == SchemaCategory.TRIGGERS for s in triggers)


@pytest.mark.parametrize(
    "schema_category,expected",
    [
        (SchemaCategory.TRIGGERS, NodeCategory.TRIGGER),
        (SchemaCategory.SOURCE, NodeCategory.DATA),
        (SchemaCategory.LOGIC, NodeCategory.LOGIC),
        (SchemaCategory.ACTION, NodeCategory.OUTPUT),
        (SchemaCategory.DESTINATION, NodeCategory.OUTPUT),
        (SchemaCategory.AI, NodeCategory.AI),
    ],
)
def test_node_category_for(schema_category, expected):
    assert node_category_for(schema_category) == expected


def test_is_terminal():
    assert is_terminal("log_output", None)
    assert is_terminal("http_post", NodeCategory.LOGIC)
    assert is_terminal("anything", NodeCategory.OUTPUT)
    assert not is_terminal("if_else", NodeCategory.LOGIC)


def test_alternative_type_only_names_known_types():
    assert alternative_type("schedule_cron") == "schedule"
    assert alternative_type("delay") == "wait"
    assert alternative_type("code") == "javascript"
    assert alternative_type("totally_unknown") is None


def test_placeholder_values_are_fresh_copies():
    assert placeholder_value("method") == "GET"
    assert placeholder_value("duration") == 1000
    assert placeholder_value("unmapped_key") == ""

    mappings = placeholder_value("fieldMappings")
    mappings["x"] = 1
    assert placeholder_value("fieldMappings") == {}


def test_default_config_is_a_copy():
    config = default_config_for("switch")
    config["cases"].append({"value": "a"})
    assert default_config_for("switch")["cases"] == []
    assert default_config_for("no_such_type") == {}


def test_switch_case_values_accepts_json_and_bare_values():
    assert switch_case_values({"cases": '[{"value": "a"}, {"value": 2}]'}) == ["a", "2"]
    assert switch_case_values({"cases": ["x", True]}) == ["x", "true"]
    assert switch_case_values({"cases": "not json"}) == []


def test_library_types_are_registered_once_per_category():
    seen = [(s.type, s.category) for s in NODE_LIBRARY]
    assert len(seen) == len(set(seen))
