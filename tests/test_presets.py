"""Unit tests for the starter schema presets."""

import pytest

from schema_core import (
    PRESETS,
    build_preset,
    derive_edges,
    get_preset,
    list_presets,
    validate_schema,
    validation_summary,
)
from backend.schema_manager import SchemaManager


@pytest.mark.parametrize("preset_id", sorted(PRESETS))
def test_every_preset_builds_cleanly(preset_id):
    """Test each preset parses, validates and comes laid out with FK indexes."""
    schema = build_preset(preset_id)
    assert schema.name == PRESETS[preset_id].name
    assert schema.tables
    assert validation_summary(validate_schema(schema))["errors"] == 0

    edges = derive_edges(schema.tables)
    assert edges
    assert all(t.position is not None for t in schema.tables)
    for table in schema.tables:
        fk_columns = [c.name for c in table.columns if c.reference is not None]
        for name in fk_columns:
            assert any(index.columns[0] == name for index in table.indexes)


def test_catalogue_entries():
    """Test the catalogue lists every preset without its DDL."""
    entries = [preset.to_dict() for preset in list_presets()]
    assert [e["id"] for e in entries] == list(PRESETS)
    assert all("sql" not in e for e in entries)
    assert get_preset("blog").category == "Social"
    assert get_preset("nope") is None


def test_presets_build_fresh_ids():
    """Test loading a preset twice gives independent schemas."""
    first = build_preset("blog")
    second = build_preset("blog")
    assert {t.id for t in first.tables}.isdisjoint({t.id for t in second.tables})


def test_ecommerce_composite_key():
    """Test the order lines table keeps its two-column primary key."""
    schema = build_preset("ecommerce")
    order_items = schema.find_table("order_items")
    assert [c.name for c in order_items.primary_key_columns] == ["order_id", "product_id"]
    product = order_items.find_column("product_id")
    assert product.reference.target_table == "products"
    assert product.reference.on_delete.value == "RESTRICT"


def test_unknown_preset():
    """Test an unknown preset id is rejected."""
    with pytest.raises(ValueError, match="Unknown preset"):
        build_preset("spaceship")


def test_manager_load_preset():
    """Test the manager swaps in a preset and notifies listeners."""
    manager = SchemaManager()
    calls = []
    manager.on_change(lambda: calls.append(True))

    schema = manager.load_preset("team-chat")
    assert manager.schema is schema
    assert manager.get_table(schema.tables[0].id) is schema.tables[0]
    assert calls == [True]

    with pytest.raises(ValueError):
        manager.load_preset("missing")
    assert manager.schema is schema
