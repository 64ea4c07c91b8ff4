"""Tests for conditional visibility."""

import pytest

from conftest import make_field
from visit_form.schema import FieldCatalog
from visit_form.store import FormValueStore
from visit_form.visibility import VisibilityResolver, as_bool


@pytest.fixture
def catalog() -> FieldCatalog:
    return FieldCatalog([
        make_field(
            "sexo",
            "single-select",
            options=[{"value": "F", "label": "Femenino"}, {"value": "M", "label": "Masculino"}],
        ),
        make_field("embarazo", "boolean", conditionalConfig={"dependsOn": "sexo", "showWhen": "F"}),
        make_field("semanas", conditionalConfig={"dependsOn": "embarazo", "showWhen": "true"}),
        make_field("fumador", "boolean"),
        make_field("cigarrillos", conditionalConfig={"dependsOn": "fumador", "showWhen": True}),
        make_field(
            "sintomas",
            "single-select",
            selectMultiple=True,
            options=[{"value": "tos", "label": "Tos"}, {"value": "fiebre", "label": "Fiebre"}],
        ),
        make_field("temperatura", conditionalConfig={"dependsOn": "sintomas", "showWhen": "fiebre"}),
        make_field("dosis", "short-text", conditionalConfig={"dependsOn": "nivel", "showWhen": 2}),
        make_field("nivel"),
    ])


class TestAsBool:
    """Tests for boolean coercion."""

    @pytest.mark.parametrize(
        ("value", "expected"),
        [(True, True), (False, False), ("true", True), ("FALSE", False), ("1", True), (0, False), ("si", None), (None, None)],
    )
    def test_as_bool(self, value: object, expected: bool | None) -> None:
        assert as_bool(value) is expected


class TestVisibilityResolver:
    """Tests for VisibilityResolver."""

    def test_unconditional_always_visible(self, catalog: FieldCatalog) -> None:
        resolver = VisibilityResolver(catalog)
        assert resolver.is_visible(catalog.require("sexo"), FormValueStore(catalog))

    def test_hidden_while_dependency_empty(self, catalog: FieldCatalog) -> None:
        resolver = VisibilityResolver(catalog)
        assert not resolver.is_visible(catalog.require("embarazo"), FormValueStore(catalog))

    def test_string_equality(self, catalog: FieldCatalog) -> None:
        resolver = VisibilityResolver(catalog)
        embarazo = catalog.require("embarazo")

        assert resolver.is_visible(embarazo, FormValueStore(catalog).set("sexo", "F"))
        assert not resolver.is_visible(embarazo, FormValueStore(catalog).set("sexo", "M"))

    def test_boolean_dependency_coerces_both_sides(self, catalog: FieldCatalog) -> None:
        """Test that boolean dependencies match 'true' strings and real booleans."""
        resolver = VisibilityResolver(catalog)
        store = FormValueStore(catalog).set("embarazo", True).set("fumador", "true")

        assert resolver.is_visible(catalog.require("semanas"), store)
        assert resolver.is_visible(catalog.require("cigarrillos"), store)

        store = store.set("fumador", False)
        assert not resolver.is_visible(catalog.require("cigarrillos"), store)

    def test_multi_select_membership(self, catalog: FieldCatalog) -> None:
        resolver = VisibilityResolver(catalog)
        temperatura = catalog.require("temperatura")

        assert resolver.is_visible(temperatura, FormValueStore(catalog).set("sintomas", ["tos", "fiebre"]))
        assert not resolver.is_visible(temperatura, FormValueStore(catalog).set("sintomas", ["tos"]))

    def test_numeric_show_when_compares_as_text(self, catalog: FieldCatalog) -> None:
        resolver = VisibilityResolver(catalog)
        dosis = catalog.require("dosis")

        assert resolver.is_visible(dosis, FormValueStore(catalog).set("nivel", "2"))
        assert resolver.is_visible(dosis, FormValueStore(catalog).set("nivel", 2.0))
        assert not resolver.is_visible(dosis, FormValueStore(catalog).set("nivel", 3))

    def test_hidden_values_are_kept(self, catalog: FieldCatalog) -> None:
        """Test that hiding an activity does not discard its value."""
        resolver = VisibilityResolver(catalog)
        store = FormValueStore(catalog).set("sexo", "F").set("embarazo", True)

        store = store.set("sexo", "M")
        assert "embarazo" in resolver.hidden_ids(store)
        assert store.get("embarazo") is True

        store = store.set("sexo", "F")
        assert "embarazo" not in resolver.hidden_ids(store)
        assert store.get("embarazo") is True

    def test_visible_fields_in_order(self, catalog: FieldCatalog) -> None:
        resolver = VisibilityResolver(catalog)
        store = FormValueStore(catalog).set("sexo", "F")

        visible = [f.id for f in resolver.visible_fields(store)]
        assert visible == ["sexo", "embarazo", "fumador", "sintomas", "nivel"]
