"""Conditional visibility of activities.

An activity with a conditional config is shown only while the activity it
depends on holds the configured value. Hidden activities keep their stored
values; they are only left out of validation and of the output record.
"""

from typing import Any

from visit_form.schema.catalog import FieldCatalog
from visit_form.schema.models import FieldSchema, FieldType
from visit_form.store.keys import ValueKey
from visit_form.store.values import FormValueStore, is_blank

_TRUE_STRINGS = {"true", "1"}
_FALSE_STRINGS = {"false", "0"}


def as_bool(value: Any) -> bool | None:
    """Coerce a stored or configured value to a boolean, if it is one."""
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUE_STRINGS:
            return True
        if lowered in _FALSE_STRINGS:
            return False
    return None


def _as_text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


class VisibilityResolver:
    """Decides which activities of a catalog are currently shown."""

    def __init__(self, catalog: FieldCatalog) -> None:
        self.catalog = catalog

    def is_visible(self, field: FieldSchema, store: FormValueStore) -> bool:
        """Whether an activity is shown for the current values."""
        config = field.conditional_config
        if config is None:
            return True

        current = store.get(ValueKey.value(config.depends_on))
        if is_blank(current):
            return False

        dependency = self.catalog.get(config.depends_on)
        if dependency is not None and dependency.field_type == FieldType.BOOLEAN:
            expected = as_bool(config.show_when)
            return expected is not None and as_bool(current) == expected

        expected_text = _as_text(config.show_when)
        if isinstance(current, list):
            return expected_text in [_as_text(item) for item in current if not is_blank(item)]
        return _as_text(current) == expected_text

    def visible_fields(self, store: FormValueStore) -> list[FieldSchema]:
        """Visible activities in schema order."""
        return [field for field in self.catalog if self.is_visible(field, store)]

    def hidden_ids(self, store: FormValueStore) -> set[str]:
        """Ids of activities currently hidden."""
        return {field.id for field in self.catalog if not self.is_visible(field, store)}
