"""Value store for the data entered in one visit instance."""

from visit_form.store.keys import ValueKey, ValueKind
from visit_form.store.times import (
    add_minutes_to_time,
    format_time_input,
    is_valid_time,
    normalize_time,
)
from visit_form.store.values import FormValueStore, is_blank

__all__ = [
    "FormValueStore",
    "ValueKey",
    "ValueKind",
    "add_minutes_to_time",
    "format_time_input",
    "is_blank",
    "is_valid_time",
    "normalize_time",
]
