"""Fixed-precision rendering of numeric values for output."""

import re
from typing import Any

from visit_form.formula.evaluator import to_fixed
from visit_form.schema.models import FieldSchema
from visit_form.store.values import is_blank

# Leading decimal number, the way a lenient number parser reads one
_LEADING_NUMBER = re.compile(r"^\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")


def parse_leading_number(value: Any) -> float | None:
    """Read the number a value starts with.

    Numbers pass through; strings are read up to the first character that
    cannot continue a decimal number ("12.5 kg" -> 12.5). Anything else,
    and strings that do not start with a number, give None.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if not isinstance(value, str):
        return None
    match = _LEADING_NUMBER.match(value)
    if match is None:
        return None
    return float(match.group(1))


def format_leaf(value: Any, decimal_places: int) -> Any:
    """Render a single value with a fixed number of decimals.

    Exact halves round away from zero (2.5 -> "3").
    Empty and non-numeric values are returned unchanged.
    """
    if is_blank(value):
        return value
    number = parse_leading_number(value)
    if number is None:
        return value
    return to_fixed(number, decimal_places)


def format_numeric_value(value: Any, field: FieldSchema) -> Any:
    """Apply an activity's decimal places to every numeric leaf of a value.

    Measurement lists are formatted entry by entry and compound records
    sub-value by sub-value. Activities that are not numeric, or that set
    no decimal places, are returned unchanged.
    """
    if not field.formats_numbers or is_blank(value):
        return value
    places = field.decimal_places
    if isinstance(value, list):
        return [format_leaf(item, places) for item in value]
    if isinstance(value, dict):
        return {name: format_leaf(item, places) for name, item in value.items()}
    return format_leaf(value, places)
