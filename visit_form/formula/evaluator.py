"""Formula evaluation against the current form values.

Formulas reference activities by name, e.g. "peso / (altura * altura)".
Names are replaced by each activity's representative number, then the
remaining text must be a plain arithmetic expression. A formula that
cannot be computed yields None; missing data during entry is expected,
so failure is never raised to the caller.
"""

import logging
import math
import re
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from pydantic import BaseModel

from visit_form.formula.parser import (
    FormulaEvaluationError,
    FormulaSyntaxError,
    evaluate_node,
    parse_formula,
)
from visit_form.schema.catalog import FieldCatalog, normalize_name
from visit_form.schema.models import FieldSchema
from visit_form.store.keys import ValueKey
from visit_form.store.values import FormValueStore, is_blank

logger = logging.getLogger(__name__)

# Gate applied after substitution; the parser enforces the real grammar
_ALLOWED_CHARS = re.compile(r"^[\d\s+\-*/.()]+$")
_IDENTIFIER = re.compile(r"[^\W\d_][\w]*", re.UNICODE)
_WHITESPACE = re.compile(r"\s+")


class FormulaResult(BaseModel):
    """Outcome of computing a formula."""

    formula: str
    value: float | None = None
    expression: str | None = None  # Formula after variable substitution
    reason: str | None = None  # Why no value was produced

    @property
    def ok(self) -> bool:
        return self.value is not None


def to_number(value: Any) -> float | None:
    """Parse a raw value as a finite number, or None."""
    if isinstance(value, bool) or is_blank(value):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


def to_fixed(number: float, decimal_places: int) -> str:
    """Render a number with a fixed number of decimals, halves rounded up.

    Rounds the exact binary value away from zero on a tie, so 2.5 -> "3"
    and 36.25 -> "36.3", while 1.005 (stored as 1.00499...) -> "1.00".
    """
    if not math.isfinite(number):
        return str(number)
    quantum = Decimal(1).scaleb(-decimal_places)
    return format(Decimal(number).quantize(quantum, rounding=ROUND_HALF_UP), "f")


def mean_of(values: list[Any]) -> float | None:
    """Arithmetic mean of the values that parse as numbers."""
    numbers = [number for number in (to_number(v) for v in values) if number is not None]
    if not numbers:
        return None
    return sum(numbers) / len(numbers)


def representative_value(field: FieldSchema, store: FormValueStore) -> float | None:
    """Single number standing for an activity's current value.

    The mean of present measurements for a multiplicity activity, otherwise
    the value itself parsed as a number.
    """
    if field.allow_multiple:
        return mean_of(store.measurement_values(field.id))
    return to_number(store.get(ValueKey.value(field.id)))


def _format_number(number: float) -> str:
    text = repr(number)
    if "e" in text or "E" in text:
        text = format(Decimal(text), "f")
    return text


class FormulaEvaluator:
    """Resolves formulas over the numeric activities of a catalog."""

    def __init__(self, catalog: FieldCatalog) -> None:
        self.catalog = catalog

    def build_context(self, store: FormValueStore) -> dict[str, float]:
        """Variable name -> number for every numeric activity with a value.

        Each activity is registered under its lower-cased trimmed name and
        under the same name with whitespace removed.
        """
        context: dict[str, float] = {}
        for field in self.catalog.formula_inputs():
            number = representative_value(field, store)
            if number is None:
                continue
            name = normalize_name(field.name)
            context[name] = number
            compact = _WHITESPACE.sub("", name)
            if compact != name:
                context[compact] = number
        return context

    def substitute(self, formula: str, context: dict[str, float]) -> str:
        """Replace variable names with numbers, longest name first."""
        expression = formula.lower().strip()
        for name in sorted(context, key=len, reverse=True):
            pattern = re.compile(rf"\b{re.escape(name)}\b", re.IGNORECASE)
            replacement = _format_number(context[name])
            expression = pattern.sub(lambda _match: replacement, expression)
        return expression

    def compute(self, formula: str | None, store: FormValueStore) -> FormulaResult:
        """Compute a formula, recording why it failed if it did."""
        if not formula or not formula.strip():
            return FormulaResult(formula=formula or "", reason="Formula is empty")

        expression = self.substitute(formula, self.build_context(store))
        if not _ALLOWED_CHARS.match(expression):
            return FormulaResult(
                formula=formula,
                expression=expression,
                reason="Unresolved variables or disallowed characters",
            )

        try:
            value = evaluate_node(parse_formula(expression))
        except (FormulaSyntaxError, FormulaEvaluationError) as e:
            return FormulaResult(formula=formula, expression=expression, reason=str(e))

        if not math.isfinite(value):
            return FormulaResult(formula=formula, expression=expression, reason="Result is not finite")
        return FormulaResult(formula=formula, value=value, expression=expression)

    def evaluate(self, formula: str | None, store: FormValueStore) -> float | None:
        """Compute a formula, returning None when it cannot be computed."""
        result = self.compute(formula, store)
        if result.value is None:
            logger.debug("Formula %r not computed: %s", formula, result.reason)
        return result.value

    def recompute(self, store: FormValueStore) -> FormValueStore:
        """Return a store with every calculated activity re-derived.

        A single pass in schema order. Calculated activities are not formula
        inputs, so one calculated activity never sees another's result. A
        formula that cannot be computed leaves its activity unset (None).
        """
        for field in self.catalog.calculated_fields():
            value = self.evaluate(field.calculation_formula, store)
            if value is not None and field.decimal_places is not None:
                value = float(to_fixed(value, field.decimal_places))
            key = ValueKey.value(field.id)
            current = store.get(key)
            if value is None and is_blank(current):
                continue
            if current != value:
                store = store.set(key, value)
        return store

    def unresolved_names(self, formula: str) -> list[str]:
        """Identifiers in a formula that no formula input provides.

        Every known variable is substituted with 0 first, so multi-word
        names resolve the same way they do during evaluation.
        """
        context = {}
        for field in self.catalog.formula_inputs():
            name = normalize_name(field.name)
            context[name] = 0.0
            context[_WHITESPACE.sub("", name)] = 0.0
        expression = self.substitute(formula, context)
        unresolved: list[str] = []
        for name in _IDENTIFIER.findall(expression):
            if name not in unresolved:
                unresolved.append(name)
        return unresolved
