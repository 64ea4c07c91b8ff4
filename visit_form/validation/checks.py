"""Individual validation checks.

Each check takes the activity, the current store, the formula evaluator
and an optional measurement index, and returns the findings it produced
(empty when the check passes). Checks never raise for bad data.
"""

import operator
from collections.abc import Callable
from typing import Any

from visit_form.formula.evaluator import FormulaEvaluator, mean_of, to_number
from visit_form.schema.models import ActivityRule, FieldSchema, FieldType, Severity
from visit_form.store.keys import ValueKey
from visit_form.store.values import FormValueStore, is_blank
from visit_form.validation.models import Finding

Check = Callable[[FieldSchema, FormValueStore, FormulaEvaluator, int | None], list[Finding]]

_COMPARISONS = {
    ">": operator.gt,
    ">=": operator.ge,
    "<": operator.lt,
    "<=": operator.le,
    "==": operator.eq,
    "!=": operator.ne,
}


def _builtin_rule(rule_id: str, name: str, message: str, value: Any = "") -> ActivityRule:
    return ActivityRule(
        id=rule_id,
        name=name,
        condition="equals",
        value=value,
        severity=Severity.ERROR,
        message=message,
        is_active=True,
    )


def _error(
    field: FieldSchema,
    rule_id: str,
    name: str,
    message: str,
    index: int | None = None,
    value: Any = "",
) -> Finding:
    return Finding(
        activity_id=field.id,
        activity_name=field.name,
        rule=_builtin_rule(rule_id, name, message, value),
        severity=Severity.ERROR,
        message=message,
        measurement_index=index,
    )


def _suffix(rule_id: str, index: int | None) -> str:
    return rule_id if index is None else f"{rule_id}_{index}"


def _datetime_parts_missing(
    field: FieldSchema,
    has_date: bool,
    has_time: bool,
) -> str | None:
    """Describe the missing parts of a date-time entry, or None if complete."""
    if field.includes_date and field.includes_time:
        return None if has_date and has_time else "a date and a time"
    if field.includes_date and not has_date:
        return "a date"
    if field.includes_time and not has_time:
        return "a time"
    return None


def check_required(
    field: FieldSchema,
    store: FormValueStore,
    evaluator: FormulaEvaluator,
    index: int | None = None,
) -> list[Finding]:
    """A required activity must hold a value.

    Date-time activities need each configured part (date and/or time).
    Multiplicity activities need at least one measurement, reported once on
    measurement 0; for date-time ones every started measurement must also
    be complete.
    """
    if field.allow_multiple and index is None:
        return []

    if field.field_type == FieldType.DATE_TIME:
        date_value = store.get(ValueKey.date(field.id, index))
        time_value = store.get(ValueKey.time(field.id, index))
        has_date = field.includes_date and not is_blank(date_value)
        has_time = field.includes_time and not is_blank(time_value)

        if field.allow_multiple and not (has_date or has_time):
            if index == 0 and not _any_datetime_measurement(field, store):
                return [_error(
                    field,
                    _suffix("required", index),
                    "Required field",
                    f'"{field.name}" requires at least one measurement.',
                    index,
                )]
            return []

        missing = _datetime_parts_missing(field, has_date, has_time)
        if missing is None:
            return []
        where = f" in measurement {index + 1}" if index is not None else ""
        return [_error(
            field,
            _suffix("required", index),
            "Required field",
            f'"{field.name}" requires {missing}{where}.',
            index,
        )]

    if field.allow_multiple:
        if store.has_value(field.id, index):
            return []
        if index == 0 and not store.has_value(field.id):
            return [_error(
                field,
                _suffix("required", index),
                "Required field",
                f'"{field.name}" requires at least one measurement.',
                index,
            )]
        return []

    if store.has_value(field.id):
        return []
    return [_error(field, "required", "Required field", f'"{field.name}" is required.')]


def _any_datetime_measurement(field: FieldSchema, store: FormValueStore) -> bool:
    for i in range(field.repeat_count):
        if field.includes_date and not is_blank(store.get(ValueKey.date(field.id, i))):
            return True
        if field.includes_time and not is_blank(store.get(ValueKey.time(field.id, i))):
            return True
    return False


def _needs_stamp(field: FieldSchema, store: FormValueStore, index: int | None, shared: bool) -> bool:
    """Whether a date/time must accompany the value at this scope.

    Only entered values demand a stamp. Shared stamps are checked in the
    global pass (index None), per-measurement ones in each measurement pass.
    """
    if not field.allow_multiple:
        return store.has_value(field.id)
    if index is None:
        return shared and store.has_value(field.id)
    return not shared and store.has_value(field.id, index)


def _stamp_location(field: FieldSchema, index: int | None, shared: bool, part: str) -> str:
    if field.allow_multiple and index is not None:
        return f" in measurement {index + 1}"
    if shared:
        return f" ({part} shared by all measurements)"
    return ""


def check_required_date(
    field: FieldSchema,
    store: FormValueStore,
    evaluator: FormulaEvaluator,
    index: int | None = None,
) -> list[Finding]:
    """A date must accompany an entered value."""
    if not _needs_stamp(field, store, index, field.shared_date):
        return []
    if not is_blank(store.measurement_date(field, index)):
        return []
    where = _stamp_location(field, index, field.shared_date, "date")
    return [_error(
        field,
        _suffix("required_date", index),
        "Date required",
        f'A date is required when a value is entered{where} in "{field.name}".',
        index,
    )]


def check_required_time(
    field: FieldSchema,
    store: FormValueStore,
    evaluator: FormulaEvaluator,
    index: int | None = None,
) -> list[Finding]:
    """A time must accompany an entered value."""
    if not _needs_stamp(field, store, index, field.shared_time):
        return []
    if not is_blank(store.measurement_time(field, index)):
        return []
    where = _stamp_location(field, index, field.shared_time, "time")
    return [_error(
        field,
        _suffix("required_time", index),
        "Time required",
        f'A time is required when a value is entered{where} in "{field.name}".',
        index,
    )]


def selected_values(value: Any) -> list[Any]:
    """Selected option values of a single- or multi-choice select."""
    if isinstance(value, list):
        return [item for item in value if not is_blank(item)]
    if is_blank(value):
        return []
    return [value]


def check_required_options(
    field: FieldSchema,
    store: FormValueStore,
    evaluator: FormulaEvaluator,
    index: int | None = None,
) -> list[Finding]:
    """Every option flagged required must be among the selected values."""
    selected = selected_values(store.get(ValueKey.value(field.id)))
    for option in field.options:
        if option.required and option.value not in selected:
            return [_error(
                field,
                f"required_{option.value}",
                "Required option not selected",
                f'Option "{option.label}" must be selected for the subject '
                f"to qualify for this protocol.",
                value=option.value,
            )]
    return []


def check_exclusive_options(
    field: FieldSchema,
    store: FormValueStore,
    evaluator: FormulaEvaluator,
    index: int | None = None,
) -> list[Finding]:
    """Selecting an option flagged exclusive disqualifies the subject."""
    selected = selected_values(store.get(ValueKey.value(field.id)))
    for option in field.options:
        if option.exclusive and option.value in selected:
            return [_error(
                field,
                f"exclusive_{option.value}",
                "Exclusive option selected",
                f'Option "{option.label}" is exclusive. A subject with this '
                f"condition does not qualify for this protocol.",
                value=option.value,
            )]
    return []


def numeric_value(field: FieldSchema, store: FormValueStore, index: int | None = None) -> float | None:
    """Number custom rules are checked against.

    The given measurement for a per-measurement pass, the mean of present
    measurements for the global pass, otherwise the value itself.
    """
    if field.allow_multiple:
        measurements = store.measurement_values(field.id)
        if index is not None:
            return to_number(measurements[index])
        return mean_of(measurements)
    return to_number(store.get(ValueKey.value(field.id)))


def _reference_number(value: Any) -> float | None:
    """Number a rule's reference value stands for.

    A blank reference reads as 0, as an unfilled numeric input does.
    """
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    if isinstance(value, str) and not value.strip():
        return 0.0
    return to_number(value)


def rule_violated(
    rule: ActivityRule,
    number: float,
    evaluator: FormulaEvaluator,
    store: FormValueStore,
) -> bool:
    """Whether a number breaks a custom rule.

    A formula rule whose threshold cannot be computed is inconclusive and
    reported as not violated.
    """
    if rule.condition == "min":
        return rule.min_value is not None and number < rule.min_value
    if rule.condition == "max":
        return rule.max_value is not None and number > rule.max_value
    if rule.condition == "range":
        if rule.min_value is None or rule.max_value is None:
            return False
        return number < rule.min_value or number > rule.max_value
    if rule.condition in ("equals", "not-equals"):
        if rule.value is None:
            return False
        reference = _reference_number(rule.value)
        # A non-numeric reference never equals a number
        equal = reference is not None and number == reference
        return not equal if rule.condition == "equals" else equal
    if rule.condition == "formula":
        if not rule.formula:
            return False
        threshold = evaluator.evaluate(rule.formula, store)
        if threshold is None:
            return False
        return not _COMPARISONS[rule.formula_operator](number, threshold)
    return False


def check_custom_rules(
    field: FieldSchema,
    store: FormValueStore,
    evaluator: FormulaEvaluator,
    index: int | None = None,
) -> list[Finding]:
    """Check every active custom rule; one finding per violated rule."""
    number = numeric_value(field, store, index)
    if number is None:
        return []

    findings: list[Finding] = []
    for rule in field.validation_rules:
        if not rule.is_active or not rule_violated(rule, number, evaluator, store):
            continue
        message = rule.message
        if field.allow_multiple and index is not None:
            message = f"{message} (measurement {index + 1})"
        findings.append(Finding(
            activity_id=field.id,
            activity_name=field.name,
            rule=rule.model_copy(update={"message": message}),
            severity=rule.severity,
            message=message,
            measurement_index=index,
            current_value=number,
        ))
    return findings


# Checks evaluated once per activity, never per measurement
FIELD_LEVEL_CHECKS: tuple[Check, ...] = (check_required_options, check_exclusive_options)
