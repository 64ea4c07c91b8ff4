"""Validation of entered values against activity rules."""

from visit_form.validation.checks import (
    check_custom_rules,
    check_exclusive_options,
    check_required,
    check_required_date,
    check_required_options,
    check_required_time,
    numeric_value,
    rule_violated,
)
from visit_form.validation.models import Finding, ValidationMode, ValidationReport
from visit_form.validation.validator import Validator

__all__ = [
    "Finding",
    "ValidationMode",
    "ValidationReport",
    "Validator",
    "check_custom_rules",
    "check_exclusive_options",
    "check_required",
    "check_required_date",
    "check_required_options",
    "check_required_time",
    "numeric_value",
    "rule_violated",
]
