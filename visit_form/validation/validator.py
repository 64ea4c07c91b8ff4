"""Validator: runs the check pipeline over every visible activity."""

import logging

from visit_form.formula.evaluator import FormulaEvaluator
from visit_form.schema.catalog import FieldCatalog
from visit_form.schema.models import FieldSchema, FieldType
from visit_form.store.values import FormValueStore
from visit_form.validation.checks import (
    Check,
    FIELD_LEVEL_CHECKS,
    check_custom_rules,
    check_exclusive_options,
    check_required,
    check_required_date,
    check_required_options,
    check_required_time,
)
from visit_form.validation.models import Finding, ValidationMode, ValidationReport
from visit_form.visibility.resolver import VisibilityResolver

logger = logging.getLogger(__name__)


class Validator:
    """Validates a value store against the activities of a catalog.

    For each visible activity an ordered pipeline is built from the checks
    its configuration calls for:
    1. required
    2. required date
    3. required time
    4. required options
    5. exclusive options
    6. custom rules

    Every check runs; findings are collected, never short-circuited.
    """

    def __init__(
        self,
        catalog: FieldCatalog,
        evaluator: FormulaEvaluator | None = None,
        resolver: VisibilityResolver | None = None,
    ) -> None:
        self.catalog = catalog
        self.evaluator = evaluator or FormulaEvaluator(catalog)
        self.resolver = resolver or VisibilityResolver(catalog)

    def build_pipeline(self, field: FieldSchema) -> list[Check]:
        """Checks relevant to an activity, in evaluation order."""
        pipeline: list[Check] = []
        if field.required:
            pipeline.append(check_required)
        if field.require_date:
            pipeline.append(check_required_date)
        if field.require_time:
            pipeline.append(check_required_time)
        if field.field_type == FieldType.SINGLE_SELECT:
            if any(option.required for option in field.options):
                pipeline.append(check_required_options)
            if any(option.exclusive for option in field.options):
                pipeline.append(check_exclusive_options)
        if field.validation_rules:
            pipeline.append(check_custom_rules)
        return pipeline

    def validate_field(self, field: FieldSchema, store: FormValueStore) -> list[Finding]:
        """Run the pipeline of one activity, regardless of visibility.

        Multiplicity activities run the per-measurement checks once per
        measurement index, then once more without an index when their
        date or time is shared by all measurements.
        """
        pipeline = self.build_pipeline(field)
        findings: list[Finding] = []

        if not field.allow_multiple:
            for check in pipeline:
                findings.extend(check(field, store, self.evaluator, None))
            return findings

        per_measurement = [c for c in pipeline if c not in FIELD_LEVEL_CHECKS]
        for check in pipeline:
            if check in FIELD_LEVEL_CHECKS:
                findings.extend(check(field, store, self.evaluator, None))
        for index in range(field.repeat_count):
            for check in per_measurement:
                findings.extend(check(field, store, self.evaluator, index))
        if field.shared_date or field.shared_time:
            for check in per_measurement:
                findings.extend(check(field, store, self.evaluator, None))
        return findings

    def validate(
        self,
        store: FormValueStore,
        mode: ValidationMode = ValidationMode.LIVE,
    ) -> ValidationReport:
        """Validate all visible activities in schema order.

        Args:
            store: Current form values.
            mode: Silent before the first submit attempt, live after it.
                Findings are computed either way; silent reports surface
                none of them.

        Returns:
            ValidationReport with every finding.
        """
        findings: list[Finding] = []
        for field in self.resolver.visible_fields(store):
            findings.extend(self.validate_field(field, store))

        report = ValidationReport(mode=mode, findings=findings)
        logger.debug(
            "Validated %d activities: %d errors, %d warnings",
            len(self.catalog),
            len(report.errors),
            len(report.warnings),
        )
        return report
