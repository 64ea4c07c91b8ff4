"""Serializer: turns a validated value store into a visit record."""

import logging
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any

from visit_form.formula.evaluator import FormulaEvaluator
from visit_form.schema.catalog import FieldCatalog
from visit_form.schema.models import FieldSchema, FieldType
from visit_form.serialization.formatting import format_numeric_value
from visit_form.serialization.models import (
    ActivityRecord,
    MeasurementEntry,
    RecordHeader,
    SubmissionBlockedError,
    VisitRecord,
)
from visit_form.store.keys import ValueKey
from visit_form.store.times import normalize_time
from visit_form.store.values import FormValueStore, is_blank
from visit_form.validation.models import ValidationMode, ValidationReport
from visit_form.validation.validator import Validator
from visit_form.visibility.resolver import VisibilityResolver

logger = logging.getLogger(__name__)


def _stamp_parts(field: FieldSchema) -> tuple[bool, bool]:
    """Whether a date and a time are emitted for an activity."""
    if field.field_type == FieldType.DATE_TIME:
        return field.includes_date, field.includes_time
    return field.require_date, field.require_time


def _date_text(value: Any) -> str | None:
    return None if is_blank(value) else str(value)


def _time_text(value: Any) -> str | None:
    return None if is_blank(value) else normalize_time(str(value))


class Serializer:
    """Produces the canonical visit record from a value store.

    Refuses to run while error-severity findings exist.
    """

    def __init__(
        self,
        catalog: FieldCatalog,
        evaluator: FormulaEvaluator | None = None,
        resolver: VisibilityResolver | None = None,
        validator: Validator | None = None,
    ) -> None:
        self.catalog = catalog
        self.evaluator = evaluator or FormulaEvaluator(catalog)
        self.resolver = resolver or VisibilityResolver(catalog)
        self.validator = validator or Validator(catalog, self.evaluator, self.resolver)

    def serialize(
        self,
        store: FormValueStore,
        header: RecordHeader,
        report: ValidationReport | None = None,
        descriptions: Mapping[str, str] | None = None,
        timestamp: datetime | None = None,
    ) -> VisitRecord:
        """Serialize a value store.

        Calculated activities are recomputed first, so the record never
        carries a stale derived value.

        Args:
            store: The values entered for the visit.
            header: Patient, protocol and visit identification.
            report: Validation report for this store. Computed when omitted.
            descriptions: Per-activity description overrides.
            timestamp: Capture time. Defaults to now (UTC).

        Returns:
            The visit record.

        Raises:
            SubmissionBlockedError: If the report has error-severity findings.
        """
        store = self.evaluator.recompute(store)
        if report is None:
            report = self.validator.validate(store, ValidationMode.LIVE)
        if report.has_blocking_errors:
            raise SubmissionBlockedError(report)

        descriptions = descriptions or {}
        activities = [
            self.serialize_activity(field, store, descriptions.get(field.id))
            for field in self.resolver.visible_fields(store)
        ]
        captured = timestamp or datetime.now(timezone.utc)

        logger.info(
            "Serialized visit %r: %d activities, %d warnings",
            header.visit_name,
            len(activities),
            len(report.warnings),
        )
        return VisitRecord(
            patient_id=header.patient_id,
            protocol_name=header.protocol_name,
            visit_name=header.visit_name,
            visit_type=header.visit_type,
            activities=activities,
            validation_errors=report.warnings,
            timestamp=captured.isoformat(),
        )

    def serialize_activity(
        self,
        field: FieldSchema,
        store: FormValueStore,
        description: str | None = None,
    ) -> ActivityRecord:
        """Build the record of one activity."""
        value = format_numeric_value(store.get(ValueKey.value(field.id)), field)
        record = ActivityRecord(
            id=field.id,
            name=field.name,
            field_type=field.field_type.value,
            help_text=field.help_text,
            description=description or field.description,
            measurement_unit=field.measurement_unit or None,
        )

        with_date, with_time = _stamp_parts(field)
        if field.allow_multiple and (with_date or with_time):
            measurements = self.measurements(field, store, value, with_date, with_time)
            record.measurements = measurements or None
            return record

        record.value = None if is_blank(value) else value
        if with_date:
            record.date = _date_text(store.get(ValueKey.date(field.id)))
        if with_time:
            record.time = _time_text(store.get(ValueKey.time(field.id)))
        return record

    def measurements(
        self,
        field: FieldSchema,
        store: FormValueStore,
        value: Any,
        with_date: bool,
        with_time: bool,
    ) -> list[MeasurementEntry]:
        """Measurement entries of a repeated activity.

        Times after the first follow the fixed interval when one is set.
        A measurement with no value, date or time is left out.
        """
        values = value if isinstance(value, list) else []
        entries: list[MeasurementEntry] = []
        for index in range(field.repeat_count):
            item = values[index] if index < len(values) else None
            entry = MeasurementEntry(
                value=None if is_blank(item) else item,
                date=_date_text(store.measurement_date(field, index)) if with_date else None,
                time=_time_text(store.measurement_time(field, index)) if with_time else None,
            )
            if entry.value is None and entry.date is None and entry.time is None:
                continue
            entries.append(entry)
        return entries
