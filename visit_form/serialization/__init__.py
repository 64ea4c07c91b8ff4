"""Serialization of visit forms into canonical records."""

from visit_form.serialization.formatting import (
    format_leaf,
    format_numeric_value,
    parse_leading_number,
)
from visit_form.serialization.loader import restore_store
from visit_form.serialization.models import (
    ActivityRecord,
    MeasurementEntry,
    RecordHeader,
    SubmissionBlockedError,
    VisitRecord,
)
from visit_form.serialization.serializer import Serializer

__all__ = [
    "ActivityRecord",
    "MeasurementEntry",
    "RecordHeader",
    "Serializer",
    "SubmissionBlockedError",
    "VisitRecord",
    "format_leaf",
    "format_numeric_value",
    "parse_leading_number",
    "restore_store",
]
