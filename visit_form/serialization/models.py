"""Data models for the serialized visit record."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from visit_form.io import to_json_dict
from visit_form.schema.models import VisitSpec
from visit_form.validation.models import Finding, ValidationReport


class RecordModel(BaseModel):
    """Base for output models: camelCase on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class MeasurementEntry(RecordModel):
    """One measurement of a repeated activity."""

    value: Any = None
    date: str | None = None
    time: str | None = None  # HH:MM


class ActivityRecord(RecordModel):
    """Captured data and metadata for one activity."""

    id: str
    name: str
    field_type: str
    help_text: str | None = None
    description: str | None = None
    measurement_unit: str | None = None
    value: Any = None
    date: str | None = None
    time: str | None = None
    measurements: list[MeasurementEntry] | None = None


class RecordHeader(RecordModel):
    """Who and what a visit record is about."""

    patient_id: str | None = None
    protocol_name: str | None = None
    visit_name: str
    visit_type: str | None = None

    @classmethod
    def from_spec(cls, spec: VisitSpec, patient_id: str | None = None) -> "RecordHeader":
        """Build a header from a visit spec."""
        return cls(
            patient_id=patient_id,
            protocol_name=spec.protocol_name,
            visit_name=spec.name,
            visit_type=spec.visit_type,
        )


class VisitRecord(RecordModel):
    """Final output record of a submitted visit form."""

    patient_id: str | None = None
    protocol_name: str | None = None
    visit_name: str
    visit_type: str | None = None
    activities: list[ActivityRecord] = Field(default_factory=list)
    validation_errors: list[Finding] = Field(default_factory=list)  # Warnings only
    timestamp: str  # ISO-8601

    def to_dict(self) -> dict[str, Any]:
        """Plain JSON-serializable dict, camelCase keys, unset entries dropped."""
        return to_json_dict(self)

    def get_activity(self, activity_id: str) -> ActivityRecord | None:
        """Get an activity record by its ID."""
        for activity in self.activities:
            if activity.id == activity_id:
                return activity
        return None


class SubmissionBlockedError(Exception):
    """Raised when serialization is attempted with blocking findings."""

    def __init__(self, report: ValidationReport) -> None:
        self.report = report
        errors = report.errors
        summary = "; ".join(f.message for f in errors[:3])
        if len(errors) > 3:
            summary += f"; and {len(errors) - 3} more"
        super().__init__(f"Submission blocked by {len(errors)} error(s): {summary}")
