"""Data models for batch processing results."""

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from visit_form.io import to_json_dict
from visit_form.serialization.models import VisitRecord
from visit_form.validation.models import Finding


class ProcessingStatus(str, Enum):
    """Status of processing one submission."""

    SUCCESS = "success"  # Record produced, no findings
    PARTIAL = "partial"  # Record produced, with warnings
    FAILED = "failed"  # No record: blocking findings or unreadable input


class ProcessingResult(BaseModel):
    """Result of processing a single submission."""

    submission_id: str
    status: ProcessingStatus
    record: VisitRecord | None = None
    findings: list[Finding] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)  # Input problems, not findings

    @property
    def success(self) -> bool:
        return self.record is not None

    def diagnostics(self) -> dict[str, Any]:
        """Summary written to the diagnostics output."""
        return {
            "submission_id": self.submission_id,
            "status": self.status.value,
            "findings": [to_json_dict(f) for f in self.findings],
            "errors": self.errors,
        }
