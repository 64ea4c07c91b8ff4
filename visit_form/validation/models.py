"""Data models for validation findings."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from visit_form.schema.models import ActivityRule, Severity


class ValidationMode(str, Enum):
    """Whether findings are shown to the user yet."""

    SILENT = "silent"  # Before the first submit attempt
    LIVE = "live"  # After it; every edit re-validates


class Finding(BaseModel):
    """Result of one rule failing against one activity or measurement."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    activity_id: str
    activity_name: str
    rule: ActivityRule
    severity: Severity
    message: str
    measurement_index: int | None = None
    current_value: float | None = None

    @property
    def is_blocking(self) -> bool:
        return self.severity == Severity.ERROR


class ValidationReport(BaseModel):
    """All findings for one validation run over a visit form."""

    mode: ValidationMode
    findings: list[Finding] = Field(default_factory=list)

    @property
    def errors(self) -> list[Finding]:
        """Blocking findings."""
        return [f for f in self.findings if f.severity == Severity.ERROR]

    @property
    def warnings(self) -> list[Finding]:
        """Informational findings."""
        return [f for f in self.findings if f.severity == Severity.WARNING]

    @property
    def has_blocking_errors(self) -> bool:
        """Whether submission must be refused."""
        return len(self.errors) > 0

    @property
    def surfaced(self) -> list[Finding]:
        """Findings to show the user; none while validation is silent."""
        if self.mode == ValidationMode.SILENT:
            return []
        return list(self.findings)

    def for_activity(self, activity_id: str) -> list[Finding]:
        """Findings for one activity."""
        return [f for f in self.findings if f.activity_id == activity_id]
