"""Pydantic models for visit and activity (form field) specifications."""

import re
import unicodedata
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class FieldType(str, Enum):
    """Kind of input an activity collects."""

    SHORT_TEXT = "short-text"
    LONG_TEXT = "long-text"
    SIMPLE_NUMBER = "simple-number"
    COMPOUND_NUMBER = "compound-number"
    SINGLE_SELECT = "single-select"
    BOOLEAN = "boolean"
    DATE_TIME = "date-time"
    FILE = "file"
    CALCULATED = "calculated"


class Severity(str, Enum):
    """Severity of a validation rule."""

    ERROR = "error"  # Blocks submission
    WARNING = "warning"  # Informational, attached to the record


# Field types accepted by formulas as variables
NUMERIC_TYPES = (FieldType.SIMPLE_NUMBER, FieldType.COMPOUND_NUMBER)

# Field types whose numeric leaves are rendered with decimal_places
FORMATTED_TYPES = (
    FieldType.SIMPLE_NUMBER,
    FieldType.COMPOUND_NUMBER,
    FieldType.CALCULATED,
)

_LEGACY_TYPES = {
    "text_short": "short-text",
    "text_long": "long-text",
    "number_simple": "simple-number",
    "number_compound": "compound-number",
    "select_single": "single-select",
    "datetime": "date-time",
}


class SpecModel(BaseModel):
    """Base model reading camelCase JSON into snake_case attributes."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SelectOption(SpecModel):
    """Choice offered by a single-select activity."""

    value: str
    label: str
    required: bool = False  # Must be selected for the subject to qualify
    exclusive: bool = False  # Selecting it disqualifies the subject

    @model_validator(mode="after")
    def check_flags(self) -> "SelectOption":
        """Reject options flagged both required and exclusive."""
        if self.required and self.exclusive:
            raise ValueError(
                f"Option '{self.value}' cannot be both required and exclusive"
            )
        return self


def slugify_label(label: str) -> str:
    """Derive an internal sub-field name from its label."""
    ascii_label = (
        unicodedata.normalize("NFD", label)
        .encode("ascii", "ignore")
        .decode("ascii")
        .lower()
    )
    slug = re.sub(r"[^a-z0-9]", "_", ascii_label)
    slug = re.sub(r"_+", "_", slug)
    return slug.strip("_")


class CompoundSubField(SpecModel):
    """Named sub-value of a compound number (e.g. systolic)."""

    name: str = ""
    label: str = ""
    unit: str | None = None


class CompoundConfig(SpecModel):
    """Sub-values composing a compound-number activity."""

    fields: list[CompoundSubField] = Field(default_factory=list)

    @model_validator(mode="after")
    def fill_names(self) -> "CompoundConfig":
        """Give unnamed sub-fields a name derived from their label."""
        for index, sub_field in enumerate(self.fields):
            if sub_field.name.strip():
                continue
            name = slugify_label(sub_field.label) if sub_field.label.strip() else ""
            sub_field.name = name or f"field_{index}"
        return self


class ConditionalConfig(SpecModel):
    """Visibility predicate on another activity's value."""

    depends_on: str
    show_when: str | bool | int | float | None = None


class ActivityRule(SpecModel):
    """Custom validation rule attached to an activity."""

    id: str | None = None
    name: str = ""
    condition: Literal["min", "max", "range", "equals", "not-equals", "formula"]
    min_value: float | None = None
    max_value: float | None = None
    value: str | float | None = None
    formula: str | None = None
    formula_operator: Literal[">", ">=", "<", "<=", "==", "!="] = ">"
    severity: Severity = Severity.ERROR
    message: str = ""
    is_active: bool = True

    @model_validator(mode="before")
    @classmethod
    def migrate_condition(cls, data: Any) -> Any:
        """Accept the legacy 'not_equals' spelling."""
        if isinstance(data, dict) and data.get("condition") == "not_equals":
            data = {**data, "condition": "not-equals"}
        return data


class FieldSchema(SpecModel):
    """Author-time description of one activity (form field).

    Immutable for the duration of a data-capture session.
    """

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True
    )

    id: str
    name: str
    field_type: FieldType
    description: str | None = None
    help_text: str | None = None
    measurement_unit: str | None = None
    order: int = 0
    required: bool = False

    # Repeated measurements
    allow_multiple: bool = False
    repeat_count: int = Field(default=3, ge=1)
    require_date: bool = False
    require_time: bool = False
    require_date_per_measurement: bool = True
    require_time_per_measurement: bool = True
    time_interval_minutes: int | None = Field(default=None, gt=0)

    # date-time fields
    datetime_include_date: bool | None = None
    datetime_include_time: bool | None = None

    # single-select fields
    options: list[SelectOption] = Field(default_factory=list)
    select_multiple: bool = False

    compound_config: CompoundConfig | None = None
    calculation_formula: str | None = None
    decimal_places: int | None = Field(default=None, ge=0)
    conditional_config: ConditionalConfig | None = None
    validation_rules: list[ActivityRule] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def migrate_legacy_type(cls, data: Any) -> Any:
        """Map field types from older authoring tools onto the current set."""
        if not isinstance(data, dict):
            return data
        key = "fieldType" if "fieldType" in data else "field_type"
        raw_type = data.get(key)
        if raw_type in _LEGACY_TYPES:
            return {**data, key: _LEGACY_TYPES[raw_type]}
        if raw_type == "date":
            return {
                **data,
                key: FieldType.DATE_TIME.value,
                "datetimeIncludeDate": True,
                "datetimeIncludeTime": False,
            }
        if raw_type == "time":
            return {
                **data,
                key: FieldType.DATE_TIME.value,
                "datetimeIncludeDate": False,
                "datetimeIncludeTime": True,
            }
        if raw_type == "select_multiple":
            return {**data, key: FieldType.SINGLE_SELECT.value, "selectMultiple": True}
        return data

    @property
    def includes_date(self) -> bool:
        """Whether a date-time activity captures a date."""
        return True if self.datetime_include_date is None else self.datetime_include_date

    @property
    def includes_time(self) -> bool:
        """Whether a date-time activity captures a time."""
        return False if self.datetime_include_time is None else self.datetime_include_time

    @property
    def is_numeric(self) -> bool:
        """Whether this activity can be used as a formula variable."""
        return self.field_type in NUMERIC_TYPES

    @property
    def is_calculated(self) -> bool:
        return self.field_type == FieldType.CALCULATED

    @property
    def formats_numbers(self) -> bool:
        """Whether numeric leaves are rendered with decimal_places on output."""
        return self.decimal_places is not None and self.field_type in FORMATTED_TYPES

    @property
    def shared_date(self) -> bool:
        """Date captured once for all measurements."""
        return self.allow_multiple and self.require_date and not self.require_date_per_measurement

    @property
    def shared_time(self) -> bool:
        """Time captured once for all measurements."""
        return self.allow_multiple and self.require_time and not self.require_time_per_measurement

    @property
    def derives_times(self) -> bool:
        """Whether measurement times after the first follow a fixed interval."""
        return (
            self.allow_multiple
            and self.require_time
            and self.require_time_per_measurement
            and bool(self.time_interval_minutes)
        )

    def get_option(self, value: str) -> SelectOption | None:
        """Get a select option by its value."""
        for option in self.options:
            if option.value == value:
                return option
        return None


class VisitSpec(BaseModel):
    """Complete visit specification: the ordered activities of one form."""

    type: Literal["visit_spec"] = "visit_spec"
    visit_id: str
    version: str
    name: str
    visit_type: str | None = None
    protocol_name: str | None = None
    description: str | None = None
    activities: list[FieldSchema]

    def get_activity(self, activity_id: str) -> FieldSchema | None:
        """Get an activity by its ID."""
        for activity in self.activities:
            if activity.id == activity_id:
                return activity
        return None
