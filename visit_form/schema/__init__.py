"""Visit spec models, activity catalog and registry."""

from visit_form.schema.catalog import FieldCatalog, UnknownFieldError, normalize_name
from visit_form.schema.models import (
    ActivityRule,
    CompoundConfig,
    CompoundSubField,
    ConditionalConfig,
    FieldSchema,
    FieldType,
    SelectOption,
    Severity,
    VisitSpec,
)
from visit_form.schema.registry import (
    VisitNotFoundError,
    VisitRegistry,
    VisitValidationError,
    load_visit_spec,
)
from visit_form.schema.checks import SpecIssue, check_visit_spec

__all__ = [
    "ActivityRule",
    "CompoundConfig",
    "CompoundSubField",
    "ConditionalConfig",
    "FieldCatalog",
    "FieldSchema",
    "FieldType",
    "SelectOption",
    "Severity",
    "SpecIssue",
    "UnknownFieldError",
    "VisitNotFoundError",
    "VisitRegistry",
    "VisitSpec",
    "VisitValidationError",
    "check_visit_spec",
    "load_visit_spec",
]
