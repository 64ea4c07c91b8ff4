"""visit-form: Schema, validation and calculation engine for clinical visit forms."""

__version__ = "0.1.0"

# Imports must come after __version__ to avoid circular import
from visit_form.schema import FieldCatalog, FieldSchema, VisitSpec
from visit_form.serialization import Serializer, SubmissionBlockedError, VisitRecord
from visit_form.session import VisitFormSession
from visit_form.validation import ValidationMode, ValidationReport, Validator

__all__ = [
    "__version__",
    "FieldCatalog",
    "FieldSchema",
    "Serializer",
    "SubmissionBlockedError",
    "ValidationMode",
    "ValidationReport",
    "Validator",
    "VisitFormSession",
    "VisitRecord",
    "VisitSpec",
]
