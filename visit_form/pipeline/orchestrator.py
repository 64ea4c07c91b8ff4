"""Pipeline for batch processing of visit submissions.

Loads a visit spec from the registry, then turns each submission into a
visit record: values are loaded into a store, calculated activities are
recomputed, the form is validated and, when nothing blocks it, serialized.
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ValidationError

from visit_form.formula.evaluator import FormulaEvaluator
from visit_form.pipeline.models import ProcessingResult, ProcessingStatus
from visit_form.schema.catalog import FieldCatalog, UnknownFieldError
from visit_form.schema.registry import VisitRegistry
from visit_form.serialization.models import RecordHeader
from visit_form.serialization.serializer import Serializer
from visit_form.store.values import FormValueStore
from visit_form.validation.models import ValidationMode
from visit_form.validation.validator import Validator
from visit_form.visibility.resolver import VisibilityResolver

logger = logging.getLogger(__name__)


class PipelineConfig(BaseModel):
    """Configuration for the processing pipeline."""

    visit_registry_path: Path
    visit_id: str
    visit_version: str | None = None
    schema_path: Path | None = None
    fixed_timestamp: datetime | None = None  # Stamp every record with this time


class Pipeline:
    """Loads a visit spec and processes submissions against it."""

    def __init__(self, config: PipelineConfig) -> None:
        """Initialize the pipeline.

        Args:
            config: Pipeline configuration specifying the registry and visit.

        Raises:
            VisitNotFoundError: If the visit or version is not in the registry.
            VisitValidationError: If the visit spec is invalid.
        """
        self.config = config
        self.registry = VisitRegistry(config.visit_registry_path, schema_path=config.schema_path)

        if config.visit_version:
            self.spec = self.registry.get(config.visit_id, config.visit_version)
        else:
            self.spec = self.registry.get_latest(config.visit_id)

        self.catalog = FieldCatalog(self.spec.activities)
        self.evaluator = FormulaEvaluator(self.catalog)
        self.resolver = VisibilityResolver(self.catalog)
        self.validator = Validator(self.catalog, self.evaluator, self.resolver)
        self.serializer = Serializer(self.catalog, self.evaluator, self.resolver, self.validator)

    def process(self, submission: dict[str, Any]) -> ProcessingResult:
        """Process one submission.

        A submission looks like::

            {
                "submission_id": "...",
                "patient_id": "...",
                "values": {"peso": 80, "peso_date": "2024-01-10", ...},
                "descriptions": {"peso": "..."}
            }
        """
        submission_id = str(submission.get("submission_id", ""))
        if not submission_id:
            return ProcessingResult(
                submission_id="",
                status=ProcessingStatus.FAILED,
                errors=["Submission has no submission_id"],
            )

        values = submission.get("values") or {}
        if not isinstance(values, dict):
            return ProcessingResult(
                submission_id=submission_id,
                status=ProcessingStatus.FAILED,
                errors=["Submission values must be an object"],
            )

        try:
            store = FormValueStore.from_mapping(self.catalog, values)
        except (UnknownFieldError, ValueError, ValidationError) as e:
            logger.info("Submission %s has unreadable values: %s", submission_id, e)
            return ProcessingResult(
                submission_id=submission_id,
                status=ProcessingStatus.FAILED,
                errors=[str(e)],
            )

        store = self.evaluator.recompute(store)
        report = self.validator.validate(store, ValidationMode.LIVE)
        if report.has_blocking_errors:
            return ProcessingResult(
                submission_id=submission_id,
                status=ProcessingStatus.FAILED,
                findings=report.findings,
            )

        patient_id = submission.get("patient_id")
        record = self.serializer.serialize(
            store,
            RecordHeader.from_spec(self.spec, str(patient_id) if patient_id is not None else None),
            report=report,
            descriptions=submission.get("descriptions") or {},
            timestamp=self.config.fixed_timestamp,
        )
        status = ProcessingStatus.PARTIAL if report.warnings else ProcessingStatus.SUCCESS
        return ProcessingResult(
            submission_id=submission_id,
            status=status,
            record=record,
            findings=report.findings,
        )

    def process_batch(self, submissions: list[dict[str, Any]]) -> list[ProcessingResult]:
        """Process a batch of submissions."""
        return [self.process(s) for s in submissions]
