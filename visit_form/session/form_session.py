"""Editing session for one visit form.

The session owns the latest value store snapshot. Every edit is applied to
that snapshot, calculated activities are recomputed once, and, after the
first submit attempt, the whole form is re-validated.
"""

import logging
from collections.abc import Iterable, Mapping
from datetime import datetime
from typing import Any

from visit_form.formula.evaluator import FormulaEvaluator
from visit_form.schema.catalog import FieldCatalog
from visit_form.schema.models import VisitSpec
from visit_form.serialization.models import RecordHeader, SubmissionBlockedError, VisitRecord
from visit_form.serialization.serializer import Serializer
from visit_form.store.keys import ValueKey
from visit_form.store.values import FormValueStore
from visit_form.validation.models import ValidationMode, ValidationReport
from visit_form.validation.validator import Validator
from visit_form.visibility.resolver import VisibilityResolver

logger = logging.getLogger(__name__)


class SessionClosedError(RuntimeError):
    """Raised when a submitted session is edited or submitted again."""


class VisitFormSession:
    """Reactive editing state of one visit form instance."""

    def __init__(
        self,
        spec: VisitSpec,
        store: FormValueStore | None = None,
        descriptions: Mapping[str, str] | None = None,
    ) -> None:
        """Initialize the session.

        Args:
            spec: The visit being filled.
            store: Initial values, e.g. restored from an exported record.
            descriptions: Initial description overrides.
        """
        self.spec = spec
        self.catalog = FieldCatalog(spec.activities)
        self.evaluator = FormulaEvaluator(self.catalog)
        self.resolver = VisibilityResolver(self.catalog)
        self.validator = Validator(self.catalog, self.evaluator, self.resolver)
        self.serializer = Serializer(self.catalog, self.evaluator, self.resolver, self.validator)

        self.mode = ValidationMode.SILENT
        self.descriptions: dict[str, str] = dict(descriptions or {})
        self.record: VisitRecord | None = None

        store = store if store is not None else FormValueStore(self.catalog)
        self.store = self.evaluator.recompute(store)
        self.report = self.validator.validate(self.store, self.mode)

    @property
    def closed(self) -> bool:
        """Whether the session has been submitted."""
        return self.record is not None

    def _check_open(self) -> None:
        if self.closed:
            raise SessionClosedError("Visit form has already been submitted")

    def get_value(self, key: ValueKey | str) -> Any:
        return self.store.get(key)

    def is_visible(self, activity_id: str) -> bool:
        return self.resolver.is_visible(self.catalog.require(activity_id), self.store)

    def set_value(self, key: ValueKey | str, value: Any) -> FormValueStore:
        """Write one value and propagate it.

        Returns:
            The new store snapshot.

        Raises:
            SessionClosedError: If the session has been submitted.
        """
        return self.apply([(key, value)])

    def apply(
        self,
        edits: Mapping[ValueKey | str, Any] | Iterable[tuple[ValueKey | str, Any]],
    ) -> FormValueStore:
        """Apply several edits as one mutation.

        Each edit is written on top of the previous one, so no write is
        lost. Calculated activities are recomputed once, and only when a
        user input actually changed.
        """
        self._check_open()
        items = edits.items() if isinstance(edits, Mapping) else edits

        previous = self.store
        store = previous
        for key, value in items:
            store = store.set(key, value)

        if store.input_snapshot() != previous.input_snapshot():
            store = self.evaluator.recompute(store)
        self.store = store

        if self.mode == ValidationMode.LIVE:
            self.report = self.validator.validate(self.store, self.mode)
        return self.store

    def set_description(self, activity_id: str, description: str | None) -> None:
        """Attach a free-text description override to an activity."""
        self._check_open()
        self.catalog.require(activity_id)
        if description:
            self.descriptions[activity_id] = description
        else:
            self.descriptions.pop(activity_id, None)

    def validate(self) -> ValidationReport:
        """Re-run validation in the current mode."""
        self.report = self.validator.validate(self.store, self.mode)
        return self.report

    def submit(
        self,
        patient_id: str | None = None,
        timestamp: datetime | None = None,
    ) -> VisitRecord:
        """Attempt to submit the form.

        The first attempt switches validation to live mode for the rest of
        the session.

        Raises:
            SubmissionBlockedError: If error-severity findings exist.
            SessionClosedError: If the session was already submitted.
        """
        self._check_open()
        self.mode = ValidationMode.LIVE
        self.report = self.validator.validate(self.store, self.mode)
        if self.report.has_blocking_errors:
            logger.info(
                "Submission of %r blocked by %d errors",
                self.spec.visit_id,
                len(self.report.errors),
            )
            raise SubmissionBlockedError(self.report)

        self.record = self.serializer.serialize(
            self.store,
            RecordHeader.from_spec(self.spec, patient_id),
            report=self.report,
            descriptions=self.descriptions,
            timestamp=timestamp,
        )
        return self.record
