"""Reactive editing session for a visit form."""

from visit_form.session.form_session import SessionClosedError, VisitFormSession

__all__ = ["SessionClosedError", "VisitFormSession"]
