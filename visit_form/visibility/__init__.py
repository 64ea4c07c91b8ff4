"""Conditional visibility resolution."""

from visit_form.visibility.resolver import VisibilityResolver, as_bool

__all__ = ["VisibilityResolver", "as_bool"]
