"""Authoring checks for visit specs.

Problems these catch do not stop a form from loading, but they make a
formula, a visibility rule or a time setting silently do nothing during
data entry.
"""

from pydantic import BaseModel

from visit_form.formula.evaluator import FormulaEvaluator
from visit_form.schema.catalog import FieldCatalog
from visit_form.schema.models import FieldSchema, FieldType, Severity, VisitSpec


class SpecIssue(BaseModel):
    """A problem found in an authored visit spec."""

    code: str  # Issue code like "FORMULA_UNKNOWN_NAME"
    message: str
    activity_id: str
    severity: Severity = Severity.WARNING


def _formula_issues(
    field: FieldSchema,
    formula: str,
    evaluator: FormulaEvaluator,
    where: str,
) -> list[SpecIssue]:
    names = evaluator.unresolved_names(formula)
    if not names:
        return []
    return [SpecIssue(
        code="FORMULA_UNKNOWN_NAME",
        message=(
            f"{where} of '{field.name}' references {', '.join(repr(n) for n in names)}, "
            f"which is not the name of a numeric activity"
        ),
        activity_id=field.id,
    )]


def check_visit_spec(spec: VisitSpec) -> list[SpecIssue]:
    """Check a visit spec for authoring mistakes.

    Args:
        spec: The visit spec to check.

    Returns:
        Issues in activity order; empty when the visit spec is clean.

    Raises:
        ValueError: If two activities share an id.
    """
    catalog = FieldCatalog(spec.activities)
    evaluator = FormulaEvaluator(catalog)
    issues: list[SpecIssue] = []

    for field in catalog:
        if field.is_calculated:
            if not field.calculation_formula or not field.calculation_formula.strip():
                issues.append(SpecIssue(
                    code="CALCULATED_WITHOUT_FORMULA",
                    message=f"Calculated activity '{field.name}' has no formula",
                    activity_id=field.id,
                    severity=Severity.ERROR,
                ))
            else:
                issues.extend(
                    _formula_issues(field, field.calculation_formula, evaluator, "Formula")
                )

        for rule in field.validation_rules:
            if rule.condition != "formula":
                continue
            if not rule.formula:
                issues.append(SpecIssue(
                    code="RULE_WITHOUT_FORMULA",
                    message=f"Formula rule on '{field.name}' has no formula",
                    activity_id=field.id,
                ))
            else:
                issues.extend(_formula_issues(field, rule.formula, evaluator, "Rule formula"))

        if field.validation_rules and not (field.is_numeric or field.is_calculated):
            issues.append(SpecIssue(
                code="RULES_ON_NON_NUMERIC",
                message=(
                    f"Activity '{field.name}' ({field.field_type.value}) has numeric "
                    f"rules that will never apply"
                ),
                activity_id=field.id,
            ))

        config = field.conditional_config
        if config is not None:
            dependency = catalog.get(config.depends_on)
            if dependency is None:
                issues.append(SpecIssue(
                    code="DEPENDS_ON_UNKNOWN",
                    message=f"Activity '{field.name}' depends on unknown activity '{config.depends_on}'",
                    activity_id=field.id,
                    severity=Severity.ERROR,
                ))
            elif dependency.id == field.id:
                issues.append(SpecIssue(
                    code="DEPENDS_ON_SELF",
                    message=f"Activity '{field.name}' depends on itself and can never be shown",
                    activity_id=field.id,
                    severity=Severity.ERROR,
                ))
            elif dependency.field_type == FieldType.CALCULATED:
                issues.append(SpecIssue(
                    code="DEPENDS_ON_CALCULATED",
                    message=(
                        f"Activity '{field.name}' depends on calculated activity "
                        f"'{dependency.name}'"
                    ),
                    activity_id=field.id,
                ))

        if field.time_interval_minutes and field.allow_multiple and not field.derives_times:
            issues.append(SpecIssue(
                code="INTERVAL_IGNORED",
                message=(
                    f"Time interval on '{field.name}' only applies when a time is "
                    f"required per measurement"
                ),
                activity_id=field.id,
            ))

    return issues
