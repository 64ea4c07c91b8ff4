"""Formula parsing and evaluation over form values."""

from visit_form.formula.evaluator import (
    FormulaEvaluator,
    FormulaResult,
    mean_of,
    representative_value,
    to_fixed,
    to_number,
)
from visit_form.formula.parser import (
    BinaryOp,
    FormulaEvaluationError,
    FormulaSyntaxError,
    Number,
    UnaryOp,
    evaluate_node,
    parse_formula,
)

__all__ = [
    "BinaryOp",
    "FormulaEvaluationError",
    "FormulaEvaluator",
    "FormulaResult",
    "FormulaSyntaxError",
    "Number",
    "UnaryOp",
    "evaluate_node",
    "mean_of",
    "parse_formula",
    "representative_value",
    "to_fixed",
    "to_number",
]
