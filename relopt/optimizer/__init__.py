"""Query optimizer."""

from .rules import (
    OptimizationRule,
    MatchHandle,
    MatchOrder,
    RuleBasedOptimizer,
    SemiAntiJoinFilterTransposeRule,
    SemiAntiJoinProjectTransposeRule,
    build_optimizer,
)
from .predicates import (
    collect_column_indices,
    references_only,
    is_null_producing,
    shift_columns,
    substitute_columns,
    input_columns,
)
from .expression_rewriter import (
    ExpressionRewriter,
    ColumnShiftRewriter,
    ColumnSubstitutionRewriter,
)
from .hints import CostHints, CostHintRegistry, InvalidHintError
from .cost import CostModel

__all__ = [
    "OptimizationRule",
    "MatchHandle",
    "MatchOrder",
    "RuleBasedOptimizer",
    "SemiAntiJoinFilterTransposeRule",
    "SemiAntiJoinProjectTransposeRule",
    "build_optimizer",
    "collect_column_indices",
    "references_only",
    "is_null_producing",
    "shift_columns",
    "substitute_columns",
    "input_columns",
    "ExpressionRewriter",
    "ColumnShiftRewriter",
    "ColumnSubstitutionRewriter",
    "CostHints",
    "CostHintRegistry",
    "InvalidHintError",
    "CostModel",
]
