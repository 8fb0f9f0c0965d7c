"""Predicate analysis helpers used by the transpose rules.

All functions are pure and total over the expression kinds in
``relopt.plan.expressions``.
"""

from typing import TYPE_CHECKING, AbstractSet, Iterable, List, Set

from ..plan.expressions import (
    Expression,
    ColumnRef,
    Literal,
    BinaryOp,
    BinaryOpType,
    UnaryOp,
    UnaryOpType,
)
from .expression_rewriter import ColumnShiftRewriter, ColumnSubstitutionRewriter

if TYPE_CHECKING:
    from ..plan.logical import LogicalPlanNode


def collect_column_indices(expr: Expression) -> Set[int]:
    """Return every column position referenced by an expression."""
    if isinstance(expr, ColumnRef):
        return {expr.index}

    if isinstance(expr, BinaryOp):
        left = collect_column_indices(expr.left)
        right = collect_column_indices(expr.right)
        return left.union(right)

    if isinstance(expr, UnaryOp):
        return collect_column_indices(expr.operand)

    return set()


def references_only(predicate: Expression, allowed_columns: Iterable[int]) -> bool:
    """Check that a predicate reads no column outside ``allowed_columns``.

    Literals and other column-free expressions always pass.
    """
    if not isinstance(allowed_columns, AbstractSet):
        allowed_columns = set(allowed_columns)
    for index in collect_column_indices(predicate):
        if index not in allowed_columns:
            return False
    return True


def is_null_producing(predicate: Expression) -> bool:
    """Conservatively decide whether an expression can evaluate to NULL.

    A True answer means "might be NULL". Division and modulo count as
    null producing because a zero divisor yields NULL.
    """
    if isinstance(predicate, ColumnRef):
        return predicate.nullable

    if isinstance(predicate, Literal):
        return predicate.value is None

    if isinstance(predicate, UnaryOp):
        if predicate.op in (UnaryOpType.IS_NULL, UnaryOpType.IS_NOT_NULL):
            return False
        return is_null_producing(predicate.operand)

    if isinstance(predicate, BinaryOp):
        if predicate.op in (BinaryOpType.DIVIDE, BinaryOpType.MODULO):
            return True
        return is_null_producing(predicate.left) or is_null_producing(predicate.right)

    # Unknown expression kinds
    return True


def shift_columns(predicate: Expression, offset: int) -> Expression:
    """Return a copy of ``predicate`` with every column position moved by ``offset``."""
    return ColumnShiftRewriter(offset).rewrite(predicate)


def substitute_columns(
    expr: Expression,
    replacements: List[Expression],
    offset: int = 0,
) -> Expression:
    """Inline ``replacements`` for the leading positions, shift the rest by ``offset``."""
    return ColumnSubstitutionRewriter(replacements, offset).rewrite(expr)


def input_columns(node: "LogicalPlanNode") -> Set[int]:
    """Return the positions of a node's output columns."""
    return set(range(len(node.schema())))
