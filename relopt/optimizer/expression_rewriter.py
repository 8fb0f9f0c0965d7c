"""Expression rewriting.

Rewriters rebuild only the parts of an expression that change; untouched
subexpressions are returned as-is.
"""

from abc import ABC, abstractmethod
from typing import List
from ..plan.expressions import (
    Expression,
    BinaryOp,
    UnaryOp,
    Literal,
    ColumnRef,
)


class ExpressionRewriter(ABC):
    """Base class for expression rewriters."""

    def rewrite(self, expr: Expression) -> Expression:
        """Rewrite an expression.

        Args:
            expr: Input expression

        Returns:
            Rewritten expression (may be same as input)
        """
        if isinstance(expr, ColumnRef):
            return self.rewrite_column_ref(expr)

        if isinstance(expr, Literal):
            return expr

        if isinstance(expr, BinaryOp):
            return self.rewrite_binary_op(expr)

        if isinstance(expr, UnaryOp):
            return self.rewrite_unary_op(expr)

        raise NotImplementedError(f"Cannot rewrite expression type {type(expr)}")

    @abstractmethod
    def rewrite_column_ref(self, expr: ColumnRef) -> Expression:
        """Rewrite a single column reference."""
        pass

    def rewrite_binary_op(self, expr: BinaryOp) -> Expression:
        """Rewrite binary operation."""
        left = self.rewrite(expr.left)
        right = self.rewrite(expr.right)

        if left == expr.left and right == expr.right:
            return expr

        return BinaryOp(op=expr.op, left=left, right=right)

    def rewrite_unary_op(self, expr: UnaryOp) -> Expression:
        """Rewrite unary operation."""
        operand = self.rewrite(expr.operand)

        if operand == expr.operand:
            return expr

        return UnaryOp(op=expr.op, operand=operand)


class ColumnShiftRewriter(ExpressionRewriter):
    """Add a fixed offset to every column position."""

    def __init__(self, offset: int):
        self.offset = offset

    def rewrite_column_ref(self, expr: ColumnRef) -> Expression:
        if self.offset == 0:
            return expr
        return ColumnRef(expr.index + self.offset, expr.data_type, expr.nullable, expr.name)


class ColumnSubstitutionRewriter(ExpressionRewriter):
    """Inline expressions for the leading column positions.

    References below ``len(replacements)`` are replaced by the matching
    expression; every other reference is shifted by ``offset``.
    """

    def __init__(self, replacements: List[Expression], offset: int = 0):
        self.replacements = list(replacements)
        self.offset = offset

    def rewrite_column_ref(self, expr: ColumnRef) -> Expression:
        if 0 <= expr.index < len(self.replacements):
            return self.replacements[expr.index]
        if self.offset == 0:
            return expr
        return ColumnRef(expr.index + self.offset, expr.data_type, expr.nullable, expr.name)
