"""Query plan representations (logical operators and expressions)."""

from .logical import (
    LogicalPlanNode,
    Field,
    JoinType,
    Scan,
    Filter,
    Project,
    Join,
    SchemaMismatchError,
)
from .expressions import (
    DataType,
    Expression,
    ColumnRef,
    Literal,
    BinaryOp,
    BinaryOpType,
    UnaryOp,
    UnaryOpType,
)
from .explain import ExplainFormat, format_plan

__all__ = [
    # Logical nodes
    "LogicalPlanNode",
    "Field",
    "JoinType",
    "Scan",
    "Filter",
    "Project",
    "Join",
    "SchemaMismatchError",
    # Expressions
    "DataType",
    "Expression",
    "ColumnRef",
    "Literal",
    "BinaryOp",
    "BinaryOpType",
    "UnaryOp",
    "UnaryOpType",
    # Explain
    "ExplainFormat",
    "format_plan",
]
