"""Expression nodes for query plans."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Optional
from enum import Enum


class DataType(Enum):
    """SQL data types."""

    INTEGER = "INTEGER"
    BIGINT = "BIGINT"
    FLOAT = "FLOAT"
    DOUBLE = "DOUBLE"
    DECIMAL = "DECIMAL"
    VARCHAR = "VARCHAR"
    TEXT = "TEXT"
    BOOLEAN = "BOOLEAN"
    DATE = "DATE"
    TIMESTAMP = "TIMESTAMP"
    NULL = "NULL"


class Expression(ABC):
    """Base class for all expressions."""

    @abstractmethod
    def get_type(self) -> DataType:
        """Get the data type of this expression."""
        pass

    @abstractmethod
    def to_sql(self) -> str:
        """Convert expression to SQL-like string."""
        pass

    def __str__(self) -> str:
        return self.to_sql()


@dataclass(frozen=True)
class ColumnRef(Expression):
    """Positional column reference.

    The index points into the schema the expression is evaluated against.
    Negative indices can appear while shifting but are rejected when a plan
    node is built over them.
    """

    index: int
    data_type: DataType
    nullable: bool = True
    name: Optional[str] = field(default=None, compare=False)

    def get_type(self) -> DataType:
        return self.data_type

    def to_sql(self) -> str:
        if self.name:
            return self.name
        return f"${self.index}"

    def __repr__(self) -> str:
        return f"ColumnRef(${self.index})"


@dataclass(frozen=True)
class Literal(Expression):
    """Literal value expression."""

    value: Any
    data_type: DataType

    def get_type(self) -> DataType:
        return self.data_type

    def to_sql(self) -> str:
        if self.value is None:
            return "NULL"
        if self.data_type in (DataType.VARCHAR, DataType.TEXT):
            return f"'{self.value}'"
        return str(self.value)

    def __repr__(self) -> str:
        return f"Literal({self.value})"


class BinaryOpType(Enum):
    """Binary operator types."""

    # Arithmetic
    ADD = "+"
    SUBTRACT = "-"
    MULTIPLY = "*"
    DIVIDE = "/"
    MODULO = "%"

    # Comparison
    EQ = "="
    NEQ = "!="
    LT = "<"
    LTE = "<="
    GT = ">"
    GTE = ">="

    # Logical
    AND = "AND"
    OR = "OR"

    # String
    CONCAT = "||"
    LIKE = "LIKE"


COMPARISON_OPS = frozenset({
    BinaryOpType.EQ,
    BinaryOpType.NEQ,
    BinaryOpType.LT,
    BinaryOpType.LTE,
    BinaryOpType.GT,
    BinaryOpType.GTE,
    BinaryOpType.LIKE,
})

LOGICAL_OPS = frozenset({BinaryOpType.AND, BinaryOpType.OR})


@dataclass(frozen=True)
class BinaryOp(Expression):
    """Binary operation expression."""

    op: BinaryOpType
    left: Expression
    right: Expression

    def get_type(self) -> DataType:
        # Logical and comparison operators return boolean
        if self.op in COMPARISON_OPS or self.op in LOGICAL_OPS:
            return DataType.BOOLEAN

        # Arithmetic operators inherit type from operands
        # (simplified - real implementation needs type coercion)
        return self.left.get_type()

    def to_sql(self) -> str:
        return f"({self.left.to_sql()} {self.op.value} {self.right.to_sql()})"

    def __repr__(self) -> str:
        return f"BinaryOp({self.op.value}, {self.left!r}, {self.right!r})"


class UnaryOpType(Enum):
    """Unary operator types."""

    NOT = "NOT"
    NEGATE = "-"
    IS_NULL = "IS NULL"
    IS_NOT_NULL = "IS NOT NULL"


@dataclass(frozen=True)
class UnaryOp(Expression):
    """Unary operation expression."""

    op: UnaryOpType
    operand: Expression

    def get_type(self) -> DataType:
        if self.op in (UnaryOpType.NOT, UnaryOpType.IS_NULL, UnaryOpType.IS_NOT_NULL):
            return DataType.BOOLEAN
        return self.operand.get_type()

    def to_sql(self) -> str:
        if self.op in (UnaryOpType.IS_NULL, UnaryOpType.IS_NOT_NULL):
            return f"({self.operand.to_sql()} {self.op.value})"
        return f"({self.op.value} {self.operand.to_sql()})"

    def __repr__(self) -> str:
        return f"UnaryOp({self.op.value}, {self.operand!r})"
