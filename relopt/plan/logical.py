"""Logical plan nodes.

Nodes are immutable. Rewrites build new parents that reference the
unaffected children, so a subtree can be shared by several candidate plans.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Iterator, List, Optional, Tuple
from enum import Enum

import pyarrow as pa

from .expressions import BinaryOp, ColumnRef, DataType, Expression, UnaryOp


class SchemaMismatchError(ValueError):
    """Raised when a node is built over children it is inconsistent with."""


class JoinType(Enum):
    """Join types."""

    INNER = "INNER"
    SEMI = "SEMI"  # For IN / EXISTS
    ANTI = "ANTI"  # For NOT IN / NOT EXISTS


@dataclass(frozen=True)
class Field:
    """One output column of a plan node."""

    name: str
    data_type: DataType
    nullable: bool = True

    def __repr__(self) -> str:
        suffix = "" if self.nullable else " NOT NULL"
        return f"Field({self.name}: {self.data_type.value}{suffix})"


class LogicalPlanNode(ABC):
    """Base class for logical plan nodes."""

    @abstractmethod
    def children(self) -> List["LogicalPlanNode"]:
        """Return child nodes."""
        pass

    @abstractmethod
    def with_children(self, children: List["LogicalPlanNode"]) -> "LogicalPlanNode":
        """Create a new node with different children (immutable)."""
        pass

    @abstractmethod
    def schema(self) -> List[Field]:
        """Return output fields."""
        pass

    def replace_child(self, index: int, child: "LogicalPlanNode") -> "LogicalPlanNode":
        """Return a copy of this node with one child swapped.

        The other children are passed through by reference.
        """
        children = list(self.children())
        if index < 0 or index >= len(children):
            raise IndexError(f"{self!r} has no child at position {index}")
        children[index] = child
        return self.with_children(children)

    def column(self, index: int) -> ColumnRef:
        """Build a reference to one of this node's output columns."""
        fields = self.schema()
        if index < 0 or index >= len(fields):
            raise SchemaMismatchError(
                f"{self!r} has {len(fields)} columns, no column at position {index}"
            )
        field = fields[index]
        return ColumnRef(index, field.data_type, field.nullable, field.name)

    def column_names(self) -> List[str]:
        """Return output column names."""
        return [field.name for field in self.schema()]

    def __repr__(self) -> str:
        return self.__class__.__name__


_ARROW_TYPE_CHECKS = [
    (pa.types.is_boolean, DataType.BOOLEAN),
    (pa.types.is_int64, DataType.BIGINT),
    (pa.types.is_integer, DataType.INTEGER),
    (pa.types.is_float32, DataType.FLOAT),
    (pa.types.is_floating, DataType.DOUBLE),
    (pa.types.is_decimal, DataType.DECIMAL),
    (pa.types.is_large_string, DataType.TEXT),
    (pa.types.is_string, DataType.VARCHAR),
    (pa.types.is_date, DataType.DATE),
    (pa.types.is_timestamp, DataType.TIMESTAMP),
    (pa.types.is_null, DataType.NULL),
]


def _arrow_to_data_type(arrow_type: pa.DataType) -> DataType:
    for check, data_type in _ARROW_TYPE_CHECKS:
        if check(arrow_type):
            return data_type
    raise SchemaMismatchError(f"Unsupported Arrow type: {arrow_type}")


@dataclass(frozen=True)
class Scan(LogicalPlanNode):
    """Read a base relation."""

    relation_id: str
    fields: Tuple[Field, ...]

    def __post_init__(self):
        # Stored as a tuple so nodes stay hashable
        object.__setattr__(self, "fields", tuple(self.fields))
        if not self.fields:
            raise SchemaMismatchError(f"Scan of {self.relation_id} has no columns")

    @classmethod
    def from_arrow_schema(cls, relation_id: str, schema: pa.Schema) -> "Scan":
        """Build a scan whose fields mirror an Arrow schema."""
        fields = []
        for arrow_field in schema:
            data_type = _arrow_to_data_type(arrow_field.type)
            fields.append(Field(arrow_field.name, data_type, arrow_field.nullable))
        return cls(relation_id, fields)

    def children(self) -> List[LogicalPlanNode]:
        return []

    def with_children(self, children: List[LogicalPlanNode]) -> "Scan":
        assert len(children) == 0
        return self

    def schema(self) -> List[Field]:
        return list(self.fields)

    def __repr__(self) -> str:
        return f"Scan({self.relation_id}, cols={len(self.fields)})"


@dataclass(frozen=True)
class Filter(LogicalPlanNode):
    """Filter rows based on a predicate."""

    input: LogicalPlanNode
    predicate: Expression

    def __post_init__(self):
        _validate_boolean(self.predicate, "Filter predicate")
        _validate_expression(self.predicate, self.input.schema(), "Filter predicate")

    def children(self) -> List[LogicalPlanNode]:
        return [self.input]

    def with_children(self, children: List[LogicalPlanNode]) -> "Filter":
        assert len(children) == 1
        return Filter(children[0], self.predicate)

    def schema(self) -> List[Field]:
        return self.input.schema()

    def __repr__(self) -> str:
        return f"Filter({self.predicate})"


@dataclass(frozen=True)
class Project(LogicalPlanNode):
    """Project (select) specific expressions."""

    input: LogicalPlanNode
    expressions: Tuple[Expression, ...]
    aliases: Tuple[str, ...]  # Output column names

    def __post_init__(self):
        object.__setattr__(self, "expressions", tuple(self.expressions))
        object.__setattr__(self, "aliases", tuple(self.aliases))
        if len(self.expressions) != len(self.aliases):
            raise SchemaMismatchError(
                f"Project has {len(self.expressions)} expressions "
                f"but {len(self.aliases)} aliases"
            )
        if not self.expressions:
            raise SchemaMismatchError("Project must produce at least one column")
        input_fields = self.input.schema()
        for expr in self.expressions:
            _validate_expression(expr, input_fields, "Project expression")

    def children(self) -> List[LogicalPlanNode]:
        return [self.input]

    def with_children(self, children: List[LogicalPlanNode]) -> "Project":
        assert len(children) == 1
        return Project(children[0], self.expressions, self.aliases)

    def schema(self) -> List[Field]:
        from ..optimizer.predicates import is_null_producing

        fields = []
        for expr, alias in zip(self.expressions, self.aliases):
            fields.append(Field(alias, expr.get_type(), is_null_producing(expr)))
        return fields

    def __repr__(self) -> str:
        return f"Project({len(self.expressions)} expressions)"


@dataclass(frozen=True)
class Join(LogicalPlanNode):
    """Join two inputs.

    The condition is evaluated over the left columns followed by the right
    columns. Semi and anti joins only test the right side for a match, so
    their output is the left schema.
    """

    left: LogicalPlanNode
    right: LogicalPlanNode
    join_type: JoinType
    condition: Optional[Expression]  # None for cross join

    def __post_init__(self):
        if self.condition is None:
            if self.join_type != JoinType.INNER:
                raise SchemaMismatchError(
                    f"{self.join_type.value} join requires a condition"
                )
            return
        _validate_boolean(self.condition, "Join condition")
        combined = self.left.schema() + self.right.schema()
        _validate_expression(self.condition, combined, "Join condition")

    def children(self) -> List[LogicalPlanNode]:
        return [self.left, self.right]

    def with_children(self, children: List[LogicalPlanNode]) -> "Join":
        assert len(children) == 2
        return Join(children[0], children[1], self.join_type, self.condition)

    def schema(self) -> List[Field]:
        if self.join_type in (JoinType.SEMI, JoinType.ANTI):
            return self.left.schema()
        return self.left.schema() + self.right.schema()

    def __repr__(self) -> str:
        return f"Join({self.join_type.value}, {self.condition})"


def _column_refs(expr: Expression) -> Iterator[ColumnRef]:
    if isinstance(expr, ColumnRef):
        yield expr
        return
    if isinstance(expr, BinaryOp):
        yield from _column_refs(expr.left)
        yield from _column_refs(expr.right)
        return
    if isinstance(expr, UnaryOp):
        yield from _column_refs(expr.operand)


def _validate_boolean(expr: Expression, context: str) -> None:
    data_type = expr.get_type()
    if data_type != DataType.BOOLEAN:
        raise SchemaMismatchError(
            f"{context} must be BOOLEAN, got {data_type.value}: {expr}"
        )


def _validate_expression(expr: Expression, fields: List[Field], context: str) -> None:
    """Check every column reference against the schema it is evaluated over."""
    for ref in _column_refs(expr):
        if ref.index < 0 or ref.index >= len(fields):
            raise SchemaMismatchError(
                f"{context} references column ${ref.index} "
                f"but its input has {len(fields)} columns"
            )
        field = fields[ref.index]
        if ref.data_type != field.data_type:
            raise SchemaMismatchError(
                f"{context} reads ${ref.index} as {ref.data_type.value}, "
                f"input column {field.name} is {field.data_type.value}"
            )
        if field.nullable and not ref.nullable:
            raise SchemaMismatchError(
                f"{context} treats nullable column {field.name} as NOT NULL"
            )
