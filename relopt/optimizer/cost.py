"""Cost model for query optimization.

Reads cost hints but never writes them. Unknown hints fall back to the
heuristics below.
"""

from typing import Iterable, Optional
from ..plan.logical import (
    LogicalPlanNode,
    Scan,
    Project,
    Filter,
    Join,
    JoinType,
)
from ..plan.expressions import (
    Expression,
    BinaryOp,
    UnaryOp,
    BinaryOpType,
    UnaryOpType,
    DataType,
)
from ..config.config import CostConfig
from .hints import CostHintRegistry


# Average serialized width per type, in bytes
_TYPE_WIDTHS = {
    DataType.INTEGER: 4,
    DataType.BIGINT: 8,
    DataType.FLOAT: 4,
    DataType.DOUBLE: 8,
    DataType.DECIMAL: 16,
    DataType.VARCHAR: 32,
    DataType.TEXT: 64,
    DataType.BOOLEAN: 1,
    DataType.DATE: 4,
    DataType.TIMESTAMP: 8,
    DataType.NULL: 0,
}


class CostModel:
    """Cost model for estimating query execution cost."""

    def __init__(
        self,
        config: Optional[CostConfig] = None,
        hints: Optional[CostHintRegistry] = None,
    ):
        """Initialize cost model.

        Args:
            config: Cost model configuration
            hints: Hint registry with per-operator statistics
        """
        self.config = config if config is not None else CostConfig()
        self.hints = hints if hints is not None else CostHintRegistry()

    def estimate_cardinality(self, plan: LogicalPlanNode) -> float:
        """Estimate output cardinality of a plan.

        Args:
            plan: Logical plan node

        Returns:
            Estimated number of output rows
        """
        hints = self.hints.get(plan)
        if hints is not None:
            hinted_rows = hints.estimated_row_count()
            if hinted_rows is not None:
                return hinted_rows

        estimate = self._estimate_base_cardinality(plan)
        if hints is not None:
            estimate *= hints.avg_records_emitted_per_call()
        return estimate

    def _estimate_base_cardinality(self, plan: LogicalPlanNode) -> float:
        if isinstance(plan, Scan):
            return float(self.config.default_row_count)
        if isinstance(plan, Filter):
            return self._estimate_filter_cardinality(plan)
        if isinstance(plan, Project):
            return self.estimate_cardinality(plan.input)
        if isinstance(plan, Join):
            return self._estimate_join_cardinality(plan)

        return float(self.config.default_row_count)

    def _estimate_filter_cardinality(self, filter_node: Filter) -> float:
        """Estimate cardinality after filtering."""
        input_card = self.estimate_cardinality(filter_node.input)
        selectivity = self.estimate_selectivity(filter_node.predicate)
        return input_card * selectivity

    def _estimate_join_cardinality(self, join: Join) -> float:
        """Estimate cardinality of a join."""
        left_card = self.estimate_cardinality(join.left)
        right_card = self.estimate_cardinality(join.right)

        if join.condition is None:
            return left_card * right_card

        selectivity = self.estimate_selectivity(join.condition)

        if join.join_type == JoinType.INNER:
            return left_card * right_card * selectivity

        # Fraction of left rows that find at least one match
        match_fraction = min(1.0, right_card * selectivity)
        if join.join_type == JoinType.SEMI:
            return left_card * match_fraction
        return left_card * (1.0 - match_fraction)

    def estimate_selectivity(self, predicate: Expression) -> float:
        """Estimate selectivity of a predicate.

        Args:
            predicate: Filter predicate expression

        Returns:
            Estimated selectivity (0.0 to 1.0)
        """
        if isinstance(predicate, BinaryOp):
            return self._estimate_binary_op_selectivity(predicate)
        if isinstance(predicate, UnaryOp):
            return self._estimate_unary_op_selectivity(predicate)

        return 0.1

    def _estimate_binary_op_selectivity(self, binop: BinaryOp) -> float:
        """Estimate selectivity for binary operations."""
        if binop.op == BinaryOpType.AND:
            left_sel = self.estimate_selectivity(binop.left)
            right_sel = self.estimate_selectivity(binop.right)
            return left_sel * right_sel
        if binop.op == BinaryOpType.OR:
            left_sel = self.estimate_selectivity(binop.left)
            right_sel = self.estimate_selectivity(binop.right)
            return 1.0 - ((1.0 - left_sel) * (1.0 - right_sel))
        if binop.op == BinaryOpType.EQ:
            return 0.1
        if binop.op in (BinaryOpType.LT, BinaryOpType.LTE, BinaryOpType.GT, BinaryOpType.GTE):
            return 0.33
        if binop.op == BinaryOpType.NEQ:
            return 0.9

        return 0.1

    def _estimate_unary_op_selectivity(self, unop: UnaryOp) -> float:
        """Estimate selectivity for unary operations."""
        if unop.op == UnaryOpType.NOT:
            inner_sel = self.estimate_selectivity(unop.operand)
            return 1.0 - inner_sel
        if unop.op == UnaryOpType.IS_NULL:
            return 0.05
        if unop.op == UnaryOpType.IS_NOT_NULL:
            return 0.95

        return 0.1

    def estimate_record_bytes(self, plan: LogicalPlanNode) -> float:
        """Estimate the average size of one output record."""
        hints = self.hints.get(plan)
        if hints is not None and hints.avg_bytes_per_record() is not None:
            return hints.avg_bytes_per_record()

        total = 0
        for field in plan.schema():
            total += _TYPE_WIDTHS.get(field.data_type, self.config.default_column_width)
        return float(total)

    def estimate_cost(self, plan: LogicalPlanNode) -> float:
        """Estimate the total cost of evaluating a plan.

        CPU cost is charged for every row each operator produces; scans are
        additionally charged for the pages they read.
        """
        cost = self.estimate_cardinality(plan) * self.config.cpu_tuple_cost

        if isinstance(plan, Scan):
            scan_bytes = self.estimate_cardinality(plan) * self.estimate_record_bytes(plan)
            pages = scan_bytes / self.config.page_size_bytes
            cost += pages * self.config.io_page_cost

        for child in plan.children():
            cost += self.estimate_cost(child)
        return cost

    def cheapest(self, plans: Iterable[LogicalPlanNode]) -> LogicalPlanNode:
        """Pick the candidate with the lowest estimated cost.

        The first candidate wins ties.
        """
        best_plan = None
        best_cost = None
        for plan in plans:
            cost = self.estimate_cost(plan)
            if best_cost is None or cost < best_cost:
                best_plan = plan
                best_cost = cost
        if best_plan is None:
            raise ValueError("cheapest() needs at least one candidate plan")
        return best_plan

    def __repr__(self) -> str:
        return f"CostModel(hinted_nodes={len(self.hints)})"
