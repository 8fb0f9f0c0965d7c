"""Text and JSON rendering of logical plans."""

import json
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional

from .logical import Filter, Join, LogicalPlanNode, Project, Scan

if TYPE_CHECKING:
    from ..optimizer.hints import CostHintRegistry


class ExplainFormat(Enum):
    """Supported EXPLAIN output formats."""

    TEXT = "TEXT"
    JSON = "JSON"


def format_plan(
    plan: LogicalPlanNode,
    format: ExplainFormat = ExplainFormat.TEXT,
    hints: Optional["CostHintRegistry"] = None,
) -> str:
    """Render a plan tree.

    Args:
        plan: Root of the plan
        format: TEXT for an indented tree, JSON for a nested document
        hints: Optional hint registry; known hints are shown per node

    Returns:
        Rendered plan
    """
    formatter = _PlanFormatter(hints)
    if format == ExplainFormat.JSON:
        document = formatter.build_document(plan)
        return json.dumps(document, indent=2)
    return "\n".join(formatter.format(plan))


class _PlanFormatter:
    """Utility to format logical plans."""

    def __init__(self, hints: Optional["CostHintRegistry"] = None):
        self._hints = hints
        self._detail_builders: Dict[type, Callable[[Any], str]] = {}
        self._detail_builders[Scan] = self._scan_detail
        self._detail_builders[Filter] = self._filter_detail
        self._detail_builders[Project] = self._project_detail
        self._detail_builders[Join] = self._join_detail

    def format(self, node: LogicalPlanNode) -> List[str]:
        lines: List[str] = []
        self._append_node_line(node, 0, lines)
        return lines

    def build_document(self, node: LogicalPlanNode) -> Dict[str, Any]:
        document: Dict[str, Any] = {
            "node": node.__class__.__name__,
            "detail": self._detail_for(node),
            "schema": node.column_names(),
        }
        hint_values = self._hint_values(node)
        if hint_values:
            document["hints"] = hint_values
        document["children"] = [self.build_document(child) for child in node.children()]
        return document

    def _append_node_line(self, node: LogicalPlanNode, depth: int, lines: List[str]) -> None:
        indent = self._build_indent(depth)
        header = self._build_header(node)
        lines.append(f"{indent}{header}")
        for child in node.children():
            self._append_node_line(child, depth + 1, lines)

    def _build_indent(self, depth: int) -> str:
        if depth == 0:
            return ""
        return f"{'  ' * depth}-> "

    def _build_header(self, node: LogicalPlanNode) -> str:
        header = node.__class__.__name__
        detail = self._detail_for(node)
        if detail:
            header = f"{header} {detail}"
        hint_values = self._hint_values(node)
        if hint_values:
            rendered = ", ".join(f"{key}={value}" for key, value in hint_values.items())
            header = f"{header} hints=[{rendered}]"
        return header

    def _detail_for(self, node: LogicalPlanNode) -> str:
        builder = self._detail_builders.get(type(node))
        if builder is None:
            return ""
        return builder(node)

    def _hint_values(self, node: LogicalPlanNode) -> Dict[str, Any]:
        if self._hints is None:
            return {}
        hints = self._hints.get(node)
        if hints is None:
            return {}
        return hints.known_values()

    def _scan_detail(self, node: Scan) -> str:
        columns = ", ".join(node.column_names())
        return f"relation={node.relation_id} columns=[{columns}]"

    def _filter_detail(self, node: Filter) -> str:
        return f"predicate={node.predicate.to_sql()}"

    def _project_detail(self, node: Project) -> str:
        items = []
        for expr, alias in zip(node.expressions, node.aliases):
            items.append(f"{expr.to_sql()} AS {alias}")
        return f"exprs=[{', '.join(items)}]"

    def _join_detail(self, node: Join) -> str:
        condition = node.condition.to_sql() if node.condition is not None else "TRUE"
        return f"type={node.join_type.value} condition={condition}"
