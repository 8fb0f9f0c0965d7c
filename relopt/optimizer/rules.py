"""Optimization rules for logical plans."""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Tuple, TYPE_CHECKING

from ..plan.expressions import Expression
from ..plan.logical import (
    LogicalPlanNode,
    Filter,
    Project,
    Join,
    JoinType,
    SchemaMismatchError,
)
from ..utils.logging import get_contextual_logger
from .predicates import (
    input_columns,
    is_null_producing,
    references_only,
    substitute_columns,
)

if TYPE_CHECKING:
    from ..config.config import OptimizerConfig

logger = logging.getLogger(__name__)

SEMI_ANTI_JOIN_TYPES = (JoinType.SEMI, JoinType.ANTI)


@dataclass(frozen=True)
class MatchHandle:
    """A successful pattern match, consumed by ``OptimizationRule.apply``.

    Holds the matched nodes by reference so ``apply`` does not need to
    re-run the pattern test.
    """

    rule_name: str
    join: Join
    project: Optional[Project] = None
    filter: Optional[Filter] = None
    # Anti join whose moved predicate can evaluate to NULL
    null_sensitive: bool = False


class OptimizationRule(ABC):
    """Base class for optimization rules.

    ``match`` is the cheap pattern and legality test; a None result means
    the rule is not applicable here and is not an error. ``apply`` builds
    the replacement subtree and never mutates the matched nodes.
    """

    @abstractmethod
    def match(self, plan: LogicalPlanNode) -> Optional[MatchHandle]:
        """Test whether this rule applies at the root of ``plan``."""
        pass

    @abstractmethod
    def apply(self, handle: MatchHandle) -> LogicalPlanNode:
        """Build the replacement for a matched subtree."""
        pass

    @abstractmethod
    def name(self) -> str:
        """Return rule name for logging."""
        pass

    def rewrite(self, plan: LogicalPlanNode) -> Optional[LogicalPlanNode]:
        """Match and apply in one step.

        Returns:
            Transformed plan if rule applies, None otherwise
        """
        handle = self.match(plan)
        if handle is None:
            return None
        return self.apply(handle)

    def _check_handle(self, handle: MatchHandle) -> None:
        """Reject a handle produced by a different rule."""
        if handle.rule_name != self.name():
            raise ValueError(
                f"{self.name()} cannot apply a match from {handle.rule_name}"
            )

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"


def _condition_below_project(condition: Expression, project: Project) -> Expression:
    """Rewrite a join condition written over a project's output to its input.

    Left references are replaced by the projected expressions; right
    references move by the difference in left width.
    """
    offset = len(project.input.schema()) - len(project.expressions)
    return substitute_columns(condition, project.expressions, offset)


class SemiAntiJoinProjectTransposeRule(OptimizationRule):
    """Move a semi/anti join below a project on its left input.

    Before: Join(SEMI|ANTI, Project(X), R)
    After:  Project(Join(SEMI|ANTI, X, R))

    A semi or anti join only keeps or drops left rows, so the project
    expressions stay valid over the join output without changes.
    """

    def match(self, plan: LogicalPlanNode) -> Optional[MatchHandle]:
        if not isinstance(plan, Join) or plan.join_type not in SEMI_ANTI_JOIN_TYPES:
            return None
        if not isinstance(plan.left, Project):
            return None
        return MatchHandle(self.name(), join=plan, project=plan.left)

    def apply(self, handle: MatchHandle) -> LogicalPlanNode:
        self._check_handle(handle)
        join = handle.join
        project = handle.project
        condition = _condition_below_project(join.condition, project)
        new_join = Join(project.input, join.right, join.join_type, condition)
        return Project(new_join, project.expressions, project.aliases)

    def name(self) -> str:
        return "SemiAntiJoinProjectTranspose"


class SemiAntiJoinFilterTransposeRule(OptimizationRule):
    """Pull a left-side filter above a semi/anti join.

    Before: Join(SEMI|ANTI, Filter(P, L), R)
    After:  Filter(P, Join(SEMI|ANTI, L, R))

    A project directly above the filter is unwrapped and put back on top:

    Before: Join(SEMI|ANTI, Project(Filter(P, L)), R)
    After:  Project(Filter(P, Join(SEMI|ANTI, L, R)))

    The join condition and kind are never changed apart from the column
    remapping needed to look through the project. The predicate is reused
    unchanged because the join output keeps L's columns at the same
    positions.
    """

    def match(self, plan: LogicalPlanNode) -> Optional[MatchHandle]:
        if not isinstance(plan, Join) or plan.join_type not in SEMI_ANTI_JOIN_TYPES:
            return None

        project, filter_node = self._unwrap_left(plan.left)
        if filter_node is None:
            return None

        if not self.is_legal(filter_node.predicate, filter_node.input):
            logger.debug(
                f"{self.name()}: predicate {filter_node.predicate} reads columns "
                f"outside the filter input, not applicable"
            )
            return None

        null_sensitive = (
            plan.join_type == JoinType.ANTI
            and is_null_producing(filter_node.predicate)
        )
        return MatchHandle(
            self.name(),
            join=plan,
            project=project,
            filter=filter_node,
            null_sensitive=null_sensitive,
        )

    def is_legal(self, predicate: Expression, left_child: LogicalPlanNode) -> bool:
        """Check that a predicate can be evaluated below the join.

        The predicate may only read columns of the join's left input;
        anything else is not available once the filter moves.
        """
        return references_only(predicate, input_columns(left_child))

    def apply(self, handle: MatchHandle) -> LogicalPlanNode:
        self._check_handle(handle)
        join = handle.join
        filter_node = handle.filter

        if handle.project is None:
            new_join = Join(filter_node.input, join.right, join.join_type, join.condition)
            return Filter(new_join, filter_node.predicate)

        # Project.input is the filter, whose schema is L's schema
        condition = _condition_below_project(join.condition, handle.project)
        new_join = Join(filter_node.input, join.right, join.join_type, condition)
        new_filter = Filter(new_join, filter_node.predicate)
        return Project(new_filter, handle.project.expressions, handle.project.aliases)

    def _unwrap_left(
        self, left: LogicalPlanNode
    ) -> Tuple[Optional[Project], Optional[Filter]]:
        if isinstance(left, Filter):
            return None, left
        if isinstance(left, Project) and isinstance(left.input, Filter):
            return left, left.input
        return None, None

    def name(self) -> str:
        return "SemiAntiJoinFilterTranspose"


class MatchOrder(Enum):
    """Order in which the optimizer visits plan nodes."""

    BOTTOM_UP = "BOTTOM_UP"
    TOP_DOWN = "TOP_DOWN"


class RuleBasedOptimizer:
    """Rule-based query optimizer."""

    def __init__(
        self,
        rules: Optional[List[OptimizationRule]] = None,
        max_iterations: int = 10,
        match_order: MatchOrder = MatchOrder.BOTTOM_UP,
    ):
        """Initialize optimizer.

        Args:
            rules: Rules to apply, in priority order
            max_iterations: Default bound on optimization passes
            match_order: Default node visiting order
        """
        self.rules: List[OptimizationRule] = list(rules) if rules else []
        self.max_iterations = max_iterations
        self.match_order = match_order

    def add_rule(self, rule: OptimizationRule) -> None:
        """Add an optimization rule.

        Args:
            rule: Optimization rule to add
        """
        self.rules.append(rule)

    def optimize(
        self,
        plan: LogicalPlanNode,
        max_iterations: Optional[int] = None,
        match_order: Optional[MatchOrder] = None,
    ) -> LogicalPlanNode:
        """Optimize a logical plan using registered rules.

        Applies rules pass by pass until a pass changes nothing or the
        iteration bound is reached.

        Args:
            plan: Input logical plan
            max_iterations: Maximum number of optimization passes
            match_order: Node visiting order for this run

        Returns:
            Optimized logical plan
        """
        if max_iterations is None:
            max_iterations = self.max_iterations
        if match_order is None:
            match_order = self.match_order

        run_logger = get_contextual_logger(
            __name__,
            {"rules": [rule.name() for rule in self.rules], "match_order": match_order.value},
        )

        current_plan = plan
        iteration = 0

        while iteration < max_iterations:
            iteration += 1
            fired = 0

            for rule in self.rules:
                current_plan, rule_fired = self._apply_rule(rule, current_plan, match_order)
                fired += rule_fired

            run_logger.debug(
                f"Optimization pass {iteration}: {fired} rewrite(s)",
                extra={"context": {"pass": iteration, "rewrites": fired}},
            )

            # If no rules made changes, we've reached fixed point
            if fired == 0:
                break
        else:
            run_logger.debug(f"Stopped after {max_iterations} passes without reaching a fixed point")

        return current_plan

    def _apply_rule(
        self,
        rule: OptimizationRule,
        plan: LogicalPlanNode,
        match_order: MatchOrder,
    ) -> Tuple[LogicalPlanNode, int]:
        if match_order == MatchOrder.TOP_DOWN:
            return self._apply_top_down(rule, plan)
        return self._apply_bottom_up(rule, plan)

    def _apply_bottom_up(
        self, rule: OptimizationRule, plan: LogicalPlanNode
    ) -> Tuple[LogicalPlanNode, int]:
        plan, fired = self._apply_to_children(rule, plan, self._apply_bottom_up)
        result = self._try_rule(rule, plan)
        if result is None:
            return plan, fired
        return result, fired + 1

    def _apply_top_down(
        self, rule: OptimizationRule, plan: LogicalPlanNode
    ) -> Tuple[LogicalPlanNode, int]:
        fired = 0
        result = self._try_rule(rule, plan)
        if result is not None:
            plan = result
            fired = 1
        plan, child_fired = self._apply_to_children(rule, plan, self._apply_top_down)
        return plan, fired + child_fired

    def _apply_to_children(self, rule, plan, visit) -> Tuple[LogicalPlanNode, int]:
        children = plan.children()
        if not children:
            return plan, 0

        rewritten_children = []
        changed = False
        fired = 0

        for child in children:
            rewritten, child_fired = visit(rule, child)
            rewritten_children.append(rewritten)
            fired += child_fired
            if rewritten is not child:
                changed = True

        if changed:
            return plan.with_children(rewritten_children), fired
        return plan, fired

    def _try_rule(
        self, rule: OptimizationRule, plan: LogicalPlanNode
    ) -> Optional[LogicalPlanNode]:
        try:
            result = rule.rewrite(plan)
        except SchemaMismatchError as e:
            logger.warning(f"Rule {rule.name()} produced an invalid plan for {plan!r}: {e}")
            return None
        if result is not None:
            logger.debug(f"Rule {rule.name()} rewrote {plan!r} into {result!r}")
        return result

    def __repr__(self) -> str:
        return f"RuleBasedOptimizer(rules={len(self.rules)})"


def build_optimizer(config: Optional["OptimizerConfig"] = None) -> RuleBasedOptimizer:
    """Create an optimizer with the rules enabled in ``config``."""
    from ..config.config import OptimizerConfig

    if config is None:
        config = OptimizerConfig()

    optimizer = RuleBasedOptimizer(
        max_iterations=config.max_iterations,
        match_order=MatchOrder(config.match_order.upper()),
    )
    if config.enable_semi_anti_project_transpose:
        optimizer.add_rule(SemiAntiJoinProjectTransposeRule())
    if config.enable_semi_anti_filter_transpose:
        optimizer.add_rule(SemiAntiJoinFilterTransposeRule())
    return optimizer
