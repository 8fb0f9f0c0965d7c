"""relopt: semi/anti join transposition rules and cost hints for logical plans."""

from .plan import (
    LogicalPlanNode,
    Field,
    JoinType,
    Scan,
    Filter,
    Project,
    Join,
    SchemaMismatchError,
    ExplainFormat,
    format_plan,
)
from .optimizer import (
    RuleBasedOptimizer,
    SemiAntiJoinFilterTransposeRule,
    SemiAntiJoinProjectTransposeRule,
    build_optimizer,
    CostHints,
    CostHintRegistry,
    InvalidHintError,
    CostModel,
)
from .config import Config, load_config

__version__ = "0.1.0"

__all__ = [
    "LogicalPlanNode",
    "Field",
    "JoinType",
    "Scan",
    "Filter",
    "Project",
    "Join",
    "SchemaMismatchError",
    "ExplainFormat",
    "format_plan",
    "RuleBasedOptimizer",
    "SemiAntiJoinFilterTransposeRule",
    "SemiAntiJoinProjectTransposeRule",
    "build_optimizer",
    "CostHints",
    "CostHintRegistry",
    "InvalidHintError",
    "CostModel",
    "Config",
    "load_config",
]
