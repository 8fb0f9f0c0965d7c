"""Compiler hints describing the data an operator produces.

Hints are advisory. A plan is valid no matter how they are set; they only
feed the size estimates the cost model uses to pick between legal plans.
The numbers need not be exact. What matters most is whether the data
volume grows or shrinks across an operator.
"""

import logging
import math
import numbers
from typing import Any, Dict, Optional

from ..plan.logical import LogicalPlanNode

logger = logging.getLogger(__name__)


class InvalidHintError(ValueError):
    """Raised when a hint setter receives a value it cannot store."""

    def __init__(self, field: str, value: Any, reason: str = "must be >= 0"):
        self.field = field
        self.value = value
        self.reason = reason
        super().__init__(f"Hint '{field}' {reason}, got {value!r}")


def _check_non_negative(field: str, value: Any) -> None:
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        raise InvalidHintError(field, value, "must be a number")
    if math.isnan(value) or math.isinf(value):
        raise InvalidHintError(field, value, "must be finite")
    if value < 0:
        raise InvalidHintError(field, value)


class CostHints:
    """Optional statistics for a single operator.

    - key cardinality: number of distinct keys the operator produces
    - average values per key: multiplicity of each distinct key
    - average bytes per record: serialized record size
    - average records emitted per call: growth or shrink factor of the
      producing function, 1.0 unless set

    Unknown values are reported as None.
    """

    def __init__(self):
        self._key_cardinality: Optional[int] = None
        self._avg_values_per_key: Optional[float] = None
        self._avg_bytes_per_record: Optional[float] = None
        self._avg_records_emitted_per_call: float = 1.0

    def key_cardinality(self) -> Optional[int]:
        return self._key_cardinality

    def set_key_cardinality(self, key_cardinality: int) -> None:
        _check_non_negative("key_cardinality", key_cardinality)
        if not isinstance(key_cardinality, numbers.Integral) and not float(key_cardinality).is_integer():
            raise InvalidHintError("key_cardinality", key_cardinality, "must be a whole number")
        self._key_cardinality = int(key_cardinality)

    def avg_values_per_key(self) -> Optional[float]:
        return self._avg_values_per_key

    def set_avg_values_per_key(self, avg_values: float) -> None:
        _check_non_negative("avg_values_per_key", avg_values)
        self._avg_values_per_key = float(avg_values)

    def avg_bytes_per_record(self) -> Optional[float]:
        return self._avg_bytes_per_record

    def set_avg_bytes_per_record(self, avg_bytes: float) -> None:
        _check_non_negative("avg_bytes_per_record", avg_bytes)
        self._avg_bytes_per_record = float(avg_bytes)

    def avg_records_emitted_per_call(self) -> float:
        return self._avg_records_emitted_per_call

    def set_avg_records_emitted_per_call(self, avg_records: float) -> None:
        _check_non_negative("avg_records_emitted_per_call", avg_records)
        self._avg_records_emitted_per_call = float(avg_records)

    def estimated_row_count(self) -> Optional[float]:
        """Rows implied by key cardinality and values per key, if both are known."""
        if self._key_cardinality is None or self._avg_values_per_key is None:
            return None
        return self._key_cardinality * self._avg_values_per_key

    def known_values(self) -> Dict[str, Any]:
        """Return the hints that are set, keyed by hint name."""
        values: Dict[str, Any] = {}
        if self._key_cardinality is not None:
            values["key_cardinality"] = self._key_cardinality
        if self._avg_values_per_key is not None:
            values["avg_values_per_key"] = self._avg_values_per_key
        if self._avg_bytes_per_record is not None:
            values["avg_bytes_per_record"] = self._avg_bytes_per_record
        values["avg_records_emitted_per_call"] = self._avg_records_emitted_per_call
        return values

    def __repr__(self) -> str:
        rendered = ", ".join(f"{key}={value}" for key, value in self.known_values().items())
        return f"CostHints({rendered})"


class CostHintRegistry:
    """Hints keyed by operator identity.

    Two structurally equal nodes may carry different hints, so lookups use
    the node object itself, not its value. The registry keeps a reference to
    every node it has hints for. A node built by a rewrite starts without
    hints.
    """

    def __init__(self):
        self._entries: Dict[int, tuple] = {}

    def hints_for(self, node: LogicalPlanNode) -> CostHints:
        """Return the hints of a node, creating an empty record on first use."""
        entry = self._entries.get(id(node))
        if entry is None:
            hints = CostHints()
            self._entries[id(node)] = (node, hints)
            return hints
        return entry[1]

    def get(self, node: LogicalPlanNode) -> Optional[CostHints]:
        """Return the hints of a node, or None if it has none."""
        entry = self._entries.get(id(node))
        if entry is None:
            return None
        return entry[1]

    def attach(self, node: LogicalPlanNode, hints: CostHints) -> None:
        """Attach a hint record to a node, replacing any previous record."""
        self._entries[id(node)] = (node, hints)

    def discard(self, node: LogicalPlanNode) -> None:
        """Drop the hints of a node that has been superseded."""
        self._entries.pop(id(node), None)

    def apply(self, node: LogicalPlanNode, values: Dict[str, Any]) -> CostHints:
        """Set several hints at once from a name -> value mapping.

        Raises:
            InvalidHintError: On the first invalid value; hints set before it
                are kept, the failing one keeps its previous value.
            KeyError: On a name that is not one of the four hints.
        """
        hints = self.hints_for(node)
        setters = {
            "key_cardinality": hints.set_key_cardinality,
            "avg_values_per_key": hints.set_avg_values_per_key,
            "avg_bytes_per_record": hints.set_avg_bytes_per_record,
            "avg_records_emitted_per_call": hints.set_avg_records_emitted_per_call,
        }
        for name, value in values.items():
            setter = setters.get(name)
            if setter is None:
                raise KeyError(f"Unknown hint '{name}', expected one of: {', '.join(setters)}")
            try:
                setter(value)
            except InvalidHintError:
                logger.warning(f"Rejected hint {name}={value!r} for {node!r}")
                raise
        return hints

    def __contains__(self, node: LogicalPlanNode) -> bool:
        return id(node) in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"CostHintRegistry(nodes={len(self._entries)})"
