"""Shared fixtures: two small relations and helpers to build predicates."""

import pyarrow as pa
import pytest

from relopt.plan.expressions import BinaryOp, BinaryOpType, ColumnRef, DataType, Literal
from relopt.plan.logical import Field, Scan
from tests.reference_evaluator import ReferenceEvaluator


@pytest.fixture
def left_scan():
    """L(a INTEGER, b INTEGER)."""
    return Scan(
        "L",
        [Field("a", DataType.INTEGER), Field("b", DataType.INTEGER)],
    )


@pytest.fixture
def right_scan():
    """R(e INTEGER)."""
    return Scan("R", [Field("e", DataType.INTEGER)])


@pytest.fixture
def a_gt_10(left_scan):
    """a > 10 over L."""
    return BinaryOp(
        op=BinaryOpType.GT,
        left=left_scan.column(0),
        right=Literal(10, DataType.INTEGER),
    )


@pytest.fixture
def b_eq_e(left_scan, right_scan):
    """b = e over L ++ R."""
    return BinaryOp(
        op=BinaryOpType.EQ,
        left=left_scan.column(1),
        right=ColumnRef(2, DataType.INTEGER, True, "e"),
    )


@pytest.fixture
def relations():
    """Rows used by the end-to-end scenario."""
    return {
        "L": pa.table({"a": [5, 20, 20], "b": [1, 2, 3]}),
        "R": pa.table({"e": [2]}),
    }


@pytest.fixture
def evaluator(relations):
    return ReferenceEvaluator(relations)
