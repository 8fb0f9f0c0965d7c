"""Tests for the semi/anti join transpose rules."""

import pytest

from relopt.optimizer.rules import (
    MatchHandle,
    SemiAntiJoinFilterTransposeRule,
    SemiAntiJoinProjectTransposeRule,
)
from relopt.plan.expressions import (
    BinaryOp,
    BinaryOpType,
    ColumnRef,
    DataType,
    Literal,
    UnaryOp,
    UnaryOpType,
)
from relopt.plan.logical import Field, Filter, Join, JoinType, Project, Scan

SEMI_ANTI = [JoinType.SEMI, JoinType.ANTI]


@pytest.fixture
def rule():
    return SemiAntiJoinFilterTransposeRule()


@pytest.fixture
def project_rule():
    return SemiAntiJoinProjectTransposeRule()


class TestFilterTransposeMatch:
    """Pattern and legality checks."""

    @pytest.mark.parametrize("join_type", SEMI_ANTI)
    def test_matches_filter_on_left(self, rule, left_scan, right_scan, a_gt_10, b_eq_e, join_type):
        filter_node = Filter(left_scan, a_gt_10)
        join = Join(filter_node, right_scan, join_type, b_eq_e)

        handle = rule.match(join)

        assert isinstance(handle, MatchHandle)
        assert handle.join is join
        assert handle.filter is filter_node
        assert handle.project is None
        assert handle.rule_name == rule.name()

    def test_inner_join_not_applicable(self, rule, left_scan, right_scan, a_gt_10, b_eq_e):
        join = Join(Filter(left_scan, a_gt_10), right_scan, JoinType.INNER, b_eq_e)
        assert rule.match(join) is None
        assert rule.rewrite(join) is None

    @pytest.mark.parametrize("join_type", SEMI_ANTI)
    def test_no_filter_not_applicable(self, rule, left_scan, right_scan, b_eq_e, join_type):
        join = Join(left_scan, right_scan, join_type, b_eq_e)
        assert rule.match(join) is None

    def test_filter_on_right_not_applicable(self, rule, left_scan, right_scan, b_eq_e):
        e_gt_0 = BinaryOp(BinaryOpType.GT, right_scan.column(0), Literal(0, DataType.INTEGER))
        join = Join(left_scan, Filter(right_scan, e_gt_0), JoinType.SEMI, b_eq_e)
        assert rule.match(join) is None

    def test_non_join_not_applicable(self, rule, left_scan, a_gt_10):
        assert rule.match(Filter(left_scan, a_gt_10)) is None
        assert rule.match(left_scan) is None

    def test_right_side_reference_is_illegal(self, rule, left_scan):
        # $2 is R.e in the join's combined row; it is not a column of L
        reads_right = BinaryOp(
            BinaryOpType.EQ,
            left_scan.column(1),
            ColumnRef(2, DataType.INTEGER),
        )
        assert not rule.is_legal(reads_right, left_scan)

    def test_left_only_reference_is_legal(self, rule, left_scan, a_gt_10):
        assert rule.is_legal(a_gt_10, left_scan)

    def test_literal_predicate_is_legal(self, rule, left_scan):
        assert rule.is_legal(Literal(True, DataType.BOOLEAN), left_scan)

    def test_anti_join_records_null_sensitivity(self, rule, left_scan, right_scan, a_gt_10, b_eq_e):
        join = Join(Filter(left_scan, a_gt_10), right_scan, JoinType.ANTI, b_eq_e)
        handle = rule.match(join)
        assert handle.null_sensitive is True

    def test_semi_join_is_never_null_sensitive(self, rule, left_scan, right_scan, a_gt_10, b_eq_e):
        join = Join(Filter(left_scan, a_gt_10), right_scan, JoinType.SEMI, b_eq_e)
        assert rule.match(join).null_sensitive is False

    def test_not_null_predicate_under_anti_join(self, rule, left_scan, right_scan, b_eq_e):
        a_is_not_null = UnaryOp(UnaryOpType.IS_NOT_NULL, left_scan.column(0))
        join = Join(Filter(left_scan, a_is_not_null), right_scan, JoinType.ANTI, b_eq_e)
        handle = rule.match(join)
        assert handle is not None
        assert handle.null_sensitive is False

    def test_handles_are_hashable(self, rule, left_scan, right_scan, a_gt_10, b_eq_e):
        join = Join(Filter(left_scan, a_gt_10), right_scan, JoinType.SEMI, b_eq_e)
        first = rule.match(join)
        second = rule.match(Join(Filter(left_scan, a_gt_10), right_scan, JoinType.SEMI, b_eq_e))
        assert first == second
        assert len({first, second}) == 1


class TestFilterTransposeApply:
    """Rewrite shape."""

    @pytest.mark.parametrize("join_type", SEMI_ANTI)
    def test_filter_moves_above_join(self, rule, left_scan, right_scan, a_gt_10, b_eq_e, join_type):
        join = Join(Filter(left_scan, a_gt_10), right_scan, join_type, b_eq_e)

        result = rule.apply(rule.match(join))

        assert result == Filter(Join(left_scan, right_scan, join_type, b_eq_e), a_gt_10)

    def test_end_to_end_anti_rewrite(self, rule, left_scan, right_scan, a_gt_10, b_eq_e):
        original = Join(Filter(left_scan, a_gt_10), right_scan, JoinType.ANTI, b_eq_e)

        result = rule.rewrite(original)

        assert isinstance(result, Filter)
        assert result.predicate is a_gt_10
        assert isinstance(result.input, Join)
        assert result.input.join_type == JoinType.ANTI
        assert result.input.condition is b_eq_e

    def test_children_shared_by_reference(self, rule, left_scan, right_scan, a_gt_10, b_eq_e):
        original = Join(Filter(left_scan, a_gt_10), right_scan, JoinType.SEMI, b_eq_e)

        result = rule.rewrite(original)

        assert result.input.left is left_scan
        assert result.input.right is right_scan

    def test_original_tree_untouched(self, rule, left_scan, right_scan, a_gt_10, b_eq_e):
        filter_node = Filter(left_scan, a_gt_10)
        original = Join(filter_node, right_scan, JoinType.SEMI, b_eq_e)

        rule.rewrite(original)

        assert original.left is filter_node
        assert original.join_type == JoinType.SEMI

    def test_output_schema_preserved(self, rule, left_scan, right_scan, a_gt_10, b_eq_e):
        original = Join(Filter(left_scan, a_gt_10), right_scan, JoinType.ANTI, b_eq_e)
        assert rule.rewrite(original).schema() == original.schema()

    @pytest.mark.parametrize("join_type", SEMI_ANTI)
    def test_second_match_not_applicable(self, rule, left_scan, right_scan, a_gt_10, b_eq_e, join_type):
        original = Join(Filter(left_scan, a_gt_10), right_scan, join_type, b_eq_e)

        result = rule.rewrite(original)

        assert rule.match(result) is None
        assert rule.match(result.input) is None

    def test_stacked_filters_move_one_at_a_time(self, rule, left_scan, right_scan, a_gt_10, b_eq_e):
        b_lt_3 = BinaryOp(BinaryOpType.LT, left_scan.column(1), Literal(3, DataType.INTEGER))
        inner_filter = Filter(left_scan, b_lt_3)
        original = Join(Filter(inner_filter, a_gt_10), right_scan, JoinType.SEMI, b_eq_e)

        first = rule.rewrite(original)
        assert first == Filter(Join(inner_filter, right_scan, JoinType.SEMI, b_eq_e), a_gt_10)

        second = rule.rewrite(first.input)
        assert second == Filter(Join(left_scan, right_scan, JoinType.SEMI, b_eq_e), b_lt_3)

    def test_handle_from_other_rule_rejected(self, rule, project_rule, left_scan, right_scan, b_eq_e):
        project = Project(left_scan, [left_scan.column(0), left_scan.column(1)], ["a", "b"])
        handle = project_rule.match(Join(project, right_scan, JoinType.SEMI, b_eq_e))
        assert handle.filter is None

        with pytest.raises(ValueError, match="SemiAntiJoinProjectTranspose"):
            rule.apply(handle)

    def test_project_rule_rejects_filter_handle(self, rule, project_rule, left_scan, right_scan, a_gt_10, b_eq_e):
        filter_node = Filter(left_scan, a_gt_10)
        handle = rule.match(Join(filter_node, right_scan, JoinType.ANTI, b_eq_e))

        with pytest.raises(ValueError, match="SemiAntiJoinFilterTranspose"):
            project_rule.apply(handle)


class TestFilterTransposeThroughProject:
    """A project directly above the filter is unwrapped and rewrapped."""

    @pytest.fixture
    def swapped_project(self, left_scan, a_gt_10):
        """Project(b AS b, a AS a) over Filter(a > 10, L)."""
        filter_node = Filter(left_scan, a_gt_10)
        return Project(
            filter_node,
            [left_scan.column(1), left_scan.column(0)],
            ["b", "a"],
        )

    @pytest.mark.parametrize("join_type", SEMI_ANTI)
    def test_project_filter_pattern(self, rule, swapped_project, left_scan, right_scan, a_gt_10, join_type):
        # Over (b, a | e): b = e is $0 = $2
        condition = BinaryOp(
            BinaryOpType.EQ,
            ColumnRef(0, DataType.INTEGER),
            ColumnRef(2, DataType.INTEGER),
        )
        original = Join(swapped_project, right_scan, join_type, condition)

        handle = rule.match(original)
        assert handle.project is swapped_project

        result = rule.apply(handle)

        # Over (a, b | e): b = e is $1 = $2
        expected_condition = BinaryOp(
            BinaryOpType.EQ,
            ColumnRef(1, DataType.INTEGER),
            ColumnRef(2, DataType.INTEGER),
        )
        expected = Project(
            Filter(Join(left_scan, right_scan, join_type, expected_condition), a_gt_10),
            swapped_project.expressions,
            swapped_project.aliases,
        )
        assert result == expected
        assert result.schema() == original.schema()
        assert rule.match(result) is None

    def test_narrowing_project_shifts_right_references(self, rule, left_scan, right_scan, a_gt_10):
        narrow = Project(Filter(left_scan, a_gt_10), [left_scan.column(1)], ["b"])
        # Over (b | e): $0 = $1
        condition = BinaryOp(
            BinaryOpType.EQ,
            ColumnRef(0, DataType.INTEGER),
            ColumnRef(1, DataType.INTEGER),
        )
        original = Join(narrow, right_scan, JoinType.SEMI, condition)

        result = rule.rewrite(original)

        join = result.input.input
        # Over (a, b | e): $1 = $2
        assert join.condition == BinaryOp(
            BinaryOpType.EQ,
            ColumnRef(1, DataType.INTEGER),
            ColumnRef(2, DataType.INTEGER),
        )
        assert join.left is left_scan

    def test_project_without_filter_not_applicable(self, rule, left_scan, right_scan, b_eq_e):
        project = Project(left_scan, [left_scan.column(0), left_scan.column(1)], ["a", "b"])
        join = Join(project, right_scan, JoinType.SEMI, b_eq_e)
        assert rule.match(join) is None


class TestProjectTranspose:
    """Tests for moving semi/anti joins below a project."""

    def test_computed_expression_inlined(self, project_rule, left_scan, right_scan):
        plus_one = BinaryOp(BinaryOpType.ADD, left_scan.column(1), Literal(1, DataType.INTEGER))
        project = Project(left_scan, [plus_one], ["b1"])
        # Over (b1 | e): b1 = e
        condition = BinaryOp(
            BinaryOpType.EQ,
            ColumnRef(0, DataType.INTEGER),
            ColumnRef(1, DataType.INTEGER),
        )
        original = Join(project, right_scan, JoinType.ANTI, condition)

        result = project_rule.rewrite(original)

        assert isinstance(result, Project)
        assert result.expressions == (plus_one,)
        assert result.input.join_type == JoinType.ANTI
        assert result.input.condition == BinaryOp(
            BinaryOpType.EQ,
            plus_one,
            ColumnRef(2, DataType.INTEGER),
        )
        assert result.schema() == original.schema()

    def test_inner_join_not_applicable(self, project_rule, left_scan, right_scan):
        project = Project(left_scan, [left_scan.column(1)], ["b"])
        condition = BinaryOp(
            BinaryOpType.EQ,
            ColumnRef(0, DataType.INTEGER),
            ColumnRef(1, DataType.INTEGER),
        )
        join = Join(project, right_scan, JoinType.INNER, condition)
        assert project_rule.match(join) is None

    def test_rewrite_result_not_rematched(self, project_rule, left_scan, right_scan, b_eq_e):
        project = Project(left_scan, [left_scan.column(0), left_scan.column(1)], ["a", "b"])
        original = Join(project, right_scan, JoinType.SEMI, b_eq_e)

        result = project_rule.rewrite(original)

        assert project_rule.match(result) is None
        assert project_rule.match(result.input) is None

    def test_wider_right_side(self, project_rule, left_scan):
        right = Scan("R2", [Field("x", DataType.VARCHAR), Field("e", DataType.INTEGER)])
        project = Project(left_scan, [left_scan.column(1)], ["b"])
        # Over (b | x, e): b = e is $0 = $2
        condition = BinaryOp(
            BinaryOpType.EQ,
            ColumnRef(0, DataType.INTEGER),
            ColumnRef(2, DataType.INTEGER),
        )
        original = Join(project, right, JoinType.SEMI, condition)

        result = project_rule.rewrite(original)

        # Over (a, b | x, e): $1 = $3
        assert result.input.condition == BinaryOp(
            BinaryOpType.EQ,
            ColumnRef(1, DataType.INTEGER),
            ColumnRef(3, DataType.INTEGER),
        )
