"""
Tests for ExtractPilot Condition Evaluator

Tests cover:
- Equality, null and blank checks
- Decimal ordering comparisons
- Logical composition
- Branch resolution order and fallbacks
"""
import pytest

from extractpilot.engine.condition_evaluator import (
    BranchResult,
    ConditionEvaluator,
    evaluate_expression,
    resolve_branch_value,
    resolve_conditional,
)
from extractpilot.exceptions import ExpressionSyntaxError
from extractpilot.models import Condition, ElseIfBranch


# =============================================================================
# Expression Evaluation
# =============================================================================

class TestEquality:
    """Tests for == and != semantics."""

    def test_string_equality(self, evaluator):
        assert evaluator.evaluate('STATUS == "A"', {"STATUS": "A"}) is True
        assert evaluator.evaluate('STATUS == "A"', {"STATUS": "B"}) is False

    def test_missing_field_is_not_equal(self, evaluator):
        assert evaluator.evaluate('STATUS == "A"', {}) is False
        assert evaluator.evaluate('STATUS != "A"', {}) is True

    def test_numeric_literal_compares_numerically(self, evaluator):
        assert evaluator.evaluate("AMOUNT == 100", {"AMOUNT": "100.00"}) is True
        assert evaluator.evaluate("100 == AMOUNT", {"AMOUNT": "100.0"}) is True

    def test_text_equality_is_exact(self, evaluator):
        assert evaluator.evaluate("CODE == '007'", {"CODE": "7"}) is False

    def test_bare_word_literal(self, evaluator):
        assert evaluator.evaluate("STATUS == ACTIVE", {"STATUS": "ACTIVE"}) is True

    def test_bare_word_resolves_field_when_present(self, evaluator):
        record = {"PRIMARY": "X1", "SECONDARY": "X1"}
        assert evaluator.evaluate("PRIMARY == SECONDARY", record) is True

    def test_null_checks(self, evaluator):
        assert evaluator.evaluate("BRANCH == null", {}) is True
        assert evaluator.evaluate("BRANCH == null", {"BRANCH": None}) is True
        assert evaluator.evaluate("BRANCH != null", {"BRANCH": "001"}) is True
        assert evaluator.evaluate("BRANCH != null", {"BRANCH": ""}) is True

    def test_boolean_literal_case_insensitive(self, evaluator):
        assert evaluator.evaluate("ACTIVE == true", {"ACTIVE": "TRUE"}) is True


class TestOrdering:
    """Tests for decimal ordering comparisons."""

    @pytest.mark.parametrize("expression,expected", [
        ("AMOUNT > 999.99", True),
        ("AMOUNT >= 1000", True),
        ("AMOUNT < 1000", False),
        ("AMOUNT <= 1000.00", True),
    ])
    def test_numeric(self, evaluator, expression, expected):
        assert evaluator.evaluate(expression, {"AMOUNT": "1000"}) is expected

    def test_non_numeric_operand_is_false(self, evaluator):
        assert evaluator.evaluate("AMOUNT > 10", {"AMOUNT": "ten"}) is False
        assert evaluator.evaluate("AMOUNT < 10", {"AMOUNT": "ten"}) is False

    def test_missing_operand_is_false(self, evaluator):
        assert evaluator.evaluate("AMOUNT > 10", {}) is False


class TestMethodsAndOperators:

    def test_contains(self, evaluator):
        record = {"DESCRIPTION": "INCOMING WIRE TRANSFER"}
        assert evaluator.evaluate('DESCRIPTION.contains("WIRE")', record) is True
        assert evaluator.evaluate('DESCRIPTION.contains("ACH")', record) is False

    def test_contains_on_missing_field(self, evaluator):
        assert evaluator.evaluate('DESCRIPTION.contains("WIRE")', {}) is False

    def test_starts_and_ends_with(self, evaluator):
        record = {"CODE": "AB-123"}
        assert evaluator.evaluate("CODE.startsWith('AB')", record) is True
        assert evaluator.evaluate("CODE.endsWith('123')", record) is True

    def test_blank_checks(self, evaluator):
        assert evaluator.evaluate("NAME.isBlank()", {"NAME": "   "}) is True
        assert evaluator.evaluate("NAME.isBlank()", {}) is True
        assert evaluator.evaluate("NAME.isNotBlank()", {"NAME": "Ann"}) is True
        assert evaluator.evaluate("NAME.isNull()", {"NAME": ""}) is False

    def test_in_list(self, evaluator):
        assert evaluator.evaluate("TYPE IN ('DDA', 'SAV')", {"TYPE": "SAV"}) is True
        assert evaluator.evaluate("TYPE NOT IN ('DDA', 'SAV')", {"TYPE": "CD"}) is True
        assert evaluator.evaluate("TYPE IN ('DDA')", {}) is False

    def test_between_inclusive(self, evaluator):
        assert evaluator.evaluate("AGE BETWEEN 18 AND 65", {"AGE": "65"}) is True
        assert evaluator.evaluate("AGE BETWEEN 18 AND 65", {"AGE": "66"}) is False

    def test_like(self, evaluator):
        assert evaluator.evaluate("CODE LIKE 'AB%'", {"CODE": "AB-123"}) is True
        assert evaluator.evaluate("CODE LIKE 'A_'", {"CODE": "AB"}) is True
        assert evaluator.evaluate("CODE LIKE 'A_'", {"CODE": "ABC"}) is False

    def test_and_or_not(self, evaluator):
        record = {"STATUS": "A", "AMOUNT": "50"}
        assert evaluator.evaluate("STATUS == 'A' && AMOUNT > 10", record) is True
        assert evaluator.evaluate("STATUS == 'B' && AMOUNT > 10", record) is False
        assert evaluator.evaluate("STATUS == 'B' || AMOUNT > 10", record) is True
        assert evaluator.evaluate("!(STATUS == 'B')", record) is True

    def test_non_string_values_are_stringified(self, evaluator):
        assert evaluator.evaluate("AMOUNT > 10", {"AMOUNT": 25}) is True

    def test_malformed_expression_raises(self, evaluator):
        with pytest.raises(ExpressionSyntaxError):
            evaluator.evaluate("STATUS ==", {"STATUS": "A"})

    def test_debug_log(self):
        evaluator = ConditionEvaluator(debug=True)
        evaluator.evaluate("X == 1", {"X": "1"})
        assert evaluator.evaluation_log == ["X == 1: TRUE"]

    def test_required_fields(self, evaluator):
        assert evaluator.get_required_fields("A == 1 && B.isBlank()") == {"A", "B"}

    def test_convenience_function(self):
        assert evaluate_expression("X == 'y'", {"X": "y"}) is True


# =============================================================================
# Branch Resolution
# =============================================================================

def _status_condition(else_expr="INACTIVE"):
    return Condition(
        if_expr='STATUS == "A"',
        then="ACTIVE",
        else_ifs=(ElseIfBranch('STATUS == "P"', "PENDING"),),
        else_expr=else_expr,
    )


class TestResolve:
    """Tests for if / else-if / else resolution."""

    def test_if_branch(self, evaluator):
        result = evaluator.resolve([_status_condition()], {"STATUS": "A"})
        assert result == BranchResult("ACTIVE", "if", 0, 0)
        assert result.matched

    def test_else_if_branch(self, evaluator):
        result = evaluator.resolve([_status_condition()], {"STATUS": "P"})
        assert result.value == "PENDING"
        assert result.branch == "else_if"
        assert result.branch_index == 1

    def test_else_branch(self, evaluator):
        result = evaluator.resolve([_status_condition()], {"STATUS": "B"})
        assert result.value == "INACTIVE"
        assert result.branch == "else"
        assert not result.matched

    def test_first_true_branch_wins(self, evaluator):
        condition = Condition(
            if_expr="AMOUNT > 10",
            then="BIG",
            else_ifs=(ElseIfBranch("AMOUNT > 1", "MEDIUM"),),
        )
        assert evaluator.resolve([condition], {"AMOUNT": "100"}).value == "BIG"

    def test_default_value_when_no_else(self, evaluator):
        result = evaluator.resolve([_status_condition(None)], {"STATUS": "B"}, "UNKNOWN")
        assert result == BranchResult("UNKNOWN", "default")

    def test_empty_when_nothing_applies(self, evaluator):
        result = evaluator.resolve([_status_condition(None)], {"STATUS": "B"})
        assert result == BranchResult("", "none")

    def test_branch_value_naming_field(self, evaluator):
        condition = Condition(if_expr="NICKNAME.isNotBlank()", then="NICKNAME", else_expr="LEGAL_NAME")
        record = {"NICKNAME": "", "LEGAL_NAME": "Jonathan"}
        assert evaluator.resolve([condition], record).value == "Jonathan"

    def test_later_conditions_are_considered(self, evaluator):
        first = Condition(if_expr="A == '1'", then="ONE")
        second = Condition(if_expr="A == '2'", then="TWO")
        result = evaluator.resolve([first, second], {"A": "2"})
        assert result.value == "TWO"
        assert result.condition_index == 1

    def test_first_condition_else_wins_over_later_if(self, evaluator):
        first = Condition(if_expr="X == '1'", then="ONE", else_expr="OTHER")
        second = Condition(if_expr="Y == '2'", then="TWO")
        result = evaluator.resolve([first, second], {"X": "9", "Y": "2"})
        assert result == BranchResult("OTHER", "else", 0)

    def test_convenience_function(self):
        assert resolve_conditional([_status_condition()], {"STATUS": "A"}).value == "ACTIVE"


class TestResolveBranchValue:

    def test_quoted_literal(self):
        assert resolve_branch_value("'STATUS'", {"STATUS": "A"}) == "STATUS"

    def test_field_reference(self):
        assert resolve_branch_value("STATUS", {"STATUS": "A"}) == "A"

    def test_plain_literal(self):
        assert resolve_branch_value("ACTIVE", {"STATUS": "A"}) == "ACTIVE"
