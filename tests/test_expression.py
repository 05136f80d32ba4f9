"""
Tests for the ExtractPilot expression parser

Tests cover:
- Tokenization of operators, literals and identifiers
- AST shape and operator precedence
- Syntax errors carry a position
- Parse caching and referenced-field collection
"""
import pytest
from decimal import Decimal

from extractpilot.engine.expression import (
    AllOf,
    AnyOf,
    Between,
    Comparison,
    FieldRef,
    InList,
    Like,
    MethodCheck,
    Not,
    NullLiteral,
    NumberLiteral,
    StringLiteral,
    parse_expression,
    referenced_fields,
    tokenize,
)
from extractpilot.exceptions import ExpressionSyntaxError


class TestTokenize:
    """Tests for the tokenizer."""

    def test_two_character_operators(self):
        kinds = [t.text for t in tokenize("A >= 1 && B != 'x' || C <= 2")]
        assert kinds == ["A", ">=", "1", "&&", "B", "!=", "x", "||", "C", "<=", "2", ""]

    def test_negative_number(self):
        tokens = tokenize("BALANCE > -10.5")
        assert tokens[2].kind == "NUMBER"
        assert tokens[2].text == "-10.5"

    def test_escaped_quote_in_string(self):
        tokens = tokenize(r"NAME == 'O\'BRIEN'")
        assert tokens[2].text == "O'BRIEN"

    def test_unterminated_string(self):
        with pytest.raises(ExpressionSyntaxError) as exc_info:
            tokenize('STATUS == "A')
        assert exc_info.value.position == 10

    def test_unexpected_character(self):
        with pytest.raises(ExpressionSyntaxError) as exc_info:
            tokenize("STATUS # 1")
        assert exc_info.value.position == 7


class TestParse:
    """Tests for parse_expression."""

    def test_simple_comparison(self):
        node = parse_expression('STATUS == "A"')
        assert node == Comparison("==", FieldRef("STATUS"), StringLiteral("A"))

    def test_single_equals_is_equality(self):
        node = parse_expression("STATUS = 'A'")
        assert isinstance(node, Comparison)
        assert node.op == "=="

    def test_number_literal(self):
        node = parse_expression("AMOUNT >= 1000.50")
        assert node.right == NumberLiteral(Decimal("1000.50"), "1000.50")

    def test_bare_word_on_right_is_literal_candidate(self):
        node = parse_expression("STATUS == A")
        assert node.right == FieldRef("A", literal_fallback=True)
        assert node.left == FieldRef("STATUS")

    def test_and_binds_tighter_than_or(self):
        node = parse_expression("A == 1 || B == 2 && C == 3")
        assert isinstance(node, AnyOf)
        assert isinstance(node.children[1], AllOf)

    def test_parentheses_override_precedence(self):
        node = parse_expression("(A == 1 || B == 2) && C == 3")
        assert isinstance(node, AllOf)
        assert isinstance(node.children[0], AnyOf)

    def test_not(self):
        node = parse_expression("!(NAME.isBlank())")
        assert node == Not(MethodCheck(FieldRef("NAME"), "isBlank"))

    def test_contains_method(self):
        node = parse_expression('DESCRIPTION.contains("WIRE")')
        assert node == MethodCheck(FieldRef("DESCRIPTION"), "contains", StringLiteral("WIRE"))

    def test_null_comparison(self):
        node = parse_expression("BRANCH == null")
        assert node.right == NullLiteral()

    def test_in_and_not_in(self):
        node = parse_expression("TYPE IN ('DDA', 'SAV')")
        assert isinstance(node, InList)
        assert not node.negated
        assert len(node.options) == 2

        negated = parse_expression("TYPE NOT IN ('DDA')")
        assert negated.negated

    def test_between(self):
        node = parse_expression("AMOUNT BETWEEN 1 AND 100")
        assert isinstance(node, Between)

    def test_like(self):
        node = parse_expression("CODE LIKE 'AB%'")
        assert node == Like(FieldRef("CODE"), StringLiteral("AB%"))

    def test_is_null_keyword_form(self):
        assert parse_expression("BRANCH IS NULL") == MethodCheck(FieldRef("BRANCH"), "isNull")
        assert parse_expression("BRANCH IS NOT BLANK") == MethodCheck(FieldRef("BRANCH"), "isNotBlank")

    def test_results_are_cached(self):
        assert parse_expression("X == 1") is parse_expression("X == 1")


class TestSyntaxErrors:
    """Malformed expressions raise with a position."""

    @pytest.mark.parametrize("expression", [
        "",
        "STATUS ==",
        "STATUS 'A'",
        "(STATUS == 'A'",
        "STATUS == 'A' &&",
        "NAME.unknownMethod()",
        "TYPE IN 'A'",
        "AMOUNT BETWEEN 1 100",
    ])
    def test_malformed(self, expression):
        with pytest.raises(ExpressionSyntaxError):
            parse_expression(expression)

    def test_error_reports_position(self):
        with pytest.raises(ExpressionSyntaxError) as exc_info:
            parse_expression("STATUS == 'A' STATUS")
        assert exc_info.value.position == 14
        assert "position 14" in exc_info.value.message
        assert exc_info.value.code == "EP_EXPRESSION_SYNTAX"


class TestReferencedFields:

    def test_collects_all_fields(self):
        node = parse_expression("A == 1 && (B.contains('x') || C IN (D, 'e'))")
        assert referenced_fields(node) == {"A", "B", "C", "D"}
