"""
ExtractPilot Condition Evaluator

Evaluates conditional-field expressions against a source record and
resolves if / else-if / else chains to a single value.

Key features:
- Expressions are parsed once into an AST (see expression.py) and walked
  here; nothing is handed to a host-language evaluator
- Exact-name field lookup; a missing field is None, never an error
- Decimal ordering comparisons; non-numeric operands compare false
- Branch resolution reports which branch matched
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from functools import lru_cache
from typing import Any, Mapping, Optional, Sequence

from ..models import Condition
from .expression import (
    AllOf,
    AnyOf,
    Between,
    BooleanLiteral,
    Comparison,
    FieldRef,
    InList,
    Like,
    MethodCheck,
    Node,
    Not,
    NullLiteral,
    NumberLiteral,
    Operand,
    StringLiteral,
    parse_expression,
    referenced_fields,
)

logger = logging.getLogger(__name__)

Record = Mapping[str, Any]


# =============================================================================
# Value Helpers
# =============================================================================

def field_value(record: Record, name: str) -> Optional[str]:
    """Look up a record field by exact name, stringifying non-None values."""
    value = record.get(name)
    if value is None:
        return None
    return value if isinstance(value, str) else str(value)


def to_decimal(value: Optional[str]) -> Optional[Decimal]:
    """Parse a finite decimal, or return None."""
    if value is None:
        return None
    try:
        number = Decimal(value.strip())
    except (InvalidOperation, ValueError):
        return None
    return number if number.is_finite() else None


@lru_cache(maxsize=256)
def _like_regex(pattern: str) -> re.Pattern[str]:
    """Translate a SQL LIKE pattern (% and _) into a compiled regex."""
    parts = []
    for ch in pattern:
        if ch == "%":
            parts.append(".*")
        elif ch == "_":
            parts.append(".")
        else:
            parts.append(re.escape(ch))
    return re.compile("".join(parts), re.DOTALL)


def resolve_branch_value(value: Optional[str], record: Record) -> Optional[str]:
    """
    Resolve a branch result.

    Quoted text is a literal; text naming a record field resolves to that
    field's value; anything else is used as-is.
    """
    if value is None:
        return None
    text = value.strip()
    if len(text) >= 2 and text[0] == text[-1] and text[0] in ("'", '"'):
        return text[1:-1]
    if value in record:
        return field_value(record, value)
    return value


# =============================================================================
# Branch Result
# =============================================================================

@dataclass(frozen=True)
class BranchResult:
    """
    The value chosen for a conditional field.

    Attributes:
        value: Resolved value ("" when nothing applies)
        branch: "if", "else_if", "else", "default" or "none"
        condition_index: Index of the condition whose branch matched
        branch_index: 0 for the if branch, n for the n-th else-if
    """
    value: str
    branch: str
    condition_index: Optional[int] = None
    branch_index: Optional[int] = None

    @property
    def matched(self) -> bool:
        return self.branch in ("if", "else_if")


# =============================================================================
# Condition Evaluator
# =============================================================================

@dataclass
class ConditionEvaluator:
    """
    Evaluates expressions and conditional chains against a record.

    Evaluation is a pure function of (expression, record); an evaluator
    can be shared across workers as long as ``debug`` is off.

    Usage:
        evaluator = ConditionEvaluator()
        evaluator.evaluate('STATUS == "A"', {"STATUS": "A"})   # True

        result = evaluator.resolve(mapping_conditions, record)
        result.value, result.branch
    """

    # Track evaluation for debugging
    debug: bool = False
    _evaluation_log: list[str] = field(default_factory=list)

    @property
    def evaluation_log(self) -> list[str]:
        return list(self._evaluation_log)

    def evaluate(self, expression: str, record: Record) -> bool:
        """
        Evaluate a boolean expression against a record.

        Raises:
            ExpressionSyntaxError: If the expression is malformed
        """
        node = parse_expression(expression.strip())
        result = self._evaluate_node(node, record)
        if self.debug:
            self._evaluation_log.append(f"{expression}: {'TRUE' if result else 'FALSE'}")
        return result

    def resolve(
        self,
        conditions: Sequence[Condition],
        record: Record,
        default_value: Optional[str] = None,
    ) -> BranchResult:
        """
        Pick the value for a conditional field.

        Each condition is resolved as a whole chain before the next one is
        looked at: its if, then its else-ifs, then its else. A condition
        without a non-blank else falls through to the next condition. When
        no condition produces a value, ``default_value`` is used, then "".

        Raises:
            ExpressionSyntaxError: If a branch expression is malformed
        """
        for condition_index, condition in enumerate(conditions):
            for branch_index, (expression, value) in enumerate(condition.branches()):
                if self.evaluate(expression, record):
                    return BranchResult(
                        value=resolve_branch_value(value, record) or "",
                        branch="if" if branch_index == 0 else "else_if",
                        condition_index=condition_index,
                        branch_index=branch_index,
                    )
            if condition.else_expr is not None and condition.else_expr.strip():
                return BranchResult(
                    value=resolve_branch_value(condition.else_expr, record) or "",
                    branch="else",
                    condition_index=condition_index,
                )

        if default_value is not None:
            return BranchResult(value=default_value, branch="default")

        logger.debug("No branch matched and no else or default value")
        return BranchResult(value="", branch="none")

    def get_required_fields(self, expression: str) -> set[str]:
        """Field names an expression reads."""
        return referenced_fields(parse_expression(expression.strip()))

    # -- node evaluation -------------------------------------------------------

    def _evaluate_node(self, node: Node, record: Record) -> bool:
        if isinstance(node, AllOf):
            return all(self._evaluate_node(child, record) for child in node.children)
        if isinstance(node, AnyOf):
            return any(self._evaluate_node(child, record) for child in node.children)
        if isinstance(node, Not):
            return not self._evaluate_node(node.operand, record)
        if isinstance(node, Comparison):
            return self._compare(node, record)
        if isinstance(node, MethodCheck):
            return self._method(node, record)
        if isinstance(node, InList):
            actual = self._operand(node.operand, record)
            found = actual is not None and any(
                _equals(actual, self._operand(option, record), node.operand, option)
                for option in node.options
            )
            return not found if node.negated else found
        if isinstance(node, Between):
            actual = to_decimal(self._operand(node.operand, record))
            low = to_decimal(self._operand(node.low, record))
            high = to_decimal(self._operand(node.high, record))
            if actual is None or low is None or high is None:
                return False
            return low <= actual <= high
        if isinstance(node, Like):
            actual = self._operand(node.operand, record)
            pattern = self._operand(node.pattern, record)
            if actual is None or pattern is None:
                return False
            return _like_regex(pattern).fullmatch(actual) is not None
        raise TypeError(f"Unsupported expression node: {type(node).__name__}")

    def _operand(self, operand: Operand, record: Record) -> Optional[str]:
        """Resolve an operand to text (None for null or a missing field)."""
        if isinstance(operand, FieldRef):
            if operand.name in record:
                return field_value(record, operand.name)
            return operand.name if operand.literal_fallback else None
        if isinstance(operand, StringLiteral):
            return operand.value
        if isinstance(operand, NumberLiteral):
            return operand.text
        if isinstance(operand, BooleanLiteral):
            return "true" if operand.value else "false"
        return None

    def _compare(self, node: Comparison, record: Record) -> bool:
        op = node.op

        if op in ("==", "!="):
            if isinstance(node.right, NullLiteral) or isinstance(node.left, NullLiteral):
                other = node.left if isinstance(node.right, NullLiteral) else node.right
                is_null = self._operand(other, record) is None
                return is_null if op == "==" else not is_null

            left = self._operand(node.left, record)
            right = self._operand(node.right, record)
            equal = _equals(left, right, node.left, node.right)
            return equal if op == "==" else not equal

        left_number = to_decimal(self._operand(node.left, record))
        right_number = to_decimal(self._operand(node.right, record))
        if left_number is None or right_number is None:
            return False
        if op == ">":
            return left_number > right_number
        if op == "<":
            return left_number < right_number
        if op == ">=":
            return left_number >= right_number
        if op == "<=":
            return left_number <= right_number
        raise ValueError(f"Unknown comparison operator: {op}")

    def _method(self, node: MethodCheck, record: Record) -> bool:
        value = self._operand(node.target, record)
        method = node.method

        if method == "isNull":
            return value is None
        if method == "isNotNull":
            return value is not None
        if method == "isBlank":
            return value is None or not value.strip()
        if method == "isNotBlank":
            return value is not None and bool(value.strip())
        if method == "isEmpty":
            return value is None or value == ""

        argument = self._operand(node.argument, record) if node.argument is not None else None
        if value is None or argument is None:
            return False
        if method == "contains":
            return argument in value
        if method == "startsWith":
            return value.startswith(argument)
        if method == "endsWith":
            return value.endswith(argument)
        raise ValueError(f"Unknown method: {method}")


def _equals(
    left: Optional[str],
    right: Optional[str],
    left_node: Operand,
    right_node: Operand,
) -> bool:
    """
    Equality between two resolved operands.

    When either side is a numeric literal and both sides parse as
    decimals they compare numerically (so "100.00" == 100); boolean
    literals compare case-insensitively; everything else is exact text.
    """
    if left is None or right is None:
        return False
    if isinstance(left_node, NumberLiteral) or isinstance(right_node, NumberLiteral):
        left_number, right_number = to_decimal(left), to_decimal(right)
        if left_number is not None and right_number is not None:
            return left_number == right_number
    if isinstance(left_node, BooleanLiteral) or isinstance(right_node, BooleanLiteral):
        return left.strip().lower() == right.strip().lower()
    return left == right


# =============================================================================
# Convenience Functions
# =============================================================================

def evaluate_expression(expression: str, record: Record) -> bool:
    """
    Evaluate an expression against a record.

    Convenience function that creates a temporary evaluator.
    """
    return ConditionEvaluator().evaluate(expression, record)


def resolve_conditional(
    conditions: Sequence[Condition],
    record: Record,
    default_value: Optional[str] = None,
) -> BranchResult:
    """Resolve a conditional chain with a temporary evaluator."""
    return ConditionEvaluator().resolve(conditions, record, default_value)
