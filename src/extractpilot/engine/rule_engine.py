"""
ExtractPilot Validation Rule Engine

Evaluates declarative content rules against ingested record values and
aggregates the outcomes into a ValidationSummary.

Key behaviours:
- Rules for a field run in ascending execution_order
- A failing CRITICAL rule stops the remaining rules of that field only
- Null/blank values pass every type and format check; only REQUIRED
  treats blank as a failure
- Failing rules are errors whatever their severity; severity only decides
  the CRITICAL stop
- Regex patterns are compiled once per rule id and cached
- A batch stops once the cumulative error count reaches the threshold
"""
from __future__ import annotations

import logging
import re
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from decimal import Decimal, InvalidOperation
from functools import lru_cache
from typing import Callable, Iterable, Mapping, Optional, Sequence

from ..exceptions import ExtractPilotError, RuleDefinitionError
from ..models import (
    FieldValidationResult,
    RuleType,
    ValidationRule,
    ValidationSummary,
    merge_summaries,
)

logger = logging.getLogger(__name__)

# (field_name, field_value, rule) -> result
ReferenceLookup = Callable[[str, Optional[str], ValidationRule], FieldValidationResult]


# =============================================================================
# Constants
# =============================================================================

EMAIL_PATTERN = re.compile(r"^[A-Za-z0-9+_.-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}$")
PHONE_PATTERN = re.compile(r"^\+?[1-9]\d{1,14}$")
PHONE_SEPARATORS = re.compile(r"[\s\-().]")
SSN_PATTERN = re.compile(r"^\d{3}-?\d{2}-?\d{4}$")
NUMERIC_PATTERN = re.compile(r"^-?\d+(\.\d+)?$")
ACCOUNT_NUMBER_PATTERN = re.compile(r"^[A-Za-z0-9]+$")
INTEGER_PATTERN = re.compile(r"^[+-]?\d+$")
RANGE_EXPRESSION = re.compile(r"^\s*(-?\d+(?:\.\d+)?)\s*[-,]\s*(-?\d+(?:\.\d+)?)\s*$")

INT32_RANGE = (-(2 ** 31), 2 ** 31 - 1)
INT64_RANGE = (-(2 ** 63), 2 ** 63 - 1)

BOOLEAN_TOKENS = frozenset({"true", "false", "1", "0", "y", "n", "yes", "no"})

DEFAULT_DATE_PATTERN = "yyyy-MM-dd"
DEFAULT_DATETIME_PATTERN = "yyyy-MM-dd HH:mm:ss"

# Rule types whose pattern (if any) is a regex owned by the rule
_PATTERN_RULE_TYPES = {
    RuleType.PATTERN,
    RuleType.EMAIL,
    RuleType.PHONE,
    RuleType.SSN,
    RuleType.ACCOUNT_NUMBER,
}

_DATE_TOKENS = re.compile(r"yyyy|yy|MMMM|MMM|MM|M|dd|d|HH|H|hh|h|mm|m|ss|s|SSS|a|'[^']*'")
_DATE_DIRECTIVES = {
    "yyyy": "%Y", "yy": "%y",
    "MMMM": "%B", "MMM": "%b", "MM": "%m", "M": "%m",
    "dd": "%d", "d": "%d",
    "HH": "%H", "H": "%H", "hh": "%I", "h": "%I",
    "mm": "%M", "m": "%M",
    "ss": "%S", "s": "%S",
    "SSS": "%f",
    "a": "%p",
}

# Digits each pattern field must have; text fields only need letters
_DATE_WIDTHS = {
    "yyyy": "[0-9]{4}", "yy": "[0-9]{2}",
    "MMMM": r"[^\W\d_]+", "MMM": r"[^\W\d_]+", "MM": "[0-9]{2}", "M": "[0-9]{1,2}",
    "dd": "[0-9]{2}", "d": "[0-9]{1,2}",
    "HH": "[0-9]{2}", "H": "[0-9]{1,2}", "hh": "[0-9]{2}", "h": "[0-9]{1,2}",
    "mm": "[0-9]{2}", "m": "[0-9]{1,2}",
    "ss": "[0-9]{2}", "s": "[0-9]{1,2}",
    "SSS": "[0-9]{3}",
    "a": "[AaPp][Mm]",
}


@lru_cache(maxsize=64)
def to_strptime_format(pattern: str) -> str:
    """Convert a date pattern such as ``yyyy-MM-dd HH:mm:ss`` to strptime form."""
    parts: list[str] = []
    position = 0
    for match in _DATE_TOKENS.finditer(pattern):
        parts.append(pattern[position:match.start()].replace("%", "%%"))
        token = match.group()
        if token.startswith("'"):
            parts.append(token[1:-1].replace("%", "%%"))
        else:
            parts.append(_DATE_DIRECTIVES[token])
        position = match.end()
    parts.append(pattern[position:].replace("%", "%%"))
    return "".join(parts)


@lru_cache(maxsize=64)
def date_shape(pattern: str) -> re.Pattern[str]:
    """Regex fixing how many digits each field of a date pattern takes."""
    parts: list[str] = []
    position = 0
    for match in _DATE_TOKENS.finditer(pattern):
        parts.append(re.escape(pattern[position:match.start()]))
        token = match.group()
        if token.startswith("'"):
            parts.append(re.escape(token[1:-1]))
        else:
            parts.append(_DATE_WIDTHS[token])
        position = match.end()
    parts.append(re.escape(pattern[position:]))
    return re.compile("".join(parts))


def _is_blank(value: Optional[str]) -> bool:
    return value is None or not value.strip()


def parse_range(expression: str) -> tuple[Decimal, Decimal]:
    """
    Parse an inclusive ``min-max`` or ``min,max`` bound.

    Raises:
        RuleDefinitionError: If the expression is not a range
    """
    match = RANGE_EXPRESSION.match(expression)
    if not match:
        raise RuleDefinitionError(
            message=f"Invalid range expression '{expression}'",
            details={"expression": expression},
        )
    return Decimal(match.group(1)), Decimal(match.group(2))


# =============================================================================
# Rule Engine
# =============================================================================

class RuleEngine:
    """
    Validates record values against declarative rules.

    Per-field evaluation holds no state besides the pattern cache, so
    one engine can serve many workers once ``prepare`` has run.

    Usage:
        engine = RuleEngine()
        engine.prepare(rules)
        summary = engine.validate_fields(record, group_rules_by_field(rules), 10)
        if summary.threshold_exceeded:
            ...
    """

    def __init__(self, reference_lookup: Optional[ReferenceLookup] = None) -> None:
        self.reference_lookup = reference_lookup
        self._patterns: dict[str, re.Pattern[str]] = {}
        self._pattern_errors: dict[str, str] = {}
        self._handlers: dict[RuleType, Callable[[str, Optional[str], ValidationRule], FieldValidationResult]] = {
            RuleType.REQUIRED: self._validate_required,
            RuleType.LENGTH: self._validate_length,
            RuleType.DATA_TYPE: self._validate_data_type,
            RuleType.PATTERN: self._validate_pattern,
            RuleType.EMAIL: self._validate_email,
            RuleType.PHONE: self._validate_phone,
            RuleType.SSN: self._validate_ssn,
            RuleType.ACCOUNT_NUMBER: self._validate_account_number,
            RuleType.NUMERIC: self._validate_numeric,
            RuleType.RANGE: self._validate_range,
            RuleType.DATE_FORMAT: self._validate_date_format,
            RuleType.REFERENTIAL_INTEGRITY: self._validate_reference,
            RuleType.UNIQUE_FIELD: self._validate_placeholder,
            RuleType.CUSTOM_SQL: self._validate_placeholder,
        }

    # -- pattern cache --------------------------------------------------------

    def prepare(self, rules: Iterable[ValidationRule]) -> None:
        """Compile the regex of every pattern-bearing rule once, by rule id."""
        for rule in rules:
            if rule.rule_type in _PATTERN_RULE_TYPES and rule.pattern:
                self._compile(rule)

    def _compile(self, rule: ValidationRule) -> None:
        try:
            self._patterns[rule.rule_id] = re.compile(rule.pattern or "")
        except re.error as e:
            logger.error("Invalid regex pattern for rule %s: %s", rule.rule_id, rule.pattern)
            self._pattern_errors[rule.rule_id] = str(e)

    def compiled_pattern(self, rule: ValidationRule) -> Optional[re.Pattern[str]]:
        """Cached pattern for a rule; None if it has none or it does not compile."""
        if not rule.pattern:
            return None
        if rule.rule_id not in self._patterns and rule.rule_id not in self._pattern_errors:
            self._compile(rule)
        return self._patterns.get(rule.rule_id)

    @property
    def cached_pattern_count(self) -> int:
        return len(self._patterns)

    # -- field validation -----------------------------------------------------

    def validate_field(
        self,
        field_name: str,
        field_value: Optional[str],
        rules: Sequence[ValidationRule],
    ) -> list[FieldValidationResult]:
        """
        Run every enabled rule for a field in execution order.

        With no enabled rules the field gets a single success result.
        """
        active = sorted((r for r in rules if r.enabled), key=lambda r: r.execution_order)
        if not active:
            return [FieldValidationResult.success(field_name, field_value)]

        logger.debug(
            "Validating field '%s' with value '%s' against %d rules",
            field_name, field_value, len(active),
        )

        results = []
        for rule in active:
            result = self.validate_field_against_rule(field_name, field_value, rule)
            results.append(result)
            if not result.valid and rule.is_critical:
                logger.error(
                    "Critical validation error for field %s: %s",
                    field_name, result.error_message,
                )
                break
        return results

    def validate_field_against_rule(
        self,
        field_name: str,
        field_value: Optional[str],
        rule: ValidationRule,
    ) -> FieldValidationResult:
        """Evaluate one rule; configuration problems become failing results."""
        handler = self._handlers.get(rule.rule_type)
        if handler is None:
            logger.warning("Unsupported validation rule type: %s", rule.rule_type.value)
            return FieldValidationResult.warning(
                field_name, field_value,
                f"Unsupported validation rule type: {rule.rule_type.value}",
                rule,
            )
        try:
            return handler(field_name, field_value, rule)
        except Exception as e:
            message = e.message if isinstance(e, ExtractPilotError) else str(e)
            logger.error(
                "Error validating field %s against rule %s: %s",
                field_name, rule.rule_id, message,
            )
            return FieldValidationResult.failure(
                field_name, field_value, f"Validation error: {message}", rule
            )

    # -- batch validation -----------------------------------------------------

    def validate_fields(
        self,
        record: Mapping[str, Optional[str]],
        rules_by_field: Mapping[str, Sequence[ValidationRule]],
        error_threshold: int = 0,
        batch_id: Optional[str] = None,
    ) -> ValidationSummary:
        """
        Validate every field of a record into a summary.

        Fields are visited in record order, followed by fields that have
        rules but are absent from the record (validated as None). Once
        the cumulative error count reaches ``error_threshold`` (> 0) the
        summary is flagged and the remaining fields are skipped.
        """
        names = list(record.keys())
        names.extend(name for name in rules_by_field if name not in record)

        summary = ValidationSummary(total_fields=len(names), batch_id=batch_id)
        for index, name in enumerate(names):
            results = self.validate_field(name, record.get(name), rules_by_field.get(name, ()))
            summary.add_field_results(name, results)

            if error_threshold > 0 and summary.total_errors >= error_threshold:
                summary.threshold_exceeded = True
                summary.skipped_fields = names[index + 1:]
                logger.warning(
                    "Error threshold %d reached after field %s; skipping %d field(s)",
                    error_threshold, name, len(summary.skipped_fields),
                )
                break

        return summary

    def validate_records(
        self,
        records: Iterable[Mapping[str, Optional[str]]],
        rules_by_field: Mapping[str, Sequence[ValidationRule]],
        error_threshold: int = 0,
        max_workers: int = 1,
        batch_id: Optional[str] = None,
    ) -> ValidationSummary:
        """
        Validate records independently and merge their summaries.

        Each record gets its own summary (and its own threshold); summaries
        are merged only after every record has been validated.
        """
        self.prepare(rule for rules in rules_by_field.values() for rule in rules)

        def validate(record: Mapping[str, Optional[str]]) -> ValidationSummary:
            return self.validate_fields(record, rules_by_field, error_threshold, batch_id)

        if max_workers > 1:
            with ThreadPoolExecutor(max_workers=max_workers) as executor:
                summaries = list(executor.map(validate, records))
        else:
            summaries = [validate(record) for record in records]

        merged = merge_summaries(summaries)
        merged.batch_id = batch_id
        logger.info(
            "Validated %d record(s): %d error(s), %d warning(s)",
            len(summaries), merged.total_errors, merged.total_warnings,
        )
        return merged

    # -- outcome helpers ------------------------------------------------------

    def _failure(
        self,
        field_name: str,
        field_value: Optional[str],
        rule: ValidationRule,
        default_message: str,
    ) -> FieldValidationResult:
        """Failure for any severity; the rule's own message wins."""
        message = rule.error_message if rule.error_message and rule.error_message.strip() else default_message
        return FieldValidationResult.failure(field_name, field_value, message, rule)

    # -- rule types -----------------------------------------------------------

    def _validate_required(self, field_name, field_value, rule):
        if rule.required and _is_blank(field_value):
            return self._failure(field_name, field_value, rule, f"{field_name} is required")
        return FieldValidationResult.success(field_name, field_value, rule)

    def _validate_length(self, field_name, field_value, rule):
        if field_value is None:
            return FieldValidationResult.success(field_name, field_value, rule)
        length = len(field_value)
        if rule.max_length is not None and length > rule.max_length:
            return self._failure(
                field_name, field_value, rule,
                f"{field_name} exceeds maximum length of {rule.max_length} characters "
                f"(actual: {length})",
            )
        if rule.min_length is not None and length < rule.min_length:
            return self._failure(
                field_name, field_value, rule,
                f"{field_name} is below minimum length of {rule.min_length} characters "
                f"(actual: {length})",
            )
        return FieldValidationResult.success(field_name, field_value, rule)

    def _validate_data_type(self, field_name, field_value, rule):
        if _is_blank(field_value) or not rule.data_type:
            return FieldValidationResult.success(field_name, field_value, rule)

        data_type = rule.data_type.strip().upper()
        value = field_value.strip()

        if data_type in ("INTEGER", "INT"):
            valid = self._is_integer(value, INT32_RANGE)
        elif data_type in ("LONG", "BIGINT"):
            valid = self._is_integer(value, INT64_RANGE)
        elif data_type in ("DECIMAL", "NUMBER", "NUMERIC", "DOUBLE", "FLOAT"):
            valid = self._is_decimal(value, rule.precision, rule.scale)
        elif data_type == "DATE":
            valid = self._is_date(value, rule.pattern or DEFAULT_DATE_PATTERN)
        elif data_type in ("DATETIME", "TIMESTAMP"):
            valid = self._is_date(value, rule.pattern or DEFAULT_DATETIME_PATTERN)
        elif data_type == "BOOLEAN":
            valid = value.lower() in BOOLEAN_TOKENS
        elif data_type in ("STRING", "VARCHAR", "CHAR", "TEXT"):
            valid = True
        else:
            logger.warning("Unknown data type for validation: %s", rule.data_type)
            return FieldValidationResult.warning(
                field_name, field_value,
                f"Unknown data type for validation: {rule.data_type}",
                rule,
            )

        if valid:
            return FieldValidationResult.success(field_name, field_value, rule)
        return self._failure(
            field_name, field_value, rule,
            f"{field_name} must be a valid {rule.data_type} (actual: {field_value})",
        )

    @staticmethod
    def _is_integer(value: str, bounds: tuple[int, int]) -> bool:
        if not INTEGER_PATTERN.match(value):
            return False
        return bounds[0] <= int(value) <= bounds[1]

    @staticmethod
    def _is_decimal(value: str, precision: Optional[int], scale: Optional[int]) -> bool:
        try:
            number = Decimal(value)
        except InvalidOperation:
            return False
        if not number.is_finite():
            return False
        digits, exponent = number.as_tuple()[1:]
        value_scale = -exponent if exponent < 0 else 0
        integer_digits = max(len(digits) + exponent, 0)
        if scale is not None and value_scale > scale:
            return False
        if precision is not None and integer_digits > precision - (scale or 0):
            return False
        return True

    @staticmethod
    def _is_date(value: str, pattern: str) -> bool:
        if not date_shape(pattern).fullmatch(value):
            return False
        try:
            datetime.strptime(value, to_strptime_format(pattern))
        except ValueError:
            return False
        return True

    def _validate_pattern(self, field_name, field_value, rule):
        if _is_blank(field_value) or not rule.pattern or not rule.pattern.strip():
            return FieldValidationResult.success(field_name, field_value, rule)
        pattern = self.compiled_pattern(rule)
        if pattern is None:
            return FieldValidationResult.failure(
                field_name, field_value, "Invalid validation pattern configured", rule
            )
        if not pattern.fullmatch(field_value):
            return self._failure(
                field_name, field_value, rule, f"{field_name} does not match required pattern"
            )
        return FieldValidationResult.success(field_name, field_value, rule)

    def _match_format(
        self,
        field_name: str,
        field_value: Optional[str],
        rule: ValidationRule,
        default: re.Pattern[str],
        message: str,
        candidate: Optional[str] = None,
    ) -> FieldValidationResult:
        """Full-match against the rule's own pattern, or the built-in one."""
        if _is_blank(field_value):
            return FieldValidationResult.success(field_name, field_value, rule)
        pattern = default
        if rule.pattern:
            pattern = self.compiled_pattern(rule)
            if pattern is None:
                return FieldValidationResult.failure(
                    field_name, field_value, "Invalid validation pattern configured", rule
                )
        text = candidate if candidate is not None else field_value.strip()
        if not pattern.fullmatch(text):
            return self._failure(field_name, field_value, rule, message)
        return FieldValidationResult.success(field_name, field_value, rule)

    def _validate_email(self, field_name, field_value, rule):
        return self._match_format(
            field_name, field_value, rule, EMAIL_PATTERN,
            f"{field_name} must be a valid email address",
        )

    def _validate_phone(self, field_name, field_value, rule):
        cleaned = PHONE_SEPARATORS.sub("", field_value) if field_value else None
        return self._match_format(
            field_name, field_value, rule, PHONE_PATTERN,
            f"{field_name} must be a valid phone number",
            candidate=cleaned,
        )

    def _validate_ssn(self, field_name, field_value, rule):
        return self._match_format(
            field_name, field_value, rule, SSN_PATTERN,
            f"{field_name} must be a valid SSN format (XXX-XX-XXXX)",
        )

    def _validate_account_number(self, field_name, field_value, rule):
        result = self._match_format(
            field_name, field_value, rule, ACCOUNT_NUMBER_PATTERN,
            f"{field_name} must contain only letters and numbers",
            candidate=field_value,
        )
        if not result.valid or result.has_warnings or _is_blank(field_value):
            return result
        return self._validate_length(field_name, field_value, rule)

    def _validate_numeric(self, field_name, field_value, rule):
        if _is_blank(field_value):
            return FieldValidationResult.success(field_name, field_value, rule)
        if not NUMERIC_PATTERN.match(field_value.strip()):
            return self._failure(field_name, field_value, rule, f"{field_name} must be a valid number")
        return self._check_bounds(field_name, field_value, rule, Decimal(field_value.strip()))

    def _validate_range(self, field_name, field_value, rule):
        if _is_blank(field_value):
            return FieldValidationResult.success(field_name, field_value, rule)
        try:
            number = Decimal(field_value.strip())
        except InvalidOperation:
            number = None
        if number is None or not number.is_finite():
            return self._failure(
                field_name, field_value, rule,
                f"{field_name} must be a valid number for range validation",
            )
        return self._check_bounds(field_name, field_value, rule, number)

    def _check_bounds(self, field_name, field_value, rule, number: Decimal):
        expression = rule.validation_expression
        if not expression or not expression.strip():
            return FieldValidationResult.success(field_name, field_value, rule)
        low, high = parse_range(expression)
        if number < low or number > high:
            return self._failure(
                field_name, field_value, rule,
                f"{field_name} must be between {low} and {high}",
            )
        return FieldValidationResult.success(field_name, field_value, rule)

    def _validate_date_format(self, field_name, field_value, rule):
        if _is_blank(field_value):
            return FieldValidationResult.success(field_name, field_value, rule)
        pattern = rule.pattern if rule.pattern and rule.pattern.strip() else DEFAULT_DATE_PATTERN
        if not self._is_date(field_value.strip(), pattern):
            return self._failure(
                field_name, field_value, rule, f"{field_name} must be in format {pattern}"
            )
        return FieldValidationResult.success(field_name, field_value, rule)

    def _validate_reference(self, field_name, field_value, rule):
        if _is_blank(field_value):
            return FieldValidationResult.success(field_name, field_value, rule)
        if self.reference_lookup is None:
            return FieldValidationResult.warning(
                field_name, field_value,
                f"Referential integrity check skipped for {field_name}: no reference lookup configured",
                rule,
            )
        return self.reference_lookup(field_name, field_value, rule)

    def _validate_placeholder(self, field_name, field_value, rule):
        # Unique-field and custom-SQL checks need a database and always pass here
        logger.debug(
            "%s validation not implemented for field: %s", rule.rule_type.value, field_name
        )
        return FieldValidationResult.success(field_name, field_value, rule)


# =============================================================================
# Convenience Functions
# =============================================================================

def group_rules_by_field(rules: Iterable[ValidationRule]) -> dict[str, list[ValidationRule]]:
    """Build the rules-by-field map, each list in execution order."""
    grouped: dict[str, list[ValidationRule]] = {}
    for rule in rules:
        if not rule.field_name:
            logger.warning("Ignoring rule %s with no field name", rule.rule_id)
            continue
        grouped.setdefault(rule.field_name, []).append(rule)
    for field_rules in grouped.values():
        field_rules.sort(key=lambda r: r.execution_order)
    return grouped


def validate_field(
    field_name: str,
    field_value: Optional[str],
    rules: Sequence[ValidationRule],
) -> list[FieldValidationResult]:
    """Validate one field with a temporary engine."""
    return RuleEngine().validate_field(field_name, field_value, rules)
