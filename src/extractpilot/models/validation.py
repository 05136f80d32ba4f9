"""
ExtractPilot Content Validation Models

Rule definitions consumed from an external rule store, atomic per-rule
outcomes, and the per-record / per-batch summary they aggregate into.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterable, Optional

from ..exceptions import FieldValidationError
from .enums import RuleType, Severity


# =============================================================================
# Rule Definition
# =============================================================================

@dataclass(frozen=True)
class ValidationRule:
    """
    A declarative content rule for one field.

    Rules are reference data managed outside ExtractPilot; they are loaded
    once per run and treated as immutable.
    """
    rule_id: str
    rule_type: RuleType
    field_name: Optional[str] = None
    execution_order: int = 1
    severity: Severity = Severity.ERROR
    enabled: bool = True
    data_type: Optional[str] = None
    min_length: Optional[int] = None
    max_length: Optional[int] = None
    pattern: Optional[str] = None
    validation_expression: Optional[str] = None
    error_message: Optional[str] = None
    required: bool = True
    precision: Optional[int] = None
    scale: Optional[int] = None
    reference_table: Optional[str] = None
    reference_column: Optional[str] = None

    @property
    def is_critical(self) -> bool:
        return self.severity == Severity.CRITICAL


# =============================================================================
# Results
# =============================================================================

@dataclass
class FieldValidationResult:
    """Outcome of evaluating one rule against one field value."""
    field_name: str
    field_value: Optional[str]
    valid: bool = True
    rule_id: Optional[str] = None
    error_message: Optional[str] = None
    warning_message: Optional[str] = None
    rule_type: Optional[RuleType] = None
    severity: Optional[Severity] = None

    @property
    def has_warnings(self) -> bool:
        return self.warning_message is not None

    @classmethod
    def success(
        cls,
        field_name: str,
        field_value: Optional[str],
        rule: Optional[ValidationRule] = None,
    ) -> FieldValidationResult:
        return cls(
            field_name=field_name,
            field_value=field_value,
            valid=True,
            rule_id=rule.rule_id if rule else None,
            rule_type=rule.rule_type if rule else None,
            severity=rule.severity if rule else None,
        )

    @classmethod
    def failure(
        cls,
        field_name: str,
        field_value: Optional[str],
        message: str,
        rule: Optional[ValidationRule] = None,
    ) -> FieldValidationResult:
        return cls(
            field_name=field_name,
            field_value=field_value,
            valid=False,
            rule_id=rule.rule_id if rule else None,
            error_message=message,
            rule_type=rule.rule_type if rule else None,
            severity=rule.severity if rule else None,
        )

    @classmethod
    def warning(
        cls,
        field_name: str,
        field_value: Optional[str],
        message: str,
        rule: Optional[ValidationRule] = None,
    ) -> FieldValidationResult:
        return cls(
            field_name=field_name,
            field_value=field_value,
            valid=True,
            rule_id=rule.rule_id if rule else None,
            warning_message=message,
            rule_type=rule.rule_type if rule else None,
            severity=rule.severity if rule else None,
        )

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "field_name": self.field_name,
            "field_value": self.field_value,
            "rule_id": self.rule_id,
            "valid": self.valid,
        }
        if self.rule_type is not None:
            result["rule_type"] = self.rule_type.value
        if self.severity is not None:
            result["severity"] = self.severity.value
        if self.error_message is not None:
            result["error_message"] = self.error_message
        if self.warning_message is not None:
            result["warning_message"] = self.warning_message
        return result


# =============================================================================
# Summary
# =============================================================================

@dataclass
class ValidationSummary:
    """
    Aggregated validation results for a record or batch.

    Each summary is owned by a single worker. Partial summaries are
    combined with ``merge`` once all workers finish.
    """
    total_fields: int = 0
    total_errors: int = 0
    total_warnings: int = 0
    error_field_count: int = 0
    threshold_exceeded: bool = False
    field_results: dict[str, list[FieldValidationResult]] = field(default_factory=dict)
    skipped_fields: list[str] = field(default_factory=list)
    batch_id: Optional[str] = None
    validated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def add_field_results(self, field_name: str, results: list[FieldValidationResult]) -> None:
        """Record the results of one field and update the counts."""
        self.field_results.setdefault(field_name, []).extend(results)
        errors = sum(1 for r in results if not r.valid)
        self.total_errors += errors
        self.total_warnings += sum(1 for r in results if r.valid and r.has_warnings)
        if errors:
            self.error_field_count += 1

    @property
    def all_errors(self) -> list[FieldValidationResult]:
        return [r for results in self.field_results.values() for r in results if not r.valid]

    @property
    def all_warnings(self) -> list[FieldValidationResult]:
        return [
            r for results in self.field_results.values() for r in results
            if r.valid and r.has_warnings
        ]

    @property
    def fields_with_errors(self) -> list[str]:
        return [
            name for name, results in self.field_results.items()
            if any(not r.valid for r in results)
        ]

    @property
    def fields_with_warnings(self) -> list[str]:
        return [
            name for name, results in self.field_results.items()
            if any(r.has_warnings for r in results)
        ]

    @property
    def valid_fields(self) -> int:
        return self.total_fields - self.error_field_count

    @property
    def is_valid(self) -> bool:
        return self.total_errors == 0 and not self.threshold_exceeded

    @property
    def success_rate(self) -> float:
        if self.total_fields == 0:
            return 100.0
        return self.valid_fields / self.total_fields * 100.0

    @property
    def error_rate(self) -> float:
        if self.total_fields == 0:
            return 0.0
        return self.total_errors / self.total_fields * 100.0

    @property
    def warning_rate(self) -> float:
        if self.total_fields == 0:
            return 0.0
        return self.total_warnings / self.total_fields * 100.0

    def get_field_results(self, field_name: str) -> list[FieldValidationResult]:
        return list(self.field_results.get(field_name, []))

    def raise_for_errors(self) -> None:
        """
        Raise if any field failed validation.

        Raises:
            FieldValidationError: Listing every failing field and message
        """
        errors = self.all_errors
        if not errors:
            return
        raise FieldValidationError(
            message=f"{len(errors)} validation error(s) in {len(self.fields_with_errors)} field(s)",
            details={
                "errors": [
                    {"field": r.field_name, "rule_id": r.rule_id, "message": r.error_message}
                    for r in errors
                ],
                "threshold_exceeded": self.threshold_exceeded,
            },
            record_id=self.batch_id,
        )

    def merge(self, other: ValidationSummary) -> ValidationSummary:
        """
        Combine two summaries into a new one.

        Counts are summed and field result maps are concatenated; when
        both summaries hold the same field name (different records) the
        result lists are joined. Neither input is modified.
        """
        merged_results = {name: list(results) for name, results in self.field_results.items()}
        for name, results in other.field_results.items():
            merged_results.setdefault(name, []).extend(results)
        return ValidationSummary(
            total_fields=self.total_fields + other.total_fields,
            total_errors=self.total_errors + other.total_errors,
            total_warnings=self.total_warnings + other.total_warnings,
            error_field_count=self.error_field_count + other.error_field_count,
            threshold_exceeded=self.threshold_exceeded or other.threshold_exceeded,
            field_results=merged_results,
            skipped_fields=self.skipped_fields + other.skipped_fields,
            batch_id=self.batch_id or other.batch_id,
            validated_at=max(self.validated_at, other.validated_at),
        )

    def summary_report(self) -> str:
        """Plain-text report for logs and operators."""
        lines = [
            "=== VALIDATION SUMMARY ===",
            f"Validation Time: {self.validated_at.isoformat()}",
            f"Total Fields: {self.total_fields}",
            f"Valid Fields: {self.valid_fields}",
            f"Errors: {self.total_errors}",
            f"Warnings: {self.total_warnings}",
            f"Success Rate: {self.success_rate:.2f}%",
            f"Error Rate: {self.error_rate:.2f}%",
            f"Threshold Exceeded: {'YES' if self.threshold_exceeded else 'NO'}",
            f"Overall Status: {'PASSED' if self.is_valid else 'FAILED'}",
        ]
        if self.all_errors:
            lines.append("")
            lines.append("=== ERRORS ===")
            lines.extend(f"- {r.field_name}: {r.error_message}" for r in self.all_errors)
        if self.all_warnings:
            lines.append("")
            lines.append("=== WARNINGS ===")
            lines.extend(f"- {r.field_name}: {r.warning_message}" for r in self.all_warnings)
        lines.append("========================")
        return "\n".join(lines) + "\n"

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_fields": self.total_fields,
            "total_errors": self.total_errors,
            "total_warnings": self.total_warnings,
            "valid_fields": self.valid_fields,
            "threshold_exceeded": self.threshold_exceeded,
            "success_rate": round(self.success_rate, 2),
            "error_rate": round(self.error_rate, 2),
            "warning_rate": round(self.warning_rate, 2),
            "skipped_fields": list(self.skipped_fields),
            "field_results": {
                name: [r.to_dict() for r in results]
                for name, results in self.field_results.items()
            },
        }


def merge_summaries(summaries: Iterable[ValidationSummary]) -> ValidationSummary:
    """Merge partial summaries produced by independent workers."""
    merged = ValidationSummary()
    for summary in summaries:
        merged = merged.merge(summary)
    return merged
