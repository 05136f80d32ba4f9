"""Response schemas for the API."""

from typing import Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from extractpilot.engine import RenderedLine, ShapeValidationResult
from extractpilot.models import FieldValidationResult, ValidationSummary


class ShapeValidationResponse(BaseModel):
    """Outcome of validating a mapping definition."""
    valid: bool
    errors: list[str]
    warnings: list[str]
    duplicate_positions: list[int] = []
    duplicate_field_names: list[str] = []
    missing_required_fields: list[str] = []

    @classmethod
    def from_result(cls, result: ShapeValidationResult) -> "ShapeValidationResponse":
        return cls(**result.to_dict())


class CompileResponse(BaseModel):
    """Compiled YAML configuration."""
    content: str
    documents: int = 1


class PreviewLine(BaseModel):
    record_id: Optional[str] = None
    text: str
    warnings: list[str] = []


class PreviewResponse(BaseModel):
    """Rendered fixed-width lines for sample records."""
    lines: list[PreviewLine]
    preview: str
    record_length: int
    warnings: list[str]

    @classmethod
    def from_lines(cls, lines: list[RenderedLine], record_length: int) -> "PreviewResponse":
        return cls(
            lines=[
                PreviewLine(record_id=line.record_id, text=line.text, warnings=line.warnings)
                for line in lines
            ],
            preview="\n".join(line.text for line in lines),
            record_length=record_length,
            warnings=[w for line in lines for w in line.warnings],
        )


class _CamelResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class FieldResultResponse(_CamelResponse):
    """One rule outcome for a field."""
    field_name: str
    field_value: Optional[str] = None
    rule_id: Optional[str] = None
    valid: bool
    error_message: Optional[str] = None
    warning_message: Optional[str] = None
    rule_type: Optional[str] = None
    severity: Optional[str] = None

    @classmethod
    def from_result(cls, result: FieldValidationResult) -> "FieldResultResponse":
        return cls(
            field_name=result.field_name,
            field_value=result.field_value,
            rule_id=result.rule_id,
            valid=result.valid,
            error_message=result.error_message,
            warning_message=result.warning_message,
            rule_type=result.rule_type.value if result.rule_type else None,
            severity=result.severity.value if result.severity else None,
        )


class ValidationSummaryResponse(_CamelResponse):
    """Content validation summary."""
    total_fields: int
    total_errors: int
    total_warnings: int
    valid_fields: int
    threshold_exceeded: bool
    success_rate: float
    error_rate: float
    warning_rate: float
    skipped_fields: list[str] = []
    field_results: dict[str, list[FieldResultResponse]] = {}

    @classmethod
    def from_summary(cls, summary: ValidationSummary) -> "ValidationSummaryResponse":
        return cls(
            total_fields=summary.total_fields,
            total_errors=summary.total_errors,
            total_warnings=summary.total_warnings,
            valid_fields=summary.valid_fields,
            threshold_exceeded=summary.threshold_exceeded,
            success_rate=round(summary.success_rate, 2),
            error_rate=round(summary.error_rate, 2),
            warning_rate=round(summary.warning_rate, 2),
            skipped_fields=list(summary.skipped_fields),
            field_results={
                name: [FieldResultResponse.from_result(r) for r in results]
                for name, results in summary.field_results.items()
            },
        )
