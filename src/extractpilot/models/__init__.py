"""
ExtractPilot Models

Domain models for extract layouts and content validation.
"""
from __future__ import annotations

from .enums import (
    CompositeOperation,
    PadSide,
    RuleType,
    Severity,
    TransformationType,
)
from .mapping import (
    CompositeTransform,
    Condition,
    ConditionalTransform,
    ConstantTransform,
    ElseIfBranch,
    FieldMapping,
    FieldMappingConfig,
    SourceTransform,
    Transformation,
)
from .validation import (
    FieldValidationResult,
    ValidationRule,
    ValidationSummary,
    merge_summaries,
)

__all__ = [
    # Enums
    "CompositeOperation",
    "PadSide",
    "RuleType",
    "Severity",
    "TransformationType",
    # Mapping
    "CompositeTransform",
    "Condition",
    "ConditionalTransform",
    "ConstantTransform",
    "ElseIfBranch",
    "FieldMapping",
    "FieldMappingConfig",
    "SourceTransform",
    "Transformation",
    # Validation
    "FieldValidationResult",
    "ValidationRule",
    "ValidationSummary",
    "merge_summaries",
]
