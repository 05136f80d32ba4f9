"""
ExtractPilot - Fixed-Width Extract Mapping and Record Validation

ExtractPilot turns database records into fixed-width banking extract
lines and validates ingested record content against declarative rules.

Core Principle: "Shape is checked once at design time; content is checked
on every record."

Key Features:
- Four transformation strategies per target field (source, constant,
  composite, conditional)
- Sandboxed conditional expressions with their own parser
- Non short-circuiting shape validation of mapping definitions
- Compilation to multi-document YAML, keyed by normalized field name
- Rule-driven, threshold-aware content validation

Quick Start:
    from extractpilot.engine import (
        ConfigCompiler, FieldTransformer, RuleEngine,
        group_rules_by_field, load_config,
    )
    from extractpilot.packs import load_rules

    # Validate and load a mapping definition
    config = load_config(definition)

    # Render a record
    line = FieldTransformer().render_line(config, record)

    # Compile for the batch runtime
    text = ConfigCompiler().compile(definition)

    # Validate record content
    rules = load_rules(rule_rows)
    summary = RuleEngine().validate_fields(record, group_rules_by_field(rules), 10)

Version: 0.1.0
"""
from __future__ import annotations

__version__ = "0.1.0"
__author__ = "ExtractPilot Team"

# =============================================================================
# Core Models (Re-exported for convenience)
# =============================================================================
from .models import (
    CompositeOperation,
    CompositeTransform,
    Condition,
    ConditionalTransform,
    ConstantTransform,
    ElseIfBranch,
    FieldMapping,
    FieldMappingConfig,
    FieldValidationResult,
    PadSide,
    RuleType,
    Severity,
    SourceTransform,
    TransformationType,
    ValidationRule,
    ValidationSummary,
    merge_summaries,
)

# =============================================================================
# Exceptions
# =============================================================================
from .exceptions import (
    ConfigCompileError,
    ConfigLoadError,
    ConfigShapeError,
    ExpressionSyntaxError,
    ExtractPilotError,
    FieldTransformationError,
    FieldValidationError,
    RuleDefinitionError,
)

__all__ = [
    "__version__",
    # Models
    "CompositeOperation",
    "CompositeTransform",
    "Condition",
    "ConditionalTransform",
    "ConstantTransform",
    "ElseIfBranch",
    "FieldMapping",
    "FieldMappingConfig",
    "FieldValidationResult",
    "PadSide",
    "RuleType",
    "Severity",
    "SourceTransform",
    "TransformationType",
    "ValidationRule",
    "ValidationSummary",
    "merge_summaries",
    # Exceptions
    "ExtractPilotError",
    "ConfigShapeError",
    "ConfigCompileError",
    "ConfigLoadError",
    "ExpressionSyntaxError",
    "FieldTransformationError",
    "FieldValidationError",
    "RuleDefinitionError",
]
