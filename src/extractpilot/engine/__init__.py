"""
ExtractPilot Engine

Core engines for extract layouts and content validation:
- Expression parser and condition evaluator for conditional fields
- Field transformer rendering records into fixed-width lines
- Config-shape validator and compiler for mapping definitions
- Rule engine for record content validation
"""
from __future__ import annotations

from .condition_evaluator import (
    BranchResult,
    ConditionEvaluator,
    evaluate_expression,
    resolve_conditional,
)
from .config_compiler import (
    ConfigCompiler,
    compile_config,
    parse_compiled,
)
from .expression import (
    parse_expression,
    referenced_fields,
    tokenize,
)
from .field_transformer import (
    FieldTransformer,
    RenderedField,
    RenderedLine,
    combine,
    position,
    render,
    render_field,
)
from .rule_engine import (
    ReferenceLookup,
    RuleEngine,
    group_rules_by_field,
    parse_range,
    to_strptime_format,
    validate_field,
)
from .shape_validator import (
    ConfigShapeValidator,
    ShapeValidationResult,
    load_config,
    normalize_field_key,
    validate_config,
)

__all__ = [
    # Expressions
    "parse_expression",
    "referenced_fields",
    "tokenize",
    "ConditionEvaluator",
    "BranchResult",
    "evaluate_expression",
    "resolve_conditional",
    # Transformation
    "FieldTransformer",
    "RenderedField",
    "RenderedLine",
    "combine",
    "position",
    "render",
    "render_field",
    # Shape validation / compilation
    "ConfigShapeValidator",
    "ShapeValidationResult",
    "validate_config",
    "load_config",
    "normalize_field_key",
    "ConfigCompiler",
    "compile_config",
    "parse_compiled",
    # Content validation
    "RuleEngine",
    "ReferenceLookup",
    "group_rules_by_field",
    "parse_range",
    "to_strptime_format",
    "validate_field",
]
