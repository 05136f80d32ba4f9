"""
ExtractPilot Definitions

Schema validation and loading for mapping definitions and validation
rule rows.

Usage:
    from extractpilot.packs import FieldMappingConfigSchema, load_rules

    schema = FieldMappingConfigSchema.model_validate(raw_definition)
    rules = load_rules(rule_rows)
"""
from __future__ import annotations

from .loader import (
    convert_definition,
    load_rule,
    load_rules,
    load_rules_from_string,
    parse_definition,
)
from .schema import (
    CompositeSourceSchema,
    ConditionSchema,
    FieldMappingConfigSchema,
    FieldMappingSchema,
    ValidationRuleSchema,
    validate_mapping_definition,
)

__all__ = [
    # Loader
    "convert_definition",
    "parse_definition",
    "load_rule",
    "load_rules",
    "load_rules_from_string",
    # Schemas
    "FieldMappingConfigSchema",
    "FieldMappingSchema",
    "ConditionSchema",
    "CompositeSourceSchema",
    "ValidationRuleSchema",
    "validate_mapping_definition",
]
