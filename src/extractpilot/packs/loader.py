"""
ExtractPilot Definition Loader

Converts Pydantic schema models to ExtractPilot domain models.

Mapping definitions are converted only after the shape validator has
accepted them (see extractpilot.engine.shape_validator.load_config);
rule rows are converted one at a time and rejected individually.
"""
from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import Any, Iterable, Optional, Union

import yaml
from pydantic import ValidationError

from ..exceptions import ConfigLoadError, RuleDefinitionError
from ..models import (
    CompositeOperation,
    CompositeTransform,
    Condition,
    ConditionalTransform,
    ConstantTransform,
    ElseIfBranch,
    FieldMapping,
    FieldMappingConfig,
    PadSide,
    RuleType,
    Severity,
    SourceTransform,
    Transformation,
    TransformationType,
    ValidationRule,
)
from .schema import (
    ConditionSchema,
    FieldMappingConfigSchema,
    FieldMappingSchema,
    ValidationRuleSchema,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Schema to Model Converters
# =============================================================================

def _convert_condition(schema: ConditionSchema) -> Condition:
    """Convert ConditionSchema to Condition model."""
    return Condition(
        if_expr=schema.if_expr or "",
        then=schema.then if schema.then is not None else "",
        else_ifs=tuple(
            ElseIfBranch(
                condition=branch.if_expr or "",
                value=branch.then if branch.then is not None else "",
            )
            for branch in schema.else_if_exprs
        ),
        else_expr=schema.else_expr,
    )


def _convert_transformation(schema: FieldMappingSchema) -> Transformation:
    """Build the transformation variant named by ``transformation_type``."""
    kind = TransformationType.parse(schema.transformation_type or "")

    if kind == TransformationType.SOURCE:
        return SourceTransform(source_field=schema.source_field or "")
    if kind == TransformationType.CONSTANT:
        return ConstantTransform(value=schema.value)
    if kind == TransformationType.COMPOSITE:
        return CompositeTransform(
            sources=tuple(schema.source_names),
            delimiter=schema.delimiter or "",
            transform=CompositeOperation.parse(schema.transform),
        )
    return ConditionalTransform(
        conditions=tuple(_convert_condition(c) for c in schema.conditions),
    )


def _convert_field_mapping(schema: FieldMappingSchema) -> FieldMapping:
    """Convert FieldMappingSchema to FieldMapping model."""
    return FieldMapping(
        target_field_name=schema.target_field_name or "",
        target_position=schema.target_position or 0,
        length=schema.length or 0,
        transformation=_convert_transformation(schema),
        pad=PadSide.parse(schema.pad),
        pad_char=schema.pad_char or " ",
        data_type=schema.data_type or "STRING",
        default_value=schema.default_value,
    )


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        logger.warning("Ignoring unparseable lastModified value: %s", value)
        return None


def convert_definition(schema: FieldMappingConfigSchema) -> FieldMappingConfig:
    """
    Convert a mapping definition to the domain model.

    The definition must already have passed shape validation; an invalid
    one surfaces here as a ValueError from the domain constructors.
    """
    return FieldMappingConfig(
        source_system=schema.source_system or "",
        job_name=schema.job_name or "",
        transaction_type=schema.transaction_type,
        field_mappings=[_convert_field_mapping(m) for m in schema.field_mappings],
        version=schema.version,
        last_modified=_parse_timestamp(schema.last_modified),
    )


def parse_definition(
    definition: Union[FieldMappingConfigSchema, dict[str, Any]],
) -> FieldMappingConfigSchema:
    """Accept a schema object or a raw dict and return the schema object."""
    if isinstance(definition, FieldMappingConfigSchema):
        return definition
    return FieldMappingConfigSchema.model_validate(definition)


# =============================================================================
# Validation Rules
# =============================================================================

def _convert_rule(schema: ValidationRuleSchema) -> ValidationRule:
    """Convert ValidationRuleSchema to ValidationRule model."""
    return ValidationRule(
        rule_id=schema.rule_id,
        rule_type=RuleType.parse(schema.rule_type),
        field_name=schema.field_name,
        execution_order=schema.execution_order,
        severity=Severity.parse(schema.severity),
        enabled=schema.enabled,
        data_type=schema.data_type,
        min_length=schema.min_length,
        max_length=schema.max_length,
        pattern=schema.pattern,
        validation_expression=schema.validation_expression,
        error_message=schema.error_message,
        required=schema.required_field,
        precision=schema.precision,
        scale=schema.scale,
        reference_table=schema.reference_table,
        reference_column=schema.reference_column,
    )


def load_rule(row: Union[ValidationRuleSchema, dict[str, Any]]) -> ValidationRule:
    """
    Convert one rule row into a ValidationRule.

    Raises:
        RuleDefinitionError: If the row is malformed or names an unknown
            rule type or severity
    """
    rule_id = None
    try:
        if isinstance(row, ValidationRuleSchema):
            schema = row
        else:
            rule_id = row.get("ruleId", row.get("rule_id"))
            schema = ValidationRuleSchema.model_validate(row)
        rule_id = schema.rule_id
        return _convert_rule(schema)
    except ValidationError as e:
        raise RuleDefinitionError(
            message=f"Invalid validation rule {rule_id or '<unknown>'}",
            details={"errors": [err["msg"] for err in e.errors()], "rule_id": rule_id},
        ) from e
    except ValueError as e:
        raise RuleDefinitionError(
            message=f"Invalid validation rule {rule_id}: {e}",
            details={"rule_id": rule_id},
        ) from e


def load_rules(rows: Iterable[Union[ValidationRuleSchema, dict[str, Any]]]) -> list[ValidationRule]:
    """Convert a sequence of rule rows, failing on the first bad row."""
    return [load_rule(row) for row in rows]


def load_rules_from_string(content: str, format: str = "yaml") -> list[ValidationRule]:
    """
    Load rule rows from YAML or JSON text.

    The document is either a list of rows or a mapping with a ``rules``
    list.

    Raises:
        ConfigLoadError: If the text cannot be parsed
        RuleDefinitionError: If a row is invalid
    """
    try:
        if format == "json":
            data = json.loads(content)
        else:
            data = yaml.safe_load(content)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise ConfigLoadError(
            message=f"Failed to parse rule definitions: {e}",
            details={"format": format},
        ) from e

    if isinstance(data, dict):
        data = data.get("rules", [])
    if not isinstance(data, list):
        raise ConfigLoadError(
            message="Rule definitions must be a list of rows",
            details={"format": format},
        )
    return load_rules(data)
