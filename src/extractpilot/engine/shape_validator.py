"""
ExtractPilot Config-Shape Validator

Structural gatekeeper for an editable mapping definition.

Validation never raises for invalid input and never short-circuits:
every violation is collected so an author can fix several at once.
It inspects only the definition, never record content.
"""
from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Optional, Union

from pydantic import BaseModel, ValidationError
from pydantic.alias_generators import to_camel

from ..config import get_settings
from ..exceptions import ConfigShapeError, ExpressionSyntaxError
from ..models import CompositeOperation, FieldMappingConfig, PadSide, TransformationType
from ..packs.loader import convert_definition, parse_definition
from ..packs.schema import (
    TRANSFORMATION_CONFIG_KEYS,
    ConditionSchema,
    FieldMappingConfigSchema,
    FieldMappingSchema,
)
from .expression import parse_expression

logger = logging.getLogger(__name__)

Definition = Union[FieldMappingConfigSchema, dict[str, Any]]


def normalize_field_key(name: str) -> str:
    """Key used for a field in compiled configuration: lower-case, '_' to '-'."""
    return name.lower().replace("_", "-")


def _without_fields(
    model: type[BaseModel], data: dict[str, Any], bad: set[str]
) -> dict[str, Any]:
    """Drop the fields named in ``bad`` (by attribute or wire name) from raw data."""
    names: set[str] = set()
    for name in model.model_fields:
        if name in bad or to_camel(name) in bad:
            names.update({name, to_camel(name)})
    cleaned = {key: value for key, value in data.items() if key not in names}
    for key in ("transformationConfig", "transformation_config"):
        config = cleaned.get(key)
        if isinstance(config, dict):
            cleaned[key] = {
                wire_key: value for wire_key, value in config.items()
                if TRANSFORMATION_CONFIG_KEYS.get(wire_key) not in names
            }
    return cleaned


def _parse_partial(
    model: type[BaseModel],
    data: Any,
    prefix: tuple[Any, ...],
    result: ShapeValidationResult,
) -> tuple[Any, bool]:
    """
    Parse ``data`` as ``model``, reporting type errors instead of raising.

    Fields with the wrong type are reported and dropped, so the rest of the
    object is still available to later checks. Returns the parsed object and
    whether it parsed cleanly.
    """
    try:
        return model.model_validate(data), True
    except ValidationError as e:
        errors = e.errors()

    for err in errors:
        location = ".".join(str(part) for part in (*prefix, *err["loc"]))
        result.add_error(f"Invalid value for {location}: {err['msg']}")

    if not isinstance(data, dict):
        return model(), False
    bad = {str(err["loc"][0]) for err in errors if err["loc"]}
    try:
        return model.model_validate(_without_fields(model, data, bad)), False
    except ValidationError:
        return model(), False


# =============================================================================
# Result
# =============================================================================

@dataclass
class ShapeValidationResult:
    """Outcome of shape validation; ``valid`` is False whenever an error exists."""
    valid: bool = True
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    duplicate_positions: list[int] = field(default_factory=list)
    duplicate_field_names: list[str] = field(default_factory=list)
    missing_required_fields: list[str] = field(default_factory=list)

    def add_error(self, message: str) -> None:
        self.errors.append(message)
        self.valid = False

    def add_warning(self, message: str) -> None:
        self.warnings.append(message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "valid": self.valid,
            "errors": list(self.errors),
            "warnings": list(self.warnings),
            "duplicate_positions": list(self.duplicate_positions),
            "duplicate_field_names": list(self.duplicate_field_names),
            "missing_required_fields": list(self.missing_required_fields),
        }


# =============================================================================
# Validator
# =============================================================================

class ConfigShapeValidator:
    """
    Validates the structure of mapping definitions.

    Usage:
        validator = ConfigShapeValidator()
        result = validator.validate(raw_definition)
        if not result.valid:
            for error in result.errors:
                print(error)
    """

    def __init__(self, max_record_length: Optional[int] = None) -> None:
        if max_record_length is None:
            max_record_length = get_settings().max_record_length
        self.max_record_length = max_record_length

    def validate(self, definition: Definition) -> ShapeValidationResult:
        """Validate a definition (schema object or raw dict)."""
        result = ShapeValidationResult()
        schema, unparsed = self._parse(definition, result)

        if not schema.field_mappings:
            result.add_error("No field mappings defined")
        if not schema.source_system or not schema.source_system.strip():
            result.add_error("Source system is required")
            result.missing_required_fields.append("sourceSystem")
        if not schema.job_name or not schema.job_name.strip():
            result.add_error("Job name is required")
            result.missing_required_fields.append("jobName")

        self._check_duplicate_positions(schema, result)
        self._check_duplicate_names(schema, result)
        self._check_key_collisions(schema, result)

        for index, mapping in enumerate(schema.field_mappings):
            if index not in unparsed:
                self._check_mapping(mapping, index, result)

        self._check_record_length(schema, result)

        logger.debug(
            "Shape validation for %s/%s: valid=%s errors=%d warnings=%d",
            schema.job_name, schema.transaction_type, result.valid,
            len(result.errors), len(result.warnings),
        )
        return result

    def _parse(
        self, definition: Definition, result: ShapeValidationResult
    ) -> tuple[FieldMappingConfigSchema, set[int]]:
        """
        Parse the top-level fields and each mapping separately.

        Returns the schema with every mapping that could be read, and the
        indices of mappings that had type errors. Those mappings still take
        part in the whole-definition checks.
        """
        if isinstance(definition, FieldMappingConfigSchema):
            return definition, set()

        data = dict(definition)
        raw_mappings = data.pop("fieldMappings", None)
        if "field_mappings" in data:
            snake = data.pop("field_mappings")
            raw_mappings = snake if raw_mappings is None else raw_mappings
        schema, _ = _parse_partial(FieldMappingConfigSchema, data, (), result)

        if raw_mappings is None:
            raw_mappings = []
        elif not isinstance(raw_mappings, list):
            result.add_error("Invalid value for fieldMappings: Input should be a valid list")
            raw_mappings = []

        mappings: list[FieldMappingSchema] = []
        unparsed: set[int] = set()
        for index, raw in enumerate(raw_mappings):
            mapping, clean = _parse_partial(
                FieldMappingSchema, raw, ("fieldMappings", index), result
            )
            mappings.append(mapping)
            if not clean:
                unparsed.add(index)
        return schema.model_copy(update={"field_mappings": mappings}), unparsed

    # -- whole-definition checks ----------------------------------------------

    def _check_duplicate_positions(
        self, schema: FieldMappingConfigSchema, result: ShapeValidationResult
    ) -> None:
        counts = Counter(
            m.target_position for m in schema.field_mappings if m.target_position is not None
        )
        for position, count in counts.items():
            if count > 1:
                result.duplicate_positions.append(position)
                result.add_error(f"Duplicate target position: {position}")

    def _check_duplicate_names(
        self, schema: FieldMappingConfigSchema, result: ShapeValidationResult
    ) -> None:
        counts = Counter(
            m.target_field_name for m in schema.field_mappings
            if m.target_field_name and m.target_field_name.strip()
        )
        for name, count in counts.items():
            if count > 1:
                result.duplicate_field_names.append(name)
                result.add_error(f"Duplicate target field: {name}")

    def _check_key_collisions(
        self, schema: FieldMappingConfigSchema, result: ShapeValidationResult
    ) -> None:
        by_key: dict[str, list[str]] = {}
        for mapping in schema.field_mappings:
            name = mapping.target_field_name
            if not name or not name.strip():
                continue
            names = by_key.setdefault(normalize_field_key(name), [])
            if name not in names:
                names.append(name)
        for key, names in by_key.items():
            if len(names) > 1:
                result.add_error(
                    f"Field names {', '.join(names)} collide on compiled key '{key}'"
                )

    def _check_record_length(
        self, schema: FieldMappingConfigSchema, result: ShapeValidationResult
    ) -> None:
        total = sum(m.length for m in schema.field_mappings if m.length and m.length > 0)
        if total > self.max_record_length:
            result.add_error(
                f"Total record length {total} exceeds maximum of {self.max_record_length}"
            )

    # -- per-mapping checks ---------------------------------------------------

    def _check_mapping(
        self, mapping: FieldMappingSchema, index: int, result: ShapeValidationResult
    ) -> None:
        name = mapping.target_field_name
        if not name or not name.strip():
            result.add_error(f"Target field name is required for mapping #{index + 1}")
            result.missing_required_fields.append(f"fieldMappings[{index}].targetFieldName")
            label = f"#{index + 1}"
        else:
            label = name

        if mapping.target_position is None or mapping.target_position <= 0:
            result.add_error(f"Target position must be a positive integer for field: {label}")
            if mapping.target_position is None:
                result.missing_required_fields.append(f"{label}.targetPosition")
        if mapping.length is None or mapping.length <= 0:
            result.add_error(f"Length must be a positive integer for field: {label}")
            if mapping.length is None:
                result.missing_required_fields.append(f"{label}.length")

        if mapping.pad is not None:
            try:
                PadSide.parse(mapping.pad)
            except ValueError:
                result.add_error(f"Invalid pad side '{mapping.pad}' for field: {label}")
        if mapping.pad_char is not None and len(mapping.pad_char) != 1:
            result.add_error(f"Pad character must be a single character for field: {label}")

        if not mapping.transformation_type or not mapping.transformation_type.strip():
            result.add_error(f"Transformation type is required for field: {label}")
            result.missing_required_fields.append(f"{label}.transformationType")
            return
        try:
            kind = TransformationType.parse(mapping.transformation_type)
        except ValueError:
            result.add_error(
                f"Unknown transformation type '{mapping.transformation_type}' for field: {label}"
            )
            return

        if kind == TransformationType.SOURCE:
            if not mapping.source_field or not mapping.source_field.strip():
                result.add_error(f"Source field required for field: {label}")
                result.missing_required_fields.append(f"{label}.sourceField")

        elif kind == TransformationType.CONSTANT:
            if not (mapping.value and mapping.value.strip()) and mapping.default_value is None:
                result.add_warning(f"No value specified for constant field: {label}")

        elif kind == TransformationType.COMPOSITE:
            if not mapping.sources:
                result.add_error(f"Sources required for composite field: {label}")
                result.missing_required_fields.append(f"{label}.sources")
            for position, source in enumerate(mapping.source_names, start=1):
                if not source or not source.strip():
                    result.add_error(f"Composite source {position} is blank for field: {label}")
            try:
                CompositeOperation.parse(mapping.transform)
            except ValueError:
                result.add_error(
                    f"Unknown composite transform '{mapping.transform}' for field: {label}"
                )

        elif kind == TransformationType.CONDITIONAL:
            if not mapping.conditions:
                result.add_error(f"Conditions required for conditional field: {label}")
                result.missing_required_fields.append(f"{label}.conditions")
                return
            has_else = False
            for number, condition in enumerate(mapping.conditions, start=1):
                self._check_condition(condition, f"condition {number}", label, result)
                for branch_number, branch in enumerate(condition.else_if_exprs, start=1):
                    self._check_condition(
                        branch, f"condition {number} else-if {branch_number}", label, result
                    )
                if condition.else_expr is not None and condition.else_expr.strip():
                    has_else = True
            if not has_else and mapping.default_value is None:
                result.add_warning(
                    f"Conditional field {label} has no else expression; "
                    f"unmatched records render an empty value"
                )

    def _check_condition(
        self,
        condition: ConditionSchema,
        where: str,
        label: str,
        result: ShapeValidationResult,
    ) -> None:
        expression = condition.if_expr
        if not expression or not expression.strip():
            result.add_error(f"Missing if expression in {where} for field: {label}")
            return
        try:
            parse_expression(expression.strip())
        except ExpressionSyntaxError as e:
            result.add_error(f"Invalid expression in {where} for field {label}: {e.message}")


# =============================================================================
# Convenience Functions
# =============================================================================

def validate_config(
    definition: Definition,
    max_record_length: Optional[int] = None,
) -> ShapeValidationResult:
    """Validate a definition with a temporary validator."""
    return ConfigShapeValidator(max_record_length).validate(definition)


def load_config(
    definition: Definition,
    max_record_length: Optional[int] = None,
) -> FieldMappingConfig:
    """
    Validate a definition and convert it to the domain model.

    Raises:
        ConfigShapeError: Carrying every violation, if the definition is invalid
    """
    result = ConfigShapeValidator(max_record_length).validate(definition)
    if not result.valid:
        raise ConfigShapeError(
            message=f"Mapping definition has {len(result.errors)} error(s)",
            details={"errors": list(result.errors), "warnings": list(result.warnings)},
        )
    return convert_definition(parse_definition(definition))
