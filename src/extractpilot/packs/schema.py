"""
ExtractPilot Definition Schemas

Pydantic models for the editable mapping definition and for validation
rule rows supplied by an external rule store.

These schemas are deliberately permissive: every structural field is
optional so an incomplete definition still parses, and the shape
validator (not pydantic) reports what is missing. They map to the
domain models in extractpilot.models via extractpilot.packs.loader.

Both camelCase wire names (``targetFieldName``) and snake_case names
(``target_field_name``) are accepted.
"""
from __future__ import annotations

from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


# Keys inside transformationConfig that may be lifted onto the mapping
TRANSFORMATION_CONFIG_KEYS = {
    "value": "value",
    "defaultValue": "default_value",
    "sources": "sources",
    "delimiter": "delimiter",
    "transform": "transform",
    "conditions": "conditions",
    "pad": "pad",
    "padChar": "pad_char",
    "sourceField": "source_field",
}

_TRUE_FLAGS = {"y", "yes", "true", "1"}
_FALSE_FLAGS = {"n", "no", "false", "0"}


class _WireModel(BaseModel):
    """Base for schemas read from camelCase JSON/YAML."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


def _flag(value: Any) -> Any:
    """Accept Y/N style flags as booleans."""
    if isinstance(value, str):
        text = value.strip().lower()
        if text in _TRUE_FLAGS:
            return True
        if text in _FALSE_FLAGS:
            return False
    return value


# =============================================================================
# Mapping Definition
# =============================================================================

class ConditionSchema(_WireModel):
    """
    Schema for one if / else-if / else chain.

    Else-if entries use the same shape as the condition itself
    (``ifExpr`` + ``then``).
    """
    if_expr: Optional[str] = Field(None, description="Boolean expression")
    then: Optional[str] = Field(None, description="Value when if_expr holds")
    else_if_exprs: list[ConditionSchema] = Field(default_factory=list)
    else_expr: Optional[str] = Field(None, description="Value when nothing matched")

    @field_validator("then", "else_expr", mode="before")
    @classmethod
    def stringify_value(cls, v: Any) -> Any:
        if v is None or isinstance(v, str):
            return v
        return str(v)


class CompositeSourceSchema(_WireModel):
    """A composite source entry written as an object."""
    source_field: Optional[str] = None


class FieldMappingSchema(_WireModel):
    """Schema for one target field of the layout."""
    target_field_name: Optional[str] = Field(None, description="Output field name")
    target_position: Optional[int] = Field(None, description="1-based output position")
    length: Optional[int] = Field(None, description="Fixed width in characters")
    data_type: Optional[str] = Field(None, description="Declared data type")
    transformation_type: Optional[str] = Field(None, description="source, constant, composite or conditional")
    source_field: Optional[str] = None
    value: Optional[str] = None
    default_value: Optional[str] = None
    sources: list[Union[str, CompositeSourceSchema]] = Field(default_factory=list)
    delimiter: Optional[str] = None
    transform: Optional[str] = Field(None, description="Composite operation, concat when unset")
    conditions: list[ConditionSchema] = Field(default_factory=list)
    pad: Optional[str] = Field(None, description="left or right")
    pad_char: Optional[str] = None
    transformation_config: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def lift_transformation_config(cls, data: Any) -> Any:
        """Copy transformationConfig keys onto the mapping when not set directly."""
        if not isinstance(data, dict):
            return data
        config = data.get("transformationConfig", data.get("transformation_config"))
        if not isinstance(config, dict):
            return data
        lifted = dict(data)
        for wire_key, attr in TRANSFORMATION_CONFIG_KEYS.items():
            if wire_key not in config:
                continue
            if lifted.get(wire_key) is None and lifted.get(attr) is None:
                lifted[attr] = config[wire_key]
        return lifted

    @field_validator("value", "default_value", "delimiter", mode="before")
    @classmethod
    def stringify_scalar(cls, v: Any) -> Any:
        if v is None or isinstance(v, str):
            return v
        return str(v)

    @field_validator("sources", "conditions", mode="before")
    @classmethod
    def none_as_empty(cls, v: Any) -> Any:
        return [] if v is None else v

    @property
    def source_names(self) -> list[str]:
        """Composite source names in declared order."""
        names = []
        for source in self.sources:
            if isinstance(source, CompositeSourceSchema):
                names.append(source.source_field or "")
            else:
                names.append(source)
        return names


class FieldMappingConfigSchema(_WireModel):
    """Schema for a complete editable mapping definition."""
    source_system: Optional[str] = None
    job_name: Optional[str] = None
    transaction_type: str = "default"
    field_mappings: list[FieldMappingSchema] = Field(default_factory=list)
    version: int = 1
    last_modified: Optional[str] = None

    @field_validator("transaction_type", mode="before")
    @classmethod
    def default_transaction_type(cls, v: Any) -> Any:
        if v is None or (isinstance(v, str) and not v.strip()):
            return "default"
        return v

    @field_validator("field_mappings", mode="before")
    @classmethod
    def none_as_empty(cls, v: Any) -> Any:
        return [] if v is None else v

    @field_validator("last_modified", mode="before")
    @classmethod
    def stringify_timestamp(cls, v: Any) -> Any:
        if v is None or isinstance(v, str):
            return v
        return v.isoformat() if hasattr(v, "isoformat") else str(v)


# =============================================================================
# Validation Rules
# =============================================================================

class ValidationRuleSchema(_WireModel):
    """Schema for one validation rule row."""
    rule_id: str
    rule_type: str
    field_name: Optional[str] = None
    execution_order: int = 1
    severity: Optional[str] = None
    enabled: bool = True
    data_type: Optional[str] = None
    min_length: Optional[int] = None
    max_length: Optional[int] = None
    pattern: Optional[str] = None
    validation_expression: Optional[str] = None
    error_message: Optional[str] = None
    required_field: bool = True
    precision: Optional[int] = None
    scale: Optional[int] = None
    reference_table: Optional[str] = None
    reference_column: Optional[str] = None

    @field_validator("rule_id", mode="before")
    @classmethod
    def stringify_rule_id(cls, v: Any) -> Any:
        return v if v is None or isinstance(v, str) else str(v)

    @field_validator("enabled", "required_field", mode="before")
    @classmethod
    def parse_flag(cls, v: Any) -> Any:
        if v is None:
            return True
        return _flag(v)


def validate_mapping_definition(data: dict[str, Any]) -> FieldMappingConfigSchema:
    """
    Parse a raw mapping definition.

    Raises:
        pydantic.ValidationError: If a field has the wrong type
    """
    return FieldMappingConfigSchema.model_validate(data)
