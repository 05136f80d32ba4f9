"""
Pytest configuration and fixtures for ExtractPilot tests.

Provides helper factories for mapping definitions, domain mappings and
validation rules.
"""
import pytest
from typing import Any, Optional

from extractpilot.engine import (
    ConditionEvaluator,
    ConfigCompiler,
    ConfigShapeValidator,
    FieldTransformer,
    RuleEngine,
)
from extractpilot.models import (
    Condition,
    ConditionalTransform,
    ElseIfBranch,
    FieldMapping,
    FieldMappingConfig,
    PadSide,
    RuleType,
    Severity,
    SourceTransform,
    Transformation,
    ValidationRule,
)


# =============================================================================
# Factory Helpers
# =============================================================================

def make_field_definition(
    name: str,
    position: int,
    length: int = 10,
    transformation_type: str = "source",
    **extra: Any,
) -> dict[str, Any]:
    """Create one wire-shape field mapping (camelCase keys)."""
    field = {
        "targetFieldName": name,
        "targetPosition": position,
        "length": length,
        "transformationType": transformation_type,
    }
    if transformation_type == "source" and "sourceField" not in extra:
        field["sourceField"] = name
    field.update(extra)
    return field


def make_mapping_definition(
    field_mappings: Optional[list[dict[str, Any]]] = None,
    source_system: str = "CORE_BANKING",
    job_name: str = "daily_accounts",
    transaction_type: str = "default",
) -> dict[str, Any]:
    """Create a wire-shape mapping definition."""
    if field_mappings is None:
        field_mappings = [
            make_field_definition("ACCT_NUM", 1, 10, sourceField="ACCOUNT_NUMBER"),
            make_field_definition("RECORD_TYPE", 2, 2, "constant", value="01"),
            make_field_definition(
                "FULL_NAME", 3, 20, "composite",
                sources=["FIRST_NAME", "LAST_NAME"], delimiter=" ",
            ),
            make_field_definition(
                "STATUS", 4, 8, "conditional",
                conditions=[{"ifExpr": 'STATUS_CD == "A"', "then": "ACTIVE", "elseExpr": "INACTIVE"}],
            ),
        ]
    return {
        "sourceSystem": source_system,
        "jobName": job_name,
        "transactionType": transaction_type,
        "fieldMappings": field_mappings,
        "version": 1,
    }


def make_mapping(
    name: str = "ACCT_NUM",
    position: int = 1,
    length: int = 10,
    transformation: Optional[Transformation] = None,
    pad: PadSide = PadSide.RIGHT,
    pad_char: str = " ",
    default_value: Optional[str] = None,
) -> FieldMapping:
    """Create a domain FieldMapping (source copy of ``name`` by default)."""
    return FieldMapping(
        target_field_name=name,
        target_position=position,
        length=length,
        transformation=transformation or SourceTransform(source_field=name),
        pad=pad,
        pad_char=pad_char,
        default_value=default_value,
    )


def make_conditional(
    if_expr: str,
    then: str,
    else_expr: Optional[str] = None,
    else_ifs: Optional[list[tuple[str, str]]] = None,
) -> ConditionalTransform:
    """Create a single-condition ConditionalTransform."""
    return ConditionalTransform(conditions=(
        Condition(
            if_expr=if_expr,
            then=then,
            else_ifs=tuple(ElseIfBranch(c, v) for c, v in (else_ifs or [])),
            else_expr=else_expr,
        ),
    ))


def make_config(
    mappings: Optional[list[FieldMapping]] = None,
    transaction_type: str = "default",
) -> FieldMappingConfig:
    """Create a domain FieldMappingConfig."""
    return FieldMappingConfig(
        source_system="CORE_BANKING",
        job_name="daily_accounts",
        field_mappings=mappings if mappings is not None else [make_mapping()],
        transaction_type=transaction_type,
    )


def make_rule(
    rule_id: str,
    rule_type: RuleType,
    field_name: str = "ACCT_NUM",
    execution_order: int = 1,
    severity: Severity = Severity.ERROR,
    **extra: Any,
) -> ValidationRule:
    """Create a ValidationRule with required fields."""
    return ValidationRule(
        rule_id=rule_id,
        rule_type=rule_type,
        field_name=field_name,
        execution_order=execution_order,
        severity=severity,
        **extra,
    )


# =============================================================================
# Common Fixtures
# =============================================================================

@pytest.fixture
def evaluator():
    return ConditionEvaluator()


@pytest.fixture
def transformer():
    return FieldTransformer()


@pytest.fixture
def shape_validator():
    return ConfigShapeValidator(max_record_length=32000)


@pytest.fixture
def compiler(shape_validator):
    return ConfigCompiler(shape_validator)


@pytest.fixture
def rule_engine():
    return RuleEngine()


@pytest.fixture
def definition():
    return make_mapping_definition()
