"""
ExtractPilot Exception Hierarchy

Domain-specific exceptions for extract mapping and record validation.
All exceptions include error codes for tracking and logging.

Exception codes follow the pattern: EP_<CATEGORY>_<SPECIFIC>
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass
class ExtractPilotError(Exception):
    """
    Base exception for all ExtractPilot errors.

    Attributes:
        message: Human-readable error description
        code: Machine-readable error code (EP_*)
        details: Additional context about the error
        record_id: Associated record identifier if applicable
    """
    message: str
    code: str = "EP_INTERNAL_ERROR"
    details: dict[str, Any] = field(default_factory=dict)
    record_id: Optional[str] = None

    def __post_init__(self) -> None:
        super().__init__(self.message)

    def __str__(self) -> str:
        parts = [f"[{self.code}] {self.message}"]
        if self.record_id:
            parts.append(f"(record: {self.record_id})")
        return " ".join(parts)

    def to_dict(self) -> dict[str, Any]:
        """Serialize exception for logging/API responses."""
        result: dict[str, Any] = {
            "code": self.code,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        if self.record_id:
            result["record_id"] = self.record_id
        return result


# =============================================================================
# Mapping Configuration Errors
# =============================================================================

@dataclass
class ConfigShapeError(ExtractPilotError):
    """
    Mapping definition failed structural validation.

    ``details["errors"]`` carries every violation found, so callers can
    report them together.
    """
    code: str = "EP_CONFIG_SHAPE_ERROR"

    @property
    def errors(self) -> list[str]:
        return list(self.details.get("errors", []))


@dataclass
class ConfigCompileError(ExtractPilotError):
    """Mapping definitions could not be compiled together."""
    code: str = "EP_CONFIG_COMPILE_ERROR"


@dataclass
class ConfigLoadError(ExtractPilotError):
    """Compiled configuration text could not be loaded."""
    code: str = "EP_CONFIG_LOAD_ERROR"


# =============================================================================
# Expression / Transformation Errors
# =============================================================================

@dataclass
class ExpressionSyntaxError(ExtractPilotError):
    """Conditional expression is malformed."""
    code: str = "EP_EXPRESSION_SYNTAX"
    expression: str = ""
    position: int = 0


@dataclass
class FieldTransformationError(ExtractPilotError):
    """A target field could not be rendered for a record."""
    code: str = "EP_FIELD_TRANSFORMATION"
    field_name: Optional[str] = None


# =============================================================================
# Content Validation Errors
# =============================================================================

@dataclass
class FieldValidationError(ExtractPilotError):
    """Field content violated one or more validation rules."""
    code: str = "EP_FIELD_VALIDATION"


@dataclass
class RuleDefinitionError(ExtractPilotError):
    """Validation rule row is invalid."""
    code: str = "EP_RULE_DEFINITION"
