"""
ExtractPilot Enumerations

All enumeration types used throughout ExtractPilot.
Organized by domain area for clarity.

All enums inherit from (str, Enum) for JSON/YAML serialization compatibility.
"""
from __future__ import annotations

from enum import Enum
from typing import Union


# =============================================================================
# Field Mapping
# =============================================================================

class TransformationType(str, Enum):
    """Strategy used to derive a target field's value from a source record."""
    SOURCE = "source"              # Copy a source column
    CONSTANT = "constant"          # Fixed literal value
    COMPOSITE = "composite"        # Join several source columns
    CONDITIONAL = "conditional"    # Ordered if / else-if / else branches

    @classmethod
    def parse(cls, value: Union[str, TransformationType]) -> TransformationType:
        """Parse a transformation type case-insensitively."""
        if isinstance(value, cls):
            return value
        return cls(str(value).strip().lower())


class PadSide(str, Enum):
    """Side on which a short value is padded to its fixed width."""
    LEFT = "left"      # Value right-aligned
    RIGHT = "right"    # Value left-aligned

    @classmethod
    def parse(cls, value: Union[str, PadSide, None]) -> PadSide:
        """Parse a pad side case-insensitively; None means RIGHT."""
        if value is None:
            return cls.RIGHT
        if isinstance(value, cls):
            return value
        return cls(str(value).strip().lower())


class CompositeOperation(str, Enum):
    """How a composite field combines its source columns."""
    CONCAT = "concat"    # Join with the delimiter
    SUM = "sum"
    AVG = "avg"
    MIN = "min"
    MAX = "max"
    UPPER = "upper"      # First source only
    LOWER = "lower"      # First source only
    TRIM = "trim"        # First source only

    @property
    def is_numeric(self) -> bool:
        return self in (
            CompositeOperation.SUM,
            CompositeOperation.AVG,
            CompositeOperation.MIN,
            CompositeOperation.MAX,
        )

    @classmethod
    def parse(cls, value: Union[str, CompositeOperation, None]) -> CompositeOperation:
        """Parse an operation name case-insensitively; None or blank means CONCAT."""
        if value is None:
            return cls.CONCAT
        if isinstance(value, cls):
            return value
        text = str(value).strip().lower()
        if not text:
            return cls.CONCAT
        return cls(_COMPOSITE_ALIASES.get(text, text))


_COMPOSITE_ALIASES = {
    "average": "avg",
    "minimum": "min",
    "maximum": "max",
    "uppercase": "upper",
    "lowercase": "lower",
}


# =============================================================================
# Content Validation
# =============================================================================

class RuleType(str, Enum):
    """Declarative content validation rule types."""
    REQUIRED = "REQUIRED_FIELD_VALIDATION"
    LENGTH = "LENGTH_VALIDATION"
    DATA_TYPE = "DATA_TYPE_VALIDATION"
    PATTERN = "PATTERN_VALIDATION"
    EMAIL = "EMAIL_VALIDATION"
    PHONE = "PHONE_VALIDATION"
    SSN = "SSN_VALIDATION"
    ACCOUNT_NUMBER = "ACCOUNT_NUMBER_VALIDATION"
    NUMERIC = "NUMERIC_VALIDATION"
    RANGE = "RANGE_VALIDATION"
    DATE_FORMAT = "DATE_FORMAT_VALIDATION"
    REFERENTIAL_INTEGRITY = "REFERENTIAL_INTEGRITY"
    UNIQUE_FIELD = "UNIQUE_FIELD_VALIDATION"
    CUSTOM_SQL = "CUSTOM_SQL_VALIDATION"
    BUSINESS_RULE = "BUSINESS_RULE"

    @classmethod
    def parse(cls, value: Union[str, RuleType]) -> RuleType:
        """
        Parse a rule type from its stored name or short alias.

        Accepts "REQUIRED_FIELD_VALIDATION", "REQUIRED" and "required".
        """
        if isinstance(value, cls):
            return value
        text = str(value).strip().upper()
        try:
            return cls(text)
        except ValueError:
            pass
        if text in cls.__members__:
            return cls.__members__[text]
        raise ValueError(f"Unknown rule type: {value!r}")


class Severity(str, Enum):
    """Severity attached to a validation rule."""
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"

    @classmethod
    def parse(cls, value: Union[str, Severity, None]) -> Severity:
        if value is None:
            return cls.ERROR
        if isinstance(value, cls):
            return value
        return cls(str(value).strip().upper())
