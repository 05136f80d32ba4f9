"""
ExtractPilot Field Mapping Models

Domain models for a fixed-width extract layout.

Key components:
- Condition / ElseIfBranch: ordered conditional branches
- Transformation variants: SourceTransform, ConstantTransform,
  CompositeTransform, ConditionalTransform (a closed tagged union)
- FieldMapping: one positioned, fixed-length output field
- FieldMappingConfig: the full layout for one job / transaction type

Each transformation variant validates itself on construction, so a
SourceTransform without a source field (and similar) cannot exist.
Editable, possibly-invalid definitions live in extractpilot.packs.schema.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import ClassVar, Optional, Union

from .enums import CompositeOperation, PadSide, TransformationType


# =============================================================================
# Conditions
# =============================================================================

@dataclass(frozen=True)
class ElseIfBranch:
    """An else-if branch: value used when ``condition`` is the first to hold."""
    condition: str
    value: str


@dataclass(frozen=True)
class Condition:
    """
    An if / else-if / else chain.

    Branches are evaluated top-down; the first true expression wins and
    ``else_expr`` is used only when nothing matched.
    """
    if_expr: str
    then: str
    else_ifs: tuple[ElseIfBranch, ...] = ()
    else_expr: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.if_expr or not self.if_expr.strip():
            raise ValueError("Condition requires a non-blank if expression")

    def branches(self) -> list[tuple[str, str]]:
        """(expression, value) pairs in evaluation order."""
        pairs = [(self.if_expr, self.then)]
        pairs.extend((b.condition, b.value) for b in self.else_ifs)
        return pairs


# =============================================================================
# Transformation Variants
# =============================================================================

@dataclass(frozen=True)
class SourceTransform:
    """Copy a column of the source record."""
    kind: ClassVar[TransformationType] = TransformationType.SOURCE
    source_field: str

    def __post_init__(self) -> None:
        if not self.source_field or not self.source_field.strip():
            raise ValueError("SourceTransform requires a source field")


@dataclass(frozen=True)
class ConstantTransform:
    """Emit a fixed literal."""
    kind: ClassVar[TransformationType] = TransformationType.CONSTANT
    value: Optional[str] = None


@dataclass(frozen=True)
class CompositeTransform:
    """
    Combine several source columns, in order.

    CONCAT (the default) joins the values with ``delimiter``. The numeric
    operations fold every source; UPPER, LOWER and TRIM read the first.
    """
    kind: ClassVar[TransformationType] = TransformationType.COMPOSITE
    sources: tuple[str, ...]
    delimiter: str = ""
    transform: CompositeOperation = CompositeOperation.CONCAT

    def __post_init__(self) -> None:
        if not self.sources:
            raise ValueError("CompositeTransform requires at least one source")
        if any(not s or not s.strip() for s in self.sources):
            raise ValueError("CompositeTransform sources cannot be blank")


@dataclass(frozen=True)
class ConditionalTransform:
    """Pick a value from ordered conditional branches."""
    kind: ClassVar[TransformationType] = TransformationType.CONDITIONAL
    conditions: tuple[Condition, ...]

    def __post_init__(self) -> None:
        if not self.conditions:
            raise ValueError("ConditionalTransform requires at least one condition")


Transformation = Union[SourceTransform, ConstantTransform, CompositeTransform, ConditionalTransform]


# =============================================================================
# Field Mapping
# =============================================================================

@dataclass(frozen=True)
class FieldMapping:
    """
    One output field of a fixed-width line.

    Attributes:
        target_field_name: Output field name, unique within a config
        target_position: 1-based ordinal; output is ordered by this value
        length: Fixed width of the field in characters
        transformation: How the value is derived from a record
        pad: Side padded when the value is shorter than ``length``
        pad_char: Padding character
        data_type: Declared data type (informational)
        default_value: Fallback when the transformation yields nothing
    """
    target_field_name: str
    target_position: int
    length: int
    transformation: Transformation
    pad: PadSide = PadSide.RIGHT
    pad_char: str = " "
    data_type: str = "STRING"
    default_value: Optional[str] = None

    def __post_init__(self) -> None:
        if self.target_position <= 0:
            raise ValueError(f"target_position must be positive: {self.target_position}")
        if self.length <= 0:
            raise ValueError(f"length must be positive: {self.length}")
        if len(self.pad_char) != 1:
            raise ValueError("pad_char must be a single character")

    @property
    def transformation_type(self) -> TransformationType:
        return self.transformation.kind


@dataclass
class FieldMappingConfig:
    """
    A complete extract layout for one job and transaction type.

    The unit that is authored, validated, compiled and rendered.
    """
    source_system: str
    job_name: str
    field_mappings: list[FieldMapping] = field(default_factory=list)
    transaction_type: str = "default"
    version: int = 1
    last_modified: Optional[datetime] = None

    @property
    def ordered_mappings(self) -> list[FieldMapping]:
        """Mappings in ascending target position (output order)."""
        return sorted(self.field_mappings, key=lambda m: m.target_position)

    @property
    def record_length(self) -> int:
        """Total width of a rendered line."""
        return sum(m.length for m in self.field_mappings)

    def get_mapping(self, target_field_name: str) -> Optional[FieldMapping]:
        for mapping in self.field_mappings:
            if mapping.target_field_name == target_field_name:
                return mapping
        return None
