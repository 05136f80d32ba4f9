"""
ExtractPilot Field Transformer

Renders source records into fixed-width extract lines.

Each target field is derived by its transformation variant, then
positioned (padded or truncated) to its fixed length. Lines are the
ascending-position concatenation of every positioned field.

Rendering problems never abort a batch: a malformed conditional
expression degrades that field to empty output plus a warning on the
rendered line.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Iterable, Optional

from ..exceptions import ExpressionSyntaxError, FieldTransformationError
from ..models import (
    CompositeOperation,
    CompositeTransform,
    ConditionalTransform,
    ConstantTransform,
    FieldMapping,
    FieldMappingConfig,
    PadSide,
    SourceTransform,
)
from .condition_evaluator import ConditionEvaluator, Record, field_value

logger = logging.getLogger(__name__)


# =============================================================================
# Positioning
# =============================================================================

def position(
    value: Optional[str],
    length: int,
    pad: PadSide = PadSide.RIGHT,
    pad_char: str = " ",
) -> str:
    """
    Fit a value to exactly ``length`` characters.

    Longer values are cut to the first ``length`` characters; shorter
    ones are padded on the ``pad`` side (LEFT right-aligns the value).
    """
    text = value or ""
    if len(text) > length:
        return text[:length]
    if pad == PadSide.LEFT:
        return text.rjust(length, pad_char)
    return text.ljust(length, pad_char)


# =============================================================================
# Composite Operations
# =============================================================================

def _to_decimal(value: Optional[str]) -> Optional[Decimal]:
    if value is None:
        return None
    try:
        number = Decimal(value.strip())
    except InvalidOperation:
        return None
    return number if number.is_finite() else None


def _format_decimal(number: Decimal) -> str:
    text = format(number.normalize(), "f")
    return "0" if text == "-0" else text


def combine(
    transformation: CompositeTransform,
    record: Record,
    default_value: Optional[str] = None,
) -> str:
    """
    Combine a composite field's sources with its operation.

    CONCAT joins every value with the delimiter, a missing source giving
    an empty segment. SUM and AVG treat missing or non-numeric values as
    zero. MIN and MAX skip them and fall back to ``default_value`` (else
    "0") when no source is numeric. UPPER, LOWER and TRIM apply to the
    first source, falling back to ``default_value`` when it is missing.
    """
    values = [field_value(record, source) for source in transformation.sources]
    operation = transformation.transform

    if operation == CompositeOperation.CONCAT:
        return transformation.delimiter.join(value or "" for value in values)

    if operation.is_numeric:
        numbers = [_to_decimal(value) for value in values]
        if operation in (CompositeOperation.SUM, CompositeOperation.AVG):
            total = sum((n for n in numbers if n is not None), Decimal(0))
            if operation == CompositeOperation.AVG:
                total = total / len(numbers)
            return _format_decimal(total)
        present = [n for n in numbers if n is not None]
        if not present:
            return default_value if default_value is not None else "0"
        chosen = min(present) if operation == CompositeOperation.MIN else max(present)
        return _format_decimal(chosen)

    first = values[0]
    if first is None:
        return default_value or ""
    if operation == CompositeOperation.UPPER:
        return first.upper()
    if operation == CompositeOperation.LOWER:
        return first.lower()
    return first.strip()


# =============================================================================
# Results
# =============================================================================

@dataclass(frozen=True)
class RenderedField:
    """One positioned output field and anything worth reporting about it."""
    name: str
    value: str
    raw_value: str
    truncated: bool = False
    warnings: tuple[str, ...] = ()


@dataclass
class RenderedLine:
    """A full fixed-width line for one record."""
    text: str
    fields: list[RenderedField] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    record_id: Optional[str] = None

    @property
    def has_warnings(self) -> bool:
        return bool(self.warnings)

    def to_dict(self) -> dict:
        return {
            "text": self.text,
            "record_id": self.record_id,
            "warnings": list(self.warnings),
            "fields": [
                {
                    "name": f.name,
                    "value": f.value,
                    "truncated": f.truncated,
                }
                for f in self.fields
            ],
        }


# =============================================================================
# Field Transformer
# =============================================================================

@dataclass
class FieldTransformer:
    """
    Applies field mappings to records.

    Usage:
        transformer = FieldTransformer()
        line = transformer.render_line(config, {"ACCT_NUM": "12345"})
        line.text        # fixed-width output
        line.warnings    # truncations, degraded fields
    """
    evaluator: ConditionEvaluator = field(default_factory=ConditionEvaluator)

    def render(self, mapping: FieldMapping, record: Record) -> str:
        """
        Derive the unpositioned value of a field.

        Raises:
            ExpressionSyntaxError: If a conditional expression is malformed
        """
        transformation = mapping.transformation

        if isinstance(transformation, SourceTransform):
            value = field_value(record, transformation.source_field)
            if value is not None:
                return value
            return mapping.default_value or ""

        if isinstance(transformation, ConstantTransform):
            if transformation.value and transformation.value.strip():
                return transformation.value
            return mapping.default_value or ""

        if isinstance(transformation, CompositeTransform):
            return combine(transformation, record, mapping.default_value)

        if isinstance(transformation, ConditionalTransform):
            result = self.evaluator.resolve(
                transformation.conditions, record, mapping.default_value
            )
            return result.value

        raise TypeError(f"Unsupported transformation: {type(transformation).__name__}")

    def transform_field(self, mapping: FieldMapping, record: Record) -> RenderedField:
        """Render and position one field, collecting warnings instead of raising."""
        warnings: list[str] = []
        name = mapping.target_field_name

        try:
            raw = self.render(mapping, record)
        except ExpressionSyntaxError as e:
            error = FieldTransformationError(
                message=f"Invalid condition for field {name}: {e.message}",
                field_name=name,
                details={"expression": e.expression, "position": e.position},
            )
            logger.warning(str(error))
            warnings.append(error.message)
            raw = ""

        if (
            isinstance(mapping.transformation, SourceTransform)
            and mapping.transformation.source_field not in record
            and mapping.default_value is None
        ):
            warnings.append(
                f"Source field {mapping.transformation.source_field} not present for field {name}"
            )

        truncated = len(raw) > mapping.length
        if truncated:
            message = (
                f"Value for field {name} truncated from {len(raw)} "
                f"to {mapping.length} characters"
            )
            logger.warning(message)
            warnings.append(message)

        value = position(raw, mapping.length, mapping.pad, mapping.pad_char)
        logger.debug("Transformed field %s -> '%s'", name, value)

        return RenderedField(
            name=name,
            value=value,
            raw_value=raw,
            truncated=truncated,
            warnings=tuple(warnings),
        )

    def render_line(
        self,
        config: FieldMappingConfig,
        record: Record,
        record_id: Optional[str] = None,
    ) -> RenderedLine:
        """Render one record as a fixed-width line in ascending target position."""
        fields = [self.transform_field(m, record) for m in config.ordered_mappings]
        warnings = [w for f in fields for w in f.warnings]
        if warnings:
            logger.debug("Record %s rendered with %d warning(s)", record_id, len(warnings))
        return RenderedLine(
            text="".join(f.value for f in fields),
            fields=fields,
            warnings=warnings,
            record_id=record_id,
        )

    def render_lines(
        self,
        config: FieldMappingConfig,
        records: Iterable[Record],
    ) -> list[RenderedLine]:
        return [
            self.render_line(config, record, record_id=str(index))
            for index, record in enumerate(records, start=1)
        ]

    def render_preview(self, config: FieldMappingConfig, records: Iterable[Record]) -> str:
        """Newline-joined lines for previewing a layout."""
        return "\n".join(line.text for line in self.render_lines(config, records))


# =============================================================================
# Convenience Functions
# =============================================================================

def render(mapping: FieldMapping, record: Record) -> str:
    """Derive the unpositioned value of a field with a temporary transformer."""
    return FieldTransformer().render(mapping, record)


def render_field(mapping: FieldMapping, record: Record) -> str:
    """Render and position a field, returning only the output text."""
    return FieldTransformer().transform_field(mapping, record).value
