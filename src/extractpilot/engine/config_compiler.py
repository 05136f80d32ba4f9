"""
ExtractPilot Config Compiler

Serializes validated mapping definitions into the canonical YAML
configuration consumed at run time, and reads that YAML back.

Document shape (one per transaction type):

    fileType: <job name>
    sourceSystem: <source system>
    transactionType: <transaction type>
    fields:
      acct-num:                 # normalized target field name
        fieldName: ACCT_NUM
        targetPosition: 1
        length: 10
        pad: right
        dataType: STRING
        transformationType: source
        sourceField: ACCOUNT_NUMBER

Documents for several transaction types of one job are separated by a
literal ``---`` line; there is no leading document-start marker.
"""
from __future__ import annotations

import logging
from typing import Any, Optional, Sequence

import yaml
from pydantic import ValidationError

from ..exceptions import ConfigCompileError, ConfigLoadError, ConfigShapeError
from ..models import (
    CompositeOperation,
    CompositeTransform,
    Condition,
    ConditionalTransform,
    ConstantTransform,
    FieldMapping,
    FieldMappingConfig,
    SourceTransform,
)
from ..packs.loader import convert_definition, parse_definition
from ..packs.schema import FieldMappingConfigSchema
from .shape_validator import ConfigShapeValidator, Definition, load_config, normalize_field_key

logger = logging.getLogger(__name__)

DOCUMENT_SEPARATOR = "---\n"
DEFAULT_TRANSACTION_TYPE = "default"


def _dump(document: dict[str, Any]) -> str:
    return yaml.safe_dump(
        document,
        sort_keys=False,
        explicit_start=False,
        default_flow_style=False,
        allow_unicode=True,
        width=float("inf"),
    )


def _compact(entry: dict[str, Any]) -> dict[str, Any]:
    """Drop keys whose value is None."""
    return {key: value for key, value in entry.items() if value is not None}


# =============================================================================
# Compiler
# =============================================================================

class ConfigCompiler:
    """
    Compiles mapping definitions to YAML and parses compiled YAML back.

    Only definitions accepted by the shape validator are compiled.

    Usage:
        compiler = ConfigCompiler()
        text = compiler.compile(definition)
        text = compiler.compile_many([default_definition, credit_definition])

        documents = compiler.parse_compiled(text)
        schema = compiler.select_document(documents, "credit")
    """

    def __init__(self, validator: Optional[ConfigShapeValidator] = None) -> None:
        self.validator = validator or ConfigShapeValidator()

    # -- compile --------------------------------------------------------------

    def compile(self, definition: Definition) -> str:
        """
        Compile one definition into a YAML document.

        Raises:
            ConfigShapeError: If the definition fails shape validation
        """
        config = self._validated(definition)
        text = _dump(self.build_document(config))
        logger.info(
            "Compiled %s/%s with %d field(s)",
            config.job_name, config.transaction_type, len(config.field_mappings),
        )
        return text

    def compile_many(self, definitions: Sequence[Definition]) -> str:
        """
        Compile definitions for several transaction types of one job.

        Raises:
            ConfigCompileError: If the list is empty, mixes jobs, or repeats
                a transaction type
            ConfigShapeError: If any definition fails shape validation
        """
        if not definitions:
            raise ConfigCompileError(message="At least one mapping definition is required")

        configs: list[FieldMappingConfig] = []
        errors: list[str] = []
        for definition in definitions:
            try:
                configs.append(self._validated(definition))
            except ConfigShapeError as e:
                schema_label = self._label(definition)
                errors.extend(f"[{schema_label}] {error}" for error in e.errors)
        if errors:
            raise ConfigShapeError(
                message=f"{len(errors)} error(s) across mapping definitions",
                details={"errors": errors},
            )

        jobs = sorted({c.job_name for c in configs})
        if len(jobs) > 1:
            raise ConfigCompileError(
                message=f"Definitions belong to different jobs: {', '.join(jobs)}",
                details={"jobs": jobs},
            )

        seen: set[str] = set()
        for config in configs:
            if config.transaction_type in seen:
                raise ConfigCompileError(
                    message=f"Duplicate transaction type: {config.transaction_type}",
                    details={"transaction_type": config.transaction_type},
                )
            seen.add(config.transaction_type)

        logger.info("Compiled %d document(s) for job %s", len(configs), jobs[0])
        return DOCUMENT_SEPARATOR.join(_dump(self.build_document(c)) for c in configs)

    def build_document(self, config: FieldMappingConfig) -> dict[str, Any]:
        """Keyed document for one config, fields in declared list order."""
        return {
            "fileType": config.job_name,
            "sourceSystem": config.source_system,
            "transactionType": config.transaction_type,
            "fields": {
                normalize_field_key(m.target_field_name): self._field_entry(m)
                for m in config.field_mappings
            },
        }

    def _field_entry(self, mapping: FieldMapping) -> dict[str, Any]:
        entry: dict[str, Any] = {
            "fieldName": mapping.target_field_name,
            "targetPosition": mapping.target_position,
            "length": mapping.length,
            "pad": mapping.pad.value,
            "padChar": mapping.pad_char if mapping.pad_char != " " else None,
            "dataType": mapping.data_type,
            "transformationType": mapping.transformation_type.value,
        }

        transformation = mapping.transformation
        if isinstance(transformation, SourceTransform):
            entry["sourceField"] = transformation.source_field
        elif isinstance(transformation, ConstantTransform):
            entry["value"] = transformation.value
        elif isinstance(transformation, CompositeTransform):
            entry["sources"] = list(transformation.sources)
            entry["delimiter"] = transformation.delimiter or None
            if transformation.transform != CompositeOperation.CONCAT:
                entry["transform"] = transformation.transform.value
        elif isinstance(transformation, ConditionalTransform):
            entry["conditions"] = [self._condition_entry(c) for c in transformation.conditions]

        entry["defaultValue"] = mapping.default_value
        return _compact(entry)

    def _condition_entry(self, condition: Condition) -> dict[str, Any]:
        return _compact({
            "ifExpr": condition.if_expr,
            "then": condition.then,
            "elseIfExprs": [
                {"ifExpr": branch.condition, "then": branch.value}
                for branch in condition.else_ifs
            ] or None,
            "elseExpr": condition.else_expr,
        })

    def _validated(self, definition: Definition) -> FieldMappingConfig:
        result = self.validator.validate(definition)
        if not result.valid:
            raise ConfigShapeError(
                message=f"Mapping definition has {len(result.errors)} error(s)",
                details={"errors": list(result.errors), "warnings": list(result.warnings)},
            )
        return convert_definition(parse_definition(definition))

    @staticmethod
    def _label(definition: Definition) -> str:
        if isinstance(definition, FieldMappingConfigSchema):
            return definition.transaction_type
        value = definition.get("transactionType", definition.get("transaction_type"))
        return value or DEFAULT_TRANSACTION_TYPE

    # -- parse ----------------------------------------------------------------

    def parse_compiled(self, text: str) -> list[FieldMappingConfigSchema]:
        """
        Read compiled YAML back into editable definitions, one per document.

        Raises:
            ConfigLoadError: If the text is not valid compiled configuration
        """
        try:
            documents = [doc for doc in yaml.safe_load_all(text) if doc is not None]
        except yaml.YAMLError as e:
            raise ConfigLoadError(message=f"Invalid compiled configuration: {e}") from e

        schemas = []
        for index, document in enumerate(documents):
            if not isinstance(document, dict) or not isinstance(document.get("fields"), dict):
                raise ConfigLoadError(
                    message=f"Document {index + 1} has no fields mapping",
                    details={"document": index},
                )
            mappings = []
            for key, entry in document["fields"].items():
                if not isinstance(entry, dict):
                    raise ConfigLoadError(
                        message=f"Field '{key}' in document {index + 1} is not a mapping",
                        details={"document": index, "field": key},
                    )
                mapping = {k: v for k, v in entry.items() if k != "fieldName"}
                mapping["targetFieldName"] = entry.get("fieldName", key)
                mappings.append(mapping)
            try:
                schemas.append(FieldMappingConfigSchema.model_validate({
                    "sourceSystem": document.get("sourceSystem"),
                    "jobName": document.get("fileType"),
                    "transactionType": document.get("transactionType"),
                    "fieldMappings": mappings,
                }))
            except ValidationError as e:
                raise ConfigLoadError(
                    message=f"Document {index + 1} does not match the mapping schema",
                    details={"document": index, "errors": [err["msg"] for err in e.errors()]},
                ) from e
        return schemas

    def select_document(
        self,
        documents: Sequence[FieldMappingConfigSchema],
        transaction_type: Optional[str] = None,
    ) -> FieldMappingConfigSchema:
        """
        Pick the document for a transaction type, falling back to "default".

        Raises:
            ConfigLoadError: If neither the requested type nor "default" exists
        """
        wanted = transaction_type or DEFAULT_TRANSACTION_TYPE
        fallback = None
        for document in documents:
            if document.transaction_type == wanted:
                return document
            if document.transaction_type == DEFAULT_TRANSACTION_TYPE:
                fallback = document
        if fallback is not None:
            logger.debug("No document for transaction type %s, using default", wanted)
            return fallback
        raise ConfigLoadError(
            message=f"No configuration for transaction type {wanted} and no default",
            details={
                "transaction_type": wanted,
                "available": [d.transaction_type for d in documents],
            },
        )

    def load_compiled(
        self,
        text: str,
        transaction_type: Optional[str] = None,
    ) -> FieldMappingConfig:
        """Parse compiled YAML and return the domain config for a transaction type."""
        document = self.select_document(self.parse_compiled(text), transaction_type)
        return load_config(document, self.validator.max_record_length)


# =============================================================================
# Convenience Functions
# =============================================================================

def compile_config(definition: Definition) -> str:
    """Compile one definition with a temporary compiler."""
    return ConfigCompiler().compile(definition)


def parse_compiled(text: str) -> list[FieldMappingConfigSchema]:
    """Parse compiled YAML with a temporary compiler."""
    return ConfigCompiler().parse_compiled(text)
