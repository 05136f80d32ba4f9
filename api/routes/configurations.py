"""Mapping definition endpoints: validate, compile, preview."""

import logging
from typing import Any

from fastapi import APIRouter, Body

from api.schemas.requests import EXAMPLE_DEFINITION, CompileManyRequest, PreviewRequest
from api.schemas.responses import CompileResponse, PreviewResponse, ShapeValidationResponse
from extractpilot.config import get_settings
from extractpilot.engine import (
    ConfigCompiler,
    ConfigShapeValidator,
    FieldTransformer,
    load_config,
)

logger = logging.getLogger("extractpilot.api")

router = APIRouter(prefix="/configurations", tags=["Configurations"])


def _validator() -> ConfigShapeValidator:
    return ConfigShapeValidator(get_settings().max_record_length)


@router.post("/validate", response_model=ShapeValidationResponse)
async def validate_configuration(
    definition: dict[str, Any] = Body(..., examples=[EXAMPLE_DEFINITION]),
):
    """
    Check a mapping definition's structure.

    Always returns 200 with every violation found; nothing is compiled.
    """
    result = _validator().validate(definition)
    return ShapeValidationResponse.from_result(result)


@router.post("/compile", response_model=CompileResponse)
async def compile_configuration(
    definition: dict[str, Any] = Body(..., examples=[EXAMPLE_DEFINITION]),
):
    """Compile one definition to YAML; invalid definitions return 422."""
    content = ConfigCompiler(_validator()).compile(definition)
    return CompileResponse(content=content, documents=1)


@router.post("/compile-many", response_model=CompileResponse)
async def compile_many_configurations(request: CompileManyRequest):
    """Compile several transaction types of one job into a multi-document YAML."""
    content = ConfigCompiler(_validator()).compile_many(request.definitions)
    return CompileResponse(content=content, documents=len(request.definitions))


@router.post("/preview", response_model=PreviewResponse)
async def preview_configuration(request: PreviewRequest):
    """Render sample records through a valid definition."""
    settings = get_settings()
    config = load_config(request.definition, settings.max_record_length)
    lines = FieldTransformer().render_lines(config, request.records)
    logger.info("Previewed %d record(s) for %s", len(lines), config.job_name)
    return PreviewResponse.from_lines(lines, config.record_length)
