"""
ExtractPilot API

HTTP surface for authoring extract layouts and validating record content.

Endpoints:
    GET  /health                     - Liveness probe
    POST /configurations/validate    - Shape-validate a mapping definition
    POST /configurations/compile     - Compile a definition to YAML
    POST /configurations/compile-many - Compile several transaction types
    POST /configurations/preview     - Render sample records
    POST /validation/record          - Validate one record's content
    POST /validation/batch           - Validate several records
"""

import json
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from api.routes import configurations, validation
from extractpilot import __version__
from extractpilot.config import get_settings
from extractpilot.exceptions import (
    ConfigCompileError,
    ConfigLoadError,
    ConfigShapeError,
    ExtractPilotError,
    RuleDefinitionError,
)


class JSONFormatter(logging.Formatter):
    """JSON log formatter for structured logging."""

    def format(self, record):
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if hasattr(record, "error_code"):
            log_entry["error_code"] = record.error_code
        if hasattr(record, "path"):
            log_entry["path"] = record.path
        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry)


settings = get_settings()

# Configure logging
logger = logging.getLogger("extractpilot")
logger.setLevel(getattr(logging, settings.log_level, logging.INFO))
if not logger.handlers:
    handler = logging.StreamHandler()
    handler.setFormatter(JSONFormatter())
    logger.addHandler(handler)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(
        "ExtractPilot API %s starting (max record length %d, workers %d)",
        __version__, settings.max_record_length, settings.validation_workers,
    )
    yield
    logger.info("ExtractPilot API shutting down")


app = FastAPI(
    title="ExtractPilot API",
    description="Fixed-width extract mapping and record content validation.",
    version=__version__,
    lifespan=lifespan,
    docs_url="/docs" if settings.docs_enabled else None,
    redoc_url="/redoc" if settings.docs_enabled else None,
)

app.include_router(configurations.router)
app.include_router(validation.router)


# =============================================================================
# Error Handling
# =============================================================================

_STATUS_CODES = {
    ConfigShapeError: 422,
    ConfigCompileError: 400,
    ConfigLoadError: 400,
    RuleDefinitionError: 400,
}


@app.exception_handler(ExtractPilotError)
async def extractpilot_error_handler(request: Request, exc: ExtractPilotError):
    status_code = _STATUS_CODES.get(type(exc), 500)
    logger.warning(
        str(exc),
        extra={"error_code": exc.code, "path": request.url.path},
    )
    return JSONResponse(status_code=status_code, content={"error": exc.to_dict()})


@app.get("/health", tags=["Health"])
async def health():
    """Health check endpoint."""
    return {
        "healthy": True,
        "service": "ExtractPilot API",
        "version": __version__,
        "max_record_length": settings.max_record_length,
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
