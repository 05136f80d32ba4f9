"""Record content validation endpoints."""

from fastapi import APIRouter

from api.schemas.requests import BatchValidationRequest, RecordValidationRequest
from api.schemas.responses import ValidationSummaryResponse
from extractpilot.config import get_settings
from extractpilot.engine import RuleEngine, group_rules_by_field
from extractpilot.packs import load_rules

router = APIRouter(prefix="/validation", tags=["Validation"])


@router.post("/record", response_model=ValidationSummaryResponse)
def validate_record(request: RecordValidationRequest):
    """
    Validate one record against the supplied rule rows.

    Malformed rule rows return 400. The threshold defaults to
    EP_ERROR_THRESHOLD when not given.
    """
    rules = load_rules(request.rules)
    threshold = request.error_threshold
    if threshold is None:
        threshold = get_settings().error_threshold

    engine = RuleEngine()
    engine.prepare(rules)
    summary = engine.validate_fields(request.record, group_rules_by_field(rules), threshold)
    return ValidationSummaryResponse.from_summary(summary)


@router.post("/batch", response_model=ValidationSummaryResponse)
def validate_batch(request: BatchValidationRequest):
    """Validate several records; each record has its own threshold."""
    settings = get_settings()
    rules = load_rules(request.rules)
    threshold = request.error_threshold
    if threshold is None:
        threshold = settings.error_threshold

    summary = RuleEngine().validate_records(
        request.records,
        group_rules_by_field(rules),
        error_threshold=threshold,
        max_workers=settings.validation_workers,
        batch_id=request.batch_id,
    )
    return ValidationSummaryResponse.from_summary(summary)
