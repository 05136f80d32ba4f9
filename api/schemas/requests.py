"""Request schemas for the API."""

from typing import Any, Optional

from pydantic import BaseModel, Field


EXAMPLE_DEFINITION = {
    "sourceSystem": "CORE_BANKING",
    "jobName": "daily_accounts",
    "transactionType": "default",
    "fieldMappings": [
        {
            "targetFieldName": "ACCT_NUM",
            "targetPosition": 1,
            "length": 10,
            "transformationType": "source",
            "sourceField": "ACCOUNT_NUMBER",
        },
        {
            "targetFieldName": "STATUS",
            "targetPosition": 2,
            "length": 8,
            "transformationType": "conditional",
            "transformationConfig": {
                "conditions": [
                    {"ifExpr": 'STATUS_CD == "A"', "then": "ACTIVE", "elseExpr": "INACTIVE"}
                ]
            },
        },
    ],
}


class CompileManyRequest(BaseModel):
    """Definitions for several transaction types of one job."""
    definitions: list[dict[str, Any]] = Field(..., description="Editable mapping definitions")


class PreviewRequest(BaseModel):
    """Render sample records through a mapping definition."""
    definition: dict[str, Any] = Field(..., description="Editable mapping definition")
    records: list[dict[str, Optional[str]]] = Field(default=[], description="Sample source records")

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "definition": EXAMPLE_DEFINITION,
                    "records": [
                        {"ACCOUNT_NUMBER": "12345", "STATUS_CD": "A"},
                        {"ACCOUNT_NUMBER": "67890", "STATUS_CD": "C"},
                    ],
                }
            ]
        }
    }


class RecordValidationRequest(BaseModel):
    """Validate one record against rule rows."""
    record: dict[str, Optional[str]] = Field(..., description="Field name to value")
    rules: list[dict[str, Any]] = Field(default=[], description="Validation rule rows")
    error_threshold: Optional[int] = Field(
        default=None, ge=0, description="Stop after this many errors; 0 = unlimited"
    )

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "record": {"ACCT_NUM": "12345", "EMAIL": "not-an-email"},
                    "rules": [
                        {"ruleId": "R1", "fieldName": "ACCT_NUM", "ruleType": "REQUIRED_FIELD_VALIDATION"},
                        {"ruleId": "R2", "fieldName": "EMAIL", "ruleType": "EMAIL_VALIDATION"},
                    ],
                    "error_threshold": 0,
                }
            ]
        }
    }


class BatchValidationRequest(BaseModel):
    """Validate several records against the same rule rows."""
    records: list[dict[str, Optional[str]]] = Field(..., description="Records to validate")
    rules: list[dict[str, Any]] = Field(default=[], description="Validation rule rows")
    error_threshold: Optional[int] = Field(default=None, ge=0)
    batch_id: Optional[str] = None
