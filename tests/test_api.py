"""
Tests for the ExtractPilot HTTP API

Tests cover:
- Health endpoint
- Definition validation, compilation and preview
- Record and batch content validation
- Error mapping for invalid definitions and rule rows
"""
import inspect

import pytest
import yaml

from tests.conftest import make_field_definition, make_mapping_definition


@pytest.fixture(scope="module")
def client():
    from fastapi.testclient import TestClient
    from api.main import app
    return TestClient(app)


def _duplicate_position_definition():
    return make_mapping_definition([
        make_field_definition("A", 1),
        make_field_definition("B", 1),
    ])


class TestHealth:

    def test_health(self, client):
        resp = client.get("/health")
        assert resp.status_code == 200
        data = resp.json()
        assert data["healthy"] is True
        assert data["max_record_length"] > 0


class TestConfigurationsAPI:
    """Tests for /configurations endpoints."""

    def test_validate_valid(self, client):
        resp = client.post("/configurations/validate", json=make_mapping_definition())
        assert resp.status_code == 200
        assert resp.json()["valid"] is True

    def test_validate_reports_errors_with_200(self, client):
        resp = client.post("/configurations/validate", json=_duplicate_position_definition())
        assert resp.status_code == 200
        data = resp.json()
        assert data["valid"] is False
        assert data["errors"] == ["Duplicate target position: 1"]
        assert data["duplicate_positions"] == [1]

    def test_compile(self, client):
        resp = client.post("/configurations/compile", json=make_mapping_definition())
        assert resp.status_code == 200
        document = yaml.safe_load(resp.json()["content"])
        assert document["fileType"] == "daily_accounts"
        assert "acct-num" in document["fields"]

    def test_compile_invalid_is_422(self, client):
        resp = client.post("/configurations/compile", json=_duplicate_position_definition())
        assert resp.status_code == 422
        error = resp.json()["error"]
        assert error["code"] == "EP_CONFIG_SHAPE_ERROR"
        assert error["details"]["errors"] == ["Duplicate target position: 1"]

    def test_compile_many(self, client):
        resp = client.post("/configurations/compile-many", json={
            "definitions": [
                make_mapping_definition(),
                make_mapping_definition(transaction_type="credit"),
            ],
        })
        assert resp.status_code == 200
        assert resp.json()["documents"] == 2
        assert len(list(yaml.safe_load_all(resp.json()["content"]))) == 2

    def test_compile_many_empty_is_400(self, client):
        resp = client.post("/configurations/compile-many", json={"definitions": []})
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "EP_CONFIG_COMPILE_ERROR"

    def test_preview(self, client):
        resp = client.post("/configurations/preview", json={
            "definition": make_mapping_definition(),
            "records": [
                {"ACCOUNT_NUMBER": "12345", "FIRST_NAME": "Ada", "LAST_NAME": "Lovelace", "STATUS_CD": "A"},
            ],
        })
        assert resp.status_code == 200
        data = resp.json()
        assert data["record_length"] == 40
        assert data["lines"][0]["text"] == "12345     01Ada Lovelace        ACTIVE  "
        assert data["preview"] == data["lines"][0]["text"]


class TestValidationAPI:
    """Tests for /validation endpoints."""

    RULES = [
        {"ruleId": "R1", "fieldName": "ACCT_NUM", "ruleType": "REQUIRED_FIELD_VALIDATION"},
        {"ruleId": "R2", "fieldName": "EMAIL", "ruleType": "EMAIL_VALIDATION"},
    ]

    def test_record(self, client):
        resp = client.post("/validation/record", json={
            "record": {"ACCT_NUM": "12345", "EMAIL": "not-an-email"},
            "rules": self.RULES,
        })
        assert resp.status_code == 200
        data = resp.json()
        assert data["totalFields"] == 2
        assert data["totalErrors"] == 1
        assert data["fieldResults"]["EMAIL"][0]["errorMessage"] == "EMAIL must be a valid email address"

    def test_record_threshold(self, client):
        resp = client.post("/validation/record", json={
            "record": {"ACCT_NUM": "", "EMAIL": "bad"},
            "rules": self.RULES,
            "error_threshold": 1,
        })
        data = resp.json()
        assert data["thresholdExceeded"] is True
        assert data["skippedFields"] == ["EMAIL"]

    def test_batch(self, client):
        resp = client.post("/validation/batch", json={
            "records": [
                {"ACCT_NUM": "1", "EMAIL": "a@b.com"},
                {"ACCT_NUM": "", "EMAIL": "a@b.com"},
            ],
            "rules": self.RULES,
            "batch_id": "B-1",
        })
        assert resp.status_code == 200
        data = resp.json()
        assert data["totalFields"] == 4
        assert data["totalErrors"] == 1

    @pytest.mark.parametrize("name", ["validate_record", "validate_batch"])
    def test_routes_run_in_threadpool(self, name):
        from api.routes import validation
        assert not inspect.iscoroutinefunction(getattr(validation, name))

    def test_bad_rule_is_400(self, client):
        resp = client.post("/validation/record", json={
            "record": {"ACCT_NUM": "1"},
            "rules": [{"ruleId": "R9", "ruleType": "TELEPATHY"}],
        })
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "EP_RULE_DEFINITION"
