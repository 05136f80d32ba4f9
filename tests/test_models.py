"""
Tests for ExtractPilot domain models

Tests cover:
- Transformation variants reject invalid combinations
- FieldMapping construction checks
- Enum parsing
- ValidationSummary counts, rates, merge and reporting
- Settings from environment
"""
import pytest

from extractpilot.config import Settings
from extractpilot.exceptions import FieldValidationError
from extractpilot.models import (
    CompositeTransform,
    Condition,
    ConditionalTransform,
    FieldValidationResult,
    PadSide,
    RuleType,
    Severity,
    SourceTransform,
    TransformationType,
    ValidationSummary,
    merge_summaries,
)

from tests.conftest import make_config, make_mapping, make_rule


class TestTransformationVariants:
    """Invalid variants cannot be constructed."""

    def test_source_requires_field(self):
        with pytest.raises(ValueError):
            SourceTransform(source_field=" ")

    def test_composite_requires_sources(self):
        with pytest.raises(ValueError):
            CompositeTransform(sources=())
        with pytest.raises(ValueError):
            CompositeTransform(sources=("A", ""))

    def test_conditional_requires_conditions(self):
        with pytest.raises(ValueError):
            ConditionalTransform(conditions=())

    def test_condition_requires_if_expression(self):
        with pytest.raises(ValueError):
            Condition(if_expr="", then="X")

    def test_kind(self):
        assert SourceTransform("A").kind == TransformationType.SOURCE
        assert make_mapping().transformation_type == TransformationType.SOURCE


class TestFieldMapping:

    @pytest.mark.parametrize("kwargs", [
        {"position": 0},
        {"length": 0},
        {"pad_char": "00"},
    ])
    def test_invalid(self, kwargs):
        with pytest.raises(ValueError):
            make_mapping(**kwargs)

    def test_config_ordering_and_length(self):
        config = make_config([
            make_mapping("B", position=5, length=3),
            make_mapping("A", position=2, length=4),
        ])
        assert [m.target_field_name for m in config.ordered_mappings] == ["A", "B"]
        assert config.record_length == 7
        assert config.get_mapping("missing") is None


class TestEnums:

    def test_transformation_type_case_insensitive(self):
        assert TransformationType.parse("Conditional") == TransformationType.CONDITIONAL

    def test_pad_side_default(self):
        assert PadSide.parse(None) == PadSide.RIGHT

    @pytest.mark.parametrize("text", ["PHONE_VALIDATION", "PHONE", "phone"])
    def test_rule_type_aliases(self, text):
        assert RuleType.parse(text) == RuleType.PHONE

    def test_unknown_rule_type(self):
        with pytest.raises(ValueError):
            RuleType.parse("NOPE")

    def test_severity(self):
        assert Severity.parse(None) == Severity.ERROR
        assert Severity.parse("warning") == Severity.WARNING
        assert Severity.parse(" critical ") == Severity.CRITICAL


def _summary(errors=0, warnings=0, passed=0, batch_id=None):
    rule = make_rule("R1", RuleType.REQUIRED)
    summary = ValidationSummary(total_fields=errors + warnings + passed, batch_id=batch_id)
    for i in range(errors):
        summary.add_field_results(f"E{i}", [FieldValidationResult.failure(f"E{i}", "", "bad", rule)])
    for i in range(warnings):
        summary.add_field_results(f"W{i}", [FieldValidationResult.warning(f"W{i}", "", "meh", rule)])
    for i in range(passed):
        summary.add_field_results(f"P{i}", [FieldValidationResult.success(f"P{i}", "x", rule)])
    return summary


class TestValidationSummary:
    """Tests for counts, rates and merging."""

    def test_counts_and_rates(self):
        summary = _summary(errors=1, warnings=1, passed=2)
        assert summary.total_errors == 1
        assert summary.total_warnings == 1
        assert summary.valid_fields == 3
        assert summary.success_rate == 75.0
        assert summary.error_rate == 25.0
        assert summary.warning_rate == 25.0
        assert summary.fields_with_errors == ["E0"]
        assert summary.fields_with_warnings == ["W0"]

    def test_empty_summary_rates(self):
        summary = ValidationSummary()
        assert summary.success_rate == 100.0
        assert summary.error_rate == 0.0
        assert summary.is_valid

    def test_merge_sums_counts(self):
        merged = _summary(errors=2).merge(_summary(warnings=1, passed=1))
        assert merged.total_fields == 4
        assert merged.total_errors == 2
        assert merged.total_warnings == 1
        assert merged.valid_fields == 2

    def test_merge_joins_same_field(self):
        left, right = _summary(errors=1), _summary(errors=1)
        merged = left.merge(right)
        assert len(merged.get_field_results("E0")) == 2
        assert len(left.get_field_results("E0")) == 1

    def test_merge_keeps_threshold_flag(self):
        flagged = _summary(errors=1)
        flagged.threshold_exceeded = True
        assert merge_summaries([_summary(passed=1), flagged]).threshold_exceeded

    def test_summary_report(self):
        report = _summary(errors=1, passed=1).summary_report()
        assert "Total Fields: 2" in report
        assert "Overall Status: FAILED" in report
        assert "- E0: bad" in report

    def test_to_dict(self):
        data = _summary(errors=1, passed=1).to_dict()
        assert data["success_rate"] == 50.0
        assert data["field_results"]["E0"][0]["error_message"] == "bad"
        assert data["field_results"]["E0"][0]["rule_type"] == "REQUIRED_FIELD_VALIDATION"

    def test_raise_for_errors(self):
        summary = _summary(errors=2, batch_id="B-9")
        with pytest.raises(FieldValidationError) as exc_info:
            summary.raise_for_errors()
        assert exc_info.value.record_id == "B-9"
        assert len(exc_info.value.details["errors"]) == 2

    def test_raise_for_errors_when_clean(self):
        _summary(warnings=1, passed=1).raise_for_errors()


class TestSettings:

    def test_defaults(self, monkeypatch):
        for name in ("EP_MAX_RECORD_LENGTH", "EP_ERROR_THRESHOLD", "EP_VALIDATION_WORKERS"):
            monkeypatch.delenv(name, raising=False)
        settings = Settings.from_env()
        assert settings.max_record_length == 32000
        assert settings.error_threshold == 0
        assert settings.validation_workers == 1

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("EP_MAX_RECORD_LENGTH", "500")
        monkeypatch.setenv("EP_VALIDATION_WORKERS", "0")
        monkeypatch.setenv("EP_LOG_LEVEL", "debug")
        settings = Settings.from_env()
        assert settings.max_record_length == 500
        assert settings.validation_workers == 1
        assert settings.log_level == "DEBUG"
