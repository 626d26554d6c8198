"""Tests for insights/models.py — item validation, outcome taxonomy, wire format."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from insights.models import (
    AnalysisFailure,
    AnalysisResult,
    AnalysisSuccess,
    Batch,
    FeedbackItem,
    Priority,
)


def make_item(item_id: int = 1, **overrides) -> FeedbackItem:
    fields = {
        "id": item_id,
        "text": "Bot fails to install in Teams",
        "source": "GitHub Issues",
        "url": f"https://github.com/org/repo/issues/{item_id}",
    }
    fields.update(overrides)
    return FeedbackItem(**fields)


# ── FeedbackItem ───────────────────────────────────────────────────────────────


class TestFeedbackItem:
    def test_valid_item(self):
        item = make_item()
        assert item.id == 1
        assert item.url == "https://github.com/org/repo/issues/1"

    def test_url_is_optional(self):
        assert make_item(url=None).url is None

    def test_blank_text_rejected(self):
        with pytest.raises(ValidationError, match="text must not be empty"):
            make_item(text="   ")

    def test_relative_url_rejected(self):
        with pytest.raises(ValidationError, match="absolute URL"):
            make_item(url="not-a-url")

    def test_whitespace_in_host_rejected(self):
        with pytest.raises(ValidationError, match="absolute URL"):
            make_item(url="https://exa mple.com/a b")

    def test_url_kept_verbatim(self):
        # No trailing slash is added to the stored provenance.
        assert make_item(url="https://example.com").url == "https://example.com"

    def test_numeric_string_id_rejected(self):
        with pytest.raises(ValidationError):
            FeedbackItem(id="7", text="x", source="s")

    def test_boolean_id_rejected(self):
        with pytest.raises(ValidationError):
            FeedbackItem(id=True, text="x", source="s")

    def test_source_required(self):
        with pytest.raises(ValidationError):
            FeedbackItem(id=1, text="x")

    def test_item_is_immutable(self):
        item = make_item()
        with pytest.raises(ValidationError):
            item.text = "changed"


# ── AnalysisSuccess ────────────────────────────────────────────────────────────


class TestAnalysisSuccess:
    def test_accepts_wire_names(self):
        outcome = AnalysisSuccess.model_validate(
            {"painPoints": ["slow"], "summary": "Slow bot", "priority": "high"}
        )
        assert outcome.pain_points == ["slow"]
        assert outcome.priority is Priority.HIGH

    @pytest.mark.parametrize("priority", ["urgent", "HIGH", "", None])
    def test_priority_outside_taxonomy_rejected(self, priority):
        with pytest.raises(ValidationError):
            AnalysisSuccess.model_validate(
                {"painPoints": [], "summary": "s", "priority": priority}
            )

    def test_non_string_pain_point_rejected(self):
        with pytest.raises(ValidationError):
            AnalysisSuccess.model_validate(
                {"painPoints": [42], "summary": "s", "priority": "low"}
            )


# ── AnalysisResult ─────────────────────────────────────────────────────────────


class TestAnalysisResult:
    def test_for_item_copies_provenance(self):
        item = make_item(5)
        result = AnalysisResult.for_item(item, AnalysisFailure(error="boom"))
        assert result.original_id == 5
        assert result.original_source == "GitHub Issues"
        assert result.original_url == item.url
        assert not result.succeeded

    def test_success_wire_format(self):
        result = AnalysisResult.for_item(
            make_item(1),
            AnalysisSuccess(pain_points=["auth"], summary="Login loop", priority=Priority.MEDIUM),
        )
        assert result.to_wire() == {
            "originalId": 1,
            "originalSource": "GitHub Issues",
            "originalUrl": "https://github.com/org/repo/issues/1",
            "analysis": {"painPoints": ["auth"], "summary": "Login loop", "priority": "medium"},
        }

    def test_failure_wire_format_omits_absent_fields(self):
        result = AnalysisResult.for_item(make_item(2, url=None), AnalysisFailure(error="No AI content"))
        assert result.to_wire() == {
            "originalId": 2,
            "originalSource": "GitHub Issues",
            "analysis": {"error": "No AI content"},
        }

    def test_failure_keeps_raw_output(self):
        result = AnalysisResult.for_item(
            make_item(3), AnalysisFailure(error="AI output not valid JSON", raw_output="oops")
        )
        assert result.to_wire()["analysis"]["rawOutput"] == "oops"


# ── Batch ──────────────────────────────────────────────────────────────────────


class TestBatch:
    def test_default_batch_is_empty(self):
        batch = Batch()
        assert batch.is_empty
        assert batch.generation == 0
        assert batch.to_wire() == {"analyzedResults": []}

    def test_length_mismatch_rejected(self):
        with pytest.raises(ValueError, match="1 items but 0 results"):
            Batch(items=(make_item(1),), results=())

    def test_id_mismatch_rejected(self):
        result = AnalysisResult.for_item(make_item(2), AnalysisFailure(error="x"))
        with pytest.raises(ValueError, match="expected 1"):
            Batch(items=(make_item(1),), results=(result,))
