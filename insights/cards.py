"""Adaptive Card and markdown projections of an analysis result.

Pure functions: no state, no I/O. The chat surface attaches the card JSON
as ``application/vnd.microsoft.card.adaptive``.
"""

from __future__ import annotations

import json
from typing import Any

from insights.models import AnalysisResult, AnalysisSuccess, Priority

CARD_CONTENT_TYPE = "application/vnd.microsoft.card.adaptive"

#: Adaptive Card text colour per priority.
PRIORITY_COLORS: dict[Priority, str] = {
    Priority.HIGH: "Attention",
    Priority.MEDIUM: "Warning",
    Priority.LOW: "Good",
}


def _text(text: str, **props: Any) -> dict[str, Any]:
    return {"type": "TextBlock", "text": text, "wrap": True, **props}


def _card(body: list[dict[str, Any]], url: str | None) -> dict[str, Any]:
    card: dict[str, Any] = {
        "type": "AdaptiveCard",
        "$schema": "http://adaptivecards.io/schemas/adaptive-card.json",
        "version": "1.3",
        "body": body,
    }
    if url:
        card["actions"] = [
            {"type": "Action.OpenUrl", "title": "Open original", "url": url}
        ]
    return card


def build_card(result: AnalysisResult) -> dict[str, Any]:
    """Render *result* as an Adaptive Card.

    Failed analyses get an error card naming the source so the user can
    still open the original item.
    """
    outcome = result.analysis
    source_line = _text(f"Source: {result.original_source}", isSubtle=True, spacing="None")

    if not isinstance(outcome, AnalysisSuccess):
        body = [
            _text("Feedback Analysis", size="Large", weight="Bolder"),
            source_line,
            _text(f"Analysis unavailable: {outcome.error}", color="Attention"),
        ]
        if outcome.raw_output is not None:
            raw = outcome.raw_output
            if not isinstance(raw, str):
                raw = json.dumps(raw)
            body.append(_text(f"Raw Output: {raw}", isSubtle=True))
        return _card(body, result.original_url)

    body = [
        _text("Feedback Analysis", size="Large", weight="Bolder"),
        source_line,
        _text(
            f"Priority: **{outcome.priority.value.upper()}**",
            color=PRIORITY_COLORS[outcome.priority],
        ),
        _text("Summary:", weight="Bolder", spacing="Medium"),
        _text(outcome.summary),
        _text("Key Pain Points:", weight="Bolder", spacing="Medium"),
    ]
    if outcome.pain_points:
        body.append({
            "type": "Container",
            "items": [_text(f"- {point}") for point in outcome.pain_points],
        })
    else:
        body.append(_text("No specific pain points identified.", isSubtle=True))

    return _card(body, result.original_url)


def digest(result: AnalysisResult) -> str:
    """Short markdown summary, sent alongside a search hit.

    Returns an empty string for failed analyses.
    """
    outcome = result.analysis
    if not isinstance(outcome, AnalysisSuccess):
        return ""

    lines = [
        f"**Summary:** {outcome.summary}",
        f"**Priority:** {outcome.priority.value.upper()}",
        "**Pain Points:**",
    ]
    if outcome.pain_points:
        lines.extend(f"- {point}" for point in outcome.pain_points)
    else:
        lines.append("None identified.")
    return "\n".join(lines)
