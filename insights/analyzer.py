"""Claude-backed feedback analysis.

Three calls share one lazily created Anthropic client:

1. **Per-item analysis** — ``Analyzer.analyze()``:
   extracts pain points, a summary and a priority from one feedback item.
   Never raises; every failure mode becomes an ``AnalysisFailure``.

2. **Follow-up answers** — ``Analyzer.answer()``:
   answers a free-text question using one stored analysis as context.

3. **Open conversation** — ``Analyzer.converse()``:
   replies to chat text that is not a bot command.

The model's JSON is frequently wrapped in a markdown fence, so the raw text
goes through ``strip_code_fence()`` before it is decoded.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Optional

import anthropic
from pydantic import ValidationError

from insights.models import (
    AnalysisFailure,
    AnalysisOutcome,
    AnalysisResult,
    AnalysisSuccess,
    FeedbackItem,
)

if TYPE_CHECKING:
    from config.settings import Settings

logger = logging.getLogger(__name__)


# ── Prompts ────────────────────────────────────────────────────────────────────

ANALYSIS_SYSTEM = (
    "Analyze the following developer feedback to identify key pain points, "
    "recurring issues, and actionable insights. Output a JSON object with "
    "'painPoints' (array of strings), 'summary' (string), and 'priority' "
    "(low, medium, high). Ensure the output is always a valid JSON string."
)

ANSWER_SYSTEM = (
    "You are an assistant. Given the following feedback analysis, answer the "
    "user's question as helpfully as possible.\n\nFeedback Analysis:\n{analysis}"
)

CONVERSE_SYSTEM = (
    "You are a community insights bot that surfaces developer pain points from "
    "feedback forums. Answer briefly. When the user seems to want insights, "
    "point them to the /show_insights, /search_insights <keyword> and /help "
    "commands."
)

# ── Failure messages ───────────────────────────────────────────────────────────

NO_CONTENT_ERROR = "No AI content"
INVALID_JSON_ERROR = "AI output not valid JSON"
SCHEMA_MISMATCH_ERROR = "AI output did not match analysis schema"
PROVIDER_FAILED_ERROR = "AI analysis failed"

_FENCE_OPEN = "```json"
_FENCE_CLOSE = "```"


# ── Output parsing ─────────────────────────────────────────────────────────────


def strip_code_fence(content: str) -> str:
    """Remove a leading ```json marker and a trailing ``` marker, then trim.

    Examples:
        >>> strip_code_fence('```json\\n{"a": 1}\\n```')
        '{"a": 1}'
        >>> strip_code_fence(' {"a": 1} ')
        '{"a": 1}'
    """
    if content.startswith(_FENCE_OPEN):
        content = content[len(_FENCE_OPEN):]
    if content.endswith(_FENCE_CLOSE):
        content = content[: -len(_FENCE_CLOSE)]
    return content.strip()


def parse_outcome(content: Optional[str]) -> AnalysisOutcome:
    """Turn the model's raw text into an analysis outcome.

    Args:
        content: Text returned by the model, or ``None``/``""`` if it
            returned nothing.

    Returns:
        ``AnalysisSuccess`` when the text decodes to an object matching the
        taxonomy, otherwise an ``AnalysisFailure`` that keeps the raw text.
    """
    if not content:
        return AnalysisFailure(error=NO_CONTENT_ERROR)

    try:
        data = json.loads(strip_code_fence(content))
    except json.JSONDecodeError:
        return AnalysisFailure(error=INVALID_JSON_ERROR, raw_output=content)

    try:
        return AnalysisSuccess.model_validate(data)
    except ValidationError as exc:
        logger.debug("Analysis JSON rejected: %s", exc)
        return AnalysisFailure(error=SCHEMA_MISMATCH_ERROR, raw_output=content)


def _response_text(response: object) -> str:
    """Concatenate the text blocks of a Messages API response."""
    blocks = getattr(response, "content", None) or []
    return "".join(
        getattr(block, "text", "") or ""
        for block in blocks
        if getattr(block, "type", None) == "text"
    )


# ── Analyzer ───────────────────────────────────────────────────────────────────


class Analyzer:
    """Wraps the Claude Messages API for analysis, answers and chat.

    The Anthropic client is lazy-initialised so the class can be built in
    tests without a live API key.
    """

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self._client: object = None  # Lazy-initialised anthropic.Anthropic

    @property
    def client(self) -> object:
        """Lazy-initialise and return the Anthropic SDK client."""
        if self._client is None:
            # Single attempt per call; timeouts surface as AnalysisFailure.
            self._client = anthropic.Anthropic(
                api_key=self.settings.anthropic_api_key,
                max_retries=0,
                timeout=self.settings.analysis_timeout,
            )
        return self._client

    # ── Per-item analysis ──────────────────────────────────────────────────

    def analyze(self, item: FeedbackItem) -> AnalysisResult:
        """Analyse one feedback item. Never raises.

        Args:
            item: The validated feedback item.

        Returns:
            An ``AnalysisResult`` carrying the item's id, source and URL plus
            either a success or a failure outcome.
        """
        logger.info("Processing feedback item id=%s from %s", item.id, item.source)
        try:
            response = self.client.messages.create(
                model=self.settings.analysis_model,
                max_tokens=800,
                system=ANALYSIS_SYSTEM,
                messages=[{"role": "user", "content": item.text}],
            )
            content = _response_text(response)
        except Exception as exc:
            outcome: AnalysisOutcome = AnalysisFailure(
                error=str(exc) or PROVIDER_FAILED_ERROR
            )
        else:
            outcome = parse_outcome(content)

        if isinstance(outcome, AnalysisSuccess):
            logger.info(
                "Analysed item id=%s priority=%s", item.id, outcome.priority.value
            )
        else:
            logger.warning("Item id=%s not analysed: %s", item.id, outcome.error)

        return AnalysisResult.for_item(item, outcome)

    # ── Follow-up answers ──────────────────────────────────────────────────

    def answer(self, result: AnalysisResult, question: str) -> str:
        """Answer *question* using *result*'s analysis as the only context.

        Raises:
            anthropic.APIError: On API failures.
        """
        context = result.analysis.model_dump_json(by_alias=True, indent=2)
        response = self.client.messages.create(
            model=self.settings.answer_model,
            max_tokens=500,
            system=ANSWER_SYSTEM.format(analysis=context),
            messages=[{"role": "user", "content": question}],
        )
        return _response_text(response).strip()

    # ── Open conversation ──────────────────────────────────────────────────

    def converse(self, text: str) -> str:
        """Reply to free-form chat text.

        Raises:
            anthropic.APIError: On API failures.
        """
        response = self.client.messages.create(
            model=self.settings.answer_model,
            max_tokens=400,
            system=CONVERSE_SYSTEM,
            messages=[{"role": "user", "content": text}],
        )
        return _response_text(response).strip()
