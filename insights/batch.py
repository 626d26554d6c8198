"""Batch ingestion: validate → analyse every item → publish.

Responsibilities:
- Validate an ingestion payload as a whole; one bad item rejects the batch
- Run the per-item analysis concurrently, bounded by ``max_concurrency``
- Reassemble results in input order and publish them as the latest batch

Per-item analysis failures never fail the batch; they are recorded as
``AnalysisFailure`` outcomes by the analyzer.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from insights.models import Batch, FeedbackItem, IngestRequest

if TYPE_CHECKING:
    from insights.analyzer import Analyzer
    from insights.store import InsightStore

logger = logging.getLogger(__name__)


class IngestValidationError(ValueError):
    """The ingestion payload is malformed; nothing was analysed or published."""

    def __init__(self, details: list[dict[str, Any]]) -> None:
        super().__init__(f"Invalid input schema ({len(details)} problem(s))")
        self.details = details


# ── Validation ─────────────────────────────────────────────────────────────────


def validate_payload(payload: Any) -> list[FeedbackItem]:
    """Validate a ``{"feedback": [...]}`` payload.

    Args:
        payload: The decoded JSON body.

    Returns:
        The feedback items, in payload order.

    Raises:
        IngestValidationError: If any item is malformed. ``details`` lists
            every violation as ``{"loc": [...], "msg": str, "type": str}``.
    """
    try:
        request = IngestRequest.model_validate(payload)
    except ValidationError as exc:
        details = [
            {"loc": list(error["loc"]), "msg": error["msg"], "type": error["type"]}
            for error in exc.errors()
        ]
        raise IngestValidationError(details) from exc

    return request.feedback


# ── Coordinator ────────────────────────────────────────────────────────────────


class BatchCoordinator:
    """Drives a batch of items through the analyzer and publishes the result."""

    def __init__(
        self,
        analyzer: Analyzer,
        store: InsightStore,
        max_concurrency: int = 4,
    ) -> None:
        self.analyzer = analyzer
        self.store = store
        self.max_concurrency = max(1, max_concurrency)

    def ingest(self, items: Sequence[FeedbackItem]) -> Batch:
        """Analyse *items* and publish them as the new latest batch.

        Args:
            items: Validated feedback items in arrival order.

        Returns:
            The published ``Batch``; ``results[i]`` belongs to ``items[i]``.
        """
        items = list(items)
        logger.info("AI analysis received %d feedback items", len(items))

        results = self._analyze_all(items)
        failed = sum(1 for result in results if not result.succeeded)
        logger.info(
            "Completed analysis for %d items (%d failed)", len(results), failed
        )

        return self.store.publish(items, results)

    def ingest_payload(self, payload: Any) -> Batch:
        """Validate a raw ingestion payload, then ``ingest()`` it."""
        return self.ingest(validate_payload(payload))

    def _analyze_all(self, items: list[FeedbackItem]) -> list:
        if not items:
            return []
        workers = min(self.max_concurrency, len(items))
        with ThreadPoolExecutor(
            max_workers=workers, thread_name_prefix="analyze"
        ) as pool:
            # map() yields in submission order regardless of completion order
            return list(pool.map(self.analyzer.analyze, items))
