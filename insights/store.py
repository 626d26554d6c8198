"""
In-memory store for the latest analysis batch and per-conversation state.

The store owns two pieces of shared state:

- the latest ``Batch``: a single reference, replaced wholesale by
  ``publish()``; readers take one snapshot per operation and never see a
  partially built batch.
- a map of conversation key → ``Session``: the map itself is guarded by a
  short-held lock, and every session has its own lock so unrelated
  conversations never wait on each other.

Nothing is persisted; a restart loses the batch and every session.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Optional

from insights.models import AnalysisResult, Batch, FeedbackItem

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SearchContext:
    """Indices (into the batch results) matching a search, plus a position."""

    match_indices: tuple[int, ...]
    position: int = 0

    @property
    def current_index(self) -> int:
        return self.match_indices[self.position]

    @property
    def remaining(self) -> int:
        return len(self.match_indices) - self.position - 1


class Session:
    """Navigation state for one conversation.

    ``generation`` records which batch ``cursor`` and ``search`` refer to.
    """

    def __init__(self, key: str) -> None:
        self.key = key
        self.lock = threading.Lock()
        self.cursor: Optional[int] = None
        self.search: Optional[SearchContext] = None
        self.generation = 0

    def reset(self, generation: int) -> None:
        self.cursor = None
        self.search = None
        self.generation = generation


class InsightStore:
    """Application-scoped owner of the latest batch and all sessions."""

    def __init__(self) -> None:
        self._latest = Batch()
        self._publish_lock = threading.Lock()
        self._sessions: dict[str, Session] = {}
        self._sessions_lock = threading.Lock()

    @property
    def latest(self) -> Batch:
        """The most recently published batch (an empty one before any ingest)."""
        return self._latest

    @property
    def session_count(self) -> int:
        with self._sessions_lock:
            return len(self._sessions)

    def publish(
        self,
        items: Iterable[FeedbackItem],
        results: Iterable[AnalysisResult],
    ) -> Batch:
        """Replace the latest batch and reset every session.

        Args:
            items: The ingested items, in arrival order.
            results: One result per item, in the same order.

        Returns:
            The newly published ``Batch``.

        Raises:
            ValueError: If items and results do not correspond one-to-one;
                the previous batch stays in place.
        """
        with self._publish_lock:
            batch = Batch(
                items=tuple(items),
                results=tuple(results),
                generation=self._latest.generation + 1,
            )
            self._latest = batch

        with self._sessions_lock:
            sessions = list(self._sessions.values())
        for session in sessions:
            with session.lock:
                # A session already bound to this (or a newer) batch was reset
                # lazily by session() and may hold fresh state.
                if session.generation < batch.generation:
                    session.reset(batch.generation)

        logger.info(
            "Published batch generation=%d with %d results; reset %d sessions",
            batch.generation, len(batch.results), len(sessions),
        )
        return batch

    @contextmanager
    def session(self, key: str) -> Iterator[tuple[Session, Batch]]:
        """Lock the session for *key* and yield it with a batch snapshot.

        The session is created on first use. If a newer batch was published
        since the session last ran, its cursor and search are cleared first.
        """
        with self._sessions_lock:
            session = self._sessions.get(key)
            if session is None:
                session = self._sessions[key] = Session(key)

        with session.lock:
            batch = self._latest
            if session.generation != batch.generation:
                session.reset(batch.generation)
            yield session, batch
