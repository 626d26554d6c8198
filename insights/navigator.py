"""Per-conversation navigation over the latest analysis batch.

Each conversation is in one of three states:

- *Idle*       no cursor (new session, or a new batch was published)
- *Viewing*    cursor on one result; paged with ``next_insight()``
- *Searching*  an ordered list of matching results plus a position; paged
               with ``next_search_result()``

Paging past the last result in Viewing wraps the cursor back to the first
result and reports ``NO_MORE_ITEMS``. Paging past the last match in
Searching ends the search and reports ``NO_MORE_RESULTS``; there is no
wraparound for searches.

Every refusal is a ``NavigationError`` whose message is meant to be shown to
the user as-is. None of them leave the session unusable.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Optional

from insights.models import AnalysisResult, AnalysisSuccess, Batch
from insights.store import SearchContext, Session

if TYPE_CHECKING:
    from insights.analyzer import Analyzer
    from insights.store import InsightStore

logger = logging.getLogger(__name__)


# ── Errors ─────────────────────────────────────────────────────────────────────


class NavigationErrorCode(str, Enum):
    """Why a navigation command could not be carried out."""

    EMPTY_BATCH = "empty_batch"
    NO_CURRENT_SELECTION = "no_current_selection"
    NO_MORE_ITEMS = "no_more_items"
    NO_MORE_RESULTS = "no_more_results"
    NO_ACTIVE_SEARCH = "no_active_search"
    NO_MATCHES = "no_matches"
    MISSING_KEYWORD = "missing_keyword"
    MISSING_QUESTION = "missing_question"
    ANSWER_FAILED = "answer_failed"


_MESSAGES: dict[NavigationErrorCode, str] = {
    NavigationErrorCode.EMPTY_BATCH: "No analysis results are available yet.",
    NavigationErrorCode.NO_CURRENT_SELECTION: (
        "No current insight selected. Use `/show_insights`, `/latest_insight`, "
        "or `/search_insights <keyword>` first."
    ),
    NavigationErrorCode.NO_MORE_ITEMS: "No more insights. Type /show_insights to start over.",
    NavigationErrorCode.NO_MORE_RESULTS: (
        "No more search results. Use `/search_insights <keyword>` to search again."
    ),
    NavigationErrorCode.NO_ACTIVE_SEARCH: (
        "No active search. Use `/search_insights <keyword>` first."
    ),
    NavigationErrorCode.NO_MATCHES: "No insights found matching your keyword.",
    NavigationErrorCode.MISSING_KEYWORD: (
        "Please provide a keyword to search. Example: `/search_insights bot`"
    ),
    NavigationErrorCode.MISSING_QUESTION: (
        "Please provide a question. Example: "
        "`/ask_about_current What is the main pain point?`"
    ),
    NavigationErrorCode.ANSWER_FAILED: "Sorry, I couldn't process your question.",
}


class NavigationError(Exception):
    """A recoverable, user-facing refusal of a navigation command."""

    def __init__(self, code: NavigationErrorCode, message: Optional[str] = None) -> None:
        super().__init__(message or _MESSAGES[code])
        self.code = code


# ── Views ──────────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class InsightView:
    """The result a command landed on, with enough context to render hints."""

    result: AnalysisResult
    index: int
    total: int
    search: Optional[SearchContext] = None

    @property
    def remaining(self) -> int:
        """Results after this one in the batch."""
        return self.total - self.index - 1


# ── Matching ───────────────────────────────────────────────────────────────────


def matches_keyword(result: AnalysisResult, keyword: str) -> bool:
    """Case-insensitive substring match over a successful result.

    Looks in the summary, each pain point, and ``"<source> <url>"``.
    Failed analyses never match.
    """
    outcome = result.analysis
    if not isinstance(outcome, AnalysisSuccess):
        return False

    needle = keyword.lower()
    provenance = f"{result.original_source or ''} {result.original_url or ''}"
    return (
        needle in outcome.summary.lower()
        or any(needle in point.lower() for point in outcome.pain_points)
        or needle in provenance.lower()
    )


def find_matches(results: Iterable[AnalysisResult], keyword: str) -> Iterator[int]:
    """Yield, in batch order, the indices of results matching *keyword*."""
    for index, result in enumerate(results):
        if matches_keyword(result, keyword):
            yield index


# ── Navigator ──────────────────────────────────────────────────────────────────


def _require_results(batch: Batch) -> None:
    if batch.is_empty:
        raise NavigationError(NavigationErrorCode.EMPTY_BATCH)


def _view(session: Session, batch: Batch) -> InsightView:
    index = session.cursor
    return InsightView(
        result=batch.results[index],
        index=index,
        total=len(batch.results),
        search=session.search,
    )


class SessionNavigator:
    """Stateful paging, search and Q&A, one independent cursor per session."""

    def __init__(self, store: InsightStore, analyzer: Analyzer) -> None:
        self.store = store
        self.analyzer = analyzer

    # ── Paging ─────────────────────────────────────────────────────────────

    def show_first(self, session_key: str) -> InsightView:
        """Move to the first result, leaving any active search."""
        with self.store.session(session_key) as (session, batch):
            _require_results(batch)
            session.cursor = 0
            session.search = None
            return _view(session, batch)

    def show_latest(self, session_key: str) -> InsightView:
        """Move to the last (most recent) result, leaving any active search."""
        with self.store.session(session_key) as (session, batch):
            _require_results(batch)
            session.cursor = len(batch.results) - 1
            session.search = None
            return _view(session, batch)

    def next_insight(self, session_key: str) -> InsightView:
        """Advance the cursor by one.

        Raises:
            NavigationError: ``NO_MORE_ITEMS`` after the last result, in which
                case the cursor has been reset to the first result.
        """
        with self.store.session(session_key) as (session, batch):
            _require_results(batch)
            if session.cursor is None:
                raise NavigationError(NavigationErrorCode.NO_CURRENT_SELECTION)

            session.search = None
            if session.cursor + 1 >= len(batch.results):
                session.cursor = 0
                raise NavigationError(NavigationErrorCode.NO_MORE_ITEMS)

            session.cursor += 1
            return _view(session, batch)

    # ── Search ─────────────────────────────────────────────────────────────

    def search(self, session_key: str, keyword: str) -> InsightView:
        """Start a keyword search and move to the first match.

        A search with no matches leaves the session exactly as it was.
        """
        keyword = (keyword or "").strip()
        if not keyword:
            raise NavigationError(NavigationErrorCode.MISSING_KEYWORD)

        with self.store.session(session_key) as (session, batch):
            _require_results(batch)
            matches = tuple(find_matches(batch.results, keyword))
            if not matches:
                raise NavigationError(
                    NavigationErrorCode.NO_MATCHES,
                    f'No insights found matching "{keyword}".',
                )

            session.search = SearchContext(match_indices=matches)
            session.cursor = matches[0]
            logger.debug(
                "Session %s search %r matched %d results",
                session_key, keyword, len(matches),
            )
            return _view(session, batch)

    def next_search_result(self, session_key: str) -> InsightView:
        """Move to the next match of the active search.

        Raises:
            NavigationError: ``NO_ACTIVE_SEARCH`` without a search;
                ``NO_MORE_RESULTS`` after the last match, which also ends the
                search (the cursor stays on the last match).
        """
        with self.store.session(session_key) as (session, batch):
            search = session.search
            if search is None:
                raise NavigationError(NavigationErrorCode.NO_ACTIVE_SEARCH)

            if search.remaining <= 0:
                session.search = None
                raise NavigationError(NavigationErrorCode.NO_MORE_RESULTS)

            session.search = SearchContext(
                match_indices=search.match_indices,
                position=search.position + 1,
            )
            session.cursor = session.search.current_index
            return _view(session, batch)

    # ── Current selection ──────────────────────────────────────────────────

    def current(self, session_key: str) -> InsightView:
        """Return the result under the cursor without moving it."""
        with self.store.session(session_key) as (session, batch):
            if session.cursor is None or session.cursor >= len(batch.results):
                raise NavigationError(NavigationErrorCode.NO_CURRENT_SELECTION)
            return _view(session, batch)

    def ask_about_current(self, session_key: str, question: str) -> str:
        """Answer a question about the current result using Claude.

        The session lock is released before the model is called.
        """
        result = self.current(session_key).result

        question = (question or "").strip()
        if not question:
            raise NavigationError(NavigationErrorCode.MISSING_QUESTION)

        try:
            answer = self.analyzer.answer(result, question)
        except Exception as exc:
            logger.exception(
                "Answering question for session %s failed", session_key
            )
            raise NavigationError(NavigationErrorCode.ANSWER_FAILED) from exc

        if not answer:
            raise NavigationError(NavigationErrorCode.ANSWER_FAILED)
        return answer
