"""Slash-command routing for the chat surface.

The first whitespace-separated token (case-insensitive) picks the command;
the rest of the message is its argument. Anything that is not a known
command is treated as open conversation and answered by Claude.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Optional

from insights.cards import digest
from insights.navigator import InsightView, NavigationError, NavigationErrorCode

if TYPE_CHECKING:
    from insights.analyzer import Analyzer
    from insights.navigator import SessionNavigator

logger = logging.getLogger(__name__)


COMMAND_LIST = (
    "Commands:\n"
    "- `/show_insights` — View feedback insights one by one\n"
    "- `/next_insight` — Next insight\n"
    "- `/latest_insight` — Most recent insight\n"
    "- `/search_insights <keyword>` — Search insights by topic or pain point\n"
    "- `/next_search_result` — Next search result\n"
    "- `/ask_about_current <your question>` — Ask about the currently displayed card"
)

HELP_TEXT = (
    "I am your Community Insights Bot.\n\n"
    "I analyze and surface actionable insights from developer feedback across "
    "forums, helping the Ops team proactively identify and prioritize "
    "developer-expressed pain points.\n\n" + COMMAND_LIST
)


@dataclass
class Reply:
    """What the bot sends back: an optional insight card, then text messages."""

    messages: list[str] = field(default_factory=list)
    view: Optional[InsightView] = None
    error: Optional[NavigationErrorCode] = None


Handler = Callable[[str, str], Reply]


class CommandDispatcher:
    """Maps command tokens to ``SessionNavigator`` operations."""

    def __init__(self, navigator: SessionNavigator, analyzer: Analyzer) -> None:
        self.navigator = navigator
        self.analyzer = analyzer
        self._handlers: dict[str, Handler] = {
            "/show_insights": self._show_insights,
            "/next_insight": self._next_insight,
            "/latest_insight": self._latest_insight,
            "/search_insights": self._search_insights,
            "/next_search_result": self._next_search_result,
            "/ask_about_current": self._ask_about_current,
            "/about": self._help,
            "/help": self._help,
        }

    def handle(self, session_key: str, text: str) -> Reply:
        """Route one inbound chat message.

        Navigation errors are returned as the reply text; they never escape.

        Args:
            session_key: Conversation identifier (stable per chat thread).
            text: The raw message text.
        """
        text = (text or "").strip()
        parts = text.split(maxsplit=1)
        command = parts[0].lower() if parts else ""
        argument = parts[1].strip() if len(parts) > 1 else ""

        handler = self._handlers.get(command)
        if handler is None:
            return self._converse(text)

        logger.info("Session %s command %s", session_key, command)
        try:
            return handler(session_key, argument)
        except NavigationError as exc:
            logger.info("Session %s %s: %s", session_key, command, exc.code.value)
            return Reply(messages=[str(exc)], error=exc.code)

    # ── Handlers ───────────────────────────────────────────────────────────

    def _help(self, session_key: str, argument: str) -> Reply:
        return Reply(messages=[HELP_TEXT])

    def _show_insights(self, session_key: str, argument: str) -> Reply:
        view = self.navigator.show_first(session_key)
        messages = []
        if view.remaining > 0:
            messages.append(
                f"Type /next_insight to see the next insight ({view.remaining} more)."
            )
        return Reply(messages=messages, view=view)

    def _next_insight(self, session_key: str, argument: str) -> Reply:
        view = self.navigator.next_insight(session_key)
        if view.remaining > 0:
            hint = f"Type /next_insight to see the next insight ({view.remaining} more)."
        else:
            hint = "That was the last insight. Type /show_insights to start over."
        return Reply(messages=[hint], view=view)

    def _latest_insight(self, session_key: str, argument: str) -> Reply:
        view = self.navigator.show_latest(session_key)
        return Reply(
            messages=[
                "This is the most recent insight. You can ask follow-up questions "
                "using `/ask_about_current <your question>`."
            ],
            view=view,
        )

    def _search_insights(self, session_key: str, keyword: str) -> Reply:
        view = self.navigator.search(session_key, keyword)
        messages = [text for text in [digest(view.result)] if text]
        total = len(view.search.match_indices) if view.search else 1
        if total > 1:
            messages.append(
                f"Found {total} results. Type /next_search_result to see the next match."
            )
        return Reply(messages=messages, view=view)

    def _next_search_result(self, session_key: str, argument: str) -> Reply:
        view = self.navigator.next_search_result(session_key)
        messages = [text for text in [digest(view.result)] if text]
        if view.search and view.search.remaining > 0:
            messages.append("Type /next_search_result to see the next match.")
        else:
            messages.append("That was the last search result.")
        return Reply(messages=messages, view=view)

    def _ask_about_current(self, session_key: str, question: str) -> Reply:
        answer = self.navigator.ask_about_current(session_key, question)
        return Reply(messages=[answer])

    # ── Open conversation ──────────────────────────────────────────────────

    def _converse(self, text: str) -> Reply:
        if text:
            try:
                answer = self.analyzer.converse(text)
            except Exception:
                logger.exception("Open conversation reply failed")
            else:
                if answer:
                    return Reply(messages=[answer])
        return Reply(messages=[f'You said: "{text}".\n\n{COMMAND_LIST}'])
