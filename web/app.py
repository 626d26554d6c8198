"""
Flask web server for feedback-insights.

Routes
──────
POST /api/mcp/ingest    Validate + analyse a feedback batch, publish it (JSON)
POST /api/messages      Handle one chat message activity, return reply activities
GET  /api/health        Liveness + size of the latest batch
"""

from __future__ import annotations

import logging
import os
import sys
from dataclasses import dataclass
from typing import Any, Optional

from dotenv import load_dotenv
from flask import Flask, current_app, jsonify, request

# Allow running as `python web/app.py` from the project root
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from config.settings import Settings
from insights.analyzer import Analyzer
from insights.batch import BatchCoordinator, IngestValidationError
from insights.cards import CARD_CONTENT_TYPE, build_card
from insights.dispatcher import CommandDispatcher, Reply
from insights.navigator import SessionNavigator
from insights.store import InsightStore

logger = logging.getLogger(__name__)


@dataclass
class Services:
    """Application-scoped collaborators, shared by every request."""

    settings: Settings
    store: InsightStore
    analyzer: Analyzer
    coordinator: BatchCoordinator
    navigator: SessionNavigator
    dispatcher: CommandDispatcher


def build_services(
    settings: Settings,
    analyzer: Optional[Analyzer] = None,
) -> Services:
    """Wire the store, analyzer, coordinator, navigator and dispatcher."""
    store = InsightStore()
    analyzer = analyzer or Analyzer(settings)
    navigator = SessionNavigator(store, analyzer)
    return Services(
        settings=settings,
        store=store,
        analyzer=analyzer,
        coordinator=BatchCoordinator(
            analyzer, store, max_concurrency=settings.max_concurrency
        ),
        navigator=navigator,
        dispatcher=CommandDispatcher(navigator, analyzer),
    )


def _services() -> Services:
    return current_app.extensions["insights"]


def _activities(reply: Reply) -> list[dict[str, Any]]:
    """Render a dispatcher reply as chat activities: card first, then text."""
    activities: list[dict[str, Any]] = []
    if reply.view is not None:
        activities.append({
            "type": "message",
            "attachments": [
                {"contentType": CARD_CONTENT_TYPE, "content": build_card(reply.view.result)}
            ],
        })
    activities.extend({"type": "message", "text": text} for text in reply.messages)
    return activities


def create_app(
    settings: Optional[Settings] = None,
    analyzer: Optional[Analyzer] = None,
) -> Flask:
    """Application factory.

    Args:
        settings: Configuration; read from the environment when omitted.
        analyzer: Optional pre-built analyzer (tests pass one with a mocked
            Anthropic client).
    """
    app = Flask(__name__)
    app.extensions["insights"] = build_services(settings or Settings(), analyzer)

    # ── Ingestion ──────────────────────────────────────────────────────────

    @app.route("/api/mcp/ingest", methods=["POST"])
    def ingest():
        """Analyse a ``{"feedback": [...]}`` batch and publish it as latest."""
        logger.info("Received POST to /api/mcp/ingest")
        payload = request.get_json(silent=True)

        try:
            batch = _services().coordinator.ingest_payload(payload)
        except IngestValidationError as exc:
            logger.error("Ingest input validation error: %s", exc.details)
            return jsonify({"error": "Invalid input schema", "details": exc.details}), 400
        except Exception as exc:
            logger.exception("Error handling /api/mcp/ingest request")
            return jsonify({
                "error": "Internal server error processing ingest request",
                "details": str(exc),
            }), 500

        return jsonify(batch.to_wire())

    # ── Chat ───────────────────────────────────────────────────────────────

    @app.route("/api/messages", methods=["POST"])
    def messages():
        """Handle one message activity.

        Expects ``{"type": "message", "text": "...", "conversation": {"id": "..."}}``
        and returns ``{"activities": [...]}``.
        """
        activity = request.get_json(silent=True)
        if not isinstance(activity, dict):
            activity = {}
        text = activity.get("text")
        conversation = activity.get("conversation") or {}
        conversation_id = conversation.get("id") if isinstance(conversation, dict) else None

        if not isinstance(text, str) or not conversation_id:
            return jsonify({"error": "text and conversation.id are required"}), 400

        reply = _services().dispatcher.handle(str(conversation_id), text)
        return jsonify({"activities": _activities(reply)})

    # ── Health ─────────────────────────────────────────────────────────────

    @app.route("/api/health")
    def health():
        services = _services()
        batch = services.store.latest
        return jsonify({
            "status": "ok",
            "generation": batch.generation,
            "results": len(batch.results),
            "published_at": batch.created_at.isoformat(),
            "sessions": services.store.session_count,
        })

    return app


# ── Entry point ────────────────────────────────────────────────────────────

if __name__ == "__main__":
    load_dotenv()
    logging.basicConfig(level=logging.INFO)

    settings = Settings()
    settings.validate()

    app = create_app(settings)
    logger.info("Ingestion endpoint: http://localhost:%d/api/mcp/ingest", settings.port)
    logger.info("Bot messages endpoint: http://localhost:%d/api/messages", settings.port)
    app.run(debug=settings.debug, host="0.0.0.0", port=settings.port)
