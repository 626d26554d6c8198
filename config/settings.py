"""Application settings — all configuration loaded from environment variables.

Usage:
    from config.settings import Settings
    settings = Settings()
    settings.validate()   # raises ValueError if ANTHROPIC_API_KEY is missing
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field


@dataclass
class Settings:
    """Centralised application configuration.

    All values are read from environment variables at instantiation time
    so that tests can override them by patching ``os.environ``.
    """

    # ── API Keys ────────────────────────────────────────────────────────────
    anthropic_api_key: str = field(
        default_factory=lambda: os.environ.get("ANTHROPIC_API_KEY", "")
    )

    # ── Flask ───────────────────────────────────────────────────────────────
    debug: bool = field(
        default_factory=lambda: os.environ.get("FLASK_DEBUG", "0") == "1"
    )
    port: int = field(
        default_factory=lambda: int(os.environ.get("PORT", "3975"))
    )

    # ── Analysis ────────────────────────────────────────────────────────────
    #: Upper bound on concurrent Claude calls while analysing one batch.
    max_concurrency: int = field(
        default_factory=lambda: int(os.environ.get("MAX_CONCURRENCY", "4"))
    )
    #: Per-call timeout (seconds); a timed-out item is recorded as a failure.
    analysis_timeout: float = field(
        default_factory=lambda: float(os.environ.get("ANALYSIS_TIMEOUT", "60"))
    )

    # ── AI Models ───────────────────────────────────────────────────────────
    #: Model used to extract pain points / summary / priority per item.
    analysis_model: str = "claude-haiku-4-5"
    #: Model used for follow-up questions and open conversation.
    answer_model: str = "claude-haiku-4-5"

    def validate(self) -> None:
        """Raise ``ValueError`` if any required setting is missing or invalid."""
        if not self.anthropic_api_key:
            raise ValueError(
                "ANTHROPIC_API_KEY environment variable is not set. "
                "Copy .env.example to .env and add your key."
            )
        if self.max_concurrency < 1:
            raise ValueError("MAX_CONCURRENCY must be at least 1.")
