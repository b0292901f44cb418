"""Application wiring for SEO Insights."""

import logging
import os
from typing import Any, Optional

from src.config import DEFAULT_CONFIG_PATH, DEFAULT_ENV_PATH, LLMSettings, load_settings

logger = logging.getLogger(__name__)


class SEOInsightsApp:
    """Loads settings once and lazily builds the orchestrator and report engine.

    Usage::

        app = SEOInsightsApp()
        app.initialize()
        summary = await app.get_report_engine().generate_report_summary(...)
        status = app.get_status()
    """

    def __init__(
        self,
        config_path: str = DEFAULT_CONFIG_PATH,
        env_path: str = DEFAULT_ENV_PATH,
    ):
        self._config_path = config_path
        self._env_path = env_path
        self.settings: Optional[LLMSettings] = None
        self._orchestrator = None
        self._report_engine = None

    def initialize(self) -> None:
        """Load ``.env`` and ``settings.yaml``; network clients stay lazy."""
        if self.settings is not None:
            return
        self.settings = load_settings(self._config_path, self._env_path)
        logger.info("SEOInsightsApp initialised (model=%s)", self.settings.model)

    def get_orchestrator(self):
        """Lazy-initialise and return the request orchestrator."""
        self._ensure_initialized()
        if self._orchestrator is None:
            from src.integrations.request_orchestrator import RequestOrchestrator
            self._orchestrator = RequestOrchestrator.from_settings(self.settings)
        return self._orchestrator

    def get_report_engine(self):
        """Lazy-initialise and return the report engine."""
        if self._report_engine is None:
            from src.modules.reporting import ReportEngine
            self._report_engine = ReportEngine(self.get_orchestrator())
        return self._report_engine

    def get_status(self) -> dict[str, dict[str, Any]]:
        """Return health status of configuration, credentials and usage."""
        self._ensure_initialized()
        settings = self.settings
        status: dict[str, dict[str, Any]] = {}

        status["config"] = {
            "status": "ok" if os.path.exists(self._config_path) else "warning",
            "details": self._config_path if os.path.exists(self._config_path)
            else "settings.yaml not found, using defaults",
        }
        status["api_key"] = {
            "status": "ok" if settings.api_key else "error",
            "details": settings.masked_api_key() or "OPENAI_API_KEY not set",
        }
        status["model"] = {
            "status": "ok",
            "details": (
                f"{settings.model}, max_tokens={settings.max_tokens}, "
                f"temperature={settings.temperature}"
            ),
        }
        status["rate_limit"] = {
            "status": "ok",
            "details": (
                f"{settings.requests_per_minute}/min, "
                f"{settings.min_interval_seconds}s spacing"
            ),
        }
        if self._orchestrator is not None:
            usage = self._orchestrator.get_usage_summary()
            status["usage"] = {
                "status": "ok",
                "details": (
                    f"{usage['total_requests']} requests, "
                    f"{usage['failed_requests']} failed, "
                    f"{usage['cached_responses']} cached"
                ),
            }
        return status

    def _ensure_initialized(self) -> None:
        if self.settings is None:
            raise RuntimeError("Call initialize() before using the application.")
