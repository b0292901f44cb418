"""Settings loading: YAML file defaults overridden by environment variables."""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

import yaml
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "config/settings.yaml"
DEFAULT_ENV_PATH = ".env"


@dataclass
class LLMSettings:
    """Everything needed to build a :class:`RequestOrchestrator`."""
    api_key: str = ""
    model: str = "gpt-4o-mini"
    max_tokens: int = 4000
    temperature: float = 0.7
    timeout: int = 60
    max_input_tokens: Optional[int] = None
    chunk_budget_ratio: float = 0.7
    requests_per_minute: int = 60
    min_interval_seconds: float = 1.0
    cache_enabled: bool = True
    cache_ttl_seconds: int = 3600
    cache_max_size: int = 10000
    log_level: str = "INFO"

    def masked_api_key(self) -> str:
        if not self.api_key:
            return ""
        if len(self.api_key) <= 12:
            return "*" * len(self.api_key)
        return self.api_key[:8] + "..." + self.api_key[-4:]


def load_yaml_config(config_path: str = DEFAULT_CONFIG_PATH) -> dict[str, Any]:
    """Load the YAML configuration file, returning ``{}`` if it is missing."""
    config_file = Path(config_path)
    if not config_file.exists():
        logger.warning("Config file not found: %s, using defaults.", config_path)
        return {}
    with open(config_file, "r", encoding="utf-8") as fh:
        config = yaml.safe_load(fh) or {}
    logger.info("Configuration loaded from %s", config_path)
    return config


def _env_int(name: str, default: Optional[int]) -> Optional[int]:
    raw = os.getenv(name, "")
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("Ignoring non-integer %s=%r", name, raw)
        return default


def load_settings(
    config_path: str = DEFAULT_CONFIG_PATH,
    env_path: Optional[str] = DEFAULT_ENV_PATH,
) -> LLMSettings:
    """Build :class:`LLMSettings` from ``settings.yaml`` and the environment.

    Environment variables (``OPENAI_API_KEY``, ``OPENAI_MODEL``,
    ``OPENAI_MAX_TOKENS``, ``OPENAI_RATE_LIMIT``, ``LOG_LEVEL``) take
    precedence over the file. A ``.env`` file is loaded first if present.
    """
    if env_path and Path(env_path).exists():
        load_dotenv(env_path)
        logger.info("Loaded environment from %s", env_path)

    config = load_yaml_config(config_path)
    llm_cfg = config.get("llm", {}) or {}
    rl_cfg = (config.get("rate_limits", {}) or {}).get("openai", {}) or {}
    cache_cfg = config.get("cache", {}) or {}
    log_cfg = config.get("logging", {}) or {}

    defaults = LLMSettings()
    return LLMSettings(
        api_key=os.getenv("OPENAI_API_KEY", ""),
        model=os.getenv("OPENAI_MODEL") or llm_cfg.get("model", defaults.model),
        max_tokens=_env_int(
            "OPENAI_MAX_TOKENS", llm_cfg.get("max_tokens", defaults.max_tokens)
        ),
        temperature=float(llm_cfg.get("temperature", defaults.temperature)),
        timeout=int(llm_cfg.get("timeout", defaults.timeout)),
        max_input_tokens=llm_cfg.get("max_input_tokens"),
        chunk_budget_ratio=float(
            llm_cfg.get("chunk_budget_ratio", defaults.chunk_budget_ratio)
        ),
        requests_per_minute=_env_int(
            "OPENAI_RATE_LIMIT",
            rl_cfg.get("requests_per_minute", defaults.requests_per_minute),
        ),
        min_interval_seconds=float(
            rl_cfg.get("min_interval_seconds", defaults.min_interval_seconds)
        ),
        cache_enabled=bool(cache_cfg.get("enabled", defaults.cache_enabled)),
        cache_ttl_seconds=int(cache_cfg.get("ttl_seconds", defaults.cache_ttl_seconds)),
        cache_max_size=int(cache_cfg.get("max_size", defaults.cache_max_size)),
        log_level=os.getenv("LOG_LEVEL") or log_cfg.get("level", defaults.log_level),
    )
