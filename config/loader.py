"""Load ``settings.yaml`` and apply environment overrides."""

from __future__ import annotations

import copy
import logging
import os
from pathlib import Path
from typing import Any, Dict, Mapping

import yaml
from dotenv import load_dotenv

from core.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_PATH = Path(__file__).with_name("settings.yaml")

DEFAULTS: Dict[str, Any] = {
    "llm": {
        "provider": "ollama",
        "host": "127.0.0.1",
        "port": 11434,
        "model": "llama3.1:8b",
        "api_key": "",
    },
    "consciousness": {
        "enabled": True,
        "interval_seconds": 60,
        "min_confidence": 0.7,
        "per_room": 5,
        "memory_limit": 10,
    },
    "pipeline": {"min_action_confidence": 0.7, "related_memories": 3},
    "similarity": {"min_similarity": 0.0, "dim": 64},
    "clients": {"console": {"enabled": True, "poll_interval": 0.1}},
}

# env var -> (section, key, converter)
_ENV_OVERRIDES = (
    ("LLM_PROVIDER", "llm", "provider", str),
    ("LLM_MODEL", "llm", "model", str),
    ("LLM_HOST", "llm", "host", str),
    ("LLM_PORT", "llm", "port", int),
    ("LLM_API_KEY", "llm", "api_key", str),
    ("CONSCIOUSNESS_INTERVAL", "consciousness", "interval_seconds", float),
)


def _merge(base: Dict[str, Any], override: Mapping[str, Any]) -> Dict[str, Any]:
    for key, value in override.items():
        if isinstance(value, Mapping) and isinstance(base.get(key), dict):
            _merge(base[key], value)
        else:
            base[key] = value
    return base


def load_config(path: str | Path | None = None, *, env_file: str | None = None) -> Dict[str, Any]:
    """Return settings merged over defaults, with env overrides applied.

    A missing file yields the defaults. Malformed YAML or an env override
    that cannot be converted raises :class:`ConfigurationError`.
    """

    load_dotenv(env_file)
    cfg = copy.deepcopy(DEFAULTS)
    cfg_path = Path(path) if path is not None else DEFAULT_PATH
    if cfg_path.exists():
        try:
            with open(cfg_path, "r", encoding="utf-8") as f:
                raw = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ConfigurationError(f"Invalid YAML in {cfg_path}: {exc}") from exc
        if not isinstance(raw, Mapping):
            raise ConfigurationError(f"{cfg_path} must contain a mapping")
        _merge(cfg, raw)
        logger.debug("config_loaded", extra={"path": str(cfg_path)})
    else:
        logger.debug("config_missing_using_defaults", extra={"path": str(cfg_path)})

    for env_name, section, key, convert in _ENV_OVERRIDES:
        value = os.getenv(env_name)
        if value is None:
            continue
        try:
            cfg.setdefault(section, {})[key] = convert(value)
        except ValueError as exc:
            raise ConfigurationError(f"{env_name}={value!r} is not a valid {convert.__name__}") from exc

    llm_cfg = cfg["llm"]
    logger.debug(
        "config_ready",
        extra={"provider": llm_cfg.get("provider"), "model": llm_cfg.get("model")},
    )
    return cfg


__all__ = ["DEFAULTS", "DEFAULT_PATH", "load_config"]
