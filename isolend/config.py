"""Configuration loader: reads a YAML file, interpolates env vars, validates."""
from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from .core.oracle import DEFAULT_MAX_STALENESS_SECONDS
from .logging_setup import configure_logging

logger = logging.getLogger(__name__)

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

# ---------------------------------------------------------------------------
# Frozen config dataclass
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class EngineConfig:
    oracle_max_staleness_seconds: int = DEFAULT_MAX_STALENESS_SECONDS
    compound_interest: bool = False
    max_lltvs: int = 10
    max_rate_models: int = 5
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        if self.oracle_max_staleness_seconds <= 0:
            raise ValueError("oracle_max_staleness_seconds must be positive")
        if self.max_lltvs <= 0:
            raise ValueError("max_lltvs must be positive")
        if self.max_rate_models <= 0:
            raise ValueError("max_rate_models must be positive")
        if self.log_level.upper() not in _LOG_LEVELS:
            raise ValueError(f"log_level must be one of {', '.join(_LOG_LEVELS)}")


# ---------------------------------------------------------------------------
# Env interpolation
# ---------------------------------------------------------------------------

_ENV_VAR_RE = re.compile(r"\$\{([^}]+)}")


def _interpolate_env(value: Any) -> Any:
    """Recursively replace ${VAR} references with environment variable values."""
    if isinstance(value, str):
        return _ENV_VAR_RE.sub(lambda m: os.environ.get(m.group(1), ""), value)
    if isinstance(value, dict):
        return {k: _interpolate_env(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_interpolate_env(item) for item in value]
    return value


# ---------------------------------------------------------------------------
# YAML -> dataclass builder
# ---------------------------------------------------------------------------


def _coerce_int(name: str, value: Any) -> int:
    if isinstance(value, bool):
        raise ValueError(f"{name} must be an integer, got {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        return int(value.strip())
    raise ValueError(f"{name} must be an integer, got {value!r}")


def _coerce_bool(name: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "false"):
        return value.strip().lower() == "true"
    raise ValueError(f"{name} must be a boolean, got {value!r}")


def _build_engine(raw: dict[str, Any]) -> EngineConfig:
    known = {f.name for f in fields(EngineConfig)}
    unknown = sorted(set(raw) - known)
    if unknown:
        raise ValueError(f"Unknown config keys: {', '.join(unknown)}")

    kwargs: dict[str, Any] = {}
    for name in ("oracle_max_staleness_seconds", "max_lltvs", "max_rate_models"):
        if name in raw:
            kwargs[name] = _coerce_int(name, raw[name])
    if "compound_interest" in raw:
        kwargs["compound_interest"] = _coerce_bool("compound_interest", raw["compound_interest"])
    if "log_level" in raw:
        if not isinstance(raw["log_level"], str):
            raise ValueError(f"log_level must be a string, got {raw['log_level']!r}")
        kwargs["log_level"] = raw["log_level"].upper()
    return EngineConfig(**kwargs)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(config_path: str | Path | None = None) -> EngineConfig:
    """Load and validate engine configuration from YAML + .env.

    Args:
        config_path: Path to a YAML file. ``None`` returns the defaults.
    """
    if config_path is None:
        return EngineConfig()

    load_dotenv()
    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path) as f:
        raw = yaml.safe_load(f)

    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ValueError(f"Config file must contain a mapping: {config_path}")

    cfg = _build_engine(_interpolate_env(raw))
    logger.info("Configuration loaded from %s", config_path)
    return cfg


def configure(config_path: str | Path | None = None) -> EngineConfig:
    """Load the configuration and apply its ``log_level`` to the root logger.

    Entry point for hosts embedding the engine:
    ``engine = LendingEngine(..., config=configure("isolend.yaml"))``.
    """
    cfg = load_config(config_path)
    configure_logging(cfg.log_level)
    return cfg
