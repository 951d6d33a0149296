from __future__ import annotations

from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from api_evaluator.errors import ConfigValidationError


_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


@dataclass
class EvaluatorConfig:
    timeout_seconds: float = 10.0
    retry_count: int = 2
    retry_delay_seconds: float = 1.0
    max_body_chars: int = 10000
    store_dir: str = ".evaluations"
    log_level: str = "INFO"
    log_file: Optional[str] = None
    user_agent: str = "REST-API-Evaluator/1.0"
    optional_field_probability: float = 0.7
    max_schema_depth: int = 5


def load_config(path: str | Path | None = None) -> EvaluatorConfig:
    if path is None:
        return EvaluatorConfig()

    config_path = Path(path)
    if not config_path.exists():
        raise ConfigValidationError(f"Config file not found: {config_path}")

    try:
        raw = yaml.safe_load(config_path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise ConfigValidationError(f"Config file is not valid YAML: {exc}") from exc

    if raw is None:
        return EvaluatorConfig()
    if not isinstance(raw, dict):
        raise ConfigValidationError("Config root must be a YAML mapping")

    return parse_config(raw)


def parse_config(raw: Dict[str, Any]) -> EvaluatorConfig:
    known = {f.name for f in fields(EvaluatorConfig)}
    unknown = sorted(set(raw) - known)
    if unknown:
        raise ConfigValidationError(f"Unknown config keys: {', '.join(unknown)}")

    config = EvaluatorConfig()

    if "timeout_seconds" in raw:
        config.timeout_seconds = _positive_number(raw, "timeout_seconds")
    if "retry_count" in raw:
        retry_count = raw["retry_count"]
        if not isinstance(retry_count, int) or isinstance(retry_count, bool) or retry_count < 0:
            raise ConfigValidationError("`retry_count` must be a non-negative integer")
        config.retry_count = retry_count
    if "retry_delay_seconds" in raw:
        delay = raw["retry_delay_seconds"]
        if not isinstance(delay, (int, float)) or isinstance(delay, bool) or delay < 0:
            raise ConfigValidationError("`retry_delay_seconds` must be a non-negative number")
        config.retry_delay_seconds = float(delay)
    if "max_body_chars" in raw:
        config.max_body_chars = int(_positive_number(raw, "max_body_chars"))
    if "store_dir" in raw:
        config.store_dir = _non_empty_string(raw, "store_dir")
    if "log_level" in raw:
        level = _non_empty_string(raw, "log_level").upper()
        if level not in _LOG_LEVELS:
            raise ConfigValidationError(
                f"`log_level` must be one of: {', '.join(sorted(_LOG_LEVELS))}"
            )
        config.log_level = level
    if "log_file" in raw:
        config.log_file = None if raw["log_file"] is None else _non_empty_string(raw, "log_file")
    if "user_agent" in raw:
        config.user_agent = _non_empty_string(raw, "user_agent")
    if "optional_field_probability" in raw:
        probability = raw["optional_field_probability"]
        if not isinstance(probability, (int, float)) or not 0 <= probability <= 1:
            raise ConfigValidationError("`optional_field_probability` must be between 0 and 1")
        config.optional_field_probability = float(probability)
    if "max_schema_depth" in raw:
        config.max_schema_depth = int(_positive_number(raw, "max_schema_depth"))

    return config


def _positive_number(raw: Dict[str, Any], key: str) -> float:
    value = raw[key]
    if not isinstance(value, (int, float)) or isinstance(value, bool) or value <= 0:
        raise ConfigValidationError(f"`{key}` must be a positive number")
    return float(value)


def _non_empty_string(raw: Dict[str, Any], key: str) -> str:
    value = raw[key]
    if not isinstance(value, str) or not value.strip():
        raise ConfigValidationError(f"`{key}` must be a non-empty string")
    return value
