import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml


CONFIG_ENV_VAR = "PROMPT_JUDGE_CONFIG"
# Upper bound on concurrent model calls per batch, whatever the config says.
HARD_MAX_BATCH_SIZE = 10


@dataclass(frozen=True)
class RetryPolicy:
    max_retries: int
    base_delay_seconds: float
    max_jitter_seconds: float


@dataclass(frozen=True)
class JudgeConfig:
    default_model: str
    generation_temperature: float
    qualitative_model: str
    qualitative_temperature: float
    default_batch_size: int
    max_batch_size: int
    max_iterations: int
    retry: RetryPolicy
    inter_batch_delay_seconds: float
    request_timeout_seconds: float
    openai_base_url: str | None


DEFAULT_CONFIG = {
    "default_model": "gpt-4o",
    "generation_temperature": 0.7,
    "qualitative_model": "gpt-4o",
    "qualitative_temperature": 0.3,
    "default_batch_size": 5,
    "max_batch_size": HARD_MAX_BATCH_SIZE,
    "max_iterations": 50,
    "retry": {
        "max_retries": 3,
        "base_delay_seconds": 1.0,
        "max_jitter_seconds": 1.0,
    },
    "inter_batch_delay_seconds": 0.5,
    "request_timeout_seconds": 120.0,
    "openai_base_url": None,
}


def _load_dict_from_file(config_path: Path) -> dict[str, Any]:
    suffix = config_path.suffix.lower()
    raw_text = config_path.read_text(encoding="utf-8")

    if suffix in {".yaml", ".yml"}:
        loaded = yaml.safe_load(raw_text)
    elif suffix == ".json":
        loaded = json.loads(raw_text)
    else:
        raise ValueError(f"Unsupported config format: {config_path}")

    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise ValueError("Config file must contain a JSON/YAML object.")
    return loaded


def _merge_config(user_config: dict[str, Any]) -> dict[str, Any]:
    unknown_fields = sorted(set(user_config) - set(DEFAULT_CONFIG))
    if unknown_fields:
        raise ValueError("Unknown config field(s): " + ", ".join(unknown_fields))

    merged = dict(DEFAULT_CONFIG)
    for key, value in user_config.items():
        if key == "retry":
            if not isinstance(value, dict):
                raise ValueError("Config field 'retry' must be an object.")
            unknown_retry_fields = sorted(set(value) - set(DEFAULT_CONFIG["retry"]))
            if unknown_retry_fields:
                raise ValueError("Unknown retry config field(s): " + ", ".join(unknown_retry_fields))
            retry_section = dict(DEFAULT_CONFIG["retry"])
            retry_section.update(value)
            merged[key] = retry_section
        else:
            merged[key] = value
    return merged


def build_config(user_config: dict[str, Any] | None = None) -> JudgeConfig:
    merged = _merge_config(user_config or {})

    default_model = str(merged["default_model"]).strip()
    qualitative_model = str(merged["qualitative_model"]).strip()
    if not default_model or not qualitative_model:
        raise ValueError("default_model and qualitative_model must be non-empty.")

    retry = RetryPolicy(
        max_retries=int(merged["retry"]["max_retries"]),
        base_delay_seconds=float(merged["retry"]["base_delay_seconds"]),
        max_jitter_seconds=float(merged["retry"]["max_jitter_seconds"]),
    )
    if retry.max_retries < 0:
        raise ValueError("retry.max_retries must be >= 0.")
    if retry.base_delay_seconds < 0 or retry.max_jitter_seconds < 0:
        raise ValueError("retry delays must be >= 0.")

    max_batch_size = int(merged["max_batch_size"])
    if not 1 <= max_batch_size <= HARD_MAX_BATCH_SIZE:
        raise ValueError(f"max_batch_size must be between 1 and {HARD_MAX_BATCH_SIZE}.")

    default_batch_size = int(merged["default_batch_size"])
    if not 1 <= default_batch_size <= max_batch_size:
        raise ValueError("default_batch_size must be between 1 and max_batch_size.")

    max_iterations = int(merged["max_iterations"])
    if max_iterations <= 0:
        raise ValueError("max_iterations must be > 0.")

    inter_batch_delay_seconds = float(merged["inter_batch_delay_seconds"])
    if inter_batch_delay_seconds < 0:
        raise ValueError("inter_batch_delay_seconds must be >= 0.")

    request_timeout_seconds = float(merged["request_timeout_seconds"])
    if request_timeout_seconds <= 0:
        raise ValueError("request_timeout_seconds must be > 0.")

    openai_base_url = merged.get("openai_base_url")

    return JudgeConfig(
        default_model=default_model,
        generation_temperature=float(merged["generation_temperature"]),
        qualitative_model=qualitative_model,
        qualitative_temperature=float(merged["qualitative_temperature"]),
        default_batch_size=default_batch_size,
        max_batch_size=max_batch_size,
        max_iterations=max_iterations,
        retry=retry,
        inter_batch_delay_seconds=inter_batch_delay_seconds,
        request_timeout_seconds=request_timeout_seconds,
        openai_base_url=str(openai_base_url) if openai_base_url else None,
    )


def load_config(config_path: Path | None = None) -> JudgeConfig:
    """
    Load configuration from `config_path`, falling back to the file named by
    the PROMPT_JUDGE_CONFIG environment variable, then to built-in defaults.
    """

    if config_path is None:
        env_value = os.environ.get(CONFIG_ENV_VAR, "").strip()
        if env_value:
            config_path = Path(env_value)

    if config_path is None:
        return build_config()
    return build_config(_load_dict_from_file(config_path))
