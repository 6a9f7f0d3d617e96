import json
from pathlib import Path

import pytest

from prompt_judge.config import CONFIG_ENV_VAR, HARD_MAX_BATCH_SIZE, build_config, load_config


def test_build_config_defaults():
    config = build_config()

    assert config.default_model == "gpt-4o"
    assert config.generation_temperature == 0.7
    assert config.qualitative_temperature == 0.3
    assert config.default_batch_size == 5
    assert config.max_batch_size == HARD_MAX_BATCH_SIZE
    assert config.max_iterations == 50
    assert config.retry.max_retries == 3
    assert config.retry.base_delay_seconds == 1.0
    assert config.retry.max_jitter_seconds == 1.0
    assert config.inter_batch_delay_seconds == 0.5
    assert config.openai_base_url is None


def test_build_config_merges_partial_retry_section():
    config = build_config({"retry": {"max_retries": 5}, "default_model": " gpt-4.1 "})

    assert config.retry.max_retries == 5
    assert config.retry.base_delay_seconds == 1.0
    assert config.default_model == "gpt-4.1"


@pytest.mark.parametrize(
    "user_config,message",
    [
        ({"batch_size": 3}, "Unknown config field"),
        ({"retry": {"attempts": 2}}, "Unknown retry config field"),
        ({"retry": 3}, "must be an object"),
        ({"max_batch_size": HARD_MAX_BATCH_SIZE + 1}, "max_batch_size"),
        ({"max_batch_size": 0}, "max_batch_size"),
        ({"default_batch_size": 8, "max_batch_size": 4}, "default_batch_size"),
        ({"max_iterations": 0}, "max_iterations"),
        ({"retry": {"max_retries": -1}}, "max_retries"),
        ({"inter_batch_delay_seconds": -0.1}, "inter_batch_delay_seconds"),
        ({"default_model": "  "}, "non-empty"),
    ],
)
def test_build_config_rejects_invalid_values(user_config, message):
    with pytest.raises(ValueError, match=message):
        build_config(user_config)


def test_load_config_reads_yaml(tmp_path: Path):
    config_path = tmp_path / "judge.yaml"
    config_path.write_text(
        "default_model: gpt-4o-mini\ninter_batch_delay_seconds: 0\nretry:\n  max_jitter_seconds: 0.25\n",
        encoding="utf-8",
    )

    config = load_config(config_path)

    assert config.default_model == "gpt-4o-mini"
    assert config.inter_batch_delay_seconds == 0
    assert config.retry.max_jitter_seconds == 0.25


def test_load_config_reads_json(tmp_path: Path):
    config_path = tmp_path / "judge.json"
    config_path.write_text(json.dumps({"max_iterations": 20}), encoding="utf-8")

    assert load_config(config_path).max_iterations == 20


def test_load_config_rejects_unknown_format(tmp_path: Path):
    config_path = tmp_path / "judge.toml"
    config_path.write_text("max_iterations = 20\n", encoding="utf-8")

    with pytest.raises(ValueError, match="Unsupported config format"):
        load_config(config_path)


def test_load_config_empty_file_uses_defaults(tmp_path: Path):
    config_path = tmp_path / "judge.yaml"
    config_path.write_text("", encoding="utf-8")

    assert load_config(config_path) == build_config()


def test_load_config_uses_environment_variable(tmp_path: Path, monkeypatch):
    config_path = tmp_path / "judge.yaml"
    config_path.write_text("qualitative_model: gpt-4.1\n", encoding="utf-8")
    monkeypatch.setenv(CONFIG_ENV_VAR, str(config_path))

    assert load_config().qualitative_model == "gpt-4.1"


def test_load_config_without_path_or_environment(monkeypatch):
    monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)
    assert load_config() == build_config()
