"""
Tests for the configuration layer (`config/__init__.py`, `config/settings.py`).

Covers building Settings from a raw mapping, environment overrides, the INI overlay, prompt file
loading, validation of the default provider, and the snapshot semantics of SettingsHandle.
"""

import logging

import pytest

from config import apply_ini_overrides, build_settings, get_config_value, load_prompts
from config.settings import PromptSettings, SettingsHandle
from shared.utils import fill_prompt


def raw_config():
    return {
        "ai": {
            "default_provider": "openrouter",
            "max_retries": 3,
            "retry_delay": 2,
            "providers": {
                "openrouter": {
                    "endpoint": "https://openrouter.test/api/v1",
                    "default_model": "test/model",
                    "api_key": "or-key",
                    "headers": {"X-Title": "FazAI"},
                },
                "openai": {
                    "endpoint": "https://openai.test/v1",
                    "default_model": "gpt-test",
                    "temperature": 0.4,
                },
            },
        },
        "architect": {"script_path": "/opt/fazai/lib/genaiscript.js", "timeout_s": 30},
        "extensions": [{"name": "mod", "path": "/opt/fazai/mods/mod.so"}],
        "cors": {"allow_origins": ["http://localhost"]},
    }


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for var in ("DEFAULT_PROVIDER", "ENABLE_FALLBACK", "MAX_RETRIES", "RETRY_DELAY",
                "CONTINUE_ON_ERROR", "ENABLE_ARCHITECTING"):
        monkeypatch.delenv(var, raising=False)


def test_build_settings_from_raw():
    settings = build_settings(raw_config())

    assert settings.ai.default_provider == "openrouter"
    assert settings.ai.retry_delay == 2.0
    assert settings.provider("openrouter").extra_headers == {"X-Title": "FazAI"}
    assert settings.provider("openai").temperature == 0.4
    assert settings.provider("missing") is None
    assert settings.architect.timeout_s == 30
    assert settings.extensions[0].name == "mod"
    assert settings.cors_allow_origins == ("http://localhost",)


def test_settings_are_immutable():
    settings = build_settings(raw_config())
    with pytest.raises(Exception):
        settings.ai.max_retries = 10


def test_unknown_default_provider_is_rejected():
    raw = raw_config()
    raw["ai"]["default_provider"] = "nope"
    with pytest.raises(ValueError, match="nope"):
        build_settings(raw)


def test_environment_overrides_file_values(monkeypatch):
    monkeypatch.setenv("DEFAULT_PROVIDER", "openai")
    monkeypatch.setenv("ENABLE_FALLBACK", "false")
    monkeypatch.setenv("MAX_RETRIES", "5")
    monkeypatch.setenv("CONTINUE_ON_ERROR", "false")

    settings = build_settings(raw_config())

    assert settings.ai.default_provider == "openai"
    assert settings.ai.enable_fallback is False
    assert settings.ai.max_retries == 5
    assert settings.ai.continue_on_error is False


def test_get_config_value_priority(monkeypatch):
    raw = {"a": {"b": 7}}
    assert get_config_value(raw, ["a", "b"], "FAZAI_TEST_B", 1) == 7
    assert get_config_value(raw, ["a", "missing"], "FAZAI_TEST_B", 1) == 1
    monkeypatch.setenv("FAZAI_TEST_B", "9")
    assert get_config_value(raw, ["a", "b"], "FAZAI_TEST_B", 1) == 9
    monkeypatch.setenv("FAZAI_TEST_B", "not-a-number")
    assert get_config_value(raw, ["a", "b"], "FAZAI_TEST_B", 1) == 7


def test_ini_overlay(tmp_path):
    ini = tmp_path / "fazai.conf"
    ini.write_text(
        "# daemon config\n"
        "[ai_provider]\n"
        "provider = openai\n"
        "enable_fallback = false\n"
        "max_retries = 4\n"
        "retry_delay = 1.5\n"
        "\n"
        "[openai]\n"
        "default_model = gpt-from-ini\n"
        "unknown_key = ignored\n"
    )

    raw = apply_ini_overrides(raw_config(), str(ini))
    settings = build_settings(raw)

    assert settings.ai.default_provider == "openai"
    assert settings.ai.enable_fallback is False
    assert settings.ai.max_retries == 4
    assert settings.ai.retry_delay == 1.5
    assert settings.provider("openai").default_model == "gpt-from-ini"
    assert "unknown_key" not in raw["ai"]["providers"]["openai"]


def test_missing_ini_is_a_no_op(tmp_path):
    raw = raw_config()
    assert apply_ini_overrides(raw, str(tmp_path / "absent.conf")) == raw_config()


def test_load_prompts_keeps_defaults_for_missing_files(tmp_path):
    (tmp_path / "system_prompt.txt").write_text("  custom system  \n")
    prompts = load_prompts(tmp_path)
    assert prompts.system == "custom system"
    assert prompts.mcps == PromptSettings().mcps


def test_shipped_prompts_take_the_command():
    prompts = load_prompts()
    for template in (prompts.architect, prompts.architect_fallback):
        assert "instale o nginx" in fill_prompt(template, "instale o nginx")


def test_prompt_without_placeholder_is_reported(tmp_path, caplog):
    (tmp_path / "architect_prompt.txt").write_text("Plan something")
    with caplog.at_level(logging.WARNING, logger="config"):
        load_prompts(tmp_path)
    assert "architect has no {command} placeholder" in caplog.text


def test_settings_handle_swaps_whole_snapshot():
    first = build_settings(raw_config())
    raw = raw_config()
    raw["ai"]["default_provider"] = "openai"
    second = build_settings(raw)

    handle = SettingsHandle(first)
    snapshot = handle.current()
    previous = handle.swap(second)

    assert previous is first
    assert handle.current() is second
    # A reader holding the old snapshot keeps a consistent view
    assert snapshot.ai.default_provider == "openrouter"
    assert snapshot.provider("openrouter").api_key == "or-key"
