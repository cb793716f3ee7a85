"""
conftest.py – shared pytest bootstrap and fixtures.

Pytest imports this module before collecting any test file, which lets us:
  1) Put the project root on `sys.path` so imports like `from core ...` and `from shared ...`
     resolve without an editable install.
  2) Set safe environment defaults before `config` is imported: no log file sink, no
     system-wide INI overlay, and a dummy API key so settings validation stays quiet.
  3) Provide a `make_settings` factory that builds small, fully in-memory Settings values,
     so unit tests never depend on config.json or the machine's /etc.
"""

import os
import sys
from pathlib import Path

import pytest

# Ensure project root is on sys.path for direct imports like `core`, `shared`, etc.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

# Provide required environment defaults for tests
os.environ.setdefault("LOG_FILE_PATH", "")
os.environ.setdefault("FAZAI_CONF", str(PROJECT_ROOT / "tests" / "missing-fazai.conf"))
os.environ.setdefault("OPENROUTER_API_KEY", "test-key")

from config.settings import (  # noqa: E402  (import after environment setup)
    AISettings,
    ArchitectSettings,
    FallbackSettings,
    PromptSettings,
    ProviderConfig,
    Settings,
)


def build_test_settings(ai=None, architect=None, fallback=None, prompts=None) -> Settings:
    providers = {
        "openrouter": ProviderConfig(
            name="openrouter",
            endpoint="https://openrouter.test/api/v1",
            api_key="or-key",
            default_model="test/model",
        ),
        "deepseek": ProviderConfig(
            name="deepseek",
            endpoint="https://deepseek.test/v1",
            api_key="ds-key",
            default_model="deepseek/deepseek-chat",
        ),
    }
    ai_values = {"default_provider": "openrouter", "max_retries": 2, "retry_delay": 0.0, "providers": providers}
    ai_values.update(ai or {})
    fallback_values = {"helper_path": None, "provider": "deepseek"}
    fallback_values.update(fallback or {})
    return Settings(
        ai=AISettings(**ai_values),
        architect=ArchitectSettings(**(architect or {})),
        fallback=FallbackSettings(**fallback_values),
        prompts=PromptSettings(**(prompts or {})),
    )


@pytest.fixture
def make_settings():
    """Factory fixture: `make_settings(ai={...}, architect={...}, fallback={...})`."""
    return build_test_settings
