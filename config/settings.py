"""
config/settings.py

Typed, immutable runtime settings for the daemon.

The loader in `config/__init__.py` turns config.json, the optional INI overlay and
environment overrides into one `Settings` value. Components receive that value in
their constructors and never reach back into a global dictionary, so a request
that started with one snapshot keeps seeing it even if a reload happens midway.
"""

import logging
import os
from typing import Dict, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)


DEFAULT_SYSTEM_PROMPT = (
    "You are FazAI, an assistant for Linux server automation. "
    "Interpret the command and provide instructions for executing it."
)
DEFAULT_MCPS_PROMPT = (
    "Generate the list of shell commands, one per line, needed to carry out the task."
)


class FrozenModel(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")


class ProviderConfig(FrozenModel):
    """
    Connection settings for one OpenAI-compatible AI backend.

    `extra_headers` is read from the `headers` key in config files and is sent with
    every request (OpenRouter, for example, wants HTTP-Referer and X-Title).
    """
    name: str
    endpoint: str
    api_key: str = ""
    default_model: str
    temperature: float = 0.3
    max_tokens: int = 2000
    extra_headers: Dict[str, str] = Field(default_factory=dict, alias="headers")

    @property
    def api_key_env_var(self) -> str:
        return f"{self.name.upper()}_API_KEY"

    def resolve_api_key(self) -> Optional[str]:
        """Return the configured key, falling back to <NAME>_API_KEY from the environment."""
        return self.api_key or os.getenv(self.api_key_env_var) or None


class AISettings(FrozenModel):
    default_provider: str = "openrouter"
    enable_fallback: bool = True
    max_retries: int = 3
    retry_delay: float = 2.0
    continue_on_error: bool = True
    enable_architecting: bool = True
    request_timeout: float = 60.0
    providers: Dict[str, ProviderConfig] = Field(default_factory=dict)


class ArchitectSettings(FrozenModel):
    script_path: Optional[str] = None
    interpreter: str = "node"
    timeout_s: float = 30.0


class FallbackSettings(FrozenModel):
    helper_path: Optional[str] = None
    provider: Optional[str] = None
    model: Optional[str] = None
    timeout_s: float = 30.0


class ExtensionDescriptor(FrozenModel):
    name: str
    path: str


class PromptSettings(FrozenModel):
    system: str = DEFAULT_SYSTEM_PROMPT
    architect: str = "Create a JSON execution plan for this command:\n{command}"
    architect_fallback: str = "Create a JSON execution plan for this command:\n{command}"
    mcps: str = DEFAULT_MCPS_PROMPT


class LoggingSettings(FrozenModel):
    level: str = "INFO"
    file_path: str = "logs/fazai.log"
    max_bytes: int = 5 * 1024 * 1024
    backup_count: int = 3
    date_format: str = "%Y-%m-%d %H:%M:%S"


class ServerSettings(FrozenModel):
    host: str = "0.0.0.0"
    port: int = 3120


class Settings(FrozenModel):
    ai: AISettings = Field(default_factory=AISettings)
    architect: ArchitectSettings = Field(default_factory=ArchitectSettings)
    fallback: FallbackSettings = Field(default_factory=FallbackSettings)
    extensions: Tuple[ExtensionDescriptor, ...] = ()
    prompts: PromptSettings = Field(default_factory=PromptSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    server: ServerSettings = Field(default_factory=ServerSettings)
    cors_allow_origins: Tuple[str, ...] = ("*",)

    def provider(self, name: str) -> Optional[ProviderConfig]:
        return self.ai.providers.get(name)

    def validate_providers(self) -> None:
        """
        Check the provider registry is usable.

        Raises:
            ValueError: If the default provider is not registered.
        """
        if self.ai.default_provider not in self.ai.providers:
            raise ValueError(
                f"Default provider '{self.ai.default_provider}' is not configured. "
                f"Known providers: {', '.join(sorted(self.ai.providers)) or 'none'}"
            )
        if not any(p.resolve_api_key() for p in self.ai.providers.values()):
            logger.warning(
                "No AI provider has an API key. Set one of: %s",
                ", ".join(p.api_key_env_var for p in self.ai.providers.values()),
            )


class SettingsHandle:
    """
    Process-wide holder of the current `Settings`.

    Readers call `current()` once per request and keep that snapshot; `swap()` replaces
    the whole value in a single reference assignment, so no reader ever sees a mix of
    old and new providers.
    """

    def __init__(self, settings: Settings):
        self._settings = settings

    def current(self) -> Settings:
        return self._settings

    def swap(self, settings: Settings) -> Settings:
        previous = self._settings
        self._settings = settings
        logger.info(
            "Settings swapped: %d provider(s), default=%s",
            len(settings.ai.providers),
            settings.ai.default_provider,
        )
        return previous
