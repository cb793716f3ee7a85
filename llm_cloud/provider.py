"""
provider.py – External LLM client construction for any registered AI backend.
-----------------------------------------------------------------------------
In the overall data-flow this file sits at the infrastructure layer.
It is the single place where OpenAI-compatible SDK clients are built from a
`ProviderConfig` (OpenRouter, OpenAI, Requesty, ... all speak the same API).

Why a *provider* module?
• Keeps third-party SDK initialisation separate from business logic.
• Offers a tiny, easily mockable `get_client()` function instead of a
  global singleton. Tests can monkey-patch this function or inject a fake
  client factory into the gateway without importing heavy objects.
• Credential resolution lives here so the gateway never looks at the environment.

Key resolution never logs secret values, only the source they came from.
"""

import logging
from typing import Tuple

from openai import AsyncOpenAI

from config.settings import ProviderConfig
from shared.errors import ProviderError, ProviderErrorKind

logger = logging.getLogger(__name__)


def require_api_key(provider: ProviderConfig) -> Tuple[str, str]:
    """
    Resolve the API key for a provider from its config entry or the environment.

    Args:
        provider (ProviderConfig): The provider whose key is needed.

    Returns:
        Tuple[str, str]: (source, value) where source is "config" or the env var name.

    Raises:
        ProviderError: MISSING_CREDENTIAL when neither source yields a key.
    """
    if provider.api_key:
        return "config", provider.api_key

    api_key = provider.resolve_api_key()
    if api_key:
        return provider.api_key_env_var, api_key

    raise ProviderError(
        ProviderErrorKind.MISSING_CREDENTIAL,
        f"API key not configured for {provider.name}. Set {provider.api_key_env_var} "
        f"or providers.{provider.name}.api_key",
    )


def get_client(provider: ProviderConfig, api_key: str, timeout: float = 60.0) -> AsyncOpenAI:
    """
    Build an async OpenAI-compatible client for one provider.

    The SDK posts to `{base_url}/chat/completions`, which is exactly the provider's
    `{endpoint}/chat/completions`. SDK retries are disabled because the gateway runs
    its own bounded retry loop with the configured delay.

    Args:
        provider (ProviderConfig): Endpoint, headers and model defaults.
        api_key (str): Resolved bearer token.
        timeout (float): Per-request timeout in seconds.

    Returns:
        AsyncOpenAI: A ready-to-use client.
    """
    logger.info("LLM provider selected: %s | base_url=%s", provider.name, provider.endpoint)
    return AsyncOpenAI(
        base_url=provider.endpoint,
        api_key=api_key,
        default_headers=dict(provider.extra_headers) or None,
        timeout=timeout,
        max_retries=0,
    )
