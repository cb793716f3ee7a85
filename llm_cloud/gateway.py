"""
llm_cloud/gateway.py

Unified chat-completion client over every configured AI backend.

The gateway looks providers up in the settings snapshot it was built with, resolves
credentials, formats a system + user chat payload and retries transient failures a
bounded number of times. All failures surface as `ProviderError`; choosing a fallback
is the caller's job.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Callable, List, Optional

import openai

from config.settings import ProviderConfig, Settings
from monitoring.metrics import LLM_REQUEST_TIME, track_errors
from shared.errors import ProviderError, ProviderErrorKind
from shared.utils import split_lines, truncate_message_for_logging
from .provider import get_client, require_api_key

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProviderReply:
    text: str
    provider: str
    model: str
    success: bool = True


class ProviderGateway:
    """
    Sends chat completions to named providers with a bounded retry loop.

    Args:
        settings (Settings): Snapshot holding the provider registry and retry policy.
        client_factory (Callable): Builds an SDK client from (provider, api_key, timeout).
            Defaults to `llm_cloud.provider.get_client`; tests inject fakes here.
    """

    def __init__(self, settings: Settings, client_factory: Optional[Callable] = None):
        self.settings = settings
        self.client_factory = client_factory or get_client

    @property
    def default_provider(self) -> str:
        return self.settings.ai.default_provider

    def _lookup(self, provider_name: str) -> ProviderConfig:
        provider = self.settings.provider(provider_name)
        if provider is None:
            raise ProviderError(ProviderErrorKind.UNKNOWN_PROVIDER, f"Unknown provider: {provider_name}")
        return provider

    async def query(self, provider_name: str, request: str) -> ProviderReply:
        """Interpret an operator request with the automation-assistant preamble."""
        logger.info("Querying AI to interpret: %s", truncate_message_for_logging(request))
        return await self.complete(provider_name, self.settings.prompts.system, request)

    async def query_steps(self, provider_name: str, text: str) -> List[str]:
        """Expand an interpreted command into shell steps, one per non-empty line."""
        reply = await self.complete(provider_name, self.settings.prompts.mcps, text)
        steps = split_lines(reply.text)
        logger.info("Received %d step(s) from %s", len(steps), provider_name)
        return steps

    @track_errors('provider', 'gateway')
    async def complete(
        self,
        provider_name: str,
        system_prompt: str,
        user_content: str,
        model: Optional[str] = None,
    ) -> ProviderReply:
        """
        Run one chat completion, retrying transient failures.

        `max_retries` is the total number of attempts (at least one) with `retry_delay`
        seconds between attempts. Unknown providers and missing credentials fail at once.

        Args:
            provider_name (str): Key in the provider registry.
            system_prompt (str): System role content.
            user_content (str): User role content.
            model (Optional[str]): Overrides the provider's default model.

        Returns:
            ProviderReply: Completion text plus provider/model used.

        Raises:
            ProviderError: Any failure once retries are exhausted.
        """
        provider = self._lookup(provider_name)
        _, api_key = require_api_key(provider)
        client = self.client_factory(provider, api_key, self.settings.ai.request_timeout)
        model = model or provider.default_model
        messages = [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_content},
        ]

        attempts = max(1, self.settings.ai.max_retries)
        last_error: Optional[ProviderError] = None
        try:
            for attempt in range(1, attempts + 1):
                try:
                    text = await self._create_completion(client, provider, model, messages)
                    logger.info("Response received from %s (model: %s)", provider.name, model)
                    return ProviderReply(text=text, provider=provider.name, model=model)
                except ProviderError as exc:
                    last_error = exc
                    logger.warning(
                        "Request to %s failed (attempt %d/%d): %s", provider.name, attempt, attempts, exc
                    )
                    if not exc.retryable or attempt == attempts:
                        break
                    await asyncio.sleep(self.settings.ai.retry_delay)
        finally:
            # Release the client's connection pool
            await client.close()

        raise last_error

    async def _create_completion(self, client, provider: ProviderConfig, model: str, messages) -> str:
        start_time = time.time()
        try:
            response = await client.chat.completions.create(
                model=model,
                messages=messages,
                temperature=provider.temperature,
                max_tokens=provider.max_tokens,
            )
        except openai.APIConnectionError as exc:
            # Also covers APITimeoutError
            raise ProviderError(ProviderErrorKind.NETWORK, f"Network error calling {provider.name}: {exc}") from exc
        except openai.APIStatusError as exc:
            body = exc.body if exc.body is not None else getattr(exc.response, "text", None)
            logger.error("Error response details from %s: %s", provider.name, body)
            raise ProviderError(
                ProviderErrorKind.UPSTREAM,
                f"{provider.name} API returned HTTP {exc.status_code}",
                status_code=exc.status_code,
                body=body,
            ) from exc
        finally:
            LLM_REQUEST_TIME.labels(provider=provider.name).observe(time.time() - start_time)

        try:
            content = response.choices[0].message.content
        except (AttributeError, IndexError, TypeError) as exc:
            raise ProviderError(ProviderErrorKind.UPSTREAM, f"Malformed completion from {provider.name}") from exc
        if not content or not content.strip():
            raise ProviderError(ProviderErrorKind.UPSTREAM, f"Empty completion from {provider.name}")
        return content.strip()
