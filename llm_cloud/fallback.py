"""
llm_cloud/fallback.py

Fallback helpers used when the default AI provider cannot interpret a request.

Two stages, tried in order:
1. A standalone helper binary on disk, invoked as `<helper> "<request>"`; its trimmed
   stdout is the interpretation.
2. The in-process helper, which sends the text to the configured helper provider
   (usually a cheaper model on a different backend) through the gateway.

The in-process helper is also PlanArchitect's secondary backend.
"""

import logging
import os
from dataclasses import dataclass
from typing import Optional

from config.settings import Settings
from core.runner import CommandRunner
from shared.errors import ExecutionError, ProviderError
from .gateway import ProviderGateway

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HelperResult:
    success: bool
    content: str = ""
    error: Optional[str] = None


@dataclass(frozen=True)
class FallbackResult:
    interpretation: str
    success: bool
    stage: Optional[str] = None
    error: Optional[str] = None


def is_executable_file(path: Optional[str]) -> bool:
    return bool(path) and os.path.isfile(path) and os.access(path, os.X_OK)


class InterpretationFallback:
    """
    Runs the helper fallback chain for request interpretation.

    Args:
        settings (Settings): Snapshot with `fallback` (helper path, provider, model, timeout).
        gateway (ProviderGateway): Used by the in-process helper.
        runner (CommandRunner): Spawns the helper binary.
    """

    def __init__(self, settings: Settings, gateway: ProviderGateway, runner: CommandRunner):
        self.settings = settings
        self.gateway = gateway
        self.runner = runner

    async def interpret(self, request: str) -> FallbackResult:
        """
        Try each fallback stage in order; the first success wins.

        Returns:
            FallbackResult: success=False with the last error when every stage failed.
        """
        errors = []

        helper_path = self.settings.fallback.helper_path
        if is_executable_file(helper_path):
            logger.info("Trying standalone helper %s", helper_path)
            try:
                output = await self.runner.run_program(
                    [helper_path, request], timeout=self.settings.fallback.timeout_s
                )
                interpretation = output.stdout.strip()
                if interpretation:
                    return FallbackResult(interpretation=interpretation, success=True, stage="helper_binary")
                errors.append("standalone helper produced no output")
            except ExecutionError as exc:
                logger.error("Standalone helper failed: %s", exc)
                errors.append(str(exc))
        else:
            logger.info("Standalone helper not available at %s", helper_path)

        result = await self.helper_completion(request)
        if result.success:
            return FallbackResult(interpretation=result.content, success=True, stage="helper")
        errors.append(result.error or "in-process helper failed")

        return FallbackResult(interpretation="", success=False, error="; ".join(errors))

    async def helper_completion(self, prompt: str, system_prompt: Optional[str] = None) -> HelperResult:
        """
        In-process helper: send `prompt` to the configured helper provider.

        Never raises; failures are reported in the returned HelperResult.
        """
        provider_name = self.settings.fallback.provider
        if not provider_name:
            return HelperResult(success=False, error="No helper provider configured")

        try:
            reply = await self.gateway.complete(
                provider_name,
                system_prompt or self.settings.prompts.system,
                prompt,
                model=self.settings.fallback.model,
            )
        except ProviderError as exc:
            logger.error("In-process helper (%s) failed: %s", provider_name, exc)
            return HelperResult(success=False, error=str(exc))
        return HelperResult(success=True, content=reply.text)
