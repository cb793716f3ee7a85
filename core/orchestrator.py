"""
core/orchestrator.py

Central orchestrator for operator commands.

This module contains the main coordination logic that:
1. Classifies incoming requests (question, complex, simple)
2. Answers questions locally with an echo command
3. Sends complex requests through the architect and the plan executor
4. Interprets simple requests via the default AI provider, falling back to the
   helper chain and finally to a degraded interpretation
5. Optionally expands (MCPS) or executes the interpretation on the host

Every request gets its own id, carried on every log record it produces.
"""

from typing import Optional

from config.logging_config import get_logger
from config.settings import Settings
from llm_cloud.fallback import InterpretationFallback
from llm_cloud.gateway import ProviderGateway
from monitoring.metrics import COMMAND_COUNT
from shared.errors import ExecutionError, ProviderError, friendly_message
from shared.models import ExecutionResult, PlanStep, ResultType
from shared.utils import generate_request_id, truncate_message_for_logging
from .architect import PlanArchitect
from .classifier import CommandClassifier
from .executor import PlanExecutor
from .runner import CommandRunner

DEGRADED_INTERPRETATION = 'echo "Unable to interpret the command via AI."'
ARCHITECTING_FAILED_MESSAGE = "Could not build an execution plan; ran the manual-intervention plan instead."


def quote_for_echo(text: str) -> str:
    """Escape text for use inside a double-quoted shell word."""
    for char in ('\\', '"', '$', '`'):
        text = text.replace(char, '\\' + char)
    return text


class CommandOrchestrator:
    """
    Routes a request to the question, architecting or simple branch.

    Collaborators default to instances built from the settings snapshot; tests pass
    their own. One orchestrator serves one settings snapshot, so a reload that swaps
    the settings never changes a request halfway through.

    Args:
        settings (Settings): Immutable configuration snapshot.
        runner (CommandRunner): Host command execution.
        gateway (ProviderGateway): AI provider access.
        fallback (InterpretationFallback): Helper chain used when the provider fails.
        architect (PlanArchitect): Builds plans for complex requests.
        executor (PlanExecutor): Runs plans.
    """

    def __init__(
        self,
        settings: Settings,
        runner: Optional[CommandRunner] = None,
        gateway: Optional[ProviderGateway] = None,
        fallback: Optional[InterpretationFallback] = None,
        architect: Optional[PlanArchitect] = None,
        executor: Optional[PlanExecutor] = None,
        classifier: Optional[CommandClassifier] = None,
    ):
        self.settings = settings
        self.runner = runner or CommandRunner()
        self.gateway = gateway or ProviderGateway(settings)
        self.fallback = fallback or InterpretationFallback(settings, self.gateway, self.runner)
        self.architect = architect or PlanArchitect(settings, self.runner, self.fallback)
        self.executor = executor or PlanExecutor(self.runner, settings.ai.continue_on_error)
        self.classifier = classifier or CommandClassifier()

    async def process_command(self, request: str, mcps: bool = False, execute: bool = False) -> ExecutionResult:
        """
        Main entry point for command processing.

        Args:
            request (str): Operator request in natural language.
            mcps (bool): Expand the interpretation into shell steps and run each one.
            execute (bool): Run the interpretation itself and return its stdout.

        Returns:
            ExecutionResult: Envelope describing what was done; `success` is False for
            degraded outcomes instead of raising.

        Raises:
            asyncio.CancelledError: The caller cancelled; any running child is killed first.
        """
        logger = get_logger(__name__, request_id=generate_request_id(), component="orchestrator")
        logger.info("Processing command: %s", truncate_message_for_logging(request))

        classification = self.classifier.classify(request)
        logger.info(
            "Command classified",
            extra={'extra_fields': {
                'is_question': classification.is_question,
                'is_complex': classification.is_complex,
                'word_count': classification.word_count,
            }},
        )

        if classification.is_question:
            result = await self._answer_question(request, logger)
        elif classification.is_complex and self.settings.ai.enable_architecting:
            result = await self._architect_and_run(request, logger)
        else:
            result = await self._interpret(request, mcps, execute, logger)

        COMMAND_COUNT.labels(type=result.type.value, success=str(result.success).lower()).inc()
        logger.info("Command processed (type: %s, success: %s)", result.type.value, result.success)
        return result

    async def _answer_question(self, request: str, logger) -> ExecutionResult:
        cleaned = self.classifier.strip_question_markers(request)
        interpretation = f'echo "{quote_for_echo(cleaned)}"'
        try:
            output = await self.runner.run(interpretation)
        except ExecutionError as exc:
            logger.error("Question echo failed: %s", exc)
            return ExecutionResult(
                success=False,
                command=request,
                type=ResultType.QUESTION,
                interpretation=interpretation,
                error=friendly_message(exc),
                details=str(exc),
            )
        return ExecutionResult(
            success=True,
            command=request,
            type=ResultType.QUESTION,
            interpretation=interpretation,
            result=output.stdout,
        )

    async def _architect_and_run(self, request: str, logger) -> ExecutionResult:
        outcome = await self.architect.architect(request)
        logger.info("Architecting finished via %s (success: %s)", outcome.method, outcome.success)

        result = await self.executor.execute(outcome.plan, request)
        update = {'method': outcome.method}
        if not outcome.success:
            update.update(success=False, error=ARCHITECTING_FAILED_MESSAGE, details=outcome.error)
        return result.model_copy(update=update)

    async def _interpret(self, request: str, mcps: bool, execute: bool, logger) -> ExecutionResult:
        provider = self.gateway.default_provider
        try:
            reply = await self.gateway.query(provider, request)
            interpretation, method = reply.text, f"provider:{reply.provider}"
        except ProviderError as exc:
            logger.error("Provider %s failed (%s): %s", provider, exc.kind.value, exc)
            if not self.settings.ai.enable_fallback:
                return self._degraded(request, exc)

            fallback = await self.fallback.interpret(request)
            if not fallback.success:
                logger.error("Fallback chain failed: %s", fallback.error)
                return self._degraded(request, exc, fallback.error)
            logger.info("Interpretation obtained via fallback stage %s", fallback.stage)
            interpretation, method = fallback.interpretation, f"fallback:{fallback.stage}"

        logger.info("Interpretation: %s", truncate_message_for_logging(interpretation))
        if mcps:
            return await self._run_mcps(request, interpretation, method, logger)
        if execute:
            return await self._run_interpretation(request, interpretation, method, logger)
        return ExecutionResult(
            success=True,
            command=request,
            type=ResultType.SIMPLE,
            interpretation=interpretation,
            method=method,
        )

    async def _run_mcps(self, request: str, interpretation: str, method: str, logger) -> ExecutionResult:
        try:
            lines = await self.gateway.query_steps(self.gateway.default_provider, interpretation)
        except ProviderError as exc:
            logger.error("Step expansion failed: %s", exc)
            return ExecutionResult(
                success=False,
                command=request,
                type=ResultType.MCPS,
                interpretation=interpretation,
                method=method,
                error=friendly_message(exc),
                details=str(exc),
            )

        # Each line runs on its own; one failure never skips the rest.
        results = []
        for line in lines:
            results.append(await self.executor.run_step(PlanStep(description=line, command=line)))
        return ExecutionResult(
            success=True,
            command=request,
            type=ResultType.MCPS,
            interpretation=interpretation,
            results=results,
            method=method,
        )

    async def _run_interpretation(self, request: str, interpretation: str, method: str, logger) -> ExecutionResult:
        try:
            output = await self.runner.run(interpretation)
        except ExecutionError as exc:
            logger.error("Interpreted command failed: %s", exc)
            return ExecutionResult(
                success=False,
                command=request,
                type=ResultType.SIMPLE,
                interpretation=interpretation,
                method=method,
                error=friendly_message(exc),
                details=exc.stderr or str(exc),
            )
        return ExecutionResult(
            success=True,
            command=request,
            type=ResultType.SIMPLE,
            interpretation=interpretation,
            result=output.stdout,
            method=method,
        )

    @staticmethod
    def _degraded(request: str, exc: ProviderError, fallback_error: Optional[str] = None) -> ExecutionResult:
        details = str(exc) if not fallback_error else f"{exc}; fallback: {fallback_error}"
        return ExecutionResult(
            success=False,
            command=request,
            type=ResultType.SIMPLE,
            interpretation=DEGRADED_INTERPRETATION,
            method="degraded",
            error=friendly_message(exc),
            details=details,
        )
