"""
core/architect.py

Turns complex operator requests into multi-step execution plans.

Backends are tried in priority order:
1. The architecting script (run by its interpreter, e.g. `node genaiscript.js "<prompt>"`),
   time-boxed and expected to print an ArchitecturePlan JSON object.
2. The in-process helper with the secondary architect prompt. A valid JSON plan becomes a
   structured plan, JSON of any other shape is a failure, and non-JSON text becomes a
   free-text plan (one step per line).
3. If both fail, a one-step degraded plan that tells the operator to intervene manually.

The architect never raises and never returns None: callers always get a usable plan
plus a success flag.
"""

import json
import logging
import os
from dataclasses import dataclass
from typing import Any, Optional

from pydantic import ValidationError

from config.settings import Settings
from core.runner import CommandRunner
from llm_cloud.fallback import InterpretationFallback, is_executable_file
from monitoring.metrics import ARCHITECT_BACKEND_RESULTS, ARCHITECTING_TIME, track_latency
from shared.errors import (
    ArchitectingError,
    ArchitectingErrorKind,
    CommandTimeoutError,
    ExecutionError,
)
from shared.models import ArchitecturePlan, Complexity, FreeTextPlan, Plan, PlanStep, StructuredPlan
from shared.utils import fill_prompt, parse_json_output, truncate_message_for_logging

logger = logging.getLogger(__name__)

MANUAL_INTERVENTION_COMMAND = 'echo "Architecting failed. Run the command manually."'


@dataclass(frozen=True)
class ArchitectingOutcome:
    plan: Plan
    success: bool
    method: str
    error: Optional[str] = None


def parse_plan(text: str) -> ArchitecturePlan:
    """
    Parse backend output into an ArchitecturePlan.

    Raises:
        ArchitectingError: MALFORMED_OUTPUT if the text is not a JSON object of the expected shape.
    """
    try:
        data = parse_json_output(text)
    except json.JSONDecodeError as exc:
        raise ArchitectingError(ArchitectingErrorKind.MALFORMED_OUTPUT, f"Invalid JSON: {exc}") from exc
    return validate_plan(data)


def validate_plan(data: Any) -> ArchitecturePlan:
    """Validate already-decoded JSON against the ArchitecturePlan schema."""
    if not isinstance(data, dict):
        raise ArchitectingError(
            ArchitectingErrorKind.MALFORMED_OUTPUT, f"Expected a JSON object, got {type(data).__name__}"
        )
    try:
        return ArchitecturePlan.model_validate(data)
    except (ValidationError, ValueError) as exc:
        raise ArchitectingError(ArchitectingErrorKind.MALFORMED_OUTPUT, f"Invalid plan: {exc}") from exc


def degraded_plan(error: str) -> StructuredPlan:
    """Single-step plan reporting the failure and asking for manual intervention."""
    return StructuredPlan(plan=ArchitecturePlan(
        steps=[PlanStep(
            description=f"Architecting failed: {error}",
            command=MANUAL_INTERVENTION_COMMAND,
            critical=False,
        )],
        complexity=Complexity.HIGH,
        error=error,
    ))


class PlanArchitect:
    """
    Produces an execution plan for a complex request.

    Args:
        settings (Settings): Snapshot with architect script settings and prompts.
        runner (CommandRunner): Spawns the architecting script.
        fallback (InterpretationFallback): Provides the in-process helper backend.
    """

    def __init__(self, settings: Settings, runner: CommandRunner, fallback: InterpretationFallback):
        self.settings = settings
        self.runner = runner
        self.fallback = fallback

    @track_latency(ARCHITECTING_TIME)
    async def architect(self, request: str) -> ArchitectingOutcome:
        logger.info("Starting architecting for complex command: %s", truncate_message_for_logging(request))

        try:
            plan = await self._run_script_backend(request)
            ARCHITECT_BACKEND_RESULTS.labels(backend="script", outcome="success").inc()
            logger.info("Architecture plan created via script backend")
            return ArchitectingOutcome(plan=StructuredPlan(plan=plan), success=True, method="script")
        except ArchitectingError as exc:
            ARCHITECT_BACKEND_RESULTS.labels(backend="script", outcome=exc.kind.value).inc()
            logger.warning("Script backend failed (%s): %s", exc.kind.value, exc)

        try:
            outcome = await self._run_helper_backend(request)
            ARCHITECT_BACKEND_RESULTS.labels(backend="helper", outcome="success").inc()
            return outcome
        except ArchitectingError as exc:
            ARCHITECT_BACKEND_RESULTS.labels(backend="helper", outcome=exc.kind.value).inc()
            logger.error("Helper backend failed (%s): %s", exc.kind.value, exc)
            return ArchitectingOutcome(plan=degraded_plan(str(exc)), success=False, method="error", error=str(exc))

    async def _run_script_backend(self, request: str) -> ArchitecturePlan:
        script = self.settings.architect
        if not self._script_available():
            raise ArchitectingError(
                ArchitectingErrorKind.BACKEND_UNAVAILABLE, f"Architect script not found: {script.script_path}"
            )

        prompt = fill_prompt(self.settings.prompts.architect, request)
        argv = [script.interpreter, script.script_path, prompt] if script.interpreter else [script.script_path, prompt]
        try:
            output = await self.runner.run_program(argv, timeout=script.timeout_s)
        except CommandTimeoutError as exc:
            raise ArchitectingError(ArchitectingErrorKind.TIMEOUT, str(exc)) from exc
        except ExecutionError as exc:
            raise ArchitectingError(ArchitectingErrorKind.BACKEND_UNAVAILABLE, str(exc)) from exc

        return parse_plan(output.stdout)

    async def _run_helper_backend(self, request: str) -> ArchitectingOutcome:
        prompt = fill_prompt(self.settings.prompts.architect_fallback, request)
        result = await self.fallback.helper_completion(prompt)
        if not result.success:
            raise ArchitectingError(ArchitectingErrorKind.BACKEND_UNAVAILABLE, result.error or "helper failed")

        try:
            data = parse_json_output(result.content)
        except json.JSONDecodeError as exc:
            logger.info("Helper output is not JSON (%s); using it as a free-text plan", exc)
            text_plan = FreeTextPlan.from_text(result.content)
            if not text_plan.lines:
                raise ArchitectingError(ArchitectingErrorKind.MALFORMED_OUTPUT, "Helper returned an empty plan")
            return ArchitectingOutcome(plan=text_plan, success=True, method="helper_text")

        # JSON of the wrong shape is a failed plan, never a line-per-step script
        plan = validate_plan(data)
        logger.info("Architecture plan created via helper backend")
        return ArchitectingOutcome(plan=StructuredPlan(plan=plan), success=True, method="helper")

    def _script_available(self) -> bool:
        script = self.settings.architect
        if script.interpreter:
            return bool(script.script_path) and os.path.isfile(script.script_path)
        return is_executable_file(script.script_path)
