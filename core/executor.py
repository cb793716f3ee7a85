"""
core/executor.py

Sequential execution of architecture plans.

Steps run strictly one after another in plan order, because later steps routinely
depend on earlier ones (install, then configure, then restart). A failed step is
recorded and execution continues unless the step is critical or continue-on-error
is disabled, in which case the remaining steps are skipped and left out of the result.
"""

import logging
from typing import List

from core.runner import CommandRunner
from monitoring.metrics import PLAN_EXECUTION_TIME, track_latency
from shared.errors import ExecutionError
from shared.models import (
    ExecutionResult,
    FreeTextPlan,
    Plan,
    PlanStep,
    ResultType,
    StepResult,
    StructuredPlan,
)

logger = logging.getLogger(__name__)

INTERACTION_REQUIRED_MESSAGE = "This command needs additional information. Use the interactive interface."


class PlanExecutor:
    """
    Runs a plan's steps through the CommandRunner.

    Args:
        runner (CommandRunner): Executes each step's shell command.
        continue_on_error (bool): Keep going after a failed non-critical step.
    """

    def __init__(self, runner: CommandRunner, continue_on_error: bool = True):
        self.runner = runner
        self.continue_on_error = continue_on_error

    @track_latency(PLAN_EXECUTION_TIME)
    async def execute(self, plan: Plan, original_request: str) -> ExecutionResult:
        """
        Execute a plan, or hand it back for operator input when it needs credentials.

        Args:
            plan (Plan): Structured or free-text plan from the architect.
            original_request (str): The operator's request, echoed in the envelope.

        Returns:
            ExecutionResult: `interactive` when the plan requires information first,
            otherwise `architected` with one StepResult per attempted step.
        """
        if isinstance(plan, StructuredPlan) and plan.plan.requires_interaction:
            logger.info("Plan requires operator input before execution: %s", plan.plan.required_info)
            return ExecutionResult(
                success=True,
                command=original_request,
                type=ResultType.INTERACTIVE,
                interpretation=original_request,
                plan=plan,
                requires_interaction=True,
                required_info=list(plan.plan.required_info),
                message=INTERACTION_REQUIRED_MESSAGE,
            )

        logger.info("Executing architecture plan")
        results = await self.run_steps(self._steps_for(plan))
        return ExecutionResult(
            success=True,
            command=original_request,
            type=ResultType.ARCHITECTED,
            interpretation=original_request,
            plan=plan,
            results=results,
        )

    async def run_steps(self, steps: List[PlanStep]) -> List[StepResult]:
        results: List[StepResult] = []
        for index, step in enumerate(steps, start=1):
            logger.info("Executing step %d/%d: %s", index, len(steps), step.description or step.command)
            result = await self.run_step(step)
            results.append(result)

            if not result.success and (step.critical or not self.continue_on_error):
                logger.warning(
                    "Stopping plan after step %d (%s)",
                    index, "critical step failed" if step.critical else "continue_on_error disabled",
                )
                break
        return results

    async def run_step(self, step: PlanStep) -> StepResult:
        """Run one step; failures become an unsuccessful StepResult instead of an exception."""
        if not step.command.strip():
            return StepResult(step=step, success=False, error="No command specified in step")

        try:
            output = await self.runner.run(step.command)
        except ExecutionError as exc:
            logger.error("Step failed: %s: %s", step.command, exc.message)
            return StepResult(step=step, success=False, stdout=exc.stdout, stderr=exc.stderr, error=exc.message)
        return StepResult(step=step, success=True, stdout=output.stdout, stderr=output.stderr)

    @staticmethod
    def _steps_for(plan: Plan) -> List[PlanStep]:
        if isinstance(plan, StructuredPlan):
            return plan.steps
        if isinstance(plan, FreeTextPlan):
            return plan.steps
        raise TypeError(f"Unsupported plan type: {type(plan).__name__}")
