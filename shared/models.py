"""
shared/models.py

Common data models used across the classifier, architect, executor and API layers.

Plans travel as a tagged union (`StructuredPlan | FreeTextPlan`) so the executor can
handle both shapes explicitly instead of guessing what a degraded plan looks like.
Wire keys are snake_case to match what architecting backends are asked to emit.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


@dataclass(frozen=True)
class Classification:
    """
    Category of an operator request, derived purely from its text.

    A question is `_...?`; a request is complex when it has more words than the
    architecting threshold and is not a question.
    """
    is_question: bool
    is_complex: bool
    word_count: int

    @property
    def is_simple(self) -> bool:
        return not self.is_question and not self.is_complex


class Complexity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


_COMPLEXITY_SYNONYMS = {
    "low": Complexity.LOW,
    "baixa": Complexity.LOW,
    "simple": Complexity.LOW,
    "medium": Complexity.MEDIUM,
    "média": Complexity.MEDIUM,
    "media": Complexity.MEDIUM,
    "moderate": Complexity.MEDIUM,
    "high": Complexity.HIGH,
    "alta": Complexity.HIGH,
    "complex": Complexity.HIGH,
}


class PlanStep(BaseModel):
    """
    One shell step of an execution plan.

    Backends may send a bare string (used as both description and command) or an
    object whose command key is either `command` or `cmd`.
    """
    model_config = ConfigDict(frozen=True, extra="ignore")

    description: str = ""
    command: str = ""
    critical: bool = False

    @classmethod
    def from_raw(cls, raw: Any) -> "PlanStep":
        if isinstance(raw, PlanStep):
            return raw
        if isinstance(raw, str):
            return cls(description=raw, command=raw)
        if isinstance(raw, dict):
            command = raw.get("command") or raw.get("cmd") or ""
            return cls(
                description=str(raw.get("description") or command),
                command=str(command),
                critical=bool(raw.get("critical", False)),
            )
        raise ValueError(f"Unsupported step format: {type(raw).__name__}")


class ArchitecturePlan(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    needs_agent: bool = False
    required_info: List[str] = Field(default_factory=list)
    steps: List[PlanStep] = Field(default_factory=list)
    dependencies: List[str] = Field(default_factory=list)
    monitoring: List[str] = Field(default_factory=list)
    notifications: List[str] = Field(default_factory=list)
    estimated_time: Optional[str] = None
    complexity: Complexity = Complexity.MEDIUM
    error: Optional[str] = None

    @field_validator("steps", mode="before")
    @classmethod
    def _coerce_steps(cls, value):
        if value is None:
            return []
        if not isinstance(value, list):
            raise ValueError("steps must be a list")
        return [PlanStep.from_raw(item) for item in value]

    @field_validator("required_info", "dependencies", "monitoring", "notifications", mode="before")
    @classmethod
    def _coerce_string_list(cls, value):
        if value is None:
            return []
        if isinstance(value, str):
            return [value] if value.strip() else []
        if isinstance(value, list):
            return [item if isinstance(item, str) else str(item) for item in value]
        raise ValueError("expected a list of strings")

    @field_validator("complexity", mode="before")
    @classmethod
    def _coerce_complexity(cls, value):
        if isinstance(value, Complexity):
            return value
        return _COMPLEXITY_SYNONYMS.get(str(value or "").strip().lower(), Complexity.MEDIUM)

    @field_validator("estimated_time", mode="before")
    @classmethod
    def _coerce_estimated_time(cls, value):
        return None if value is None else str(value)

    @property
    def requires_interaction(self) -> bool:
        return self.needs_agent and bool(self.required_info)


class StructuredPlan(BaseModel):
    kind: Literal["structured"] = "structured"
    plan: ArchitecturePlan

    @property
    def steps(self) -> List[PlanStep]:
        return list(self.plan.steps)


class FreeTextPlan(BaseModel):
    """Plan recovered from non-JSON backend output: one non-critical step per line."""
    kind: Literal["free_text"] = "free_text"
    lines: List[str]
    complexity: Complexity = Complexity.HIGH

    @classmethod
    def from_text(cls, text: str) -> "FreeTextPlan":
        return cls(lines=[line.strip() for line in text.splitlines() if line.strip()])

    @property
    def steps(self) -> List[PlanStep]:
        return [PlanStep(description=line, command=line) for line in self.lines]


Plan = Annotated[Union[StructuredPlan, FreeTextPlan], Field(discriminator="kind")]


class StepResult(BaseModel):
    """Outcome of one executed step. Created once, in execution order."""
    model_config = ConfigDict(frozen=True)

    step: PlanStep
    success: bool
    stdout: str = ""
    stderr: str = ""
    error: Optional[str] = None


class ResultType(str, Enum):
    QUESTION = "question"
    SIMPLE = "simple"
    ARCHITECTED = "architected"
    MCPS = "mcps"
    INTERACTIVE = "interactive"


class ExecutionResult(BaseModel):
    """
    Uniform envelope returned for every processed command.

    Which optional fields are set depends on `type`: questions and executed simple
    commands fill `result`, architected and MCPS runs fill `results`, interactive
    plans fill `required_info` and `message`. Failures add `error` and `details`.
    """
    success: bool
    command: str
    type: ResultType
    interpretation: Optional[str] = None
    plan: Optional[Plan] = None
    result: Optional[str] = None
    results: Optional[List[StepResult]] = None
    requires_interaction: Optional[bool] = None
    required_info: Optional[List[str]] = None
    message: Optional[str] = None
    method: Optional[str] = None
    error: Optional[str] = None
    details: Optional[str] = None

    def to_api_response(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


class CommandRequest(BaseModel):
    """Inbound body of POST /api/command."""
    command: Optional[str] = None
    mcps: bool = False
    execute: bool = False
