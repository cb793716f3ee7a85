"""
shared/errors.py

Error taxonomy shared by the gateway, architect, runner and extension layers.

Each error carries a `kind` so callers can pick a fallback without parsing messages,
and `friendly_message` turns any of them into the short operator-facing summary that
the HTTP layer returns next to the raw details.
"""

from enum import Enum
from typing import Any, Optional


class ProviderErrorKind(str, Enum):
    UNKNOWN_PROVIDER = "unknown_provider"
    MISSING_CREDENTIAL = "missing_credential"
    NETWORK = "network"
    UPSTREAM = "upstream"


class ProviderError(Exception):
    """
    Raised by the provider gateway when an AI backend cannot produce a completion.

    `status_code` and `body` are filled in for UPSTREAM errors when the backend
    answered with a non-2xx response.
    """

    def __init__(
        self,
        kind: ProviderErrorKind,
        message: str,
        status_code: Optional[int] = None,
        body: Any = None,
    ):
        super().__init__(message)
        self.kind = kind
        self.status_code = status_code
        self.body = body

    @property
    def retryable(self) -> bool:
        return self.kind in (ProviderErrorKind.NETWORK, ProviderErrorKind.UPSTREAM)


class ArchitectingErrorKind(str, Enum):
    BACKEND_UNAVAILABLE = "backend_unavailable"
    TIMEOUT = "timeout"
    MALFORMED_OUTPUT = "malformed_output"


class ArchitectingError(Exception):
    """Raised by an architecting backend; always absorbed by PlanArchitect."""

    def __init__(self, kind: ArchitectingErrorKind, message: str):
        super().__init__(message)
        self.kind = kind


class ExecutionError(Exception):
    """Raised by CommandRunner when a spawn fails or a command exits non-zero."""

    def __init__(self, message: str, stderr: str = "", stdout: str = "", returncode: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.stderr = stderr
        self.stdout = stdout
        self.returncode = returncode


class CommandTimeoutError(ExecutionError):
    """The command was killed after exceeding its time box."""


class ExtensionError(Exception):
    """A native extension failed ABI validation, initialization or execution."""


GENERIC_FAILURE_MESSAGE = "Internal error while processing the command."


def friendly_message(exc: BaseException) -> str:
    """
    Map an error to a short, human-readable summary by category.

    Args:
        exc (BaseException): Any error raised while processing a command.

    Returns:
        str: Credential, network, upstream or execution summary; a generic message otherwise.
    """
    if isinstance(exc, ProviderError):
        if exc.kind in (ProviderErrorKind.MISSING_CREDENTIAL, ProviderErrorKind.UNKNOWN_PROVIDER):
            return "AI provider is not configured. Check the provider name and API keys."
        if exc.kind == ProviderErrorKind.NETWORK:
            return "Could not reach the AI service. Check your internet connection."
        return "Communication error with the AI provider. Check the API keys and the connection."
    if isinstance(exc, CommandTimeoutError):
        return "The command timed out and was terminated."
    if isinstance(exc, ExecutionError):
        return "Error executing the command on the system."
    if isinstance(exc, ArchitectingError):
        return "Could not build an execution plan for the command."
    if isinstance(exc, ExtensionError):
        return "Native extension failed."
    return GENERIC_FAILURE_MESSAGE
