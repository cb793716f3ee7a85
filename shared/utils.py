"""
shared/utils.py

Shared utility functions used across multiple modules.

This module contains common helper functions that are used by various
components of the daemon to avoid code duplication and maintain
consistency across the system.
"""

import json
import logging
import re
import uuid
from typing import Any, List

logger = logging.getLogger(__name__)

_CODE_FENCE = re.compile(r"^```[a-zA-Z0-9_-]*\s*\n?(.*?)\n?```\s*$", re.DOTALL)


def strip_code_fence(text: str) -> str:
    """
    Remove a surrounding Markdown code fence, if any.

    Models frequently wrap JSON in ```json ... ``` even when told not to.
    """
    stripped = text.strip()
    match = _CODE_FENCE.match(stripped)
    return match.group(1).strip() if match else stripped


def parse_json_output(text: str) -> Any:
    """
    Parse JSON emitted by an AI backend or helper process.

    Args:
        text (str): Raw stdout or completion text.

    Returns:
        Any: The decoded JSON value.

    Raises:
        json.JSONDecodeError: If the text (after fence stripping) is not valid JSON.
    """
    return json.loads(strip_code_fence(text))


def truncate_message_for_logging(message: str, max_length: int = 100) -> str:
    """
    Truncate long messages for logging purposes.

    Args:
        message (str): Message to truncate
        max_length (int): Maximum length before truncation (default: 100)

    Returns:
        str: Truncated message with ellipsis if needed
    """
    if len(message) <= max_length:
        return message
    return message[:max_length] + "..."


def generate_request_id() -> str:
    return uuid.uuid4().hex


def split_lines(text: str) -> List[str]:
    """Trimmed, non-empty lines of `text`."""
    return [line.strip() for line in text.splitlines() if line.strip()]


COMMAND_PLACEHOLDER = "{command}"


def fill_prompt(template: str, command: str) -> str:
    """
    Substitute the operator request into a prompt template.

    Only the `{command}` placeholder is replaced; any other braces (JSON skeletons in
    the prompt text, for example) are left untouched.
    """
    return template.replace(COMMAND_PLACEHOLDER, command)
