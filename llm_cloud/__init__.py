"""Top-level package exports for llm_cloud.

This package holds the AI backend infrastructure:
    • provider.py – SDK client construction and credential resolution
    • gateway.py  – Chat completions with bounded retries across providers
    • fallback.py – Helper binary and in-process helper fallbacks
"""

from .gateway import ProviderGateway, ProviderReply
from .provider import get_client, require_api_key

__all__ = [
    "ProviderGateway",
    "ProviderReply",
    "get_client",
    "require_api_key",
]
