"""
Health endpoint for the FazAI daemon.

Exposes a dependency-free liveness check at GET /health, mounted at the root
rather than under /api so load balancers and service managers can probe it
without knowing the API layout.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Dict

from fastapi import APIRouter

router = APIRouter()


@router.get("/health")
def health() -> Dict[str, str]:
    """
    Return a constant "ok" status and the current UTC timestamp.

    Returns:
        Dict[str, str]: Keys "status" and "timestamp" (ISO-8601).
    """
    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
