"""
Monitoring package initializer.

This package exposes Prometheus metrics and helper decorators for tracking daemon
performance: HTTP traffic, processed commands, AI provider latency and host command runs.
"""

from .metrics import (
    REQUEST_COUNT,
    REQUEST_LATENCY,
    COMMAND_COUNT,
    ERROR_COUNT,
    COMMAND_EXECUTION_TIME,
    LLM_REQUEST_TIME,
    ARCHITECT_BACKEND_RESULTS,
    ARCHITECTING_TIME,
    PLAN_EXECUTION_TIME,
    track_latency,
    track_errors,
)

__all__ = [
    'REQUEST_COUNT',
    'REQUEST_LATENCY',
    'COMMAND_COUNT',
    'ERROR_COUNT',
    'COMMAND_EXECUTION_TIME',
    'LLM_REQUEST_TIME',
    'ARCHITECT_BACKEND_RESULTS',
    'ARCHITECTING_TIME',
    'PLAN_EXECUTION_TIME',
    'track_latency',
    'track_errors',
]
