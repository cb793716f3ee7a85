"""
Core metrics and monitoring decorators for the FazAI daemon.

This module defines Prometheus metrics and decorators for tracking:
- Request latency and counts
- Processed commands by branch and outcome
- Error rates per component
- Shell command execution time
- AI provider latency and architect backend outcomes
"""

import inspect
import time
import functools
import logging
from typing import Optional, Callable
from prometheus_client import Counter, Histogram

logger = logging.getLogger(__name__)

# Request metrics
REQUEST_COUNT = Counter(
    'http_requests_total',
    'Total number of HTTP requests',
    ['method', 'endpoint', 'status']
)

REQUEST_LATENCY = Histogram(
    'http_request_duration_seconds',
    'HTTP request duration in seconds',
    ['method', 'endpoint'],
    buckets=[0.1, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0, float("inf")]
)

COMMAND_COUNT = Counter(
    'commands_processed_total',
    'Total number of operator commands processed',
    ['type', 'success']
)

# Error metrics
ERROR_COUNT = Counter(
    'error_total',
    'Total number of errors',
    ['type', 'location']  # type: e.g., 'provider', 'architect', 'execution'; location: specific component
)

COMMAND_EXECUTION_TIME = Histogram(
    'command_execution_duration_seconds',
    'Time spent running host commands',
    buckets=[0.1, 0.5, 1.0, 5.0, 30.0, 120.0, float("inf")]
)

# External API metrics
LLM_REQUEST_TIME = Histogram(
    'llm_request_duration_seconds',
    'Time spent waiting for an AI provider',
    ['provider'],
    buckets=[0.5, 1.0, 2.0, 5.0, 10.0, 30.0, float("inf")]
)

ARCHITECT_BACKEND_RESULTS = Counter(
    'architect_backend_results_total',
    'Architecting attempts by backend and outcome',
    ['backend', 'outcome']
)

ARCHITECTING_TIME = Histogram(
    'architecting_duration_seconds',
    'Time spent producing an execution plan, across all backends',
    buckets=[1.0, 5.0, 15.0, 30.0, 60.0, float("inf")]
)

PLAN_EXECUTION_TIME = Histogram(
    'plan_execution_duration_seconds',
    'Time spent executing architected plans',
    buckets=[1.0, 5.0, 30.0, 120.0, 600.0, float("inf")]
)


def _observe(metric: Histogram, labels: Optional[Callable], args, duration: float, func_name: str) -> None:
    if labels and args:
        # For instance methods, first arg is 'self'
        metric.labels(**labels(args[0])).observe(duration)
    else:
        metric.observe(duration)
    logger.debug(
        f"Function {func_name} execution time: {duration:.2f} seconds",
        extra={'duration': duration, 'function': func_name}
    )


def track_latency(metric: Histogram, labels: Optional[Callable] = None) -> Callable:
    """
    A decorator factory that tracks the execution time of a function using a Prometheus Histogram.

    Works for both plain functions and coroutine functions.

    Args:
        metric (Histogram): The Prometheus Histogram to record the timing in
        labels (Callable, optional): Function of `self` that returns the metric labels dictionary

    Returns:
        Callable: The decorated function
    """
    def decorator(func: Callable) -> Callable:
        if inspect.iscoroutinefunction(func):
            @functools.wraps(func)
            async def async_wrapper(*args, **kwargs):
                start_time = time.time()
                try:
                    return await func(*args, **kwargs)
                finally:
                    _observe(metric, labels, args, time.time() - start_time, func.__name__)
            return async_wrapper

        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            start_time = time.time()
            try:
                return func(*args, **kwargs)
            finally:
                _observe(metric, labels, args, time.time() - start_time, func.__name__)
        return wrapper
    return decorator


def _record_error(error_type: str, location: str, e: Exception) -> None:
    ERROR_COUNT.labels(type=error_type, location=location).inc()
    logger.error(
        f"Error in {location} ({error_type}): {str(e)}",
        extra={
            'error_type': error_type,
            'location': location,
            'error': str(e)
        },
        exc_info=True
    )


def track_errors(error_type: str, location: str) -> Callable:
    """
    A decorator factory that counts and logs errors escaping a function, then re-raises.

    Args:
        error_type (str): Type of error (e.g., 'provider', 'architect', 'execution')
        location (str): Where the error occurred

    Returns:
        Callable: The decorated function

    Example:
        @track_errors('provider', 'gateway')
        async def complete(self, ...):
            ...
    """
    def decorator(func: Callable) -> Callable:
        if inspect.iscoroutinefunction(func):
            @functools.wraps(func)
            async def async_wrapper(*args, **kwargs):
                try:
                    return await func(*args, **kwargs)
                except Exception as e:
                    _record_error(error_type, location, e)
                    raise
            return async_wrapper

        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except Exception as e:
                _record_error(error_type, location, e)
                raise
        return wrapper
    return decorator
