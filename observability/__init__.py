"""Observability infrastructure: logging setup and optional tracing.

setup_logging:
    Console + rotating file logging with run/paper context.

setup_tracing / trace_operation:
    Optional Logfire spans per run and per paper.

Example:
    >>> from observability import setup_logging, trace_operation
    >>> setup_logging(config)
    >>> with trace_operation("fetch_papers"):
    ...     pass
"""

from observability.logging import setup_logging, set_run_context, set_paper_context
from observability.tracing import setup_tracing, trace_operation

__all__ = [
    "setup_logging",
    "set_run_context",
    "set_paper_context",
    "setup_tracing",
    "trace_operation",
]
