"""Observability for twin-e2e runs.

Structured logging with run and endpoint correlation.
"""

from twin_e2e.observability.logging import LogContext, configure_logging

__all__ = [
    "LogContext",
    "configure_logging",
]
