"""Exceptions raised by the twin-e2e clients and traversal."""

from __future__ import annotations


class TwinE2EError(Exception):
    """Base class for all twin-e2e errors."""


class ContractViolationError(TwinE2EError):
    """A service response is missing required structure.

    Always fatal: never retried, aborts the whole traversal.
    """

    def __init__(self, route: str, reason: str) -> None:
        self.route = route
        self.reason = reason
        super().__init__(f"{route}: {reason}")


class TraversalCancelledError(TwinE2EError):
    """A browse traversal observed its cancellation signal."""


class TraversalLimitError(TwinE2EError):
    """A browse traversal exceeded its node or page ceiling."""


class ApiError(TwinE2EError):
    """A REST call returned a non-success status code."""

    def __init__(self, status_code: int, method: str, url: str, body: str = "") -> None:
        self.status_code = status_code
        self.method = method
        self.url = url
        self.body = body
        super().__init__(f"{method} {url} returned {status_code}: {body[:200]}")


class WaitTimeoutError(TwinE2EError):
    """A polling wait reached its deadline."""


class EndpointActivationError(TwinE2EError):
    """An endpoint was not found or did not reach the expected state."""
