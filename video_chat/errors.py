"""Errors raised by the proxy routes and rendered as JSON error bodies."""

from typing import Any


class ProxyError(Exception):
    """Base error carrying the HTTP status and the JSON body sent to the caller."""

    status_code = 500

    def __init__(self, error: str, details: Any = None, status_code: int | None = None, **extra: Any) -> None:
        super().__init__(error)
        self.error = error
        self.details = details
        if status_code is not None:
            self.status_code = status_code
        self.extra = extra

    def to_dict(self) -> dict:
        body = {"error": self.error}
        if self.details is not None:
            body["details"] = self.details
        body.update(self.extra)
        return body


class BadRequestError(ProxyError):
    status_code = 400


class UpstreamAuthError(ProxyError):
    status_code = 401


class ConfigurationError(ProxyError):
    status_code = 500


class InternalProxyError(ProxyError):
    status_code = 500


class BadGatewayError(ProxyError):
    status_code = 502


class UpstreamError(ProxyError):
    """Failure reported by Memories.ai itself, forwarded with its status code."""

    status_code = 400
