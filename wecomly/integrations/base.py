"""
Base classes for wecomly integrations.

This module defines the foundational abstractions shared by vendor
clients: the exception taxonomy that the delivery pipeline classifies,
and an async HTTP client base with managed httpx lifecycle.

Design Principles:
1. Async-first: All I/O operations are async
2. Type-safe: Pydantic models for wire data
3. Observable: Logging hooks on every request
4. Testable: A caller-supplied httpx client can replace the managed one

Error Taxonomy:
    - ConfigError: missing or conflicting credentials (never retried)
    - TargetError: recipient/department does not exist (never retried)
    - TransportError: network failures and non-2xx statuses
        - TransportTimeout: deadline exceeded
        - AuthenticationError: HTTP 401/403 (recovered by token refresh)
        - RateLimitError: HTTP 429 (recovered by backoff)

Vendor ``errcode`` failures inside a 2xx body are VendorError
(``integrations.wecom.errors``).
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

import httpx

logger = logging.getLogger(__name__)


# =============================================================================
# Exceptions
# =============================================================================


class IntegrationError(Exception):
    """Base exception for integration errors."""

    def __init__(
        self,
        message: str,
        integration: str,
        *,
        status_code: int | None = None,
        response_body: str | None = None,
        retryable: bool = False,
    ):
        super().__init__(message)
        self.integration = integration
        self.status_code = status_code
        self.response_body = response_body
        self.retryable = retryable

    def __str__(self) -> str:
        parts = [f"[{self.integration}] {self.args[0]}"]
        if self.status_code:
            parts.append(f"(status={self.status_code})")
        return " ".join(parts)


class ConfigError(IntegrationError):
    """Raised when credentials are missing or mutually exclusive modes collide."""

    def __init__(self, message: str, integration: str = "config", **kwargs):
        super().__init__(message, integration, retryable=False, **kwargs)


class TargetError(IntegrationError):
    """Raised when a recipient cannot be addressed (unknown or ambiguous)."""

    def __init__(self, message: str, integration: str, **kwargs):
        super().__init__(message, integration, retryable=False, **kwargs)


class TransportError(IntegrationError):
    """Raised on network failures, non-2xx statuses and undecodable bodies."""


class TransportTimeout(TransportError):
    """Raised when a request exceeds its deadline and is cancelled."""

    def __init__(self, message: str, integration: str, **kwargs):
        super().__init__(message, integration, retryable=True, **kwargs)


class AuthenticationError(TransportError):
    """Raised when the HTTP layer rejects the request (401/403)."""

    def __init__(self, message: str, integration: str, **kwargs):
        super().__init__(message, integration, retryable=True, **kwargs)


class RateLimitError(TransportError):
    """Raised when rate limit is exceeded (429)."""

    def __init__(
        self,
        message: str,
        integration: str,
        *,
        retry_after: float | None = None,
        **kwargs,
    ):
        super().__init__(message, integration, retryable=True, **kwargs)
        self.retry_after = retry_after


def _parse_retry_after(value: str | None) -> float | None:
    """Seconds from a Retry-After header; HTTP-date values are ignored."""
    if not value:
        return None
    try:
        return max(float(value), 0.0)
    except ValueError:
        return None


# =============================================================================
# Configuration
# =============================================================================


@dataclass(frozen=True, slots=True)
class IntegrationConfig:
    """Connection settings for an integration client."""

    base_url: str = ""
    timeout: float = 10.0
    proxy: str | None = None

    # Observability
    log_requests: bool = False
    log_responses: bool = False


# =============================================================================
# Base Client
# =============================================================================


class IntegrationClient(ABC):
    """
    Abstract base class for integration clients.

    Provides common functionality:
    - HTTP client management (lazy creation, proxy, timeout)
    - Error mapping from httpx exceptions to TransportError
    - Request/response logging

    Subclasses must implement:
    - name: Integration identifier
    """

    def __init__(
        self,
        config: IntegrationConfig,
        *,
        http_client: httpx.AsyncClient | None = None,
    ):
        """
        Initialize the integration client.

        Args:
            config: Integration configuration
            http_client: Optional shared client (caller manages lifecycle)
        """
        self.config = config
        self._shared_client = http_client
        self._client: httpx.AsyncClient | None = None

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique name for this integration."""
        ...

    async def _get_client(self) -> httpx.AsyncClient:
        """Get the shared client, or create the owned one."""
        if self._shared_client is not None:
            return self._shared_client
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.config.base_url,
                timeout=self.config.timeout,
                proxy=self.config.proxy,
                headers={"Accept": "application/json"},
            )
        return self._client

    async def close(self) -> None:
        """Close the owned HTTP client (never the shared one)."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def _do_request(
        self,
        method: str,
        url: str,
        *,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
        files: dict[str, Any] | None = None,
    ) -> httpx.Response:
        """
        Execute a single HTTP request.

        Raises:
            TransportTimeout: When the deadline elapses
            TransportError: On network errors or non-2xx statuses
        """
        client = await self._get_client()

        if self.config.log_requests:
            logger.debug(f"[{self.name}] {method} {url} body={json}")

        try:
            response = await client.request(
                method=method,
                url=url,
                params=params,
                json=json,
                files=files,
                timeout=self.config.timeout,
            )
        except httpx.TimeoutException as e:
            raise TransportTimeout(f"Request timeout: {e}", self.name) from e
        except httpx.NetworkError as e:
            raise TransportError(f"Network error: {e}", self.name, retryable=True) from e

        if self.config.log_responses:
            logger.debug(
                f"[{self.name}] Response: status={response.status_code} "
                f"body={response.text[:500] if response.text else 'empty'}"
            )

        self._check_response(response)
        return response

    def _check_response(self, response: httpx.Response) -> None:
        """
        Check response status and raise the matching exception.

        Raises:
            AuthenticationError: For 401/403
            RateLimitError: For 429
            TransportError: For other non-2xx statuses (retryable on 5xx)
        """
        if response.is_success:
            return

        status = response.status_code
        body = response.text

        if status == 401 or status == 403:
            raise AuthenticationError(
                f"Authentication failed: HTTP {status}",
                self.name,
                status_code=status,
                response_body=body,
            )

        if status == 429:
            raise RateLimitError(
                "Rate limit exceeded",
                self.name,
                status_code=status,
                response_body=body,
                retry_after=_parse_retry_after(response.headers.get("Retry-After")),
            )

        raise TransportError(
            f"HTTP {status}: {response.reason_phrase}",
            self.name,
            status_code=status,
            response_body=body,
            retryable=status >= 500,
        )

    async def __aenter__(self) -> "IntegrationClient":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.close()
