"""
Access token lifecycle for the WeCom API.

The CredentialManager is the only owner of the access token. Refresh is
single-flight: while a refresh is in progress every caller awaits the
same task instead of issuing its own token request, so a burst of
expired-token traffic produces one call to the token endpoint.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from collections.abc import Callable
from typing import TYPE_CHECKING

from wecomly.integrations.base import ConfigError
from wecomly.integrations.wecom.schemas import DEFAULT_SAFETY_MARGIN, AccessToken

if TYPE_CHECKING:
    from wecomly.config import WeComConfig
    from wecomly.integrations.wecom.client import WeComClient

logger = logging.getLogger(__name__)

DEFAULT_REFRESH_INTERVAL = 3600.0


class CredentialManager:
    """
    Owns the access token, its expiry, and refresh scheduling.

    In webhook mode (``passthrough=True``) the manager is a no-op: webhooks
    carry their own key in the URL, so ``get_token()`` returns None and
    never touches the network.

    Example:
        credentials = CredentialManager(client, corp_id="ww123", corp_secret="...")
        credentials.start()  # optional periodic refresh
        token = await credentials.get_token()
        ...
        await credentials.close()
    """

    def __init__(
        self,
        client: WeComClient,
        corp_id: str | None = None,
        corp_secret: str | None = None,
        *,
        passthrough: bool = False,
        refresh_interval: float = DEFAULT_REFRESH_INTERVAL,
        safety_margin: float = DEFAULT_SAFETY_MARGIN,
        clock: Callable[[], float] = time.time,
    ):
        if safety_margin < 0:
            raise ValueError("safety_margin must be >= 0")
        self._client = client
        self._corp_id = corp_id
        self._corp_secret = corp_secret
        self._passthrough = passthrough
        self._refresh_interval = refresh_interval
        self._safety_margin = safety_margin
        self._clock = clock

        self._token: AccessToken | None = None
        self._inflight: asyncio.Task[AccessToken] | None = None
        self._refresh_loop: asyncio.Task[None] | None = None

    @classmethod
    def from_config(cls, config: WeComConfig, client: WeComClient) -> CredentialManager:
        from wecomly.config import ChannelMode

        secret = config.corp_secret.get_secret_value() if config.corp_secret else None
        return cls(
            client,
            corp_id=config.corp_id,
            corp_secret=secret,
            passthrough=config.mode == ChannelMode.WEBHOOK,
            refresh_interval=config.token_refresh_interval,
        )

    @property
    def passthrough(self) -> bool:
        return self._passthrough

    @property
    def token(self) -> AccessToken | None:
        """Currently held token (read-only)."""
        return self._token

    @property
    def refreshing(self) -> bool:
        return self._inflight is not None and not self._inflight.done()

    async def get_token(self) -> str | None:
        """
        Return a currently valid token, refreshing first if needed.

        Returns:
            Token value, or None in webhook mode

        Raises:
            ConfigError: corp credentials missing
            VendorError / TransportError: refresh failed
        """
        if self._passthrough:
            return None

        token = self._token
        if token is not None and not token.is_expired(self._clock()):
            return token.value

        token = await self.refresh()
        return token.value

    async def refresh(self) -> AccessToken:
        """
        Fetch a new token, joining an in-flight refresh if there is one.

        On failure the previously held token is left untouched and the
        error propagates to every waiter.
        """
        if self._passthrough:
            raise ConfigError("Token refresh is not available in webhook mode", "wecom")

        if self._inflight is None or self._inflight.done():
            self._inflight = asyncio.create_task(self._fetch_token())

        # Shielded so one cancelled waiter does not cancel the shared refresh.
        return await asyncio.shield(self._inflight)

    def invalidate(self) -> None:
        """Force the next get_token() to refresh."""
        if self._token is not None:
            logger.info("[wecom] Access token invalidated")
        self._token = None

    async def _fetch_token(self) -> AccessToken:
        if not self._corp_id or not self._corp_secret:
            raise ConfigError("corpId and corpSecret are required to obtain an access token", "wecom")

        response = await self._client.get_token(self._corp_id, self._corp_secret)
        token = AccessToken.issue(
            response.access_token,
            response.expires_in,
            safety_margin=self._safety_margin,
            now=self._clock(),
        )
        self._token = token
        logger.info(f"[wecom] Access token refreshed, valid for {token.expires_at - token.issued_at:.0f}s")
        return token

    # =========================================================================
    # Background refresh
    # =========================================================================

    def start(self) -> None:
        """Schedule periodic background refresh (no-op in webhook mode)."""
        if self._passthrough or self._refresh_loop is not None:
            return
        self._refresh_loop = asyncio.create_task(self._run_refresh_loop())
        logger.info(f"[wecom] Background token refresh every {self._refresh_interval:.0f}s")

    async def _run_refresh_loop(self) -> None:
        while True:
            await asyncio.sleep(self._refresh_interval)
            try:
                await self.refresh()
            except Exception as e:
                # The held token stays in use until it actually expires.
                logger.warning(f"[wecom] Background token refresh failed: {e}")

    async def stop(self) -> None:
        """Cancel background refresh."""
        if self._refresh_loop is None:
            return
        self._refresh_loop.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._refresh_loop
        self._refresh_loop = None

    async def close(self) -> None:
        """Stop background refresh and discard the token."""
        await self.stop()
        if self._inflight is not None and not self._inflight.done():
            self._inflight.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._inflight
        self._inflight = None
        self._token = None
