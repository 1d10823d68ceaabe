"""
Single-slot cache for the eBay application access token.

The Browse API needs an OAuth2 bearer token obtained with the
client-credentials grant. Tokens live ~2h, so one slot is shared by every
request in the process and refreshed 60s before it expires.

The slot is one immutable tuple replaced in a single assignment; two
requests refreshing at the same time is harmless (last write wins, both
tokens are valid).
"""
from __future__ import annotations

import base64
import logging
import time
from typing import Callable, NamedTuple, Optional

import aiohttp

import config

logger = logging.getLogger(__name__)

TOKEN_URL      = "https://api.ebay.com/identity/v1/oauth2/token"
SCOPE          = "https://api.ebay.com/oauth/api_scope"
SAFETY_MARGIN  = 60      # seconds
DEFAULT_EXPIRY = 7200    # seconds, when the endpoint omits expires_in


class CachedToken(NamedTuple):
    token: str
    expires_at: int      # epoch seconds


class TokenCache:

    def __init__(
        self,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        clock: Callable[[], float] = time.time,
        timeout: Optional[float] = None,
    ) -> None:
        self._client_id = client_id if client_id is not None else config.EBAY_CLIENT_ID
        self._client_secret = client_secret if client_secret is not None else config.EBAY_CLIENT_SECRET
        self._clock = clock
        self._timeout = timeout or config.PROVIDER_TIMEOUT
        self._entry: Optional[CachedToken] = None

    @property
    def configured(self) -> bool:
        return bool(self._client_id and self._client_secret)

    def store(self, token: str, expires_at: int) -> None:
        self._entry = CachedToken(token, expires_at)

    def peek(self) -> Optional[CachedToken]:
        return self._entry

    async def get_token(self) -> Optional[str]:
        """
        Return a valid token, refreshing it if needed.
        None means no credentials are configured — not an error.
        """
        now = int(self._clock())
        entry = self._entry
        if entry and now < entry.expires_at - SAFETY_MARGIN:
            return entry.token
        if not self.configured:
            return None

        token, lifetime = await self._exchange()
        self.store(token, now + lifetime)
        logger.info("eBay token refreshed, valid for %ds", lifetime)
        return token

    async def _exchange(self) -> tuple[str, int]:
        """Client-credentials grant. Raises on any HTTP or payload error."""
        creds = base64.b64encode(f"{self._client_id}:{self._client_secret}".encode()).decode()
        headers = {
            "Content-Type":  "application/x-www-form-urlencoded",
            "Authorization": f"Basic {creds}",
        }
        form = {"grant_type": "client_credentials", "scope": SCOPE}

        async with aiohttp.ClientSession() as session:
            async with session.post(
                TOKEN_URL,
                headers=headers,
                data=form,
                timeout=aiohttp.ClientTimeout(total=self._timeout),
            ) as resp:
                if resp.status != 200:
                    text = await resp.text()
                    raise RuntimeError(f"eBay token error {resp.status}: {text[:200]}")
                data = await resp.json()

        token = data.get("access_token")
        if not token:
            raise RuntimeError("eBay token response has no access_token")
        return token, int(data.get("expires_in") or DEFAULT_EXPIRY)
