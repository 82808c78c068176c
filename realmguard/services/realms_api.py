"""
RealmGuard - Realms API Client
==============================

HTTP adapter for the two remote capabilities the guard consumes: banning a
player on a realm and reading a player's Xbox profile.

Token acquisition is not done here. The client is given an auth provider
returning ``(user_hash, xsts_token)`` for a tenant.
"""

import asyncio
import time
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple

import aiohttp

from realmguard.core.config import get_config
from realmguard.core.exceptions import EnforcementFailed, ProfileUnavailable
from realmguard.core.logger import logger
from realmguard.services.automod.models import PlayerProfile


AuthProvider = Callable[[str], Awaitable[Tuple[str, str]]]

XBOX_PROFILE_API = "https://profile.xboxlive.com"
PROFILE_SETTINGS = "Gamertag,Gamerscore,AccountTier,TenureLevel"
PROFILE_CACHE_TTL = 5 * 60

MAX_ATTEMPTS = 3
RETRY_BASE_DELAY = 1.0
RETRYABLE_STATUSES = (429, 503)

# Xbox answers 403 for profiles the caller may not see
HIDDEN_PROFILE_STATUSES = (403,)

REALMS_HEADERS = {
    "Client-Version": "1.17.41",
    "User-Agent": "MCPE/UWP",
    "Accept": "*/*",
    "Content-Type": "application/json",
}


class RealmsAPIError(Exception):
    """Non-success response from the Realms or Xbox API."""

    def __init__(self, status: int, body: str = "") -> None:
        super().__init__(f"API error ({status}): {body[:200]}")
        self.status = status
        self.body = body


def build_auth_header(user_hash: str, token: str) -> str:
    return f"XBL3.0 x={user_hash};{token}"


class RealmsClient:
    """
    Realms blocklist and Xbox profile lookups over one aiohttp session.

    Usage:
        client = RealmsClient(auth_provider)
        capabilities = RealmCapabilities(
            apply_ban=client.apply_ban,
            fetch_profile=client.fetch_profile,
        )
    """

    def __init__(
        self,
        auth_provider: AuthProvider,
        base_url: Optional[str] = None,
        session: Optional[aiohttp.ClientSession] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.auth_provider = auth_provider
        self.base_url = (base_url or get_config().realms_api_url).rstrip("/")
        self.clock = clock
        self._session = session
        self._profile_cache: Dict[str, Tuple[float, Optional[PlayerProfile]]] = {}

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create persistent HTTP session."""
        if self._session is None or self._session.closed:
            connector = aiohttp.TCPConnector(
                limit=10,
                limit_per_host=5,
                ttl_dns_cache=300,
            )
            self._session = aiohttp.ClientSession(
                connector=connector,
                timeout=aiohttp.ClientTimeout(total=10),
            )
        return self._session

    async def close(self) -> None:
        """Close HTTP session on shutdown."""
        if self._session and not self._session.closed:
            await self._session.close()
            self._session = None

    # =========================================================================
    # Requests
    # =========================================================================

    async def _request(self, method: str, url: str, headers: Dict[str, str]) -> Any:
        """
        Send one request, retrying rate-limit and unavailable responses.

        Returns:
            Parsed JSON body, or an empty dict for empty bodies.

        Raises:
            RealmsAPIError: On a non-success status after all attempts.
        """
        last_error: Optional[RealmsAPIError] = None

        for attempt in range(1, MAX_ATTEMPTS + 1):
            session = await self._get_session()
            async with session.request(method, url, headers=headers) as response:
                if response.status in RETRYABLE_STATUSES:
                    last_error = RealmsAPIError(response.status, await response.text())
                    logger.warning("Realms API Retryable Error", [
                        ("Status", str(response.status)),
                        ("Attempt", f"{attempt}/{MAX_ATTEMPTS}"),
                    ])
                    if attempt < MAX_ATTEMPTS:
                        await asyncio.sleep(RETRY_BASE_DELAY * attempt)
                        continue
                    break

                if response.status >= 400:
                    raise RealmsAPIError(response.status, await response.text())

                text = await response.text()
                return await response.json(content_type=None) if text else {}

        raise last_error

    # =========================================================================
    # Blocklist
    # =========================================================================

    async def block_player(self, tenant_id: str, realm_id: str, xuid: str) -> None:
        """
        Add a player to the realm blocklist.

        Raises:
            EnforcementFailed: If the call did not succeed.
        """
        user_hash, token = await self.auth_provider(tenant_id)
        headers = dict(REALMS_HEADERS, Authorization=build_auth_header(user_hash, token))
        url = f"{self.base_url}/worlds/{realm_id}/blocklist/{xuid}"

        try:
            await self._request("POST", url, headers)
        except RealmsAPIError as e:
            raise EnforcementFailed(xuid, str(e), status=e.status) from e
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise EnforcementFailed(xuid, f"{type(e).__name__}: {e}") from e

        logger.tree("Realm Blocklist Updated", [
            ("Tenant", tenant_id),
            ("Realm", realm_id),
            ("XUID", xuid),
        ], emoji="⛔")

    async def apply_ban(self, tenant_id: str, realm: Any, xuid: str) -> None:
        """``apply_ban`` capability: ``realm`` is a RealmRef or a bare id."""
        realm_id = getattr(realm, "id", realm)
        await self.block_player(tenant_id, str(realm_id), xuid)

    # =========================================================================
    # Profiles
    # =========================================================================

    async def get_profile(self, tenant_id: str, xuid: str) -> Optional[PlayerProfile]:
        """
        Read gamertag, gamerscore, tier and tenure for ``xuid``.

        Returns:
            The profile, or None if it is hidden from the caller.

        Raises:
            ProfileUnavailable: On any other failure.
        """
        cached = self._profile_cache.get(xuid)
        if cached and self.clock() - cached[0] < PROFILE_CACHE_TTL:
            return cached[1]

        user_hash, token = await self.auth_provider(tenant_id)
        headers = {
            "Authorization": build_auth_header(user_hash, token),
            "x-xbl-contract-version": "2",
            "Accept": "application/json",
        }
        url = f"{XBOX_PROFILE_API}/users/xuid({xuid})/profile/settings?settings={PROFILE_SETTINGS}"

        try:
            data = await self._request("GET", url, headers)
        except RealmsAPIError as e:
            if e.status in HIDDEN_PROFILE_STATUSES:
                self._profile_cache[xuid] = (self.clock(), None)
                return None
            raise ProfileUnavailable(xuid, str(e)) from e
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise ProfileUnavailable(xuid, type(e).__name__) from e

        profile = parse_profile(xuid, data)
        self._profile_cache[xuid] = (self.clock(), profile)
        return profile

    async def fetch_profile(self, tenant_id: str, xuid: str) -> Optional[PlayerProfile]:
        """``fetch_profile`` capability."""
        return await self.get_profile(tenant_id, xuid)

    def clear_cache(self) -> None:
        self._profile_cache.clear()


def parse_profile(xuid: str, data: Dict[str, Any]) -> PlayerProfile:
    """
    Build a PlayerProfile from a profile-settings response.

    Raises:
        ProfileUnavailable: If the response carries no user.
    """
    users = data.get("profileUsers") or []
    if not users:
        raise ProfileUnavailable(xuid, "empty profile response")

    settings = {s.get("id"): s.get("value") for s in users[0].get("settings", [])}

    def as_int(value: Any) -> int:
        try:
            return int(value)
        except (TypeError, ValueError):
            return 0

    return PlayerProfile(
        xuid=xuid,
        gamertag=settings.get("Gamertag") or "",
        gamerscore=as_int(settings.get("Gamerscore")),
        tenure_level=as_int(settings.get("TenureLevel")),
        account_tier=settings.get("AccountTier"),
    )


__all__ = [
    "RealmsClient",
    "RealmsAPIError",
    "AuthProvider",
    "build_auth_header",
    "parse_profile",
    "PROFILE_CACHE_TTL",
]
