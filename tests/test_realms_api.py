"""
Tests for realmguard/services/realms_api.py

Uses a scripted stand-in for the aiohttp session; no network access.
"""

import json

import pytest
from unittest.mock import AsyncMock, patch

from realmguard.core.exceptions import EnforcementFailed, ProfileUnavailable
from realmguard.services.realm import RealmRef
from realmguard.services.realms_api import (
    PROFILE_CACHE_TTL,
    RealmsAPIError,
    RealmsClient,
    build_auth_header,
    parse_profile,
)


XUID = "2535400000000001"


def _profile_body(**settings):
    values = {"Gamertag": "Steve", "Gamerscore": "1200", "TenureLevel": "4", "AccountTier": "Gold"}
    values.update(settings)
    return {"profileUsers": [{"id": XUID, "settings": [{"id": k, "value": v} for k, v in values.items()]}]}


class FakeResponse:
    def __init__(self, status, body=""):
        self.status = status
        self._body = body if isinstance(body, str) else json.dumps(body)

    async def text(self):
        return self._body

    async def json(self, content_type=None):
        return json.loads(self._body)

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False


class FakeSession:
    """Replays queued responses and records each request."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests = []
        self.closed = False

    def request(self, method, url, headers=None):
        self.requests.append((method, url, headers))
        return self.responses.pop(0)

    async def close(self):
        self.closed = True


@pytest.fixture
def auth_provider():
    return AsyncMock(return_value=("uhs123", "token-abc"))


def _client(auth_provider, session, clock=None):
    kwargs = {"clock": clock} if clock else {}
    return RealmsClient(auth_provider, base_url="https://realms.test/", session=session, **kwargs)


# =============================================================================
# Helpers
# =============================================================================

class TestHelpers:
    """Tests for header building and profile parsing."""

    def test_auth_header(self):
        assert build_auth_header("uhs", "tok") == "XBL3.0 x=uhs;tok"

    def test_parse_profile(self):
        profile = parse_profile(XUID, _profile_body())
        assert profile.gamertag == "Steve"
        assert profile.gamerscore == 1200
        assert profile.tenure_level == 4
        assert profile.account_tier == "Gold"

    def test_parse_profile_bad_numbers(self):
        profile = parse_profile(XUID, _profile_body(Gamerscore="n/a", TenureLevel=None))
        assert profile.gamerscore == 0
        assert profile.tenure_level == 0

    def test_parse_empty_response(self):
        with pytest.raises(ProfileUnavailable):
            parse_profile(XUID, {"profileUsers": []})


# =============================================================================
# Blocklist
# =============================================================================

class TestBlockPlayer:
    """Tests for the ban capability."""

    @pytest.mark.asyncio
    async def test_posts_to_blocklist(self, auth_provider):
        session = FakeSession(FakeResponse(204))
        client = _client(auth_provider, session)

        await client.apply_ban("guild-1", RealmRef("4242", "Survival"), XUID)

        method, url, headers = session.requests[0]
        assert method == "POST"
        assert url == f"https://realms.test/worlds/4242/blocklist/{XUID}"
        assert headers["Authorization"] == "XBL3.0 x=uhs123;token-abc"
        auth_provider.assert_awaited_once_with("guild-1")

    @pytest.mark.asyncio
    async def test_bare_realm_id(self, auth_provider):
        session = FakeSession(FakeResponse(204))
        await _client(auth_provider, session).apply_ban("guild-1", "99", XUID)
        assert "/worlds/99/" in session.requests[0][1]

    @pytest.mark.asyncio
    async def test_error_status_raises_enforcement_failed(self, auth_provider):
        session = FakeSession(FakeResponse(403, "not an owner"))
        with pytest.raises(EnforcementFailed) as exc_info:
            await _client(auth_provider, session).block_player("guild-1", "4242", XUID)
        assert exc_info.value.status == 403

    @pytest.mark.asyncio
    async def test_rate_limit_is_retried(self, auth_provider):
        session = FakeSession(FakeResponse(429), FakeResponse(503), FakeResponse(204))
        with patch("realmguard.services.realms_api.asyncio.sleep", new=AsyncMock()):
            await _client(auth_provider, session).block_player("guild-1", "4242", XUID)
        assert len(session.requests) == 3

    @pytest.mark.asyncio
    async def test_retries_exhausted(self, auth_provider):
        session = FakeSession(FakeResponse(429), FakeResponse(429), FakeResponse(429))
        with patch("realmguard.services.realms_api.asyncio.sleep", new=AsyncMock()):
            with pytest.raises(EnforcementFailed) as exc_info:
                await _client(auth_provider, session).block_player("guild-1", "4242", XUID)
        assert exc_info.value.status == 429


# =============================================================================
# Profiles
# =============================================================================

class TestGetProfile:
    """Tests for profile lookups and caching."""

    @pytest.mark.asyncio
    async def test_fetch_and_cache(self, auth_provider, clock):
        session = FakeSession(FakeResponse(200, _profile_body()))
        client = _client(auth_provider, session, clock)

        first = await client.fetch_profile("guild-1", XUID)
        second = await client.fetch_profile("guild-1", XUID)

        assert first.gamertag == "Steve"
        assert second is first
        assert len(session.requests) == 1
        assert f"xuid({XUID})" in session.requests[0][1]

    @pytest.mark.asyncio
    async def test_cache_expires(self, auth_provider, clock):
        session = FakeSession(
            FakeResponse(200, _profile_body()),
            FakeResponse(200, _profile_body(Gamertag="SteveRenamed")),
        )
        client = _client(auth_provider, session, clock)

        await client.get_profile("guild-1", XUID)
        clock.advance(PROFILE_CACHE_TTL + 1)
        profile = await client.get_profile("guild-1", XUID)

        assert profile.gamertag == "SteveRenamed"

    @pytest.mark.asyncio
    async def test_hidden_profile_is_none(self, auth_provider, clock):
        session = FakeSession(FakeResponse(403))
        client = _client(auth_provider, session, clock)
        assert await client.get_profile("guild-1", XUID) is None
        assert await client.get_profile("guild-1", XUID) is None
        assert len(session.requests) == 1

    @pytest.mark.asyncio
    async def test_server_error_is_unavailable(self, auth_provider, clock):
        session = FakeSession(FakeResponse(500, "boom"))
        with pytest.raises(ProfileUnavailable):
            await _client(auth_provider, session, clock).get_profile("guild-1", XUID)

    @pytest.mark.asyncio
    async def test_clear_cache(self, auth_provider, clock):
        client = _client(auth_provider, FakeSession(), clock)
        with patch.object(client, "_request", new=AsyncMock(return_value=_profile_body())) as request:
            await client.get_profile("guild-1", XUID)
            client.clear_cache()
            await client.get_profile("guild-1", XUID)
        assert request.await_count == 2

    @pytest.mark.asyncio
    async def test_close(self, auth_provider):
        session = FakeSession()
        client = _client(auth_provider, session)
        await client.close()
        assert session.closed


def test_api_error_message():
    error = RealmsAPIError(404, "x" * 500)
    assert error.status == 404
    assert len(str(error)) < 250
