"""
Tests for the Shopify OAuth connect flow and connection management.
"""
from unittest.mock import AsyncMock, patch
from urllib.parse import parse_qs, urlparse

import httpx
import pytest
from sqlalchemy import select

from retentionos.core.security import decrypt_token, read_signed_cookie, sign_cookie_value
from retentionos.models.connection import Connection
from retentionos.services.shopify_client import ShopifyAPIError
from retentionos.services.shopify_oauth import exchange_oauth_code
from shopify_fakes import TEST_SHOP, TEST_USER_ID

CONNECT_PAGE = "http://localhost:3000/connect/shopify"


def _oauth_cookies(state: str = "state-123", user_id: str = TEST_USER_ID) -> dict[str, str]:
    return {
        "shopify_oauth_state": sign_cookie_value(state),
        "shopify_oauth_user_id": sign_cookie_value(user_id),
    }


class TestAuthorize:
    async def test_requires_auth(self, async_client):
        response = await async_client.get("/api/shopify/auth", params={"shop": "test-store"})

        assert response.status_code == 401

    async def test_redirects_to_consent_screen(self, async_client, auth_headers):
        response = await async_client.get(
            "/api/shopify/auth",
            params={"shop": "Test-Store"},
            headers=auth_headers,
        )

        assert response.status_code == 307
        location = urlparse(response.headers["location"])
        assert location.netloc == TEST_SHOP
        assert location.path == "/admin/oauth/authorize"

        query = parse_qs(location.query)
        assert query["client_id"] == ["test-shopify-key"]
        assert query["redirect_uri"] == ["http://localhost:3000/api/shopify/callback"]
        assert "read_customers" in query["scope"][0]

        state_cookie = response.cookies.get("shopify_oauth_state")
        user_cookie = response.cookies.get("shopify_oauth_user_id")
        assert read_signed_cookie(state_cookie) == query["state"][0]
        assert read_signed_cookie(user_cookie) == TEST_USER_ID

    async def test_cookies_are_short_lived_and_httponly(self, async_client, auth_headers):
        response = await async_client.get(
            "/api/shopify/auth",
            params={"shop": "test-store"},
            headers=auth_headers,
        )

        set_cookies = response.headers.get_list("set-cookie")
        state_header = next(h for h in set_cookies if h.startswith("shopify_oauth_state="))
        assert "Max-Age=600" in state_header
        assert "HttpOnly" in state_header
        assert "SameSite=lax" in state_header

    async def test_missing_shop(self, async_client, auth_headers):
        response = await async_client.get("/api/shopify/auth", headers=auth_headers)

        assert response.status_code == 307
        assert response.headers["location"] == f"{CONNECT_PAGE}?error=no_shop_domain"

    async def test_invalid_shop(self, async_client, auth_headers):
        response = await async_client.get(
            "/api/shopify/auth",
            params={"shop": "not a shop!"},
            headers=auth_headers,
        )

        assert response.headers["location"] == f"{CONNECT_PAGE}?error=invalid_shop_domain"

    async def test_unconfigured_app(self, async_client, auth_headers):
        with patch("retentionos.services.shopify_oauth.settings.shopify_api_key", None):
            response = await async_client.get(
                "/api/shopify/auth",
                params={"shop": "test-store"},
                headers=auth_headers,
            )

        assert response.status_code == 503
        assert "SHOPIFY_API_KEY" in response.json()["detail"]


class TestCallback:
    async def test_missing_params(self, async_client):
        response = await async_client.get("/api/shopify/callback", params={"shop": TEST_SHOP})

        assert response.headers["location"] == f"{CONNECT_PAGE}?error=invalid_callback"

    async def test_state_mismatch(self, async_client):
        for name, value in _oauth_cookies("expected-state").items():
            async_client.cookies.set(name, value)

        with patch(
            "retentionos.services.shopify_oauth.exchange_oauth_code",
            new_callable=AsyncMock,
        ) as exchange:
            response = await async_client.get(
                "/api/shopify/callback",
                params={"code": "abc", "state": "forged-state", "shop": TEST_SHOP},
            )

        assert response.headers["location"] == f"{CONNECT_PAGE}?error=invalid_state"
        exchange.assert_not_awaited()

    async def test_missing_state_cookie(self, async_client):
        response = await async_client.get(
            "/api/shopify/callback",
            params={"code": "abc", "state": "state-123", "shop": TEST_SHOP},
        )

        assert response.headers["location"] == f"{CONNECT_PAGE}?error=invalid_state"

    async def test_tampered_cookie(self, async_client):
        async_client.cookies.set("shopify_oauth_state", "state-123")
        async_client.cookies.set("shopify_oauth_user_id", TEST_USER_ID)

        response = await async_client.get(
            "/api/shopify/callback",
            params={"code": "abc", "state": "state-123", "shop": TEST_SHOP},
        )

        assert response.headers["location"] == f"{CONNECT_PAGE}?error=invalid_state"

    async def test_success_stores_encrypted_connection(self, async_client, db_session):
        for name, value in _oauth_cookies().items():
            async_client.cookies.set(name, value)

        with patch(
            "retentionos.services.shopify_oauth.exchange_oauth_code",
            new_callable=AsyncMock,
            return_value={"access_token": "shpat_new", "scope": "read_customers,read_orders"},
        ) as exchange:
            response = await async_client.get(
                "/api/shopify/callback",
                params={"code": "abc", "state": "state-123", "shop": TEST_SHOP},
            )

        assert response.status_code == 307
        assert response.headers["location"] == f"{CONNECT_PAGE}?success=true"
        exchange.assert_awaited_once_with(TEST_SHOP, "abc")

        result = await db_session.execute(select(Connection).where(Connection.owner_id == TEST_USER_ID))
        connections = result.scalars().all()
        assert len(connections) == 1
        assert connections[0].is_active
        assert connections[0].platform_domain == TEST_SHOP
        assert connections[0].access_token_encrypted != "shpat_new"
        assert decrypt_token(connections[0].access_token_encrypted) == "shpat_new"

        # OAuth cookies are cleared
        cleared = [h for h in response.headers.get_list("set-cookie") if "Max-Age=0" in h]
        assert len(cleared) == 2

    async def test_exchange_failure(self, async_client, db_session):
        for name, value in _oauth_cookies().items():
            async_client.cookies.set(name, value)

        with patch(
            "retentionos.services.shopify_oauth.exchange_oauth_code",
            new_callable=AsyncMock,
            side_effect=ShopifyAPIError("Token exchange failed: 400", 400),
        ):
            response = await async_client.get(
                "/api/shopify/callback",
                params={"code": "bad", "state": "state-123", "shop": TEST_SHOP},
            )

        assert response.headers["location"] == f"{CONNECT_PAGE}?error=oauth_failed"
        result = await db_session.execute(select(Connection))
        assert result.scalars().all() == []


class TestExchangeOAuthCode:
    async def test_posts_credentials(self):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"access_token": "shpat_x", "scope": "read_orders"})

        data = await exchange_oauth_code(TEST_SHOP, "code-1", transport=httpx.MockTransport(handler))

        assert data["access_token"] == "shpat_x"
        assert str(seen[0].url) == f"https://{TEST_SHOP}/admin/oauth/access_token"
        assert seen[0].method == "POST"

    async def test_http_error(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(400, json={"error": "invalid_request"}))

        with pytest.raises(ShopifyAPIError) as exc_info:
            await exchange_oauth_code(TEST_SHOP, "code-1", transport=transport)

        assert exc_info.value.status_code == 400

    async def test_missing_token(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(200, json={}))

        with pytest.raises(ShopifyAPIError):
            await exchange_oauth_code(TEST_SHOP, "code-1", transport=transport)


class TestConnectionEndpoints:
    async def test_status_not_connected(self, async_client, auth_headers):
        response = await async_client.get("/api/shopify/connection", headers=auth_headers)

        assert response.status_code == 200
        assert response.json()["connected"] is False

    async def test_status_connected(self, async_client, auth_headers, connection):
        response = await async_client.get("/api/shopify/connection", headers=auth_headers)

        body = response.json()
        assert body["connected"] is True
        assert body["shopDomain"] == TEST_SHOP
        assert body["connectedAt"] is not None

    async def test_disconnect(self, async_client, auth_headers, connection):
        response = await async_client.post("/api/shopify/disconnect", headers=auth_headers)
        assert response.status_code == 204

        response = await async_client.get("/api/shopify/connection", headers=auth_headers)
        assert response.json()["connected"] is False
