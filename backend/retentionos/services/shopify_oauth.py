"""
Shopify OAuth authorization-code helpers.
"""
from typing import Optional
from urllib.parse import urlencode

import httpx

from retentionos.core.config import settings
from retentionos.core.logging import get_logger
from retentionos.services.shopify_client import ShopifyAPIError

logger = get_logger(__name__)

CALLBACK_PATH = "/api/shopify/callback"


def missing_oauth_settings() -> list[str]:
    """Names of unset settings the OAuth flow needs."""
    missing = []
    if not settings.shopify_api_key:
        missing.append("SHOPIFY_API_KEY")
    if not settings.shopify_api_secret:
        missing.append("SHOPIFY_API_SECRET")
    return missing


def build_redirect_uri(request_origin: str) -> str:
    origin = (settings.site_url or request_origin).rstrip("/")
    return f"{origin}{CALLBACK_PATH}"


def build_authorize_url(shop_domain: str, state: str, redirect_uri: str) -> str:
    """Shopify's per-shop consent screen URL."""
    params = {
        "client_id": settings.shopify_api_key,
        "scope": settings.shopify_scopes,
        "redirect_uri": redirect_uri,
        "state": state,
    }
    return f"https://{shop_domain}/admin/oauth/authorize?{urlencode(params)}"


async def exchange_oauth_code(
    shop_domain: str,
    code: str,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> dict:
    """
    Exchange an authorization code for an offline access token.

    Returns Shopify's JSON body ({"access_token", "scope"}).
    """
    try:
        async with httpx.AsyncClient(
            timeout=settings.shopify_timeout_seconds,
            transport=transport,
        ) as client:
            response = await client.post(
                f"https://{shop_domain}/admin/oauth/access_token",
                json={
                    "client_id": settings.shopify_api_key,
                    "client_secret": settings.shopify_api_secret,
                    "code": code,
                },
            )
            response.raise_for_status()
            data = response.json()
    except httpx.HTTPStatusError as e:
        raise ShopifyAPIError(
            f"Token exchange failed: {e.response.status_code}",
            e.response.status_code,
        ) from e
    except httpx.RequestError as e:
        raise ShopifyAPIError(f"Token exchange request failed: {e}") from e

    if not data.get("access_token"):
        raise ShopifyAPIError("Token exchange returned no access token")

    logger.info("Shopify token exchange succeeded", shop=shop_domain, scope=data.get("scope"))
    return data
