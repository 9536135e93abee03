"""
Shopify Admin REST client for customer, order and product reads.

Every method raises ShopifyAPIError on a non-2xx status or a transport
failure. There is no retry: callers decide whether to abort.
"""
import re
from collections.abc import AsyncIterator
from typing import Any, Optional
from urllib.parse import urlparse

import httpx
from sqlalchemy.ext.asyncio import AsyncSession

from retentionos.core.config import settings
from retentionos.core.logging import get_logger
from retentionos.core.security import decrypt_token
from retentionos.models.connection import PLATFORM_SHOPIFY, Connection
from retentionos.repositories.connection import ConnectionRepository

logger = get_logger(__name__)

SHOP_DOMAIN_SUFFIX = ".myshopify.com"
_SHOP_DOMAIN_RE = re.compile(r"^[a-z0-9][a-z0-9\-]{1,98}[a-z0-9]\.myshopify\.com$")


class ShopifyAPIError(Exception):
    """Raised for any failed Shopify request."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class NoActiveConnectionError(Exception):
    """The owner has no active Shopify connection."""


def normalize_shop_domain(shop_input: str) -> str:
    """
    Convert user input to the canonical ``<store>.myshopify.com`` form.

    'mystore', 'MyStore.myshopify.com' and 'https://mystore.myshopify.com/admin'
    all become 'mystore.myshopify.com'.
    """
    shop = shop_input.strip().lower()
    if shop.startswith(("http://", "https://")):
        parsed = urlparse(shop)
        shop = parsed.netloc or parsed.path
    shop = shop.split("/")[0]
    if shop.endswith(SHOP_DOMAIN_SUFFIX):
        shop = shop[: -len(SHOP_DOMAIN_SUFFIX)]
    return f"{shop}{SHOP_DOMAIN_SUFFIX}"


def is_valid_shop_domain(shop_domain: str) -> bool:
    return bool(_SHOP_DOMAIN_RE.match(shop_domain))


class ShopifyClient:
    """
    Async Shopify REST API client.

    Single-page reads (``get_customers`` and friends) issue exactly one GET.
    ``iter_customers``/``iter_orders`` follow the cursor in the ``Link``
    header and yield one page at a time.
    """

    API_BASE = "https://{domain}/admin/api/{version}"

    def __init__(
        self,
        access_token: str,
        shop_domain: str,
        *,
        api_version: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.access_token = access_token
        self.shop_domain = normalize_shop_domain(shop_domain)
        self.base_url = self.API_BASE.format(
            domain=self.shop_domain,
            version=api_version or settings.shopify_api_version,
        )
        self.timeout = timeout or settings.shopify_timeout_seconds
        self._transport = transport

    @classmethod
    def from_connection(
        cls,
        connection: Connection,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "ShopifyClient":
        """Build a client from a stored (encrypted) connection."""
        return cls(
            access_token=decrypt_token(connection.access_token_encrypted),
            shop_domain=connection.platform_domain,
            transport=transport,
        )

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.timeout,
            transport=self._transport,
            headers={
                "X-Shopify-Access-Token": self.access_token,
                "Accept": "application/json",
            },
        )

    async def _get(
        self,
        client: httpx.AsyncClient,
        url: str,
        params: Optional[dict[str, Any]] = None,
    ) -> httpx.Response:
        try:
            response = await client.get(url, params=params)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            status_code = e.response.status_code
            logger.error(
                "Shopify API error",
                shop=self.shop_domain,
                path=e.request.url.path,
                status=status_code,
            )
            raise ShopifyAPIError(f"Shopify API error: {status_code}", status_code) from e
        except httpx.RequestError as e:
            logger.error("Shopify request failed", shop=self.shop_domain, error=str(e))
            raise ShopifyAPIError(f"Request failed: {e}") from e
        return response

    async def _get_resource(
        self,
        resource: str,
        params: Optional[dict[str, Any]] = None,
    ) -> dict[str, Any]:
        async with self._client() as client:
            response = await self._get(client, f"{self.base_url}/{resource}.json", params)
        return response.json()

    async def test_connection(self) -> dict[str, Any]:
        """Fetch shop information to confirm the token works."""
        data = await self._get_resource("shop")
        return data.get("shop", {})

    async def get_products(self, limit: int = 50) -> list[dict[str, Any]]:
        """One page of products."""
        data = await self._get_resource("products", {"limit": limit})
        return data.get("products", [])

    async def get_orders(self, limit: int = 50) -> list[dict[str, Any]]:
        """One page of orders of any status."""
        data = await self._get_resource("orders", {"limit": limit, "status": "any"})
        return data.get("orders", [])

    async def get_customers(self, limit: int = 50) -> list[dict[str, Any]]:
        """One page of customers."""
        data = await self._get_resource("customers", {"limit": limit})
        return data.get("customers", [])

    async def iter_pages(
        self,
        resource: str,
        *,
        page_size: int = 250,
        max_pages: int = 0,
        params: Optional[dict[str, Any]] = None,
    ) -> AsyncIterator[list[dict[str, Any]]]:
        """
        Yield pages of ``resource`` records, following ``rel="next"`` links.

        Stops when Shopify reports no next page or after ``max_pages`` pages
        (0 means no limit). Every call starts again from the first page.
        """
        first_params = {"limit": page_size, **(params or {})}
        url: Optional[str] = f"{self.base_url}/{resource}.json"
        pages = 0

        async with self._client() as client:
            while url:
                # The next link already carries limit and page_info
                response = await self._get(client, url, first_params if pages == 0 else None)
                pages += 1
                records = response.json().get(resource, [])
                logger.debug(
                    "Fetched Shopify page",
                    shop=self.shop_domain,
                    resource=resource,
                    page=pages,
                    count=len(records),
                )
                yield records

                if max_pages and pages >= max_pages:
                    break
                url = response.links.get("next", {}).get("url")

    def iter_customers(
        self,
        page_size: int = 250,
        max_pages: int = 0,
    ) -> AsyncIterator[list[dict[str, Any]]]:
        return self.iter_pages("customers", page_size=page_size, max_pages=max_pages)

    def iter_orders(
        self,
        page_size: int = 250,
        max_pages: int = 0,
    ) -> AsyncIterator[list[dict[str, Any]]]:
        return self.iter_pages(
            "orders",
            page_size=page_size,
            max_pages=max_pages,
            params={"status": "any"},
        )


async def create_shopify_client(
    session: AsyncSession,
    owner_id: str,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> ShopifyClient:
    """Build a client from the owner's active Shopify connection."""
    connection = await ConnectionRepository(session).get_active(owner_id, PLATFORM_SHOPIFY)
    if connection is None:
        raise NoActiveConnectionError("No active Shopify connection found")
    return ShopifyClient.from_connection(connection, transport=transport)
