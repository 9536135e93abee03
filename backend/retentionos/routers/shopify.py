"""
Shopify connection routes: OAuth connect flow, status, disconnect.
"""
from typing import Annotated, Optional

from fastapi import APIRouter, Cookie, Depends, HTTPException, Query, Request, Response, status
from fastapi.responses import RedirectResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from retentionos.core.config import settings
from retentionos.core.database import get_db_session
from retentionos.core.logging import get_logger
from retentionos.core.security import (
    encrypt_token,
    generate_oauth_state,
    read_signed_cookie,
    sign_cookie_value,
)
from retentionos.repositories.connection import ConnectionRepository
from retentionos.routers.deps import CurrentUserId
from retentionos.schemas.connection import ConnectionStatus
from retentionos.services import shopify_oauth
from retentionos.services.shopify_client import (
    ShopifyAPIError,
    is_valid_shop_domain,
    normalize_shop_domain,
)

logger = get_logger(__name__)

router = APIRouter(prefix="/shopify", tags=["shopify"])

STATE_COOKIE = "shopify_oauth_state"
USER_COOKIE = "shopify_oauth_user_id"
CONNECT_PAGE = "/connect/shopify"


async def get_connection_repository(
    session: Annotated[AsyncSession, Depends(get_db_session)],
) -> ConnectionRepository:
    """Dependency to get connection repository."""
    return ConnectionRepository(session)


def _connect_page(**params: str) -> RedirectResponse:
    query = "&".join(f"{key}={value}" for key, value in params.items())
    return RedirectResponse(
        url=f"{settings.site_url.rstrip('/')}{CONNECT_PAGE}?{query}",
        status_code=status.HTTP_307_TEMPORARY_REDIRECT,
    )


def _set_oauth_cookie(response: Response, name: str, value: str) -> None:
    response.set_cookie(
        name,
        sign_cookie_value(value),
        max_age=settings.oauth_state_max_age,
        httponly=True,
        secure=settings.environment == "production",
        samesite="lax",
    )


def _require_oauth_config() -> None:
    missing = shopify_oauth.missing_oauth_settings()
    if missing:
        logger.error("Shopify OAuth not configured", missing=missing)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"Shopify integration not configured. Missing: {', '.join(missing)}",
        )


@router.get("/auth")
async def shopify_authorize(
    request: Request,
    user_id: CurrentUserId,
    shop: Optional[str] = Query(None, description="Store name or <store>.myshopify.com"),
) -> RedirectResponse:
    """
    Start the OAuth flow.

    Stores a random state and the initiating user in signed, short-lived
    cookies and redirects to the shop's consent screen.
    """
    _require_oauth_config()

    if not shop:
        return _connect_page(error="no_shop_domain")

    shop_domain = normalize_shop_domain(shop)
    if not is_valid_shop_domain(shop_domain):
        return _connect_page(error="invalid_shop_domain")

    state = generate_oauth_state()
    redirect_uri = shopify_oauth.build_redirect_uri(str(request.base_url))
    auth_url = shopify_oauth.build_authorize_url(shop_domain, state, redirect_uri)

    response = RedirectResponse(url=auth_url, status_code=status.HTTP_307_TEMPORARY_REDIRECT)
    _set_oauth_cookie(response, STATE_COOKIE, state)
    _set_oauth_cookie(response, USER_COOKIE, user_id)

    logger.info("Redirecting to Shopify OAuth", shop=shop_domain, user_id=user_id)
    return response


@router.get("/callback")
async def shopify_callback(
    repo: Annotated[ConnectionRepository, Depends(get_connection_repository)],
    code: Optional[str] = Query(None),
    state: Optional[str] = Query(None),
    shop: Optional[str] = Query(None),
    state_cookie: Annotated[Optional[str], Cookie(alias=STATE_COOKIE)] = None,
    user_cookie: Annotated[Optional[str], Cookie(alias=USER_COOKIE)] = None,
) -> RedirectResponse:
    """
    Finish the OAuth flow: validate state, exchange the code, store the
    connection, and send the user back to the connect page.
    """
    _require_oauth_config()

    if not code or not state or not shop:
        return _connect_page(error="invalid_callback")

    shop_domain = normalize_shop_domain(shop)
    if not is_valid_shop_domain(shop_domain):
        return _connect_page(error="invalid_callback")

    stored_state = read_signed_cookie(state_cookie)
    user_id = read_signed_cookie(user_cookie)
    if not stored_state or stored_state != state or not user_id:
        logger.warning("OAuth state validation failed", shop=shop_domain)
        return _connect_page(error="invalid_state")

    try:
        token_data = await shopify_oauth.exchange_oauth_code(shop_domain, code)
    except ShopifyAPIError as e:
        logger.error("Shopify OAuth error", shop=shop_domain, error=str(e))
        response = _connect_page(error="oauth_failed")
    else:
        try:
            await repo.activate(
                owner_id=user_id,
                platform_domain=shop_domain,
                access_token_encrypted=encrypt_token(token_data["access_token"]),
                scopes=token_data.get("scope"),
            )
            await repo.session.commit()
        except SQLAlchemyError as e:
            await repo.session.rollback()
            logger.error(
                "Failed to store Shopify connection",
                shop=shop_domain,
                user_id=user_id,
                error=str(e),
            )
            response = _connect_page(error="database_error")
        else:
            logger.info("Shopify connected", shop=shop_domain, user_id=user_id)
            response = _connect_page(success="true")

    response.delete_cookie(STATE_COOKIE)
    response.delete_cookie(USER_COOKIE)
    return response


@router.get("/connection", response_model=ConnectionStatus)
async def get_connection_status(
    user_id: CurrentUserId,
    repo: Annotated[ConnectionRepository, Depends(get_connection_repository)],
) -> ConnectionStatus:
    """Active connection of the caller, if any."""
    connection = await repo.get_active(user_id)
    if connection is None:
        return ConnectionStatus(connected=False)
    return ConnectionStatus(
        connected=True,
        shop_domain=connection.platform_domain,
        connected_at=connection.connected_at,
    )


@router.post("/disconnect", status_code=status.HTTP_204_NO_CONTENT)
async def disconnect_shopify(
    user_id: CurrentUserId,
    repo: Annotated[ConnectionRepository, Depends(get_connection_repository)],
) -> None:
    """Deactivate the caller's Shopify connection. Stored data is kept."""
    deactivated = await repo.deactivate(user_id)
    logger.info("Shopify disconnected", user_id=user_id, connections=deactivated)
