"""
Shared router dependencies: session authentication and tenant resolution.
"""
from typing import Annotated, Optional

from fastapi import Cookie, Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from retentionos.core.database import get_db_session
from retentionos.core.logging import bind_account_context
from retentionos.core.security import decode_access_token
from retentionos.models.account import Account
from retentionos.repositories.account import AccountRepository

SESSION_COOKIE = "retentionos_session"

bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_user_id(
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(bearer_scheme)],
    session_cookie: Annotated[Optional[str], Cookie(alias=SESSION_COOKIE)] = None,
) -> str:
    """
    Resolve the signed-in user from a bearer token or the session cookie.
    Browser navigations (the OAuth redirect) only carry the cookie.
    """
    token = credentials.credentials if credentials else session_cookie
    payload = decode_access_token(token) if token else None
    user_id = payload.get("sub") if payload else None
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return str(user_id)


CurrentUserId = Annotated[str, Depends(get_current_user_id)]


async def get_current_account(
    user_id: CurrentUserId,
    session: Annotated[AsyncSession, Depends(get_db_session)],
) -> Account:
    """The caller's account, created on first use."""
    account, _ = await AccountRepository(session).get_or_create(user_id)
    bind_account_context(str(account.id), user_id)
    return account


CurrentAccount = Annotated[Account, Depends(get_current_account)]
