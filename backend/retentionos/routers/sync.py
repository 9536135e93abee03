"""
Sync trigger and history API routes.
"""
from typing import Annotated

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from retentionos.core.database import get_db_session
from retentionos.core.logging import get_logger
from retentionos.repositories.sync_run import SyncRunRepository
from retentionos.routers.deps import CurrentAccount, CurrentUserId
from retentionos.schemas.sync import (
    SyncData,
    SyncErrorResponse,
    SyncHistoryResponse,
    SyncResponse,
    SyncResultSchema,
    SyncRunResponse,
)
from retentionos.services.shopify_client import create_shopify_client
from retentionos.services.shopify_sync import ClientFactory, SyncError, run_shopify_sync

logger = get_logger(__name__)

router = APIRouter(prefix="/sync", tags=["sync"])


def get_client_factory() -> ClientFactory:
    """Dependency returning the Shopify client factory used by sync runs."""
    return create_shopify_client


@router.post(
    "/shopify",
    response_model=SyncResponse,
    responses={500: {"model": SyncErrorResponse}},
)
async def sync_shopify(
    account: CurrentAccount,
    user_id: CurrentUserId,
    session: Annotated[AsyncSession, Depends(get_db_session)],
    client_factory: Annotated[ClientFactory, Depends(get_client_factory)],
):
    """
    Reconcile the caller's customers and orders with their connected store.

    Runs synchronously; concurrent requests for the same account queue
    behind each other. A failed run is still recorded and its id returned.
    """
    try:
        summary = await run_shopify_sync(
            session,
            account,
            user_id,
            client_factory=client_factory,
        )
    except SyncError as e:
        body = SyncErrorResponse(
            error="Failed to sync Shopify data",
            details=str(e),
            sync_id=e.sync_id,
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=body.model_dump(mode="json"),
        )

    return SyncResponse(
        message="Shopify sync completed successfully",
        data=SyncData(
            customers=SyncResultSchema(**summary.customers.to_dict()),
            orders=SyncResultSchema(**summary.orders.to_dict()),
            sync_id=summary.sync_id,
        ),
    )


@router.get("/history", response_model=SyncHistoryResponse)
async def sync_history(
    account: CurrentAccount,
    session: Annotated[AsyncSession, Depends(get_db_session)],
    limit: int = Query(10, ge=1, le=100),
) -> SyncHistoryResponse:
    """Most recent sync runs of the caller's account, newest first."""
    runs = await SyncRunRepository(session).latest_for_account(account.id, limit=limit)
    return SyncHistoryResponse(
        runs=[SyncRunResponse.model_validate(run) for run in runs],
        total=len(runs),
    )
