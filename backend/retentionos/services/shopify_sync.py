"""
Shopify reconciliation job - pulls customers and orders from Shopify and
diffs them against the local tables.

Customers are synced before orders so that orders can be linked to local
customer rows. Each remote record is inserted (ingested), overwritten when it
changed remotely (updated) or left alone (skipped). Every run is recorded in
``sync_runs`` and always ends as completed or failed.
"""
import asyncio
import hashlib
import json
import weakref
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Optional
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from retentionos.core.config import settings
from retentionos.core.logging import get_logger
from retentionos.core.pii import hash_email
from retentionos.models.account import Account
from retentionos.models.sync_run import SyncRun
from retentionos.repositories.base import BaseRepository
from retentionos.repositories.customer import CustomerRepository
from retentionos.repositories.order import OrderRepository
from retentionos.repositories.sync_run import SyncRunRepository
from retentionos.services.shopify_client import ShopifyClient, create_shopify_client

logger = get_logger(__name__)

ClientFactory = Callable[[AsyncSession, str], Awaitable[ShopifyClient]]

_account_locks: weakref.WeakValueDictionary[UUID, asyncio.Lock] = weakref.WeakValueDictionary()


class SyncError(Exception):
    """A sync run failed; the run is already marked failed."""

    def __init__(self, message: str, sync_id: UUID) -> None:
        super().__init__(message)
        self.sync_id = sync_id


@dataclass
class SyncResult:
    """Per-entity outcome of one run."""

    ingested: int = 0
    updated: int = 0
    skipped: int = 0
    shopify_count: int = 0
    local_count: int = 0

    def to_dict(self) -> dict[str, int]:
        return asdict(self)


@dataclass
class SyncSummary:
    customers: SyncResult
    orders: SyncResult
    sync_id: UUID


@asynccontextmanager
async def account_sync_lock(account_id: UUID) -> AsyncIterator[None]:
    """Serialize sync runs of the same account within this process."""
    lock = _account_locks.get(account_id)
    if lock is None:
        # Entry lives as long as some task holds or awaits the lock
        lock = _account_locks[account_id] = asyncio.Lock()
    elif lock.locked():
        logger.info("Sync already running, waiting", account_id=str(account_id))
    async with lock:
        yield


# --- record parsing -------------------------------------------------------

def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse a Shopify ISO-8601 timestamp into an aware UTC datetime."""
    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Stored timestamps may come back naive (SQLite); they are UTC."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def to_decimal(value: Any) -> Decimal:
    try:
        return Decimal(str(value if value not in (None, "") else "0"))
    except InvalidOperation as e:
        raise ValueError(f"Invalid amount: {value!r}") from e


def content_hash(fields: dict[str, Any]) -> str:
    """Stable digest of a record's mutable fields."""
    payload = json.dumps(fields, sort_keys=True, default=str)
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def needs_update(
    local_updated_at: Optional[datetime],
    local_hash: Optional[str],
    remote_updated_at: Optional[datetime],
    remote_hash: str,
) -> bool:
    """
    Decide whether a stored row must be overwritten.

    A remote last-modified timestamp wins when present: only a strictly newer
    one counts. Without it the content hashes are compared.
    """
    local_updated_at = ensure_utc(local_updated_at)
    if remote_updated_at is not None:
        if local_updated_at is None:
            return True
        return remote_updated_at > local_updated_at
    return remote_hash != local_hash


def build_customer_fields(remote: dict[str, Any], salt: str) -> dict[str, Any]:
    """Map a Shopify customer payload to Customer columns."""
    email = hash_email(remote.get("email"), salt)
    mutable = {
        "email_hash": email.hash if email else None,
        "email_salt": email.salt if email else None,
        "first_name": remote.get("first_name"),
        "last_name": remote.get("last_name"),
        "phone": remote.get("phone"),
        "accepts_marketing": bool(remote.get("accepts_marketing") or False),
        "total_spent": to_decimal(remote.get("total_spent")),
        "orders_count": int(remote.get("orders_count") or 0),
    }
    return {
        "source_id": int(remote["id"]),
        "source_created_at": parse_timestamp(remote.get("created_at")),
        "source_updated_at": parse_timestamp(remote.get("updated_at")),
        **mutable,
        "content_hash": content_hash(mutable),
    }


def build_line_items(remote_items: list[dict[str, Any]]) -> list[dict[str, Any]]:
    return [
        {
            "source_id": item.get("id"),
            "product_id": item.get("product_id"),
            "variant_id": item.get("variant_id"),
            "title": item.get("title") or "",
            "variant_title": item.get("variant_title"),
            "sku": item.get("sku"),
            "quantity": int(item.get("quantity") or 0),
            "price": str(to_decimal(item.get("price"))),
        }
        for item in remote_items
    ]


def build_order_fields(
    remote: dict[str, Any],
    salt: str,
    customer_id: Optional[UUID],
) -> dict[str, Any]:
    """Map a Shopify order payload to Order columns."""
    created_at = parse_timestamp(remote.get("created_at"))
    if created_at is None:
        raise ValueError("order has no created_at")

    email = hash_email(remote.get("email"), salt)
    line_items = build_line_items(remote.get("line_items") or [])
    mutable = {
        "customer_id": customer_id,
        "order_number": str(remote.get("order_number") or remote.get("name") or ""),
        "financial_status": remote.get("financial_status") or "pending",
        "fulfillment_status": remote.get("fulfillment_status"),
        "subtotal_price": to_decimal(remote.get("subtotal_price")),
        "total_price": to_decimal(remote.get("total_price")),
        "total_tax": to_decimal(remote.get("total_tax")),
        "currency": remote.get("currency") or "USD",
        "customer_email_hash": email.hash if email else None,
        "line_items": line_items,
        "line_item_count": len(line_items),
    }
    return {
        "source_id": int(remote["id"]),
        "source_created_at": created_at,
        "source_updated_at": parse_timestamp(remote.get("updated_at")),
        **mutable,
        "content_hash": content_hash(mutable),
    }


# --- reconciliation -------------------------------------------------------

async def _upsert(
    repo: BaseRepository,
    account_id: UUID,
    fields: dict[str, Any],
    result: SyncResult,
) -> None:
    existing = await repo.get_by_source_id(account_id, fields["source_id"])
    now = datetime.now(timezone.utc)

    if existing is None:
        await repo.create({"account_id": account_id, **fields, "synced_at": now})
        result.ingested += 1
    elif needs_update(
        existing.source_updated_at,
        existing.content_hash,
        fields["source_updated_at"],
        fields["content_hash"],
    ):
        await repo.update(existing, {**fields, "synced_at": now})
        result.updated += 1
    else:
        result.skipped += 1


async def sync_customers(
    session: AsyncSession,
    client: ShopifyClient,
    account: Account,
    *,
    page_size: int,
    max_pages: int,
) -> SyncResult:
    """Reconcile remote customers into the customers table."""
    repo = CustomerRepository(session)
    result = SyncResult()

    async for page in client.iter_customers(page_size=page_size, max_pages=max_pages):
        result.shopify_count += len(page)
        for remote in page:
            try:
                fields = build_customer_fields(remote, account.email_salt)
                await _upsert(repo, account.id, fields, result)
            except SQLAlchemyError:
                raise
            except Exception as e:
                logger.warning(
                    "Skipping customer record",
                    source_id=remote.get("id"),
                    error=str(e),
                )
                result.skipped += 1

    result.local_count = await repo.count_for_account(account.id)
    return result


async def sync_orders(
    session: AsyncSession,
    client: ShopifyClient,
    account: Account,
    *,
    page_size: int,
    max_pages: int,
) -> SyncResult:
    """Reconcile remote orders into the orders table, linking local customers."""
    repo = OrderRepository(session)
    customers = CustomerRepository(session)
    result = SyncResult()

    async for page in client.iter_orders(page_size=page_size, max_pages=max_pages):
        result.shopify_count += len(page)
        for remote in page:
            try:
                customer_ref = (remote.get("customer") or {}).get("id")
                customer_id = None
                if customer_ref is not None:
                    customer_id = await customers.get_local_id(account.id, int(customer_ref))

                fields = build_order_fields(remote, account.email_salt, customer_id)
                await _upsert(repo, account.id, fields, result)
            except SQLAlchemyError:
                raise
            except Exception as e:
                logger.warning(
                    "Skipping order record",
                    source_id=remote.get("id"),
                    error=str(e),
                )
                result.skipped += 1

    result.local_count = await repo.count_for_account(account.id)
    return result


async def _fail_run(
    session: AsyncSession,
    runs: SyncRunRepository,
    run: SyncRun,
    message: str,
) -> None:
    """Discard uncommitted work and close the run as failed."""
    await session.rollback()
    await session.refresh(run)
    await runs.fail(run, message)
    await session.commit()


async def run_shopify_sync(
    session: AsyncSession,
    account: Account,
    owner_id: str,
    *,
    client_factory: ClientFactory = create_shopify_client,
    page_size: Optional[int] = None,
    max_pages: Optional[int] = None,
) -> SyncSummary:
    """
    Run a full customer + order reconciliation for one account.

    Raises SyncError after marking the run failed; partial work of the phase
    that failed is rolled back, completed phases stay committed. A cancelled
    run is marked failed before the cancellation propagates.
    """
    page_size = page_size or settings.sync_page_size
    max_pages = settings.sync_max_pages if max_pages is None else max_pages

    async with account_sync_lock(account.id):
        runs = SyncRunRepository(session)
        run = await runs.start(account.id)
        await session.commit()
        sync_id = run.id

        log = logger.bind(account_id=str(account.id), sync_id=str(sync_id))
        log.info("Starting Shopify sync")

        try:
            client = await client_factory(session, owner_id)

            customers = await sync_customers(
                session, client, account, page_size=page_size, max_pages=max_pages
            )
            await session.commit()
            log.info("Customers synced", **customers.to_dict())

            orders = await sync_orders(
                session, client, account, page_size=page_size, max_pages=max_pages
            )
            await session.commit()
            log.info("Orders synced", **orders.to_dict())

            await runs.complete(
                run,
                rows_ingested=customers.ingested + orders.ingested,
                rows_updated=customers.updated + orders.updated,
                rows_skipped=customers.skipped + orders.skipped,
                shopify_count=customers.shopify_count + orders.shopify_count,
                local_count=customers.local_count + orders.local_count,
            )
            await session.commit()

        except asyncio.CancelledError:
            log.warning("Shopify sync cancelled")
            await asyncio.shield(_fail_run(session, runs, run, "Sync cancelled"))
            raise
        except Exception as e:
            message = str(e) or type(e).__name__
            log.error("Shopify sync failed", error=message, error_type=type(e).__name__)
            await _fail_run(session, runs, run, message)
            raise SyncError(message, sync_id) from e

    log.info("Shopify sync completed")
    return SyncSummary(customers=customers, orders=orders, sync_id=sync_id)
