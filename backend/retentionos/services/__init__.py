"""
Service layer: Shopify access, the reconciliation job and retention metrics.
"""
from retentionos.services.shopify_client import (
    NoActiveConnectionError,
    ShopifyAPIError,
    ShopifyClient,
    create_shopify_client,
)
from retentionos.services.shopify_sync import SyncError, SyncResult, SyncSummary, run_shopify_sync

__all__ = [
    "ShopifyClient",
    "ShopifyAPIError",
    "NoActiveConnectionError",
    "create_shopify_client",
    "run_shopify_sync",
    "SyncError",
    "SyncResult",
    "SyncSummary",
]
