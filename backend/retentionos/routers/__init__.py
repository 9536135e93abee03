"""
API routers package.
"""
from retentionos.routers.health import router as health_router
from retentionos.routers.metrics import router as metrics_router
from retentionos.routers.shopify import router as shopify_router
from retentionos.routers.sync import router as sync_router

__all__ = [
    "health_router",
    "shopify_router",
    "sync_router",
    "metrics_router",
]
