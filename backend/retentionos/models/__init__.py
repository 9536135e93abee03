"""
SQLAlchemy models package.
All models are imported here for easy access and Alembic discovery.
"""
from retentionos.models.account import Account
from retentionos.models.connection import PLATFORM_SHOPIFY, Connection
from retentionos.models.customer import Customer
from retentionos.models.order import Order
from retentionos.models.sync_run import SyncRun, SyncStatus

__all__ = [
    "Account",
    "Connection",
    "PLATFORM_SHOPIFY",
    "Customer",
    "Order",
    "SyncRun",
    "SyncStatus",
]
