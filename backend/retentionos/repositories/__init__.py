"""
Repository package for data access layer.
"""
from retentionos.repositories.account import AccountRepository
from retentionos.repositories.base import BaseRepository
from retentionos.repositories.connection import ConnectionRepository
from retentionos.repositories.customer import CustomerRepository
from retentionos.repositories.order import OrderRepository
from retentionos.repositories.sync_run import SyncRunRepository

__all__ = [
    "BaseRepository",
    "AccountRepository",
    "ConnectionRepository",
    "CustomerRepository",
    "OrderRepository",
    "SyncRunRepository",
]
