"""
Order repository for data access operations.
"""
from retentionos.models.order import Order
from retentionos.repositories.base import BaseRepository


class OrderRepository(BaseRepository[Order]):
    """Repository for Order model operations."""

    model = Order
