"""
Connection Pydantic schemas.
"""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class ConnectionStatus(BaseModel):
    """Whether the dashboard should show "connect" or "manage"."""

    connected: bool
    platform: str = "shopify"
    shop_domain: Optional[str] = Field(None, alias="shopDomain")
    connected_at: Optional[datetime] = Field(None, alias="connectedAt")

    model_config = ConfigDict(populate_by_name=True)
