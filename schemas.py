"""
schemas.py - Request and response bodies for the HTTP API.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ValidationSummary(BaseModel):
    total: int
    active: int
    errors: int


class HealthStatsRead(ValidationSummary):
    unknown: int
    last_validated: Optional[datetime] = Field(default=None, alias="lastValidated")

    model_config = ConfigDict(populate_by_name=True)


class LinkCreate(BaseModel):
    url: str = Field(min_length=1)


class BulkImport(BaseModel):
    urls: List[str]


class LinkRead(BaseModel):
    id: str
    list_id: Optional[str] = None
    url: str
    title: Optional[str] = None
    description: Optional[str] = None
    order_index: int = 0
    favicon_url: Optional[str] = None
    og_image_url: Optional[str] = None
    content_type: Optional[str] = None
    status: Optional[str] = None
    last_validated_at: Optional[datetime] = None
