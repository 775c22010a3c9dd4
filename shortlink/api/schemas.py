"""
API Request and Response Schemas

This module defines all Pydantic models for API requests and responses.
Separated from endpoints to keep concerns separated and enable reuse.

Design Principles:
- Request models: Define input shape; URL and alias rules are enforced by
  the services so they map onto the error taxonomy (400/409, not 422)
- Response models: Define output structure
- Separation: Can be imported by other modules (services, tests, etc.)
"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field

from shortlink.core.setting import settings
from shortlink.db.models import Link, as_utc


class ShortenRequest(BaseModel):
    """Request model for link creation."""
    url: str = Field(..., description="The long URL to shorten")
    custom_alias: Optional[str] = Field(default=None, description="Requested short code")
    custom_domain: Optional[str] = Field(default=None, description="Vanity domain")
    expires_in_hours: Optional[float] = Field(default=None, gt=0, description="Lifetime in hours")
    tags: list[str] = Field(default_factory=list, description="Free-form labels")

    def to_service_kwargs(self) -> dict:
        return {
            "destination_url": self.url,
            "custom_alias": self.custom_alias,
            "custom_domain": self.custom_domain,
            "expires_in_hours": self.expires_in_hours,
            "tags": self.tags,
        }


class BatchShortenRequest(BaseModel):
    """Request model for batch creation (1 to 50 items)."""
    urls: list[ShortenRequest]


class UpdateLinkRequest(BaseModel):
    """Request model for updating a link; omitted fields stay unchanged."""
    tags: Optional[list[str]] = None
    custom_domain: Optional[str] = None


class LinkResponse(BaseModel):
    """A link as returned by the API."""
    short_code: str
    short_url: str
    original_url: str
    custom_alias: bool
    custom_domain: Optional[str] = None
    created_at: datetime
    expires_at: Optional[datetime] = None
    tags: list[str] = []
    clicks: int = 0

    @classmethod
    def from_link(cls, link: Link) -> "LinkResponse":
        return cls(
            short_code=link.code,
            short_url=f"{settings.BASE_URL}/{link.code}",
            original_url=link.destination_url,
            custom_alias=link.is_custom_alias,
            custom_domain=link.custom_domain,
            created_at=as_utc(link.created_at),
            expires_at=as_utc(link.expires_at),
            tags=list(link.tags or []),
            clicks=link.clicks,
        )


class BatchFailure(BaseModel):
    index: int
    original_url: Optional[str] = None
    kind: str
    message: str


class BatchResponse(BaseModel):
    created: int
    failed: int
    results: list[LinkResponse]
    errors: list[BatchFailure] = []


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int


class LinkSummary(BaseModel):
    code: str
    destination_url: str
    clicks: int
    created_at: str


class OverviewResponse(BaseModel):
    total_links: int
    active_links: int
    total_clicks: int
    avg_clicks_per_link: float
    top_links: list[LinkSummary]
    recent_links: list[LinkSummary]


class LinkListResponse(BaseModel):
    items: list[LinkResponse]
    pagination: Pagination
    overview: OverviewResponse


class StatsResponse(BaseModel):
    """Response model for the per-link counters endpoint."""
    code: str
    destination_url: str
    custom_domain: Optional[str] = None
    clicks: int
    created_at: str
    last_accessed_at: Optional[str] = None
    expires_at: Optional[str] = None
    is_custom_alias: bool
    active: bool
    tags: list[str]


class NamedCount(BaseModel):
    name: str
    count: int


class DateCount(BaseModel):
    date: str
    count: int


class AnalyticsResponse(BaseModel):
    """Rolling-window click summary."""
    code: str
    window_days: int
    total_clicks: int
    clicks_by_date: list[DateCount]
    top_browsers: list[NamedCount]
    top_devices: list[NamedCount]
    top_referrers: list[NamedCount]
    top_countries: list[NamedCount]


class ErrorDetail(BaseModel):
    kind: str
    message: str


class ErrorResponse(BaseModel):
    error: ErrorDetail


SortField = Literal["created_at", "clicks", "code", "last_accessed_at"]
SortOrder = Literal["asc", "desc"]
