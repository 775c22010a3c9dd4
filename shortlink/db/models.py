"""
Database Models for the Link Service

This module defines the SQLModel database schemas for:
- Link: Maps a short code to its destination URL
- ClickEvent: One row per successful redirect, for analytics
- Counter: Monotonic integers used by sequential code allocation

Design Decisions:
- ClickEvent references its link by code only (no FK cascade) so events
  outlive a soft-deleted link for historical reporting
- Indexes on code for fast lookups (most common operation)
- Indexes on timestamps for rolling-window queries
- clicks denormalized in Link for quick stats without joins
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import JSON, Boolean, DateTime, Integer, String, Text
from sqlmodel import Column, Field, SQLModel


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite hands back naive datetimes; treat them as UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class Link(SQLModel, table=True):
    """
    Main table storing short code mappings.

    Fields:
    - code: Unique, case-sensitive short code (immutable once assigned)
    - destination_url: The long URL that was shortened
    - alias: The requested alias when the code came from one
    - active: Soft delete flag
    - clicks: Denormalized count, only ever incremented
    - tags: Free-form labels stored as a JSON list

    Indexes:
    - code: Unique index for fast lookups (most critical path)
    - alias: Unique index, nullable
    - created_at: For "recent links" listings
    """
    __tablename__ = "links"

    id: Optional[int] = Field(default=None, primary_key=True)
    code: str = Field(
        sa_column=Column(String(20), nullable=False, unique=True, index=True),
        max_length=20
    )
    destination_url: str = Field(sa_column=Column(Text, nullable=False))
    alias: Optional[str] = Field(
        default=None,
        sa_column=Column(String(20), nullable=True, unique=True, index=True)
    )
    custom_domain: Optional[str] = Field(
        default=None,
        sa_column=Column(String(253), nullable=True)
    )
    created_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False, index=True)
    )
    expires_at: Optional[datetime] = Field(
        default=None,
        sa_column=Column(DateTime(timezone=True), nullable=True, index=True)
    )
    active: bool = Field(
        default=True,
        sa_column=Column(Boolean, nullable=False, default=True, index=True)
    )
    clicks: int = Field(default=0, sa_column=Column(Integer, nullable=False, default=0))
    last_accessed_at: Optional[datetime] = Field(
        default=None,
        sa_column=Column(DateTime(timezone=True), nullable=True)
    )
    tags: list[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))

    @property
    def is_custom_alias(self) -> bool:
        return self.alias is not None

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        expires_at = as_utc(self.expires_at)
        if expires_at is None:
            return False
        return (now or utcnow()) >= expires_at

    def is_live(self, now: Optional[datetime] = None) -> bool:
        """Active and not past expiry, whatever the flag says."""
        return self.active and not self.is_expired(now)


class ClickEvent(SQLModel, table=True):
    """
    Click event table for detailed analytics.

    Rows are appended once per successful redirect and never updated.
    The device/browser/os columns hold the user-agent classification
    computed at record time.
    """
    __tablename__ = "click_events"

    id: Optional[int] = Field(default=None, primary_key=True)
    code: str = Field(sa_column=Column(String(20), nullable=False, index=True))
    timestamp: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False, index=True)
    )
    ip: str = Field(sa_column=Column(String(45), nullable=False))  # IPv6 max length
    user_agent: str = Field(default="Unknown", sa_column=Column(String(500), nullable=False))
    referrer: str = Field(default="Direct", sa_column=Column(String(2048), nullable=False))
    device: str = Field(default="desktop", sa_column=Column(String(20), nullable=False))
    browser: str = Field(default="Unknown", sa_column=Column(String(100), nullable=False))
    os: str = Field(default="Unknown", sa_column=Column(String(100), nullable=False))
    country: Optional[str] = Field(default=None, sa_column=Column(String(2), nullable=True))


class Counter(SQLModel, table=True):
    """Named monotonic counter, created lazily and never decremented."""
    __tablename__ = "counters"

    namespace: str = Field(sa_column=Column(String(64), primary_key=True))
    value: int = Field(default=0, sa_column=Column(Integer, nullable=False, default=0))
