"""
FeedHealth Data Models
======================

Pydantic models for the values that flow through a health check run:
feed descriptors loaded from the catalog, per-feed fetch outcomes,
report rows and the paused-feed owner grouping.
"""

from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

UNKNOWN_COUNT = "unknown"


class FeedDescriptor(BaseModel):
    """A tracked feed as described by the catalog. Immutable for a run."""
    publisher: str = Field(..., description="Publisher owning the feed")
    feed_name: str = Field(..., min_length=1, description="Feed name, doubles as the magazine key")
    feed_url: str = Field(default="", description="Feed URL")
    last_updated: Optional[str] = Field(default=None, description="Last update timestamp as stored in the catalog")
    paused: bool = Field(default=False, description="Whether ingestion is intentionally paused")

    model_config = {"frozen": True}

    @field_validator('feed_name')
    @classmethod
    def validate_feed_name(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("Feed name cannot be empty")
        return v

    @property
    def magazine(self) -> str:
        """Reporting key under which the feed's articles are counted."""
        return self.feed_name

    def __str__(self) -> str:
        return f"Feed({self.feed_name} / {self.publisher})"


class FetchStatus(str, Enum):
    """Terminal state of one feed's count fetch."""
    SUCCESS = "success"
    EXHAUSTED = "exhausted"         # every attempt failed transiently
    DECODE_ERROR = "decode_error"   # 2xx response with a malformed body
    FAILED = "failed"               # unexpected error inside the unit


class FetchOutcome(BaseModel):
    """Ingestion count for one feed, or the reason it is unknown."""
    feed_index: int = Field(..., ge=0, description="Position of the feed in the catalog")
    magazine: str = Field(..., min_length=1)
    status: FetchStatus
    article_count: Optional[int] = Field(default=None, ge=0)
    attempts: int = Field(default=0, ge=0, description="Requests issued to the counting service")
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.status == FetchStatus.SUCCESS

    @property
    def unknown(self) -> bool:
        return self.article_count is None


class ReportRow(BaseModel):
    """One line of the aggregated report."""
    magazine: str
    article_count: Optional[int] = Field(default=None, ge=0)

    @property
    def unknown(self) -> bool:
        return self.article_count is None

    def display_count(self) -> str:
        return UNKNOWN_COUNT if self.article_count is None else str(self.article_count)


class AggregatedReport(BaseModel):
    """Per-magazine counts in ascending, stable order."""
    rows: List[ReportRow] = Field(default_factory=list)
    duplicate_magazines: List[str] = Field(default_factory=list)

    def __len__(self) -> int:
        return len(self.rows)

    @property
    def unknown_magazines(self) -> List[str]:
        return [row.magazine for row in self.rows if row.unknown]


class OwnerGroups(BaseModel):
    """Paused feeds grouped by the owner who has to act on them."""
    groups: Dict[str, List[FeedDescriptor]] = Field(default_factory=dict)
    inactive: List[FeedDescriptor] = Field(default_factory=list)
    ambiguous: List[FeedDescriptor] = Field(default_factory=list)
    failed: List[FeedDescriptor] = Field(default_factory=list)

    def add(self, owner: str, feed: FeedDescriptor) -> bool:
        """Add a feed to an owner's group. Returns False if it was already there."""
        feeds = self.groups.setdefault(owner, [])
        if feed in feeds:
            return False
        feeds.append(feed)
        return True

    @property
    def owners(self) -> List[str]:
        return list(self.groups)

    def feeds_for(self, owner: str) -> List[FeedDescriptor]:
        return list(self.groups.get(owner, []))
