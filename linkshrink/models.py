"""Data records for links, clicks and their statistics."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass
class Link:
    """A shortened link as stored in the database."""

    short_code: str
    long_url: str
    id: int | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    deleted_at: datetime | None = None

    def as_dict(self) -> dict[str, str]:
        """Return the public JSON view of the link."""
        return {"short_code": self.short_code, "long_url": self.long_url}


@dataclass
class Click:
    """A recorded click on a shortened link."""

    link_id: int
    timestamp: datetime
    user_agent: str = ""
    ip_address: str = ""
    id: int | None = None


@dataclass(frozen=True)
class ClickEvent:
    """A raw click event passed to the recording workers."""

    link_id: int
    timestamp: datetime
    user_agent: str = ""
    ip_address: str = ""

    def to_click(self) -> Click:
        """Build the persistable click for this event."""
        return Click(
            link_id=self.link_id,
            timestamp=self.timestamp,
            user_agent=self.user_agent,
            ip_address=self.ip_address,
        )


@dataclass(frozen=True)
class ClickCountOutput:
    """Click details as exposed to callers."""

    link_id: int
    timestamp: datetime
    user_agent: str = ""
    ip_address: str = ""


@dataclass(frozen=True)
class StatsOutput:
    """Statistics for one shortened link."""

    short_code: str
    long_url: str
    click_count: int

    def as_dict(self) -> dict[str, object]:
        """Return the JSON view of the statistics."""
        return {
            "short_code": self.short_code,
            "long_url": self.long_url,
            "click_count": self.click_count,
        }