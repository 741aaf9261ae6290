"""Data models for Agency Feed Poster."""

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .dedup import SeenSet


@dataclass(frozen=True)
class Item:
    """Represents a single normalized RSS/Atom feed entry."""

    title: str
    link: str
    content: str
    pub_date: str
    guid: str


@dataclass
class Feed:
    """A subscribed feed source."""

    id: str
    url: str
    name: str
    last_fetched: int = 0  # epoch millis, 0 = never fetched

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "url": self.url,
            "name": self.name,
            "lastFetched": self.last_fetched,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Feed":
        return cls(
            id=str(data["id"]),
            url=str(data["url"]),
            name=str(data.get("name", "")),
            last_fetched=int(data.get("lastFetched") or 0),
        )


@dataclass
class GeneratedPost:
    """A social post generated from one feed item."""

    id: str
    blog_title: str
    source_name: str
    original_link: str
    generated_content: str
    original_pub_date: str
    timestamp: int  # epoch millis

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "blogTitle": self.blog_title,
            "sourceName": self.source_name,
            "originalLink": self.original_link,
            "generatedContent": self.generated_content,
            "originalPubDate": self.original_pub_date,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "GeneratedPost":
        return cls(
            id=str(data["id"]),
            blog_title=str(data.get("blogTitle", "")),
            source_name=str(data.get("sourceName", "")),
            original_link=str(data["originalLink"]),
            generated_content=str(data.get("generatedContent", "")),
            original_pub_date=str(data.get("originalPubDate", "")),
            timestamp=int(data.get("timestamp") or 0),
        )


@dataclass
class SyncResult:
    """Outcome of one sync pass or manual import."""

    updated_feeds: list[Feed] = field(default_factory=list)
    posts: list[GeneratedPost] = field(default_factory=list)  # newest first
    seen: "SeenSet | None" = None
    feed_errors: list[str] = field(default_factory=list)
    item_errors: list[str] = field(default_factory=list)
    skipped: bool = False
    message: str | None = None  # overrides the derived status when set

    @property
    def added_count(self) -> int:
        return len(self.posts)

    @property
    def status_message(self) -> str:
        if self.message:
            return self.message
        if self.skipped:
            return "Sync already in progress"
        if self.added_count > 0:
            return f"{self.added_count} posts generated"
        return "No updates"
