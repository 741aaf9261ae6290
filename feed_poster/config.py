"""Configuration management for Agency Feed Poster."""

import json
import os
from dataclasses import dataclass
from pathlib import Path

from .models import Feed

DEFAULT_FEEDS = (
    Feed(
        id="mss-smba-310",
        url="https://mss.go.kr/rss/smba/board/310.do",
        name="Ministry of SMEs and Startups",
    ),
    Feed(
        id="pps-kor-00060",
        url="https://www.pps.go.kr/kor/rssFeed.do?boardId=00060",
        name="Public Procurement Service",
    ),
    Feed(
        id="kotra-dream-243",
        url="https://dream.kotra.or.kr/kotra/rssList.do?pSetIdx=243",
        name="KOTRA",
    ),
)


@dataclass
class BedrockConfig:
    """Configuration for Amazon Bedrock."""

    model_id: str = "amazon.nova-micro-v1:0"
    region: str = "us-east-1"
    max_tokens: int = 1000


@dataclass
class FetchConfig:
    """Configuration for feed retrieval."""

    timeout: float = 30.0
    retry_delay_seconds: float = 1.0
    min_payload_length: int = 64


@dataclass
class StoreConfig:
    """Configuration for the key-value store holding feeds and posts."""

    backend: str = "file"
    directory: str = ".feed_poster"
    table_name: str = "feed-poster-store"
    region: str = "us-east-1"


class Config:
    """Main configuration manager."""

    FEEDS_FILE = "feeds.json"

    def __init__(self):
        """Initialize configuration from environment variables."""
        self.store_backend = os.getenv("STORE_BACKEND", "file").lower()
        self.store_dir = os.getenv("STORE_DIR", ".feed_poster")
        self.dynamodb_table = os.getenv("DYNAMODB_TABLE", "feed-poster-store")
        self.aws_region = os.getenv(
            "CURRENT_AWS_REGION", os.getenv("AWS_DEFAULT_REGION", "us-east-1")
        )
        self.bedrock_model_id = os.getenv("BEDROCK_MODEL_ID", "amazon.nova-micro-v1:0")
        self.fetch_timeout = float(os.getenv("FETCH_TIMEOUT", "30"))
        self.fetch_retry_delay = float(os.getenv("FETCH_RETRY_DELAY", "1.0"))
        self.log_level = os.getenv("LOG_LEVEL", "INFO")

    def get_default_feeds(self) -> list[Feed]:
        """Get the default feed list from feeds.json, or the built-in defaults.

        Raises:
            ValueError: If feeds.json exists but cannot be read
        """
        feeds_file = Path(self.FEEDS_FILE)
        if not feeds_file.exists():
            # Lambda root directory
            feeds_file = Path("/var/task") / self.FEEDS_FILE

        if not feeds_file.exists():
            return [Feed(**vars(feed)) for feed in DEFAULT_FEEDS]

        try:
            with open(feeds_file, "r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in feeds file: {e}") from e

        feeds = [
            Feed(
                id=entry.get("id") or entry["url"],
                url=entry["url"],
                name=entry.get("name", entry["url"]),
            )
            for entry in data.get("feeds", [])
            if entry.get("enabled", True) and "url" in entry
        ]
        if not feeds:
            raise ValueError("No enabled feeds found in feeds.json")
        return feeds

    def get_bedrock_config(self) -> BedrockConfig:
        return BedrockConfig(model_id=self.bedrock_model_id, region=self.aws_region)

    def get_fetch_config(self) -> FetchConfig:
        return FetchConfig(
            timeout=self.fetch_timeout,
            retry_delay_seconds=self.fetch_retry_delay,
        )

    def get_store_config(self) -> StoreConfig:
        return StoreConfig(
            backend=self.store_backend,
            directory=self.store_dir,
            table_name=self.dynamodb_table,
            region=self.aws_region,
        )
