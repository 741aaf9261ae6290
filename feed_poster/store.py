"""Persistence of the feed list and generated post history."""

import json
import uuid
from datetime import UTC, datetime
from pathlib import Path

import boto3

from .config import Config, StoreConfig
from .dedup import SeenSet
from .exceptions import StoreError
from .logging_config import create_execution_logger
from .models import Feed, GeneratedPost

FEEDS_KEY = "feeds"
POSTS_KEY = "generated-posts"


class JsonFileStore:
    """Key-value store keeping one JSON file per key in a directory."""

    def __init__(self, directory: str | Path):
        self.directory = Path(directory)

    def _path(self, key: str) -> Path:
        return self.directory / f"{key}.json"

    def get(self, key: str) -> str | None:
        path = self._path(key)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def put(self, key: str, value: str) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self._path(key)
        tmp_path = path.with_suffix(".json.tmp")
        tmp_path.write_text(value, encoding="utf-8")
        tmp_path.replace(path)


class DynamoDBStore:
    """Key-value store over a DynamoDB table.

    A value is split into binary chunk items so a long post history stays
    under DynamoDB's 400 KB item limit. Chunks of one write share a
    generation tag; the head item under the plain key names the current
    generation and is written only after all of its chunks, so readers
    never see a half-written value.
    """

    CHUNK_BYTES = 300_000

    def __init__(self, table_name: str, aws_region: str = "us-east-1"):
        self.table_name = table_name
        self.dynamodb = boto3.resource("dynamodb", region_name=aws_region)
        self.table = self.dynamodb.Table(table_name)

    @staticmethod
    def _chunk_key(key: str, generation: str, index: int) -> str:
        return f"{key}#{generation}#{index}"

    def _get_item(self, store_key: str) -> dict | None:
        response = self.table.get_item(Key={"store_key": store_key}, ConsistentRead=True)
        return response.get("Item")

    def get(self, key: str) -> str | None:
        head = self._get_item(key)
        if head is None:
            return None
        if "value" in head:
            # single-item layout written before chunking
            return head["value"]

        generation = head["generation"]
        parts = []
        for index in range(int(head["chunk_count"])):
            chunk = self._get_item(self._chunk_key(key, generation, index))
            if chunk is None:
                raise StoreError(
                    "Stored value is missing a chunk",
                    {"key": key, "generation": generation, "index": index},
                )
            parts.append(chunk["chunk"].value)
        return b"".join(parts).decode("utf-8")

    def put(self, key: str, value: str) -> None:
        data = value.encode("utf-8")
        chunks = [
            data[start : start + self.CHUNK_BYTES]
            for start in range(0, len(data), self.CHUNK_BYTES)
        ]
        generation = uuid.uuid4().hex[:12]
        previous = self._get_item(key)

        with self.table.batch_writer() as batch:
            for index, chunk in enumerate(chunks):
                batch.put_item(
                    Item={
                        "store_key": self._chunk_key(key, generation, index),
                        "chunk": chunk,
                    }
                )
        self.table.put_item(
            Item={
                "store_key": key,
                "generation": generation,
                "chunk_count": len(chunks),
                "size_bytes": len(data),
                "updated_at": datetime.now(UTC).isoformat(),
            }
        )

        if previous is not None and "generation" in previous:
            with self.table.batch_writer() as batch:
                for index in range(int(previous["chunk_count"])):
                    batch.delete_item(
                        Key={
                            "store_key": self._chunk_key(
                                key, previous["generation"], index
                            )
                        }
                    )


def create_store(config: StoreConfig) -> JsonFileStore | DynamoDBStore:
    if config.backend == "dynamodb":
        return DynamoDBStore(config.table_name, config.region)
    if config.backend == "file":
        return JsonFileStore(config.directory)
    raise ValueError(f"Unknown store backend: {config.backend}")


class Repository:
    """Reads and writes the two persisted collections.

    Backend errors (``OSError``, ``botocore`` ``ClientError``, ``StoreError``)
    propagate to the caller; only malformed stored values are tolerated.
    """

    def __init__(
        self,
        store: JsonFileStore | DynamoDBStore,
        config: Config | None = None,
        execution_id: str | None = None,
    ):
        self.store = store
        self.config = config or Config()
        self.logger = create_execution_logger("store", execution_id)

    def _load_list(self, key: str) -> list | None:
        raw = self.store.get(key)
        if raw is None:
            return None
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            self.logger.warning(f"Stored value for {key} is not valid JSON: {e}")
            return None
        if not isinstance(data, list):
            self.logger.warning(f"Stored value for {key} is not a list")
            return None
        return data

    def load_feeds(self) -> list[Feed]:
        """Stored feed list, or the default feeds when absent, unparseable or empty."""
        data = self._load_list(FEEDS_KEY)
        feeds = []
        for entry in data or []:
            try:
                feeds.append(Feed.from_dict(entry))
            except (KeyError, TypeError, ValueError) as e:
                self.logger.warning(f"Skipping malformed stored feed: {e}")
        if not feeds:
            self.logger.info("No stored feeds, using default feed list")
            return self.config.get_default_feeds()
        return feeds

    def save_feeds(self, feeds: list[Feed]) -> None:
        self.store.put(FEEDS_KEY, json.dumps([f.to_dict() for f in feeds], ensure_ascii=False))
        self.logger.info("Saved feeds", feed_count=len(feeds))

    def load_posts(self) -> list[GeneratedPost]:
        posts = []
        for entry in self._load_list(POSTS_KEY) or []:
            try:
                posts.append(GeneratedPost.from_dict(entry))
            except (KeyError, TypeError, ValueError) as e:
                self.logger.warning(f"Skipping malformed stored post: {e}")
        return posts

    def save_posts(self, posts: list[GeneratedPost]) -> None:
        self.store.put(POSTS_KEY, json.dumps([p.to_dict() for p in posts], ensure_ascii=False))
        self.logger.info("Saved posts", post_count=len(posts))

    def load_seen(self) -> SeenSet:
        return SeenSet.from_posts(self.load_posts())
