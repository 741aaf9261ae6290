"""Application service tying the sync pipeline to persisted state."""

import uuid
from urllib.parse import urlparse

from .config import Config
from .dedup import SeenSet
from .fetch import FetchResolver
from .generate import PostGenerator
from .logging_config import create_execution_logger
from .models import Feed, GeneratedPost, SyncResult
from .rss import FeedNormalizer
from .store import Repository, create_store
from .sync import SyncOrchestrator, now_millis

DEFAULT_FEED_NAME = "New feed"
GENERATION_UNAVAILABLE = "Generation unavailable: Bedrock client not configured"


class FeedService:
    """Feed management, sync and manual import over a Repository.

    Every mutation is written back to the repository immediately.
    """

    def __init__(
        self,
        repository: Repository,
        orchestrator: SyncOrchestrator,
        generator: PostGenerator | None = None,
        execution_id: str | None = None,
    ):
        self.repository = repository
        self.orchestrator = orchestrator
        self.generator = generator
        self.logger = create_execution_logger("main", execution_id)

    def feeds(self) -> list[Feed]:
        return self.repository.load_feeds()

    def posts(self) -> list[GeneratedPost]:
        return self.repository.load_posts()

    def add_feed(self, url: str, name: str | None = None) -> Feed:
        """Subscribe to a new feed.

        Raises:
            ValueError: If the URL is blank or not http(s)
        """
        url = (url or "").strip()
        if not url:
            raise ValueError("Feed URL cannot be empty")
        if urlparse(url).scheme not in ("http", "https"):
            raise ValueError(f"Feed URL must use HTTP or HTTPS: {url}")

        feed = Feed(
            id=uuid.uuid4().hex[:9],
            url=url,
            name=(name or "").strip() or DEFAULT_FEED_NAME,
            last_fetched=now_millis(),
        )
        feeds = self.repository.load_feeds()
        feeds.append(feed)
        self.repository.save_feeds(feeds)
        self.logger.info("Added feed", feed_url=url, feed_id=feed.id)
        return feed

    def remove_feed(self, feed_id: str) -> bool:
        feeds = self.repository.load_feeds()
        remaining = [f for f in feeds if f.id != feed_id]
        if len(remaining) == len(feeds):
            return False
        self.repository.save_feeds(remaining)
        self.logger.info("Removed feed", feed_id=feed_id)
        return True

    def sync_all(self) -> SyncResult:
        """Run a sync pass over all feeds and persist feeds and new posts."""
        if self.generator is not None and not self.generator.available:
            self.logger.warning(GENERATION_UNAVAILABLE)
            return SyncResult(message=GENERATION_UNAVAILABLE)

        feeds = self.repository.load_feeds()
        history = self.repository.load_posts()

        result = self.orchestrator.sync(
            feeds, SeenSet.from_posts(history), on_post=self._history_writer(history)
        )
        if result.skipped:
            return result

        self.repository.save_feeds(result.updated_feeds)
        self.logger.info(result.status_message, added_count=result.added_count)
        return result

    def import_document(self, raw_text: str) -> SyncResult:
        """Run a pasted feed document through the pipeline; blank input is ignored."""
        if not raw_text or not raw_text.strip():
            return SyncResult(message="Nothing to import")
        if self.generator is not None and not self.generator.available:
            self.logger.warning(GENERATION_UNAVAILABLE)
            return SyncResult(message=GENERATION_UNAVAILABLE)

        history = self.repository.load_posts()
        result = self.orchestrator.import_document(
            raw_text, SeenSet.from_posts(history), on_post=self._history_writer(history)
        )
        self.logger.info(result.status_message, added_count=result.added_count)
        return result

    def bind_execution(self, execution_id: str) -> None:
        """Tag log records of every wired component with a new execution ID."""
        components = (
            self,
            self.repository,
            self.orchestrator,
            self.orchestrator.resolver,
            self.orchestrator.normalizer,
            self.generator,
        )
        for component in components:
            logger = getattr(component, "logger", None)
            if logger is not None:
                logger.execution_id = execution_id

    def _history_writer(self, history: list[GeneratedPost]):
        """Persist each accepted post immediately, newest first.

        A later failure in the same pass leaves earlier posts stored.
        """

        def write(post: GeneratedPost) -> None:
            history.insert(0, post)
            self.repository.save_posts(history)

        return write


def build_service(config: Config, execution_id: str | None = None) -> FeedService:
    """Wire the production components from configuration."""
    normalizer = FeedNormalizer(execution_id=execution_id)
    resolver = FetchResolver(
        config.get_fetch_config(),
        validator=normalizer.looks_like_feed,
        execution_id=execution_id,
    )
    generator = PostGenerator(config.get_bedrock_config(), execution_id=execution_id)
    orchestrator = SyncOrchestrator(
        resolver, normalizer, generator.generate, execution_id=execution_id
    )
    repository = Repository(
        create_store(config.get_store_config()), config, execution_id=execution_id
    )
    return FeedService(repository, orchestrator, generator, execution_id=execution_id)
