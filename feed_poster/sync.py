"""Sync pass orchestration: fetch, normalize, deduplicate and generate."""

import threading
import time
import uuid
from collections.abc import Callable, Iterable
from dataclasses import replace

from .dedup import SeenSet
from .exceptions import FetchError, FormatError, GenerationError
from .fetch import FetchResolver
from .logging_config import create_execution_logger
from .models import Feed, GeneratedPost, Item, SyncResult
from .rss import FeedNormalizer

MANUAL_SOURCE_LABEL = "Manual import"

Emit = Callable[[Item, str], GeneratedPost]
OnPost = Callable[[GeneratedPost], None]


def now_millis() -> int:
    return int(time.time() * 1000)


class SyncOrchestrator:
    """Runs sync passes over a feed list, forwarding each new link at most once.

    Feeds and items are processed strictly sequentially. A pass is not
    reentrant: a trigger arriving while one is in flight is ignored and
    reported as skipped.
    """

    def __init__(
        self,
        resolver: FetchResolver,
        normalizer: FeedNormalizer,
        generate: Callable[[Item], str],
        execution_id: str | None = None,
    ):
        self.resolver = resolver
        self.normalizer = normalizer
        self.generate = generate
        self.logger = create_execution_logger("sync", execution_id)
        self._lock = threading.Lock()

    @property
    def in_progress(self) -> bool:
        return self._lock.locked()

    def emit(self, item: Item, source_name: str) -> GeneratedPost:
        """Generate a post for one item.

        Raises:
            GenerationError: Propagated from the generation backend
        """
        content = self.generate(item)
        return GeneratedPost(
            id=uuid.uuid4().hex[:9],
            blog_title=item.title,
            source_name=source_name,
            original_link=item.link,
            generated_content=content,
            original_pub_date=item.pub_date,
            timestamp=now_millis(),
        )

    def sync(
        self,
        feeds: Iterable[Feed],
        seen: SeenSet,
        emit: Emit | None = None,
        on_post: OnPost | None = None,
    ) -> SyncResult:
        """Run one sync pass over the feeds in list order.

        Args:
            feeds: Configured feeds
            seen: Links already carried through to generation; not mutated
            emit: Override for turning an item into a post
            on_post: Called with each post as soon as it is accepted, so callers
                can persist progress before the pass ends

        Returns:
            SyncResult with updated feed copies, new posts and the updated seen set
        """
        feeds = list(feeds)
        if not self._lock.acquire(blocking=False):
            self.logger.warning("Sync requested while a pass is in progress, ignoring")
            return SyncResult(updated_feeds=feeds, seen=seen, skipped=True)

        try:
            return self._run_pass(feeds, seen.copy(), emit or self.emit, on_post)
        finally:
            self._lock.release()

    def import_document(
        self,
        raw_text: str,
        seen: SeenSet,
        emit: Emit | None = None,
        on_post: OnPost | None = None,
    ) -> SyncResult:
        """Process a pasted feed document as if it had been fetched.

        Items are tagged with ``MANUAL_SOURCE_LABEL``.
        """
        if not self._lock.acquire(blocking=False):
            self.logger.warning("Import requested while a pass is in progress, ignoring")
            return SyncResult(seen=seen, skipped=True)

        try:
            result = SyncResult(seen=seen.copy())
            try:
                items = self.normalizer.normalize(raw_text)
            except FormatError as e:
                self.logger.error(f"Manual import is not a feed: {e}", error=str(e))
                result.feed_errors.append(f"{MANUAL_SOURCE_LABEL}: {e}")
                result.message = "Invalid feed document"
                return result

            self._dispatch(items, MANUAL_SOURCE_LABEL, result, emit or self.emit, on_post)
            self.logger.log_metrics(
                {"items_found": len(items), "items_added": result.added_count}
            )
            return result
        finally:
            self._lock.release()

    def _run_pass(
        self, feeds: list[Feed], seen: SeenSet, emit: Emit, on_post: OnPost | None
    ) -> SyncResult:
        self.logger.log_execution_start(feed_count=len(feeds))
        result = SyncResult(seen=seen)
        metrics = {"feeds_processed": 0, "feeds_failed": 0, "items_found": 0}

        for feed in feeds:
            try:
                raw_text = self.resolver.resolve(feed.url)
                items = self.normalizer.normalize(raw_text)
            except (FetchError, FormatError) as e:
                self.logger.error(
                    f"Failed to process feed {feed.name}: {e}",
                    feed_url=feed.url,
                    error=str(e),
                )
                result.feed_errors.append(f"{feed.name}: {e}")
                result.updated_feeds.append(feed)
                metrics["feeds_failed"] += 1
                continue

            result.updated_feeds.append(replace(feed, last_fetched=now_millis()))
            metrics["feeds_processed"] += 1
            metrics["items_found"] += len(items)
            self.logger.log_feed_processing(feed.url, len(items))

            self._dispatch(items, feed.name, result, emit, on_post)

        metrics["items_added"] = result.added_count
        metrics["item_errors"] = len(result.item_errors)
        self.logger.log_metrics(metrics)
        self.logger.log_execution_end(success=True, added_count=result.added_count)
        return result

    def _dispatch(
        self,
        items: list[Item],
        source_name: str,
        result: SyncResult,
        emit: Emit,
        on_post: OnPost | None = None,
    ) -> None:
        seen = result.seen
        for item in seen.unseen(items):
            # same link may appear twice in one document
            if seen.is_seen(item):
                self.logger.log_item_processing(item.title, "skipped_duplicate")
                continue
            try:
                post = emit(item, source_name)
            except GenerationError as e:
                self.logger.log_item_processing(item.title, "generation_failed", success=False)
                result.item_errors.append(f"{item.title}: {e}")
                continue

            seen.add(item.link)
            result.posts.insert(0, post)
            self.logger.log_item_processing(item.title, "generated")
            if on_post is not None:
                on_post(post)
