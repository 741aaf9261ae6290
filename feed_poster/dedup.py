"""Deduplication ledger for Agency Feed Poster."""

from collections.abc import Iterable, Iterator

from .models import GeneratedPost, Item


class SeenSet:
    """Links of every item already carried through to generation.

    Derived from post history, never an independent source of truth: it can
    always be rebuilt with ``SeenSet.from_posts``.
    """

    def __init__(self, links: Iterable[str] = ()):
        self._links: set[str] = set(links)

    @classmethod
    def from_posts(cls, posts: Iterable[GeneratedPost]) -> "SeenSet":
        return cls(post.original_link for post in posts)

    def __contains__(self, link: object) -> bool:
        return link in self._links

    def __iter__(self) -> Iterator[str]:
        return iter(self._links)

    def __len__(self) -> int:
        return len(self._links)

    def add(self, link: str) -> None:
        self._links.add(link)

    def is_seen(self, item: Item) -> bool:
        return item.link in self._links

    def unseen(self, items: Iterable[Item]) -> list[Item]:
        """Items whose link is not yet in the set, in their original order."""
        return [item for item in items if item.link not in self._links]

    def copy(self) -> "SeenSet":
        return SeenSet(self._links)

    def as_set(self) -> set[str]:
        return set(self._links)
