"""Exception hierarchy for Agency Feed Poster."""

from typing import Any


class FeedPosterError(Exception):
    """Base exception carrying a message and optional context."""

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            return f"{self.message} ({context_str})"
        return self.message


class FormatError(FeedPosterError):
    """Raised when a document is not a feed under strict or permissive parsing."""


class FetchError(FeedPosterError):
    """Raised when every retrieval strategy for a feed URL failed."""

    def __init__(self, url: str, cause: Exception | None = None):
        message = f"Failed to fetch feed {url}"
        context: dict[str, Any] = {"url": url}
        if cause is not None:
            context["cause"] = f"{type(cause).__name__}: {cause}"
        super().__init__(message, context)
        self.url = url
        self.cause = cause


class GenerationError(FeedPosterError):
    """Raised when the text generation backend could not produce a post."""


class StoreError(FeedPosterError):
    """Raised when a persisted value is present but cannot be reassembled."""
