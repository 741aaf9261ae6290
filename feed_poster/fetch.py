"""Feed retrieval through an ordered chain of proxy and direct strategies."""

import re
import time
from collections.abc import Callable
from dataclasses import dataclass
from urllib.parse import quote

import requests

from .config import FetchConfig
from .exceptions import FetchError
from .logging_config import create_execution_logger

XML_ENCODING_PATTERN = re.compile(rb"""<\?xml[^>]*encoding=["']([A-Za-z0-9._-]+)["']""")


class ImplausiblePayloadError(Exception):
    """Raised when a strategy succeeded at transport level but returned no feed."""


@dataclass(frozen=True)
class FetchStrategy:
    """One way of retrieving a feed document.

    ``url_template`` receives the percent-encoded target URL as ``{url}``.
    When ``json_field`` is set the response is a JSON envelope and the
    document lives under that field; otherwise the body is the document.
    """

    name: str
    url_template: str
    json_field: str | None = None
    encode_target: bool = True

    def build_url(self, target_url: str) -> str:
        if self.encode_target:
            target_url = quote(target_url, safe="")
        return self.url_template.format(url=target_url)

    def extract_text(self, response: requests.Response) -> str:
        if self.json_field:
            data = response.json()
            if not isinstance(data, dict):
                raise ImplausiblePayloadError(f"{self.name} returned a non-object envelope")
            contents = data.get(self.json_field)
            if contents is None:
                return ""
            if not isinstance(contents, str):
                raise ImplausiblePayloadError(
                    f"{self.name} returned a non-text {self.json_field} field"
                )
            return contents
        return decode_document(response)


DEFAULT_STRATEGIES = (
    FetchStrategy(
        name="allorigins",
        url_template="https://api.allorigins.win/get?url={url}",
        json_field="contents",
    ),
    FetchStrategy(
        name="corsproxy",
        url_template="https://corsproxy.io/?url={url}",
    ),
    FetchStrategy(
        name="direct",
        url_template="{url}",
        encode_target=False,
    ),
)


def decode_document(response: requests.Response) -> str:
    """Decode a raw feed body, honouring the XML declaration's encoding."""
    match = XML_ENCODING_PATTERN.search(response.content[:256])
    if match:
        try:
            return response.content.decode(match.group(1).decode("ascii"), errors="replace")
        except LookupError:
            pass
    if response.encoding is None or response.encoding.lower() == "iso-8859-1":
        # requests defaults text/* to latin-1 when no charset header is sent
        response.encoding = response.apparent_encoding
    return response.text


class FetchResolver:
    """Tries each retrieval strategy in order until one yields a plausible feed."""

    def __init__(
        self,
        config: FetchConfig | None = None,
        strategies: tuple[FetchStrategy, ...] = DEFAULT_STRATEGIES,
        validator: Callable[[str], bool] | None = None,
        execution_id: str | None = None,
    ):
        """Initialize the resolver.

        Args:
            config: Timeouts, inter-attempt delay and minimum payload length
            strategies: Retrieval strategies in priority order
            validator: Optional structural check applied to each payload
            execution_id: Execution ID for logging context
        """
        self.config = config or FetchConfig()
        self.strategies = strategies
        self.validator = validator
        self.logger = create_execution_logger("fetch_resolver", execution_id)
        self.session = requests.Session()
        self.session.headers.update(
            {"User-Agent": "Agency-Feed-Poster/1.0 (RSS to social post generator)"}
        )

        self.logger.info(
            "FetchResolver initialized",
            strategies=[s.name for s in strategies],
            timeout=self.config.timeout,
        )

    def resolve(self, url: str) -> str:
        """Retrieve the raw feed document for a URL.

        Raises:
            FetchError: If every strategy failed; carries the last error as cause
        """
        last_error: Exception | None = None

        for attempt, strategy in enumerate(self.strategies):
            if attempt > 0 and last_error is not None:
                time.sleep(self.config.retry_delay_seconds)
            try:
                text = self._attempt(strategy, url)
            except Exception as e:
                # any failure of one strategy only moves on to the next
                last_error = e
                self.logger.warning(
                    f"Strategy {strategy.name} failed for {url}: {e}",
                    feed_url=url,
                    strategy=strategy.name,
                    error=str(e),
                )
                continue

            self.logger.info(
                "Feed document retrieved",
                feed_url=url,
                strategy=strategy.name,
                content_length=len(text),
            )
            return text

        self.logger.error(f"All strategies exhausted for {url}", feed_url=url)
        raise FetchError(url, last_error)

    def _attempt(self, strategy: FetchStrategy, url: str) -> str:
        response = self.session.get(strategy.build_url(url), timeout=self.config.timeout)
        response.raise_for_status()

        text = strategy.extract_text(response)
        if len(text.strip()) <= self.config.min_payload_length:
            raise ImplausiblePayloadError(
                f"{strategy.name} returned {len(text.strip())} characters"
            )
        if self.validator is not None and not self.validator(text):
            raise ImplausiblePayloadError(f"{strategy.name} returned a non-feed document")
        return text
