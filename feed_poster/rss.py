"""Feed document normalization for Agency Feed Poster."""

import xml.etree.ElementTree as ET
from datetime import UTC, datetime

from bs4 import BeautifulSoup, NavigableString
from dateutil import parser as date_parser

from .exceptions import FormatError
from .logging_config import create_execution_logger
from .models import Item

ENTRY_TAGS = ("item", "entry")
TITLE_TAGS = ("title",)
LINK_TAGS = ("link",)
DATE_TAGS = ("pubdate", "date", "updated", "published")
CONTENT_TAGS = ("description", "content", "summary")
GUID_TAGS = ("guid", "id")

# Root elements of a strict-valid document that count as a feed even when empty
FEED_ROOT_TAGS = ("rss", "feed", "rdf", "channel")


def local_name(tag: str) -> str:
    """Return a tag's name without namespace URI or prefix, lowercased.

    ``{http://purl.org/dc/elements/1.1/}date`` and ``dc:date`` both map to
    ``date``.
    """
    if "}" in tag:
        tag = tag.rsplit("}", 1)[1]
    if ":" in tag:
        tag = tag.rsplit(":", 1)[1]
    return tag.lower()


class EntryFields:
    """Index of an entry's descendant elements keyed by local name.

    Built in a single walk so every field lookup is a dictionary hit.
    """

    def __init__(self):
        self.texts: dict[str, list[str]] = {}
        self.links: list[dict[str, str]] = []

    def add(self, name: str, text: str, attrs: dict[str, str]) -> None:
        self.texts.setdefault(name, []).append(text.strip())
        if name == "link":
            self.links.append(attrs)

    def first(self, names: tuple[str, ...]) -> str:
        """First non-empty text among elements matching the candidate names."""
        for name in names:
            for text in self.texts.get(name, []):
                if text:
                    return text
        return ""

    def link_href(self) -> str:
        """Atom style ``<link href="..."/>``, preferring the alternate link."""
        hrefs = [
            (attrs.get("rel", "alternate"), (attrs.get("href") or "").strip())
            for attrs in self.links
        ]
        for rel, href in hrefs:
            if href and rel == "alternate":
                return href
        for _, href in hrefs:
            if href:
                return href
        return ""


class FeedNormalizer:
    """Parses raw RSS/Atom documents into normalized Items."""

    MIN_DOCUMENT_LENGTH = 16

    def __init__(self, execution_id: str | None = None):
        self.logger = create_execution_logger("normalizer", execution_id)

    def normalize(self, raw_text: str) -> list[Item]:
        """Parse a feed document into Items in document order.

        Args:
            raw_text: Feed document text, RSS or Atom, possibly malformed

        Returns:
            Items that carry both a title and a link. Too-short input and
            valid documents without entries yield an empty list.

        Raises:
            FormatError: If neither strict XML nor tag-soup parsing finds entries
                in a document that is not well-formed XML
        """
        if not self._is_long_enough(raw_text):
            self.logger.debug("Document too short to be a feed, skipping")
            return []

        _, entries = self._parse_document(raw_text)

        items = []
        for fields in entries:
            item = self.build_item(fields)
            if item is None:
                self.logger.debug("Discarded entry without title or link")
                continue
            items.append(item)

        self.logger.info(
            "Normalized feed document",
            items_count=len(items),
            total_entries=len(entries),
        )
        return items

    def looks_like_feed(self, raw_text: str) -> bool:
        """Check whether text is a parseable feed document.

        A strict-valid document must have a feed root element or contain
        entries; a malformed one must yield entries under tag-soup parsing.
        """
        if not self._is_long_enough(raw_text):
            return False
        try:
            root_name, entries = self._parse_document(raw_text)
        except FormatError:
            return False
        return bool(entries) or root_name in FEED_ROOT_TAGS

    def build_item(self, fields: EntryFields) -> Item | None:
        title = fields.first(TITLE_TAGS)
        link = fields.first(LINK_TAGS) or fields.link_href()
        if not title or not link:
            return None

        return Item(
            title=title,
            link=link,
            content=self.clean_html_content(fields.first(CONTENT_TAGS)),
            pub_date=self.normalize_date(fields.first(DATE_TAGS)),
            guid=fields.first(GUID_TAGS) or link,
        )

    def normalize_date(self, value: str) -> str:
        """Return an ISO-8601 date when derivable, the raw value otherwise.

        Missing dates default to the current time.
        """
        if not value:
            return datetime.now(UTC).isoformat()
        try:
            return date_parser.parse(value).isoformat()
        except (ValueError, OverflowError, TypeError):
            return value

    def clean_html_content(self, content: str) -> str:
        """Remove HTML tags from content and normalize whitespace.

        Args:
            content: Raw content that may contain HTML

        Returns:
            Clean text content without HTML tags
        """
        if not content:
            return ""

        if "<" not in content and ">" not in content:
            return " ".join(content.split())

        soup = BeautifulSoup(content, "html.parser")

        for script in soup(["script", "style"]):
            script.decompose()

        text = soup.get_text(separator=" ")
        text = text.replace("<", "").replace(">", "")
        return " ".join(text.split())

    def _is_long_enough(self, raw_text: str) -> bool:
        return bool(raw_text) and len(raw_text.strip()) >= self.MIN_DOCUMENT_LENGTH

    def _parse_document(self, raw_text: str) -> tuple[str | None, list[EntryFields]]:
        """Strict XML first, tag soup when the XML is malformed.

        Returns:
            Tuple of (root local name or None for tag soup, entry indexes)
        """
        try:
            root = ET.fromstring(raw_text.strip().lstrip("﻿"))
        except ET.ParseError as e:
            self.logger.warning(
                f"Strict XML parsing failed, retrying as tag soup: {e}",
                error=str(e),
            )
            entries = self._soup_entries(raw_text)
            if not entries:
                raise FormatError(
                    "Document is not a supported feed format", {"xml_error": str(e)}
                ) from e
            return None, entries

        return local_name(root.tag), self._xml_entries(root)

    def _xml_entries(self, root: ET.Element) -> list[EntryFields]:
        entries = []
        for element in root.iter():
            if isinstance(element.tag, str) and local_name(element.tag) in ENTRY_TAGS:
                fields = EntryFields()
                for child in element.iter():
                    if child is element or not isinstance(child.tag, str):
                        continue
                    fields.add(
                        local_name(child.tag), "".join(child.itertext()), child.attrib
                    )
                entries.append(fields)
        return entries

    def _soup_entries(self, raw_text: str) -> list[EntryFields]:
        soup = BeautifulSoup(raw_text, "html.parser")
        entries = []
        for element in soup.find_all(True):
            if local_name(element.name) not in ENTRY_TAGS:
                continue
            fields = EntryFields()
            for child in element.find_all(True):
                name = local_name(child.name)
                attrs = {
                    key: " ".join(value) if isinstance(value, list) else str(value)
                    for key, value in child.attrs.items()
                }
                text = child.get_text()
                if name == "link" and not text.strip() and not attrs.get("href"):
                    # html.parser treats <link> as void; its text becomes the next sibling
                    sibling = child.next_sibling
                    if isinstance(sibling, NavigableString):
                        text = str(sibling)
                fields.add(name, text, attrs)
            entries.append(fields)
        return entries
