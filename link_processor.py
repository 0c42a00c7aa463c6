"""
link_processor.py - Utilities for fetching and parsing link display metadata.

Pages are only fetched after the link validator has judged the URL live.
Title and description come from a primary scrape of the page; when that
comes back empty each field falls through an ordered cascade of strategies
(Open Graph, then Twitter cards, then page structure, then the URL itself).
"""

import asyncio
import logging
import re
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from functools import partial
from typing import Any, Callable, Dict, Iterable, Optional, Sequence
from urllib.parse import unquote, urljoin, urlparse

import requests
from bs4 import BeautifulSoup

from config import Config
from link_validator import (
    STATUS_ERROR,
    STATUS_INVALID,
    LinkValidator,
    get_default_validator,
)

logger = logging.getLogger(__name__)

config = Config()
DEFAULT_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
        "AppleWebKit/537.36 (KHTML, like Gecko) "
        "Chrome/121.0 Safari/537.36"
    ),
    "Accept-Language": "en-US,en;q=0.9",
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
    "Accept-Charset": "utf-8, iso-8859-1;q=0.5",
}

Strategy = Callable[[BeautifulSoup, str], Optional[str]]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class LinkMetadata:
    title: str
    description: str = ""
    favicon_url: Optional[str] = None
    og_image_url: Optional[str] = None
    content_type: Optional[str] = None
    status: str = STATUS_ERROR
    validated_at: datetime = field(default_factory=_utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def fetch_page_content(url: str, *, timeout: Optional[float] = None) -> Dict[str, str]:
    """
    Fetches the raw HTML for a URL with proper encoding detection.

    Network errors are raised to the caller.

    Returns:
        dict with keys: html, content_type, final_url
    """
    response = requests.get(
        url,
        headers=DEFAULT_HEADERS,
        timeout=timeout,
        allow_redirects=True,
    )

    content_type = response.headers.get("Content-Type", "")
    html = ""

    if not content_type or "html" in content_type or "text" in content_type:
        if response.encoding is None or response.encoding.lower() in ["iso-8859-1", "ascii"]:
            response.encoding = _sniff_encoding(response.content)
        try:
            html = response.text
        except (LookupError, UnicodeDecodeError):
            # Unknown or lying charset declaration
            logger.info("Used UTF-8 fallback decoding for %s", url)
            html = response.content.decode("utf-8", errors="replace")

    return {
        "html": html,
        "content_type": content_type,
        "final_url": response.url or url,
    }


def _sniff_encoding(content: bytes) -> str:
    """Reads the charset a page declares about itself, defaulting to UTF-8."""
    soup = BeautifulSoup(content, "html.parser")

    charset_meta = soup.find("meta", attrs={"charset": True})
    if charset_meta and charset_meta.get("charset"):
        return charset_meta["charset"]

    content_type_meta = soup.find("meta", attrs={"http-equiv": re.compile(r"content-type", re.I)})
    if content_type_meta and content_type_meta.get("content"):
        charset_match = re.search(r"charset=([^;\s]+)", content_type_meta["content"], re.I)
        if charset_match:
            return charset_match.group(1)

    return "utf-8"


def _find_meta_content(soup: BeautifulSoup, names: Iterable[str]) -> Optional[str]:
    """Finds the first meta tag matching any of the provided names/properties."""
    for name in names:
        tag = soup.find("meta", attrs={"property": name}) or soup.find(
            "meta", attrs={"name": name}
        )
        if tag and tag.get("content"):
            return tag["content"].strip()
    return None


def _absolute_url(href: Optional[str], base_url: Optional[str]) -> Optional[str]:
    """Resolves ``href`` against ``base_url``; unresolvable input yields None."""
    if not href or not base_url:
        return None
    try:
        resolved = urljoin(base_url, href.strip())
        parsed = urlparse(resolved)
    except ValueError:
        return None
    if not parsed.scheme:
        return None
    if parsed.scheme in ("http", "https") and not parsed.netloc:
        return None
    return resolved


def _clean_text(text: Optional[str]) -> str:
    return re.sub(r"\s+", " ", text or "").strip()


def meta_tag(name: str) -> Strategy:
    def strategy(soup: BeautifulSoup, url: str) -> Optional[str]:
        return _find_meta_content(soup, [name])

    strategy.__name__ = f"meta:{name}"
    return strategy


def first_element_text(tag_name: str) -> Strategy:
    def strategy(soup: BeautifulSoup, url: str) -> Optional[str]:
        element = soup.find(tag_name)
        if element is None:
            return None
        return _clean_text(element.get_text(" ", strip=True))

    strategy.__name__ = f"first:{tag_name}"
    return strategy


def title_from_url_path(soup: BeautifulSoup, url: str) -> Optional[str]:
    """Builds a title from the last path segment, e.g. /posts/my-post.html -> "my post"."""
    try:
        path = urlparse(url).path
    except ValueError:
        return None

    segments = [segment for segment in path.split("/") if segment]
    if not segments:
        return None

    stem = re.sub(r"\.[^/.]+$", "", unquote(segments[-1]))
    return _clean_text(stem.replace("-", " "))


# Order matters: first non-empty result wins.
TITLE_STRATEGIES: Sequence[Strategy] = (
    meta_tag("og:title"),
    meta_tag("twitter:title"),
    first_element_text("h1"),
    title_from_url_path,
)

DESCRIPTION_STRATEGIES: Sequence[Strategy] = (
    meta_tag("og:description"),
    meta_tag("twitter:description"),
    first_element_text("p"),
)


def first_match(strategies: Iterable[Strategy], soup: BeautifulSoup, url: str) -> str:
    for strategy in strategies:
        value = _clean_text(strategy(soup, url))
        if value:
            return value
    return ""


def scrape_metadata(soup: BeautifulSoup) -> Dict[str, str]:
    """Primary scrape: the document title and the standard description meta tag."""
    title = soup.title.string if soup.title and soup.title.string else ""
    description = ""
    tag = soup.find("meta", attrs={"name": re.compile(r"^description$", re.I)})
    if tag and tag.get("content"):
        description = tag["content"]
    return {"title": _clean_text(title), "description": _clean_text(description)}


def extract_favicon(soup: BeautifulSoup, base_url: str) -> Optional[str]:
    """Explicit icon link first, then /favicon.ico at the page's origin."""
    icon_tag = soup.find(
        "link",
        rel=lambda value: value and value.lower() == "icon",
        href=True,
    )
    if icon_tag:
        return _absolute_url(icon_tag["href"], base_url)

    try:
        parsed = urlparse(base_url)
    except ValueError:
        return None
    if not parsed.scheme or not parsed.netloc:
        return None
    return f"{parsed.scheme}://{parsed.netloc}/favicon.ico"


def extract_og_image(soup: BeautifulSoup, base_url: str) -> Optional[str]:
    return _absolute_url(_find_meta_content(soup, ["og:image"]), base_url)


def extract_metadata(
    html_content: str,
    *,
    url: str,
    content_type: Optional[str] = None,
) -> Dict[str, Optional[str]]:
    """
    Extracts display metadata from a page's HTML.

    Relative favicon and preview image references are resolved against ``url``.
    """
    soup = BeautifulSoup(html_content or "", "html.parser")
    scraped = scrape_metadata(soup)

    return {
        "title": scraped["title"] or first_match(TITLE_STRATEGIES, soup, url),
        "description": scraped["description"] or first_match(DESCRIPTION_STRATEGIES, soup, url),
        "favicon_url": extract_favicon(soup, url),
        "og_image_url": extract_og_image(soup, url),
        "content_type": content_type or None,
    }


def degraded_metadata(url: str) -> LinkMetadata:
    """Record used when fetching or parsing failed for ``url``."""
    try:
        parsed = urlparse(url)
        hostname = parsed.hostname
    except ValueError:
        hostname = None

    if not hostname or not parsed.scheme:
        return LinkMetadata(title=url, status=STATUS_INVALID)

    return LinkMetadata(title=hostname + (parsed.path or "/"), status=STATUS_ERROR)


class MetadataExtractor:
    """Validates a link and, when it is live, scrapes its display metadata."""

    def __init__(
        self,
        validator: Optional[LinkValidator] = None,
        *,
        fetch_timeout: Optional[float] = None,
    ):
        self.validator = validator or get_default_validator()
        self.fetch_timeout = fetch_timeout if fetch_timeout is not None else config.METADATA_FETCH_TIMEOUT

    async def extract(self, url: str) -> LinkMetadata:
        try:
            outcome = await self.validator.validate(url)
            if not outcome.is_active:
                # Dead links are never fetched a second time.
                return LinkMetadata(title=url, status=outcome.status)

            loop = asyncio.get_running_loop()
            page = await loop.run_in_executor(
                None,
                partial(fetch_page_content, url, timeout=self.fetch_timeout),
            )
            metadata = extract_metadata(
                page["html"],
                url=page.get("final_url") or url,
                content_type=page.get("content_type"),
            )
            return LinkMetadata(status=outcome.status, **metadata)
        except Exception as exc:  # noqa: broad-except - a bad page must not break ingestion
            logger.warning("Failed to fetch URL metadata for %s: %s", url, exc)
            return degraded_metadata(url)


_default_extractor: Optional[MetadataExtractor] = None


def get_default_extractor() -> MetadataExtractor:
    global _default_extractor
    if _default_extractor is None:
        _default_extractor = MetadataExtractor()
    return _default_extractor


async def fetch_url_metadata(url: str) -> LinkMetadata:
    return await get_default_extractor().extract(url)
