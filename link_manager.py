"""
link_manager.py - Adds, refreshes and bulk-imports links.

Each operation reuses the metadata extractor one link at a time, so imports
queue behind the same throttle as every other validation.
"""

import asyncio
import logging
from functools import partial
from typing import Any, Dict, Iterable, List, Optional

import database
from link_processor import MetadataExtractor, get_default_extractor

logger = logging.getLogger(__name__)


class LinkManager:
    def __init__(self, extractor: Optional[MetadataExtractor] = None, store: Any = None):
        self.extractor = extractor or get_default_extractor()
        self.store = store or database

    async def add_link(self, list_id: str, url: str) -> Dict[str, Any]:
        """Extracts metadata for ``url`` and appends it to the end of the list."""
        metadata = await self.extractor.extract(url)
        order_index = await self._call_store(self.store.get_next_order_index, list_id)
        return await self._call_store(
            self.store.add_link, list_id, url, metadata.to_dict(), order_index
        )

    async def refresh_link_metadata(self, link_id: str) -> Dict[str, Any]:
        link = await self._call_store(self.store.get_link_by_id, link_id)
        if not link:
            raise LookupError(f"Link {link_id} not found")

        metadata = await self.extractor.extract(link["url"])
        return await self._call_store(self.store.update_link_metadata, link_id, metadata.to_dict())

    async def bulk_import_urls(self, list_id: str, urls: Iterable[str]) -> List[Dict[str, Any]]:
        """Imports URLs in order; a URL that fails is logged and skipped."""
        imported: List[Dict[str, Any]] = []
        for raw_url in urls:
            url = (raw_url or "").strip()
            if not url:
                continue
            try:
                imported.append(await self.add_link(list_id, url))
            except Exception:
                logger.exception("Failed to import URL: %s", url)
        return imported

    async def _call_store(self, func, *args):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, partial(func, *args))
