from unittest.mock import AsyncMock

import pytest

from link_manager import LinkManager
from link_processor import LinkMetadata


def metadata_for(url, status="active"):
    return LinkMetadata(
        title=f"Title of {url}",
        description="About this page",
        favicon_url="https://example.com/favicon.ico",
        content_type="text/html",
        status=status,
    )


@pytest.fixture
def extractor():
    fake = AsyncMock()
    fake.extract.side_effect = lambda url: metadata_for(url)
    return fake


@pytest.mark.asyncio
async def test_add_link_appends_with_metadata(make_store, extractor):
    store = make_store([{"id": "existing", "url": "https://first.example.com"}])
    manager = LinkManager(extractor, store)

    link = await manager.add_link("list-1", "https://second.example.com")

    assert link["order_index"] == 1
    assert link["title"] == "Title of https://second.example.com"
    assert link["status"] == "active"
    assert link["last_validated_at"] is not None
    extractor.extract.assert_awaited_once_with("https://second.example.com")


@pytest.mark.asyncio
async def test_refresh_overwrites_metadata_and_status(make_store, extractor):
    store = make_store([{"id": "l0", "url": "https://moved.example.com", "status": "active"}])
    extractor.extract.side_effect = lambda url: LinkMetadata(title=url, status="error")
    manager = LinkManager(extractor, store)

    link = await manager.refresh_link_metadata("l0")

    assert link["status"] == "error"
    assert link["title"] == "https://moved.example.com"
    assert link["description"] == ""
    assert link["last_validated_at"] is not None


@pytest.mark.asyncio
async def test_refresh_unknown_link_raises(make_store, extractor):
    manager = LinkManager(extractor, make_store())

    with pytest.raises(LookupError):
        await manager.refresh_link_metadata("missing")
    extractor.extract.assert_not_awaited()


@pytest.mark.asyncio
async def test_bulk_import_skips_blanks_and_failures(make_store, extractor):
    def extract(url):
        if "broken" in url:
            raise RuntimeError("scraper crashed")
        return metadata_for(url)

    extractor.extract.side_effect = extract
    store = make_store()
    manager = LinkManager(extractor, store)

    imported = await manager.bulk_import_urls(
        "list-9",
        ["https://a.example.com", "   ", "https://broken.example.com", " https://b.example.com "],
    )

    assert [link["url"] for link in imported] == ["https://a.example.com", "https://b.example.com"]
    assert [link["order_index"] for link in imported] == [0, 1]
    assert extractor.extract.await_count == 3
