from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import pytest

from link_validator import STATUS_ACTIVE, ValidationOutcome


class FakeStore:
    """In-memory stand-in for the database module."""

    def __init__(self, links: Optional[List[Dict[str, Any]]] = None):
        self.links: Dict[str, Dict[str, Any]] = {}
        self.status_updates: List[tuple] = []
        self.fail_updates_for = set()
        for index, link in enumerate(links or []):
            row = {
                "list_id": "list-1",
                "order_index": index,
                "status": None,
                "last_validated_at": None,
                "title": None,
                "description": None,
            }
            row.update(link)
            self.links[row["id"]] = row

    def get_links_for_list(self, list_id):
        rows = [link for link in self.links.values() if link["list_id"] == list_id]
        rows.sort(key=lambda link: link["order_index"])
        return [{"id": link["id"], "url": link["url"]} for link in rows]

    def get_stale_links(self, batch_size, stale_after_hours):
        cutoff = datetime.now(timezone.utc) - timedelta(hours=stale_after_hours)
        stale = [
            link
            for link in self.links.values()
            if link["last_validated_at"] is None or link["last_validated_at"] < cutoff
        ]
        stale.sort(
            key=lambda link: (
                link["last_validated_at"] is not None,
                link["last_validated_at"] or datetime.min.replace(tzinfo=timezone.utc),
            )
        )
        return [{"id": link["id"], "url": link["url"]} for link in stale[:batch_size]]

    def update_link_status(self, link_id, status, validated_at=None):
        if link_id in self.fail_updates_for:
            raise RuntimeError("write failed")
        self.status_updates.append((link_id, status, validated_at))
        self.links[link_id]["status"] = status
        self.links[link_id]["last_validated_at"] = validated_at

    def get_status_counts(self, list_id=None):
        groups: Dict[Any, Dict[str, Any]] = {}
        for link in self.links.values():
            if list_id and link["list_id"] != list_id:
                continue
            group = groups.setdefault(
                link["status"], {"status": link["status"], "count": 0, "last_validated": None}
            )
            group["count"] += 1
            stamp = link["last_validated_at"]
            if stamp and (group["last_validated"] is None or stamp > group["last_validated"]):
                group["last_validated"] = stamp
        return list(groups.values())

    def get_next_order_index(self, list_id):
        indexes = [link["order_index"] for link in self.links.values() if link["list_id"] == list_id]
        return max(indexes, default=-1) + 1

    def add_link(self, list_id, url, metadata, order_index):
        link_id = f"link-{len(self.links) + 1}"
        row = {
            "id": link_id,
            "list_id": list_id,
            "url": url,
            "order_index": order_index,
            "title": metadata.get("title"),
            "description": metadata.get("description"),
            "favicon_url": metadata.get("favicon_url"),
            "og_image_url": metadata.get("og_image_url"),
            "content_type": metadata.get("content_type"),
            "status": metadata.get("status"),
            "last_validated_at": metadata.get("validated_at"),
        }
        self.links[link_id] = row
        return dict(row)

    def update_link_metadata(self, link_id, metadata):
        row = self.links[link_id]
        row.update(
            {
                "title": metadata.get("title"),
                "description": metadata.get("description"),
                "favicon_url": metadata.get("favicon_url"),
                "og_image_url": metadata.get("og_image_url"),
                "content_type": metadata.get("content_type"),
                "status": metadata.get("status"),
                "last_validated_at": metadata.get("validated_at"),
            }
        )
        return dict(row)

    def get_link_by_id(self, link_id):
        row = self.links.get(link_id)
        return dict(row) if row else None


class StubValidator:
    """Returns canned outcomes per URL and records every call."""

    def __init__(self, outcomes: Optional[Dict[str, ValidationOutcome]] = None, default=None):
        self.outcomes = outcomes or {}
        self.default = default or ValidationOutcome(STATUS_ACTIVE, 200)
        self.calls: List[str] = []

    async def validate(self, url):
        self.calls.append(url)
        outcome = self.outcomes.get(url, self.default)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


@pytest.fixture
def make_store():
    return FakeStore


@pytest.fixture
def make_validator():
    return StubValidator
