"""
link_health.py - Monitors the status of saved links

This module:
- Validates every link of a list on demand and reports the counts
- Periodically re-validates links that are stale (never checked, or older
  than the freshness window), oldest first
- Aggregates health stats for a list or for all links
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from functools import partial
from typing import Any, Awaitable, Callable, Dict, Iterable, Optional

import database
from config import Config
from link_validator import (
    STATUS_ACTIVE,
    STATUS_ERROR,
    STATUS_INVALID,
    LinkValidator,
    ValidationOutcome,
    get_default_validator,
)

logger = logging.getLogger(__name__)

config = Config()

FAILED_STATUSES = {STATUS_ERROR, STATUS_INVALID}


@dataclass
class HealthStats:
    total: int = 0
    active: int = 0
    errors: int = 0
    unknown: int = 0
    last_validated: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "total": self.total,
            "active": self.active,
            "errors": self.errors,
            "unknown": self.unknown,
        }
        if self.last_validated is not None:
            data["lastValidated"] = self.last_validated
        return data


def summarize_status_counts(rows: Iterable[Dict[str, Any]]) -> HealthStats:
    """
    Folds ``status / count / last_validated`` rows into HealthStats.

    "error" and "invalid" both count as errors; anything that is neither
    active nor failed (including no status at all) counts as unknown.
    """
    stats = HealthStats()
    for row in rows:
        count = int(row.get("count") or 0)
        status = row.get("status")

        stats.total += count
        if status == STATUS_ACTIVE:
            stats.active += count
        elif status in FAILED_STATUSES:
            stats.errors += count
        else:
            stats.unknown += count

        last_validated = row.get("last_validated")
        if last_validated and (stats.last_validated is None or last_validated > stats.last_validated):
            stats.last_validated = last_validated
    return stats


class PeriodicValidation:
    """
    Handle for the background sweep loop.

    The loop runs one sweep immediately, then one every ``interval`` seconds
    until stop() is called. A failing sweep never ends the loop.
    """

    def __init__(self, sweep: Callable[[], Awaitable[Any]], interval: float):
        self.interval = interval
        self.sweeps = 0
        self._sweep = sweep
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> "PeriodicValidation":
        if not self.running:
            self._task = asyncio.get_running_loop().create_task(self._run())
        return self

    def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()

    async def wait(self) -> None:
        """Blocks until the loop has been stopped."""
        if self._task is None:
            return
        try:
            await self._task
        except asyncio.CancelledError:
            pass

    async def _run(self) -> None:
        while True:
            try:
                await self._sweep()
            except Exception:
                logger.exception("Error during link validation")
            self.sweeps += 1
            await asyncio.sleep(self.interval)


class LinkHealthMonitor:
    """Runs validations and writes the outcomes back through ``store``."""

    def __init__(
        self,
        validator: Optional[LinkValidator] = None,
        store: Any = None,
        *,
        batch_size: Optional[int] = None,
        stale_after_hours: Optional[int] = None,
    ):
        self.validator = validator or get_default_validator()
        self.store = store or database
        self.batch_size = batch_size if batch_size is not None else config.VALIDATION_BATCH_SIZE
        self.stale_after_hours = (
            stale_after_hours if stale_after_hours is not None else config.STALE_AFTER_HOURS
        )

    async def validate_collection(self, list_id: str) -> Dict[str, int]:
        """
        Validates every link in a list, one after another.

        Returns:
            dict with keys: total, active, errors
        """
        links = await self._call_store(self.store.get_links_for_list, list_id)

        active = 0
        errors = 0
        for link in links:
            outcome = await self.validator.validate(link["url"])
            await self._record(link, outcome)
            if outcome.is_active:
                active += 1
            else:
                errors += 1

        logger.info("Validated list %s: %d active, %d errors", list_id, active, errors)
        return {"total": len(links), "active": active, "errors": errors}

    async def health_stats(self, list_id: Optional[str] = None) -> HealthStats:
        rows = await self._call_store(self.store.get_status_counts, list_id)
        return summarize_status_counts(rows)

    async def run_sweep(self, batch_size: Optional[int] = None) -> int:
        """
        Re-validates up to ``batch_size`` stale links, oldest first.

        Only the status is refreshed here; metadata is left untouched.
        """
        links = await self._call_store(
            self.store.get_stale_links,
            batch_size if batch_size is not None else self.batch_size,
            self.stale_after_hours,
        )

        for link in links:
            outcome = await self.validator.validate(link["url"])
            await self._record(link, outcome)

        logger.info("Validation sweep checked %d stale link(s)", len(links))
        return len(links)

    def start_periodic_validation(self, interval: Optional[float] = None) -> PeriodicValidation:
        """Starts the background sweep loop on the running event loop."""
        if interval is None:
            interval = config.VALIDATION_INTERVAL
        handle = PeriodicValidation(self.run_sweep, interval)
        logger.info("Starting periodic link validation every %ss", handle.interval)
        return handle.start()

    async def _record(self, link: Dict[str, Any], outcome: ValidationOutcome) -> None:
        try:
            await self._call_store(
                self.store.update_link_status,
                link["id"],
                outcome.status,
                datetime.now(timezone.utc),
            )
        except Exception as exc:  # noqa: broad-except - one bad row must not stop the batch
            logger.warning("Failed to record status for link %s: %s", link.get("id"), exc)

    async def _call_store(self, func: Callable[..., Any], *args: Any) -> Any:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, partial(func, *args))
