"""
link_validator.py - Liveness checks for saved links.

A validation is a single HEAD request sent through the shared rate limiter
and bounded by a fixed timeout. The response (or the lack of one) is turned
into a ValidationOutcome instead of an exception, so callers never have to
handle network errors themselves.
"""

import asyncio
import contextlib
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import requests

from config import Config
from rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

config = Config()

STATUS_ACTIVE = "active"
STATUS_ERROR = "error"
STATUS_INVALID = "invalid"

# Synthetic code for checks aborted by our own timeout, not sent by the server.
REQUEST_TIMEOUT = 408


@dataclass(frozen=True)
class ValidationOutcome:
    status: str
    status_code: Optional[int] = None

    @property
    def is_active(self) -> bool:
        return self.status == STATUS_ACTIVE

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"status": self.status}
        if self.status_code is not None:
            data["statusCode"] = self.status_code
        return data


class LinkValidator:
    """Probes URLs through a RateLimiter and classifies the result."""

    def __init__(
        self,
        rate_limiter: Optional[RateLimiter] = None,
        *,
        timeout: Optional[float] = None,
        user_agent: Optional[str] = None,
    ):
        self.rate_limiter = rate_limiter or RateLimiter(config.VALIDATION_MIN_INTERVAL_MS / 1000)
        self.timeout = timeout if timeout is not None else config.VALIDATION_TIMEOUT
        self.headers = {"User-Agent": user_agent or config.VALIDATION_USER_AGENT}

    async def validate(self, url: str) -> ValidationOutcome:
        """
        Checks whether ``url`` is reachable.

        Returns:
            ValidationOutcome with status "active" for 2xx responses, otherwise
            "error" with the response code, 408 on timeout, or no code for
            network failures.
        """
        return await self.rate_limiter.schedule(lambda: self._check(url))

    async def _check(self, url: str) -> ValidationOutcome:
        loop = asyncio.get_running_loop()
        request = loop.run_in_executor(None, self._send_head, url)
        try:
            response = await asyncio.wait_for(asyncio.shield(request), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.warning("Validation of %s timed out after %ss", url, self.timeout)
            # Hold the throttle slot until the abandoned request has left the wire.
            with contextlib.suppress(Exception):
                await request
            return ValidationOutcome(STATUS_ERROR, REQUEST_TIMEOUT)
        except requests.Timeout:
            logger.warning("Validation of %s timed out after %ss", url, self.timeout)
            return ValidationOutcome(STATUS_ERROR, REQUEST_TIMEOUT)
        except (requests.RequestException, ValueError, OSError) as exc:
            logger.warning("Failed to validate link %s: %s", url, exc)
            return ValidationOutcome(STATUS_ERROR)

        if 200 <= response.status_code < 300:
            return ValidationOutcome(STATUS_ACTIVE, response.status_code)

        logger.info("Link %s answered with status %s", url, response.status_code)
        return ValidationOutcome(STATUS_ERROR, response.status_code)

    def _send_head(self, url: str) -> requests.Response:
        return requests.head(
            url,
            headers=self.headers,
            timeout=self.timeout,
            allow_redirects=True,
        )


_default_validator: Optional[LinkValidator] = None


def get_default_validator() -> LinkValidator:
    """Returns the process-wide validator, so every caller shares one throttle."""
    global _default_validator
    if _default_validator is None:
        _default_validator = LinkValidator()
    return _default_validator


async def validate_link(url: str) -> ValidationOutcome:
    return await get_default_validator().validate(url)
