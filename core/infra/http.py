"""
http.py – Async HTTP client built on *aiohttp* with smart retries,
          transparent 429 / 5xx back-off and per-instance default headers.

Used by the static renderer to fetch changelog pages that render without
JavaScript.
"""

from __future__ import annotations

import asyncio
import logging
import random
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Dict, Mapping, Optional

import aiohttp

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
)


class HttpClient:
    """
    Thin wrapper over *aiohttp.ClientSession* adding:

    * global & per-request headers (keeps user-agent in one place)
    * exponential back-off **with jitter** for 429 / 5xx / network errors
    * transparent parsing of *Retry-After* header
    * async context-manager support
    """

    def __init__(
        self,
        *,
        timeout: float = 30.0,
        max_retries: int = 3,
        base_delay: float = 1.0,
        max_delay: float = 30.0,
        default_headers: Optional[Mapping[str, str]] = None,
    ) -> None:
        self._timeout = timeout
        self._max_retries = max_retries
        self._base_delay = base_delay
        self._max_delay = max_delay
        self._session: Optional[aiohttp.ClientSession] = None
        self._default_headers: Dict[str, str] = {"User-Agent": DEFAULT_USER_AGENT}
        self._default_headers.update(default_headers or {})

    # ---------------------------------------------- #
    # Async context-manager
    async def __aenter__(self) -> "HttpClient":  # noqa: D401
        await self._ensure_session()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:  # noqa: D401
        await self.close()

    # ---------------------------------------------- #
    # Session management
    async def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=self._timeout)
            self._session = aiohttp.ClientSession(timeout=timeout)
        return self._session

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()
            self._session = None

    # ---------------------------------------------- #
    # Internal helpers
    @staticmethod
    def _parse_retry_after(header_val: Optional[str]) -> Optional[float]:
        """Return seconds given a Retry-After header value."""
        if not header_val:
            return None
        header_val = header_val.strip()
        if header_val.isdigit():
            return float(header_val)
        try:
            retry_at = parsedate_to_datetime(header_val)
        except (TypeError, ValueError):
            return None
        if retry_at.tzinfo is None:
            retry_at = retry_at.replace(tzinfo=timezone.utc)
        return max(0.0, (retry_at - datetime.now(tz=timezone.utc)).total_seconds())

    def _merge_headers(self, extra: Optional[Mapping[str, str]]) -> Dict[str, str]:
        merged: Dict[str, str] = {**self._default_headers}
        if extra:
            merged.update(extra)
        return merged

    def _backoff(self, attempt: int, retry_after: Optional[float]) -> float:
        if retry_after is not None:
            return min(retry_after, self._max_delay)
        exponential = min(self._base_delay * 2 ** (attempt - 1), self._max_delay)
        return exponential + random.uniform(0, self._base_delay)

    async def get_text(
        self,
        url: str,
        *,
        retry_for_status: tuple = (429, 500, 502, 503, 504),
        **kwargs,
    ) -> str:
        """GET ``url`` and return the body, retrying transient failures.

        Raises the last ``aiohttp.ClientError`` / ``asyncio.TimeoutError`` once
        retries are exhausted.
        """
        session = await self._ensure_session()
        kwargs["headers"] = self._merge_headers(kwargs.pop("headers", None))

        for attempt in range(1, self._max_retries + 1):
            try:
                async with session.get(url, **kwargs) as resp:
                    if resp.status not in retry_for_status:
                        resp.raise_for_status()
                        return await resp.text()
                    retry_after = self._parse_retry_after(resp.headers.get("Retry-After"))
                    error: Exception = aiohttp.ClientResponseError(
                        resp.request_info,
                        resp.history,
                        status=resp.status,
                        message=f"retryable status {resp.status}",
                        headers=resp.headers,
                    )
            except aiohttp.ClientResponseError as e:
                # non-retryable status
                logger.error("GET %s failed: %s", url, e)
                raise
            except (aiohttp.ClientConnectionError, asyncio.TimeoutError) as e:
                retry_after = None
                error = e

            if attempt == self._max_retries:
                logger.error("GET %s failed after %d attempts: %s", url, attempt, error)
                raise error

            sleep_seconds = self._backoff(attempt, retry_after)
            logger.warning(
                "GET %s failed (attempt %d/%d – will retry in %.1fs): %s",
                url,
                attempt,
                self._max_retries,
                sleep_seconds,
                str(error).splitlines()[0] if str(error) else type(error).__name__,
            )
            await asyncio.sleep(sleep_seconds)

        # Should never hit here
        raise RuntimeError("Unreachable retry loop")
