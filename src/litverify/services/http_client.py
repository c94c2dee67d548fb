"""
HTTP access shared by the search sources: timeouts, bounded retries and an
optional minimum interval between requests.
"""
import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Dict, Optional

import aiohttp

from ..core.config import Settings, settings as default_settings
from ..types import CollaboratorError

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[Any]]


class RateLimiter:
    """Enforces a minimum interval between consecutive requests."""

    def __init__(
        self,
        min_interval: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Sleep = asyncio.sleep,
        logger: Optional[logging.Logger] = None,
    ):
        self.min_interval = min_interval
        self.clock = clock
        self.sleep = sleep
        self.logger = logger or logging.getLogger(__name__)
        self._last_request: Optional[float] = None

    async def wait_if_needed(self) -> float:
        """
        必要なら前回リクエストから min_interval 経過するまで待つ

        Returns:
            待機した秒数
        """
        waited = 0.0
        if self._last_request is not None:
            elapsed = self.clock() - self._last_request
            if elapsed < self.min_interval:
                waited = self.min_interval - elapsed
                self.logger.debug(f"Rate limit: waiting {waited:.2f}s")
                await self.sleep(waited)
        self._last_request = self.clock()
        return waited


class HttpClient:
    """
    aiohttp session wrapper with the retry policy used by every source.

    Retries connection errors, timeouts, 429 and 5xx responses up to
    MAX_RETRIES attempts. 429 and 503 honor a Retry-After header given in
    seconds. Other 4xx responses are never retried.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        session: Optional[aiohttp.ClientSession] = None,
        logger: Optional[logging.Logger] = None,
        sleep: Sleep = asyncio.sleep,
    ):
        self.settings = settings or default_settings
        self.session = session
        self.logger = logger or logging.getLogger(__name__)
        self.sleep = sleep
        self._owns_session = session is None

    async def __aenter__(self):
        self._ensure_session()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def close(self) -> None:
        if self._owns_session and self.session:
            await self.session.close()
            self.session = None

    @property
    def user_agent(self) -> str:
        if self.settings.CONTACT_EMAIL:
            return f"{self.settings.USER_AGENT} (mailto:{self.settings.CONTACT_EMAIL})"
        return self.settings.USER_AGENT

    def _ensure_session(self) -> aiohttp.ClientSession:
        if self.session is None:
            connector = aiohttp.TCPConnector(limit=10, limit_per_host=5)
            timeout = aiohttp.ClientTimeout(total=self.settings.REQUEST_TIMEOUT)
            self.session = aiohttp.ClientSession(
                connector=connector,
                timeout=timeout,
                headers={"User-Agent": self.user_agent}
            )
            self._owns_session = True
        return self.session

    def _retry_after(self, status: int, headers: Any) -> float:
        default = self.settings.DEFAULT_RETRY_AFTER if status == 429 else self.settings.RETRY_DELAY
        if status not in (429, 503):
            return default
        value = (headers or {}).get("Retry-After")
        try:
            seconds = float(value)
        except (TypeError, ValueError):
            return default
        return seconds if seconds > 0 else default

    async def _fetch(
        self,
        service: str,
        url: str,
        params: Optional[Dict[str, Any]],
        read: Callable[[Any], Awaitable[Any]],
        rate_limiter: Optional[RateLimiter] = None,
        not_found_ok: bool = False,
    ) -> Any:
        session = self._ensure_session()
        max_retries = max(1, self.settings.MAX_RETRIES)
        last_error = ""
        last_status: Optional[int] = None

        for attempt in range(1, max_retries + 1):
            if rate_limiter:
                await rate_limiter.wait_if_needed()
            try:
                self.logger.info(f"{service}: GET {url} (attempt {attempt}/{max_retries})")
                async with session.get(url, params=params) as response:
                    status = response.status
                    last_status = status
                    if status < 400:
                        try:
                            return await read(response)
                        except ValueError as e:
                            raise CollaboratorError(
                                f"{service} returned a malformed response: {e}",
                                service=service,
                                status_code=status
                            ) from e
                    if status == 404 and not_found_ok:
                        return None
                    if status < 500 and status != 429:
                        raise CollaboratorError(
                            f"{service} request failed with status {status}",
                            service=service,
                            status_code=status
                        )
                    delay = self._retry_after(status, response.headers)
                    last_error = f"status {status}"
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                delay = self.settings.RETRY_DELAY
                last_error = f"{type(e).__name__}: {e}"

            if attempt < max_retries:
                self.logger.warning(
                    f"{service}: {last_error}, retrying in {delay:.1f}s ({attempt}/{max_retries})"
                )
                await self.sleep(delay)

        self.logger.error(f"{service}: giving up after {max_retries} attempts ({last_error})")
        raise CollaboratorError(
            f"{service} failed after {max_retries} attempts: {last_error}",
            service=service,
            status_code=last_status
        )

    async def get_json(
        self,
        service: str,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        rate_limiter: Optional[RateLimiter] = None,
        not_found_ok: bool = False,
    ) -> Any:
        """GET and decode a JSON body; None only for a tolerated 404."""
        return await self._fetch(
            service, url, params,
            lambda response: response.json(content_type=None),
            rate_limiter=rate_limiter,
            not_found_ok=not_found_ok,
        )

    async def get_text(
        self,
        service: str,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        rate_limiter: Optional[RateLimiter] = None,
    ) -> str:
        """GET and return the body as text (XML feeds)."""
        return await self._fetch(service, url, params, lambda response: response.text(), rate_limiter=rate_limiter)
