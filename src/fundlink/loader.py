"""Asynchronous feed loading with request coalescing and a session cache."""

import asyncio
import logging
from typing import Optional, Protocol

import aiohttp

from .api import USER_AGENT
from .errors import FeedFetchError
from .models import FundRecord
from .parser import FeedParser
from .storage import FUNDS_KEY, Persistence

logger = logging.getLogger(__name__)


class FeedClient(Protocol):
    async def fetch_text(self) -> str: ...


class AsyncSheetsClient:
    """Async client for the Google Sheets offerings feed."""

    def __init__(self, url: str, timeout: float = 15,
                 session: Optional[aiohttp.ClientSession] = None):
        self.url = url
        self.timeout = timeout
        self.session = session

    async def fetch_text(self) -> str:
        """Fetch the raw gviz response body.

        Uses the shared session when one was given, otherwise a short-lived one.

        Raises:
            FeedFetchError: On transport errors, timeouts or a non-2xx status
        """
        if self.session is not None:
            return await self._get(self.session)
        async with aiohttp.ClientSession(headers={"User-Agent": USER_AGENT}) as session:
            return await self._get(session)

    async def _get(self, session: aiohttp.ClientSession) -> str:
        try:
            timeout = aiohttp.ClientTimeout(total=self.timeout)
            async with session.get(self.url, timeout=timeout) as resp:
                if not 200 <= resp.status < 300:
                    logger.error(f"Feed returned status {resp.status}")
                    raise FeedFetchError(f"Feed returned status {resp.status}",
                                         status=resp.status, url=self.url)
                return await resp.text()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error(f"Error fetching feed: {e!r}")
            raise FeedFetchError(f"Could not reach feed: {e!r}", url=self.url) from e


class FundLoader:
    """Loads fund records, serving the session cache and coalescing fetches.

    At most one fetch is in flight; concurrent callers await the same task
    and receive the same records or the same exception.
    """

    def __init__(self, client: FeedClient, session: Persistence,
                 parser: Optional[FeedParser] = None):
        self.client = client
        self.session = session
        self.parser = parser or FeedParser()
        self._inflight: Optional[asyncio.Future] = None

    @property
    def in_flight(self) -> bool:
        return self._inflight is not None

    def cached(self) -> list[FundRecord]:
        """Records from the session cache; empty when missing or unreadable."""
        stored = self.session.read(FUNDS_KEY, [])
        if not isinstance(stored, list):
            return []
        funds = []
        for item in stored:
            if not isinstance(item, dict):
                continue
            try:
                funds.append(FundRecord.from_dict(item))
            except (TypeError, ValueError) as e:
                logger.warning(f"Discarding unreadable fund cache: {e}")
                return []
        return funds

    def invalidate(self) -> None:
        self.session.remove(FUNDS_KEY)

    async def load(self, force_refresh: bool = False) -> list[FundRecord]:
        """Return cached records, or fetch and parse the feed.

        Raises:
            FeedFetchError: If the feed could not be retrieved
            FeedParseError: If the payload is malformed
        """
        if not force_refresh:
            cached = self.cached()
            if cached:
                return cached

        if self._inflight is None:
            self._inflight = asyncio.ensure_future(self._fetch())
            self._inflight.add_done_callback(self._release)
        else:
            logger.debug("Joining in-flight feed fetch")
        return await asyncio.shield(self._inflight)

    def _release(self, task: asyncio.Future) -> None:
        if self._inflight is task:
            self._inflight = None

    async def _fetch(self) -> list[FundRecord]:
        logger.info("Fetching offerings feed...")
        text = await self.client.fetch_text()
        funds = self.parser.parse(text)
        if not self.session.write(FUNDS_KEY, [f.to_dict() for f in funds]):
            logger.warning("Fund cache not written; next load will refetch")
        return funds
