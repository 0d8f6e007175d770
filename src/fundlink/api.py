"""Synchronous client for the offerings sheet (gviz endpoint)."""

import logging
from typing import Optional

import requests

from .errors import FeedFetchError
from .models import FundRecord
from .parser import FeedParser

logger = logging.getLogger(__name__)

USER_AGENT = "fundlink/0.1"


class SheetsFeedAPI:
    """Client for the Google Sheets offerings feed."""

    def __init__(self, url: str, timeout: float = 15, parser: Optional[FeedParser] = None):
        self.url = url
        self.timeout = timeout
        self.parser = parser or FeedParser()
        self.session = requests.Session()
        self.session.headers.update({
            "User-Agent": USER_AGENT
        })

    def fetch_text(self) -> str:
        """Fetch the raw gviz response body.

        Returns:
            Response text, still wrapped in its callback envelope

        Raises:
            FeedFetchError: On transport errors or a non-2xx status
        """
        try:
            resp = self.session.get(self.url, timeout=self.timeout)
        except requests.RequestException as e:
            logger.error(f"Error fetching feed: {e}")
            raise FeedFetchError(f"Could not reach feed: {e}", url=self.url) from e

        if not resp.ok:
            logger.error(f"Feed returned status {resp.status_code}")
            raise FeedFetchError(f"Feed returned status {resp.status_code}",
                                 status=resp.status_code, url=self.url)
        return resp.text

    def fetch_funds(self) -> list[FundRecord]:
        """Fetch and parse the feed.

        Raises:
            FeedFetchError: If the feed could not be retrieved
            FeedParseError: If the payload is malformed
        """
        return self.parser.parse(self.fetch_text())

    def close(self) -> None:
        self.session.close()
