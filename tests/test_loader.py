"""Tests for async feed loading."""

import asyncio

import pytest
from aiohttp import test_utils, web

from conftest import FakeFeedClient, build_table, wrap_payload
from fundlink.errors import FeedFetchError, FeedParseError
from fundlink.loader import AsyncSheetsClient, FundLoader
from fundlink.parser import FeedParser
from fundlink.storage import FUNDS_KEY, MemoryStore, Persistence


@pytest.fixture
def session():
    return Persistence(MemoryStore())


@pytest.fixture
def loader(fake_client, session, clock):
    return FundLoader(fake_client, session, FeedParser(clock=clock))


class TestFundLoader:
    def test_load_fetches_and_caches(self, loader, fake_client, session):
        funds = asyncio.run(loader.load())
        assert [f.id for f in funds] == [1, 2, 3]
        assert fake_client.calls == 1
        assert len(session.read(FUNDS_KEY)) == 3

    def test_second_load_uses_cache(self, loader, fake_client):
        asyncio.run(loader.load())
        funds = asyncio.run(loader.load())
        assert fake_client.calls == 1
        assert funds[0].name == "Acme Multifamily DST"

    def test_force_refresh_bypasses_cache(self, loader, fake_client):
        asyncio.run(loader.load())
        asyncio.run(loader.load(force_refresh=True))
        assert fake_client.calls == 2

    def test_invalidate(self, loader, fake_client):
        asyncio.run(loader.load())
        loader.invalidate()
        assert loader.cached() == []
        asyncio.run(loader.load())
        assert fake_client.calls == 2

    def test_concurrent_loads_share_one_fetch(self, loader, fake_client):
        async def run():
            return await asyncio.gather(loader.load(), loader.load(), loader.load())

        first, second, third = asyncio.run(run())
        assert fake_client.calls == 1
        assert first is second is third
        assert not loader.in_flight

    def test_concurrent_failure_reaches_every_caller(self, session, clock):
        error = FeedFetchError("boom", status=503)
        client = FakeFeedClient(error=error)
        loader = FundLoader(client, session, FeedParser(clock=clock))

        async def run():
            return await asyncio.gather(loader.load(), loader.load(), return_exceptions=True)

        results = asyncio.run(run())
        assert results == [error, error]
        assert client.calls == 1
        assert not loader.in_flight

    def test_retry_after_failure(self, session, clock, sample_payload):
        client = FakeFeedClient(error=FeedFetchError("boom"))
        loader = FundLoader(client, session, FeedParser(clock=clock))
        with pytest.raises(FeedFetchError):
            asyncio.run(loader.load())

        client.error = None
        client.payload = sample_payload
        assert len(asyncio.run(loader.load())) == 3
        assert client.calls == 2

    def test_parse_error_propagates(self, session, clock):
        loader = FundLoader(FakeFeedClient("not a feed"), session, FeedParser(clock=clock))
        with pytest.raises(FeedParseError):
            asyncio.run(loader.load())
        assert session.read(FUNDS_KEY) is None

    def test_cache_write_failure_still_returns_funds(self, fake_client, clock):
        session = Persistence(MemoryStore(quota_bytes=10))
        loader = FundLoader(fake_client, session, FeedParser(clock=clock))
        assert len(asyncio.run(loader.load())) == 3
        assert loader.cached() == []

    def test_unreadable_cache_is_ignored(self, loader, fake_client, session):
        session.write(FUNDS_KEY, [{"id": 1, "status": "Bogus"}])
        assert loader.cached() == []
        asyncio.run(loader.load())
        assert fake_client.calls == 1


class TestAsyncSheetsClient:
    def _serve(self, handler):
        app = web.Application()
        app.router.add_get("/feed", handler)
        return test_utils.TestServer(app)

    def test_fetch_text(self):
        payload = wrap_payload(build_table(["Offering Name"], [["Served DST"]]))

        async def handler(request):
            return web.Response(text=payload)

        async def run():
            async with self._serve(handler) as server:
                client = AsyncSheetsClient(str(server.make_url("/feed")), timeout=5)
                return await client.fetch_text()

        assert asyncio.run(run()) == payload

    def test_non_2xx_status(self):
        async def handler(request):
            return web.Response(status=500, text="oops")

        async def run():
            async with self._serve(handler) as server:
                client = AsyncSheetsClient(str(server.make_url("/feed")), timeout=5)
                await client.fetch_text()

        with pytest.raises(FeedFetchError) as exc_info:
            asyncio.run(run())
        assert exc_info.value.status == 500

    def test_connection_error(self):
        client = AsyncSheetsClient("http://127.0.0.1:1/feed", timeout=2)
        with pytest.raises(FeedFetchError):
            asyncio.run(client.fetch_text())
