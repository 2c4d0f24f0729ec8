"""
Tests for the Steam store artwork lookup, against a local aiohttp server
"""

import pytest
from aiohttp import test_utils, web

from game_atlas.artwork import SteamStoreLookup
from game_atlas.constants import Launcher
from game_atlas.enrichment import EnrichmentCoordinator
from game_atlas.exceptions import LookupFailedError

from conftest import make_candidate


@pytest.fixture
async def store_search():
    """Local stand-in for the store search endpoint: term -> (status, body)."""
    responses = {}

    async def handler(request):
        status, body = responses.get(request.query["term"], (200, {"total": 0, "items": []}))
        if isinstance(body, bytes):
            return web.Response(body=body, status=status, content_type="application/json")
        return web.json_response(body, status=status)

    app = web.Application()
    app.router.add_get("/api/storesearch/", handler)
    server = test_utils.TestServer(app)
    await server.start_server()
    yield str(server.make_url("/api/storesearch/")), responses
    await server.close()


@pytest.fixture
async def lookup(store_search):
    url, _ = store_search
    async with SteamStoreLookup() as lookup:
        lookup.SEARCH_URL = url
        yield lookup


@pytest.mark.asyncio
async def test_first_app_result_is_used(lookup, store_search):
    _, responses = store_search
    responses["Hades"] = (200, {"total": 2, "items": [
        {"type": "dlc", "name": "Hades Soundtrack", "id": 1},
        {"type": "app", "name": "Hades", "id": 1145360},
    ]})

    match = await lookup.lookup("Hades")

    assert match.title == "Hades"
    assert "/1145360/" in match.cover_uri
    assert match.background_uri.endswith("/1145360/library_hero.jpg")


@pytest.mark.asyncio
async def test_no_result(lookup):
    assert await lookup.lookup("Nothing Like This") is None


@pytest.mark.asyncio
async def test_http_error_is_transient_failure(lookup, store_search):
    _, responses = store_search
    responses["Hades"] = (503, {})
    with pytest.raises(LookupFailedError):
        await lookup.lookup("Hades")


@pytest.mark.asyncio
async def test_unexpected_body_is_transient_failure(lookup, store_search):
    _, responses = store_search
    responses["Hades"] = (200, b"<html>maintenance</html>")
    with pytest.raises(LookupFailedError):
        await lookup.lookup("Hades")


@pytest.mark.asyncio
async def test_enrichment_end_to_end(lookup, store_search):
    _, responses = store_search
    responses["Celeste"] = (200, {"total": 1, "items": [{"type": "app", "name": "Celeste", "id": 504230}]})
    responses["Hades"] = (500, {})

    candidates = [
        make_candidate("gog_c", "Celeste", Launcher.GOG),
        make_candidate("gog_h", "Hades", Launcher.GOG),
    ]
    result = await EnrichmentCoordinator(lookup, attempts=2, backoff=0).enrich(candidates)

    assert "/504230/" in result[0].cover_image
    assert result[1].cover_image is None
