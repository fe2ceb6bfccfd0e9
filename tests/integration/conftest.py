"""Fixtures for integration tests: a local reader API served by aiohttp."""

from __future__ import annotations

import asyncio
from collections import Counter
from collections.abc import AsyncIterator

import pytest_asyncio
from aiohttp import web

BOOKS = [
    {"id": "GEN", "name": "Genesis", "chapters": 50},
    {"id": "JHN", "name": "John", "chapters": 21},
]


class ReaderApiServer:
    """Small HTTP API with deterministic payloads and failure injection.

    Routes:
        GET /books: JSON list of books.
        POST /notes: Echoes the JSON body with status 201.
        GET /status/{code}: Empty response with the given status.
        GET /flaky/{failures}: 503 for the first ``failures`` hits, then JSON.
        GET /delay/{seconds}: JSON after sleeping.
        GET /bytes/{n}: ``n`` deterministic bytes with a Content-Length.
        GET /broken.json: A body that is not JSON.
    """

    def __init__(self) -> None:
        self.hits: Counter[str] = Counter()
        self._runner: web.AppRunner | None = None
        self._port: int | None = None

    @property
    def base_url(self) -> str:
        return f"http://127.0.0.1:{self._port}"

    def url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    async def handle_books(self, request: web.Request) -> web.Response:
        self.hits[request.path] += 1
        return web.json_response(BOOKS, headers={"X-Reader": "jota"})

    async def handle_notes(self, request: web.Request) -> web.Response:
        self.hits[request.path] += 1
        return web.json_response(await request.json(), status=201)

    async def handle_status(self, request: web.Request) -> web.Response:
        self.hits[request.path] += 1
        return web.Response(status=int(request.match_info["code"]))

    async def handle_flaky(self, request: web.Request) -> web.Response:
        self.hits[request.path] += 1
        if self.hits[request.path] <= int(request.match_info["failures"]):
            return web.json_response({"error": "unavailable"}, status=503)
        return web.json_response({"attempt": self.hits[request.path]})

    async def handle_delay(self, request: web.Request) -> web.Response:
        seconds = min(float(request.match_info["seconds"]), 10.0)
        await asyncio.sleep(seconds)
        return web.json_response({"delay": seconds})

    async def handle_bytes(self, request: web.Request) -> web.Response:
        n = int(request.match_info["n"])
        body = bytes(i % 256 for i in range(n))
        return web.Response(body=body, content_type="application/octet-stream")

    async def handle_broken(self, request: web.Request) -> web.Response:
        return web.Response(text="{not json", content_type="application/json")

    def _create_app(self) -> web.Application:
        app = web.Application()
        app.router.add_get("/books", self.handle_books)
        app.router.add_post("/notes", self.handle_notes)
        app.router.add_get("/status/{code}", self.handle_status)
        app.router.add_get("/flaky/{failures}", self.handle_flaky)
        app.router.add_get("/delay/{seconds}", self.handle_delay)
        app.router.add_get("/bytes/{n}", self.handle_bytes)
        app.router.add_get("/broken.json", self.handle_broken)
        return app

    async def start(self) -> None:
        if self._runner is not None:
            raise RuntimeError("Server is already running")

        self._runner = web.AppRunner(self._create_app())
        await self._runner.setup()
        site = web.TCPSite(self._runner, "127.0.0.1", 0)
        await site.start()
        address = self._runner.addresses[0]
        self._port = address[1]

    async def stop(self) -> None:
        if self._runner is None:
            raise RuntimeError("Server is not running")

        await self._runner.cleanup()
        self._runner = None


@pytest_asyncio.fixture()
async def reader_api() -> AsyncIterator[ReaderApiServer]:
    """Run the reader API on a free local port for one test."""
    server = ReaderApiServer()
    await server.start()
    try:
        yield server
    finally:
        await server.stop()
