"""
Shared fixtures: a local HTTP server standing in for Figma's image CDN and a
fake Figma API client.
"""

from __future__ import annotations

from collections import Counter
from pathlib import Path

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from figma_imgs.models.config import SyncConfig

FIGMA_URL = "https://www.figma.com/file/ABC123/Design-System?node-id=1-2"


class AssetServer:
    """Serves ``/img/<name>`` with a fixed body and ETag, counting requests."""

    def __init__(self) -> None:
        self.assets: dict[str, tuple[bytes, str | None]] = {}
        self.failing: set[str] = set()
        # Names whose connection is dropped after the first few body bytes
        self.truncated: set[str] = set()
        self.requests: Counter[tuple[str, str]] = Counter()
        self._server: TestServer | None = None

    def add(self, name: str, body: bytes, etag: str | None = None) -> str:
        self.assets[name] = (body, etag)
        return self.url(name)

    def url(self, name: str) -> str:
        return str(self._server.make_url(f"/img/{name}"))

    def count(self, method: str, name: str | None = None) -> int:
        return sum(
            n
            for (m, asset), n in self.requests.items()
            if m == method and (name is None or asset == name)
        )

    async def _handle(self, request: web.Request) -> web.Response:
        name = request.match_info["name"]
        self.requests[(request.method, name)] += 1
        if name in self.failing:
            return web.Response(status=500, text="render failed")
        if name not in self.assets:
            return web.Response(status=404)
        body, etag = self.assets[name]
        headers = {"ETag": etag} if etag else {}
        if name in self.truncated and request.method == "GET":
            response = web.StreamResponse(headers=headers)
            response.content_type = "image/png"
            response.content_length = len(body)
            await response.prepare(request)
            await response.write(body[:10])
            request.transport.close()
            return response
        return web.Response(body=body, headers=headers, content_type="image/png")

    async def __aenter__(self) -> AssetServer:
        app = web.Application()
        app.router.add_get("/img/{name}", self._handle)
        self._server = TestServer(app)
        await self._server.start_server()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self._server.close()


class FakeFigmaClient:
    """Returns a fixed node listing and render URLs, recording every call."""

    def __init__(
        self,
        children: dict[str, str],
        urls: dict[str, str | None] | None = None,
        error: Exception | None = None,
    ) -> None:
        self.children = children
        self.urls = urls or {}
        self.error = error
        self.calls: list[tuple] = []

    async def get_node_children(self, file_key, node_id, node_types):
        self.calls.append(("get_node_children", file_key, node_id, list(node_types)))
        if self.error:
            raise self.error
        return dict(self.children)

    async def get_image_urls(self, file_key, ids, image_format="png", scale=1):
        self.calls.append(("get_image_urls", file_key, list(ids), image_format, scale))
        return {asset_id: self.urls.get(asset_id) for asset_id in ids}


@pytest.fixture
def make_config(tmp_path: Path):
    def factory(**options) -> SyncConfig:
        options.setdefault("save_dir", tmp_path / "imgs")
        return SyncConfig.from_options(options)

    return factory
