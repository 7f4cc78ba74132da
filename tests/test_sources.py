"""Tests for bundle sources."""

import asyncio
from pathlib import Path

import pytest
from aiohttp import test_utils, web

from crdkit.sources import (
    BundleFetchError,
    FileBundleSource,
    HttpBundleSource,
    source_for,
)


async def _fetch_from_server(path: str, body: str = "", status: int = 200) -> str:
    async def handler(_request: web.Request) -> web.Response:
        return web.Response(text=body, status=status)

    app = web.Application()
    app.router.add_get("/bundle.yaml", handler)
    async with test_utils.TestServer(app) as server:
        return await HttpBundleSource(str(server.make_url(path)), timeout=5).fetch()


class TestHttpBundleSource:
    """Tests for fetching bundles over HTTP."""

    def test_returns_body(self) -> None:
        text = asyncio.run(_fetch_from_server("/bundle.yaml", body="kind: PluginDefinition\n"))

        assert text == "kind: PluginDefinition\n"

    def test_error_status_raises(self) -> None:
        with pytest.raises(BundleFetchError, match="HTTP 404"):
            asyncio.run(_fetch_from_server("/other.yaml"))

    def test_server_error_raises(self) -> None:
        with pytest.raises(BundleFetchError, match="HTTP 500"):
            asyncio.run(_fetch_from_server("/bundle.yaml", status=500))


class TestFileBundleSource:
    """Tests for reading bundles from disk."""

    def test_reads_file(self, tmp_path: Path) -> None:
        path = tmp_path / "bundle.yaml"
        path.write_text("kind: PluginDefinition\n")

        assert asyncio.run(FileBundleSource(path).fetch()) == "kind: PluginDefinition\n"

    def test_missing_file_raises(self, tmp_path: Path) -> None:
        with pytest.raises(BundleFetchError, match="file not found"):
            asyncio.run(FileBundleSource(tmp_path / "absent.yaml").fetch())


class TestSourceFor:
    """Tests for choosing a source by location."""

    def test_urls_use_http(self) -> None:
        source = source_for("https://bundles.example.com/cm.yaml", timeout=3)

        assert isinstance(source, HttpBundleSource)
        assert source.timeout == 3

    def test_relative_paths_resolve_against_base(self, tmp_path: Path) -> None:
        source = source_for("bundles/cm.yaml", base_dir=tmp_path)

        assert isinstance(source, FileBundleSource)
        assert source.path == tmp_path / "bundles" / "cm.yaml"

    def test_absolute_paths_are_kept(self, tmp_path: Path) -> None:
        source = source_for(str(tmp_path / "cm.yaml"), base_dir=Path("/elsewhere"))

        assert isinstance(source, FileBundleSource)
        assert source.path == tmp_path / "cm.yaml"
