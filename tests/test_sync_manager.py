import asyncio
import json

import aiohttp
import pytest

from conftest import FIGMA_URL, AssetServer, FakeFigmaClient
from figma_imgs.core.sync_manager import ImageSyncManager, SyncState, save_imgs
from figma_imgs.exceptions import CandidateFetchError, InvalidUrlError
from figma_imgs.media.downloader import AssetFetcher
from figma_imgs.models.assets import AssetCandidate, ManifestEntry
from figma_imgs.storage.manifest import load_manifest, save_manifest


def _serve(server, count, failing=()):
    """Registers ``count`` assets and returns a fake client listing them."""
    children, urls = {}, {}
    for i in range(count):
        name = f"asset-{i}"
        asset_id = f"1:{i}"
        children[asset_id] = name
        urls[asset_id] = server.add(name, f"body {i}".encode(), etag=f'"tag-{i}"')
        if i in failing:
            server.failing.add(name)
    return FakeFigmaClient(children, urls)


async def _sync(config, client, session):
    manager = ImageSyncManager(config, client, AssetFetcher(session))
    return await manager.sync(FIGMA_URL)


def test_first_run_downloads_and_records_everything(make_config):
    config = make_config(concurrency=2)

    async def main():
        async with AssetServer() as server, aiohttp.ClientSession() as session:
            client = _serve(server, 3)
            return await _sync(config, client, session), client

    report, client = asyncio.run(main())

    assert report.state is SyncState.DONE
    assert report.ok
    assert report.stats.downloaded == 3
    assert (config.save_dir / "asset-1.png").read_bytes() == b"body 1"
    manifest = load_manifest(config.metadata_path)
    assert manifest["1:1"] == ManifestEntry(
        should_download=True, url=client.urls["1:1"], name="asset-1", etag='"tag-1"'
    )
    assert client.calls[0] == ("get_node_children", "ABC123", "1-2", ["FRAME", "COMPONENT"])
    assert client.calls[1][3:] == ("png", 1)


def test_second_run_performs_no_fetches(make_config):
    config = make_config()

    async def main():
        async with AssetServer() as server, aiohttp.ClientSession() as session:
            client = _serve(server, 4)
            first = await _sync(config, client, session)
            gets_after_first = server.count("GET")
            second = await _sync(config, client, session)
            return first, second, gets_after_first, server

    first, second, gets_after_first, server = asyncio.run(main())

    assert first.stats.downloaded == 4
    assert second.state is SyncState.IDLE_DONE
    assert second.selected == []
    assert second.stats.skipped == 4
    assert server.count("GET") == gets_after_first == 4
    assert server.count("HEAD") == 0


def test_partial_failure_is_isolated(make_config):
    config = make_config(concurrency=2)

    async def main():
        async with AssetServer() as server, aiohttp.ClientSession() as session:
            client = _serve(server, 5, failing={2})
            return await _sync(config, client, session), client

    report, client = asyncio.run(main())

    assert report.state is SyncState.DONE
    assert report.stats.downloaded == 4
    assert report.stats.failed == 1
    assert [(c.name, c.url) for c in report.failed] == [("asset-2", client.urls["1:2"])]
    manifest = load_manifest(config.metadata_path)
    assert sorted(manifest) == ["1:0", "1:1", "1:3", "1:4"]
    assert not (config.save_dir / "asset-2.png").exists()


def test_failure_leaves_existing_entry_untouched(make_config):
    config = make_config()
    stale = ManifestEntry(should_download=False, url="old-url", name="asset-0", etag='"x"')
    save_manifest(config.metadata_path, {"1:0": stale})

    async def main():
        async with AssetServer() as server, aiohttp.ClientSession() as session:
            client = _serve(server, 2, failing={0})
            return await _sync(config, client, session)

    report = asyncio.run(main())

    assert [c.id for c in report.failed] == ["1:0"]
    manifest = load_manifest(config.metadata_path)
    assert manifest["1:0"] == stale
    assert manifest["1:1"].should_download is True


def test_unrelated_manifest_entries_are_preserved(make_config):
    config = make_config()
    other = ManifestEntry(should_download=True, url="elsewhere", name="Other", etag='"o"')
    save_manifest(config.metadata_path, {"9:9": other})

    async def main():
        async with AssetServer() as server, aiohttp.ClientSession() as session:
            return await _sync(config, _serve(server, 2), session)

    asyncio.run(main())

    manifest = load_manifest(config.metadata_path)
    assert manifest["9:9"] == other
    assert set(manifest) == {"9:9", "1:0", "1:1"}


def test_invalidated_asset_with_same_tag_is_downloaded_again(make_config):
    config = make_config()
    config.save_dir.mkdir(parents=True)
    (config.save_dir / "asset-0.png").write_bytes(b"stale copy")

    async def main():
        async with AssetServer() as server, aiohttp.ClientSession() as session:
            client = _serve(server, 1)
            save_manifest(
                config.metadata_path,
                {
                    "1:0": ManifestEntry(
                        should_download=False,
                        url=client.urls["1:0"],
                        name="asset-0",
                        etag='"tag-0"',
                    )
                },
            )
            return await _sync(config, client, session), server

    report, server = asyncio.run(main())

    assert server.count("GET") == 1
    assert report.stats.downloaded == 1
    assert (config.save_dir / "asset-0.png").read_bytes() == b"body 0"
    assert load_manifest(config.metadata_path)["1:0"].should_download is True


def test_interrupted_download_is_completed_on_next_run(make_config):
    config = make_config()
    body = b"x" * 1000
    save_manifest(
        config.metadata_path,
        {"1:0": ManifestEntry(should_download=False, name="asset-0", etag='"t"')},
    )

    async def run(truncate):
        async with AssetServer() as server, aiohttp.ClientSession() as session:
            url = server.add("asset-0", body, etag='"t"')
            if truncate:
                server.truncated.add("asset-0")
            client = FakeFigmaClient({"1:0": "asset-0"}, {"1:0": url})
            return await _sync(config, client, session)

    first = asyncio.run(run(truncate=True))

    assert [c.id for c in first.failed] == ["1:0"]
    assert not (config.save_dir / "asset-0.png").exists()
    assert load_manifest(config.metadata_path)["1:0"].should_download is False

    second = asyncio.run(run(truncate=False))

    assert second.ok
    assert second.stats.downloaded == 1
    assert (config.save_dir / "asset-0.png").read_bytes() == body
    assert load_manifest(config.metadata_path)["1:0"].should_download is True


def test_invalidated_asset_without_local_file_is_downloaded(make_config):
    config = make_config()

    async def main():
        async with AssetServer() as server, aiohttp.ClientSession() as session:
            client = _serve(server, 1)
            save_manifest(
                config.metadata_path,
                {"1:0": ManifestEntry(should_download=False, name="asset-0", etag='"tag-0"')},
            )
            return await _sync(config, client, session)

    report = asyncio.run(main())

    assert report.stats.downloaded == 1
    assert (config.save_dir / "asset-0.png").read_bytes() == b"body 0"


def test_unrendered_assets_are_not_scheduled(make_config):
    config = make_config()

    async def main():
        async with AssetServer() as server, aiohttp.ClientSession() as session:
            client = _serve(server, 2)
            client.children["1:9"] = "Broken Render"
            return await _sync(config, client, session)

    report = asyncio.run(main())

    assert report.unrendered == [AssetCandidate("1:9", "Broken Render", None)]
    assert report.stats.unrendered == 1
    assert report.failed == []
    assert "1:9" not in load_manifest(config.metadata_path)


def test_empty_node_finishes_idle(make_config):
    config = make_config()
    client = FakeFigmaClient({})

    report = asyncio.run(
        ImageSyncManager(config, client, AssetFetcher(None)).sync(FIGMA_URL)
    )

    assert report.state is SyncState.IDLE_DONE
    assert [call[0] for call in client.calls] == ["get_node_children"]
    assert not config.metadata_path.exists()


def test_invalid_url_fails_before_any_request(make_config):
    client = FakeFigmaClient({"1:1": "Logo"})
    manager = ImageSyncManager(make_config(), client, AssetFetcher(None))

    with pytest.raises(InvalidUrlError):
        asyncio.run(manager.sync("https://www.figma.com/file/ABC123/Design"))
    assert client.calls == []


def test_candidate_errors_are_fatal_and_leave_manifest_alone(make_config):
    config = make_config()
    save_manifest(config.metadata_path, {"1:1": ManifestEntry(should_download=True, name="a")})
    before = config.metadata_path.read_text(encoding="utf-8")
    client = FakeFigmaClient({}, error=CandidateFetchError("node missing"))
    manager = ImageSyncManager(config, client, AssetFetcher(None))

    with pytest.raises(CandidateFetchError):
        asyncio.run(manager.sync(FIGMA_URL))
    assert config.metadata_path.read_text(encoding="utf-8") == before


def test_dry_run_writes_nothing(make_config):
    config = make_config(dry_run=True)

    async def main():
        async with AssetServer() as server, aiohttp.ClientSession() as session:
            report = await _sync(config, _serve(server, 3), session)
            return report, server.count("GET")

    report, gets = asyncio.run(main())

    assert len(report.selected) == 3
    assert report.stats.dry_run is True
    assert gets == 0
    assert not config.save_dir.exists()


def test_progress_sink_advances_once_per_asset(make_config):
    class RecordingProgress:
        def __init__(self):
            self.events = []

        def start_phase(self, description, total):
            self.events.append(("start", total))

        def advance(self, count=1):
            self.events.append(("advance", count))

        def finish_phase(self):
            self.events.append(("finish",))

    progress = RecordingProgress()
    config = make_config()

    async def main():
        async with AssetServer() as server, aiohttp.ClientSession() as session:
            client = _serve(server, 3, failing={1})
            manager = ImageSyncManager(config, client, AssetFetcher(session), progress)
            await manager.sync(FIGMA_URL)

    asyncio.run(main())

    assert progress.events[0] == ("start", 3)
    assert progress.events.count(("advance", 1)) == 3
    assert progress.events[-1] == ("finish",)


def test_check_for_changes_reports_without_writing(make_config):
    config = make_config()

    async def main():
        async with AssetServer() as server, aiohttp.ClientSession() as session:
            client = _serve(server, 3)
            await _sync(config, client, session)
            server.assets["asset-1"] = (b"edited", '"tag-1b"')
            before = config.metadata_path.read_text(encoding="utf-8")
            manager = ImageSyncManager(config, client, AssetFetcher(session))
            changes = await manager.check_for_changes(FIGMA_URL)
            return changes, before, server.count("GET")

    changes, before, gets = asyncio.run(main())

    assert [c.name for c in changes.changed] == ["asset-1"]
    assert changes.up_to_date == 2
    assert changes.pending == []
    assert gets == 3
    assert config.metadata_path.read_text(encoding="utf-8") == before


def test_save_imgs_accepts_camel_case_options(tmp_path):
    save_dir = tmp_path / "out"

    async def main():
        async with AssetServer() as server:
            client = _serve(server, 2)
            return await save_imgs(
                FIGMA_URL,
                client,
                {"saveDir": str(save_dir), "format": "jpg", "concurrency": 1},
            )

    report = asyncio.run(main())

    assert report.stats.downloaded == 2
    assert sorted(p.name for p in save_dir.iterdir()) == [
        "asset-0.jpg",
        "asset-1.jpg",
        "metadata.json",
    ]
    assert json.loads((save_dir / "metadata.json").read_text())["1:0"]["shouldDownload"]
