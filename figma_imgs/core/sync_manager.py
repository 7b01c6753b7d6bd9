"""
The orchestrator for one sync: resolves the target node, enumerates its
exportable images, decides which need fetching, downloads them with bounded
concurrency and records the outcomes in the directory's manifest.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from rich.markup import escape

from figma_imgs.media.downloader import (
    AssetFetcher,
    FetchResult,
    create_download_session,
)
from figma_imgs.models.assets import AssetCandidate, ManifestEntry
from figma_imgs.models.config import SyncConfig
from figma_imgs.models.stats import SyncStats
from figma_imgs.storage.manifest import ManifestStore
from figma_imgs.utils.url import FigmaTarget, parse_figma_url

from .freshness import ChangeReport, find_changed, select_for_download
from .pool import TaskOutcome, run_pool

log = logging.getLogger(__name__)


class SyncState(str, Enum):
    RESOLVING_TARGET = "resolving_target"
    FETCHING_CANDIDATES = "fetching_candidates"
    FILTERING = "filtering"
    DOWNLOADING = "downloading"
    RECONCILING = "reconciling"
    IDLE_DONE = "idle_done"
    DONE = "done"


@dataclass
class SyncReport:
    """What a sync did, including every asset that needs manual follow-up."""

    target: FigmaTarget | None = None
    state: SyncState = SyncState.RESOLVING_TARGET
    stats: SyncStats = field(default_factory=SyncStats)
    selected: list[AssetCandidate] = field(default_factory=list)
    failed: list[AssetCandidate] = field(default_factory=list)
    unrendered: list[AssetCandidate] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed


class ImageSyncManager:
    """Orchestrates the reconciliation of a save directory with a Figma node."""

    def __init__(
        self,
        config: SyncConfig,
        api_client,
        fetcher: AssetFetcher,
        progress=None,
    ):
        """
        Args:
            config: Options for this invocation.
            api_client: Provides ``get_node_children`` and ``get_image_urls``,
                normally a ``FigmaAPIClient``.
            fetcher: Performs the per-asset transfers.
            progress: Optional sink with ``start_phase``, ``advance`` and
                ``finish_phase`` methods.
        """
        self.config = config
        self.api_client = api_client
        self.fetcher = fetcher
        self.progress = progress
        self.manifest_store = ManifestStore(config.save_dir)
        self.state = SyncState.RESOLVING_TARGET

    def _transition(self, report: SyncReport, state: SyncState) -> None:
        log.debug(f"Sync state: {self.state.value} -> {state.value}")
        self.state = state
        report.state = state

    async def fetch_candidates(self, target: FigmaTarget) -> list[AssetCandidate]:
        """
        Lists the exportable children of the target node with their render URLs.

        Raises:
            CandidateFetchError: If the node or its images cannot be resolved.
            AuthorizationError: If the access token is rejected.
        """
        names = await self.api_client.get_node_children(
            target.key, target.node_id, self.config.figma_img_types
        )
        if not names:
            return []

        urls = await self.api_client.get_image_urls(
            target.key, list(names), self.config.format, self.config.scale
        )
        return [
            AssetCandidate(id=asset_id, name=name, url=urls.get(asset_id))
            for asset_id, name in names.items()
        ]

    async def _resolve(self, report: SyncReport) -> list[AssetCandidate]:
        self._transition(report, SyncState.FETCHING_CANDIDATES)
        candidates = await self.fetch_candidates(report.target)
        report.stats.candidates = len(candidates)

        report.unrendered = [c for c in candidates if not c.is_rendered]
        report.stats.unrendered = len(report.unrendered)
        for candidate in report.unrendered:
            log.warning(
                f"[yellow]Figma returned no image for '{escape(candidate.name)}'"
                f" ({candidate.id}), skipping it.[/yellow]"
            )
        return [c for c in candidates if c.is_rendered]

    async def sync(self, url: str) -> SyncReport:
        """
        Brings the save directory up to date with the node referenced by ``url``.

        Per-asset failures do not raise; they are listed in ``SyncReport.failed``.

        Raises:
            InvalidUrlError: If ``url`` lacks a file key or node id.
            CandidateFetchError: If the asset list cannot be obtained.
            AuthorizationError: If the access token is rejected.
        """
        report = SyncReport(stats=SyncStats(dry_run=self.config.dry_run))
        self._transition(report, SyncState.RESOLVING_TARGET)
        report.target = parse_figma_url(url)
        manifest = await self.manifest_store.load()
        candidates = await self._resolve(report)

        self._transition(report, SyncState.FILTERING)
        report.selected = select_for_download(candidates, manifest)
        report.stats.skipped = len(candidates) - len(report.selected)

        if not report.selected:
            log.info("All assets are up to date.")
            self._transition(report, SyncState.IDLE_DONE)
            return report

        if self.config.dry_run:
            for candidate in report.selected:
                log.info(
                    "[cyan]→ (Dry Run)[/] Would save to [dim]"
                    f"{escape(str(self.config.output_path(candidate.name)))}[/dim]"
                )
            self._transition(report, SyncState.DONE)
            return report

        self._transition(report, SyncState.DOWNLOADING)
        outcomes = await self._download(report.selected)

        self._transition(report, SyncState.RECONCILING)
        await self._reconcile(outcomes, report)

        self._transition(report, SyncState.DONE)
        return report

    async def _download(self, selected: list[AssetCandidate]) -> list[TaskOutcome]:
        log.info(f"Downloading {len(selected)} image(s)...")
        if self.progress:
            self.progress.start_phase("Downloading", total=len(selected))

        # Selected assets always transfer their full body, whatever tag is recorded
        def make_task(candidate: AssetCandidate):
            async def task() -> FetchResult:
                try:
                    return await self.fetcher.fetch(
                        candidate.id,
                        candidate.url,
                        self.config.output_path(candidate.name),
                    )
                finally:
                    if self.progress:
                        self.progress.advance()

            return task

        outcomes = await run_pool(
            [make_task(c) for c in selected], self.config.concurrency
        )
        if self.progress:
            self.progress.finish_phase()
        return outcomes

    async def _reconcile(self, outcomes: list[TaskOutcome], report: SyncReport) -> None:
        by_id = {c.id: c for c in report.selected}
        updates: dict[str, ManifestEntry] = {}

        for outcome in outcomes:
            if not outcome.ok:
                continue
            result: FetchResult = outcome.value
            candidate = by_id[result.id]
            updates[result.id] = ManifestEntry(
                should_download=True,
                url=candidate.url,
                name=candidate.name,
                etag=result.etag,
            )
            report.stats.downloaded += 1
            report.stats.bytes_written += result.size

        report.failed = [c for c in report.selected if c.id not in updates]
        report.stats.failed = len(report.failed)
        for candidate in report.failed:
            log.debug(f"Download failed for '{candidate.name}' ({candidate.id}).")

        if updates:
            await self.manifest_store.commit(updates)

    async def check_for_changes(self, url: str) -> ChangeReport:
        """
        Reports pending assets and recorded assets whose remote ETag drifted.

        Nothing is downloaded and the manifest is left untouched.
        """
        report = SyncReport(target=parse_figma_url(url))
        manifest = await self.manifest_store.load()
        candidates = await self._resolve(report)
        self._transition(report, SyncState.FILTERING)
        changes = await find_changed(self.fetcher, candidates, manifest, self.progress)
        changes.unrendered = report.unrendered
        self._transition(report, SyncState.DONE)
        return changes


async def save_imgs(
    url: str,
    api_client,
    options: dict[str, Any] | None = None,
    *,
    session=None,
    progress=None,
) -> SyncReport:
    """
    Downloads the images of the Figma node referenced by ``url``.

    Args:
        url: A design URL containing ``file/<key>/`` and a ``node-id`` parameter.
        api_client: A ``FigmaAPIClient`` (or compatible object).
        options: Overrides for the ``SyncConfig`` defaults.
        session: An aiohttp session for the downloads. One is created and
            closed here when omitted.
        progress: Optional progress sink.
    """
    config = SyncConfig.from_options(options)
    owns_session = session is None
    if owns_session:
        session = create_download_session(config.concurrency)
    try:
        manager = ImageSyncManager(config, api_client, AssetFetcher(session), progress)
        return await manager.sync(url)
    finally:
        if owns_session:
            await session.close()
