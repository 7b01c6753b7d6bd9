"""
Decides which remote assets need to be fetched, based on the manifest of a
previous run, and detects assets whose remote entity tag has drifted.

Selection follows the manifest only: an asset is fetched when it has never
been recorded or when its entry is marked as needing a download. Recorded,
completed assets are trusted without any network check. Entity-tag probes
are used for reporting drift (see ``find_changed``), never for selection.
"""

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field

from figma_imgs.media.downloader import AssetFetcher, ProbeResult
from figma_imgs.models.assets import AssetCandidate, ManifestEntry

from .pool import run_pool

log = logging.getLogger(__name__)


def tags_match(recorded: str | None, current: str | None) -> bool:
    """Exact comparison of two entity tags; an absent tag never matches."""
    return recorded is not None and current is not None and recorded == current


def needs_download(
    candidate: AssetCandidate, manifest: Mapping[str, ManifestEntry]
) -> bool:
    entry = manifest.get(candidate.id)
    return entry is None or not entry.should_download


def select_for_download(
    candidates: Iterable[AssetCandidate], manifest: Mapping[str, ManifestEntry]
) -> list[AssetCandidate]:
    """Returns the candidates that must be fetched this run, in input order."""
    return [c for c in candidates if needs_download(c, manifest)]


async def probe_etags(
    fetcher: AssetFetcher, candidates: list[AssetCandidate], progress=None
) -> tuple[dict[str, str | None], list[AssetCandidate]]:
    """
    Fetches the current ETag of every candidate with a HEAD request.

    All probes run at once. Returns the tags by asset id, plus the candidates
    whose probe failed.
    """
    if not candidates:
        return {}, []

    if progress:
        progress.start_phase("Comparing ETags", total=len(candidates))

    def make_task(candidate: AssetCandidate):
        async def task() -> ProbeResult:
            try:
                return await fetcher.probe_etag(candidate.id, candidate.url)
            finally:
                if progress:
                    progress.advance()

        return task

    outcomes = await run_pool(
        [make_task(c) for c in candidates], n=len(candidates)
    )
    if progress:
        progress.finish_phase()

    etags = {o.value.id: o.value.etag for o in outcomes if o.ok}
    failed = [c for c in candidates if c.id not in etags]
    return etags, failed


@dataclass
class ChangeReport:
    """Result of comparing the remote asset set against the manifest."""

    pending: list[AssetCandidate] = field(default_factory=list)
    changed: list[AssetCandidate] = field(default_factory=list)
    probe_failed: list[AssetCandidate] = field(default_factory=list)
    unrendered: list[AssetCandidate] = field(default_factory=list)
    up_to_date: int = 0


async def find_changed(
    fetcher: AssetFetcher,
    candidates: list[AssetCandidate],
    manifest: Mapping[str, ManifestEntry],
    progress=None,
) -> ChangeReport:
    """
    Reports which assets the next sync would fetch, and which recorded assets
    no longer carry the entity tag stored in the manifest.
    """
    report = ChangeReport(pending=select_for_download(candidates, manifest))
    pending_ids = {c.id for c in report.pending}
    recorded = [c for c in candidates if c.id not in pending_ids]

    etags, report.probe_failed = await probe_etags(fetcher, recorded, progress)
    for candidate in recorded:
        if candidate.id not in etags:
            continue
        if tags_match(manifest[candidate.id].etag, etags[candidate.id]):
            report.up_to_date += 1
        else:
            report.changed.append(candidate)

    log.debug(
        f"Change check: {len(report.pending)} pending, {len(report.changed)} "
        f"changed, {report.up_to_date} up to date."
    )
    return report
