"""
A JSON manifest recording which assets of an output directory have been
downloaded, and with which entity tag, so later runs can skip them.
"""

import asyncio
import json
import logging
import os
from collections.abc import Iterable, Mapping
from pathlib import Path

from pydantic import ValidationError

from figma_imgs.models.assets import ManifestEntry
from figma_imgs.models.config import METADATA_FILE_NAME

log = logging.getLogger(__name__)

Manifest = dict[str, ManifestEntry]


def load_manifest(path: Path) -> Manifest:
    """
    Reads the manifest at ``path``.

    A missing, unreadable or malformed file yields an empty manifest, which
    makes every asset eligible for download again. Entries that fail
    validation are dropped individually.
    """
    if not path.is_file():
        return {}

    try:
        with open(path, encoding="utf-8") as f:
            raw = json.load(f)
    except (json.JSONDecodeError, UnicodeDecodeError, OSError) as e:
        log.debug(f"Manifest read failed for '{path}': {e}")
        return {}

    if not isinstance(raw, dict):
        log.debug(f"Manifest at '{path}' is not a JSON object, ignoring it.")
        return {}

    manifest: Manifest = {}
    for asset_id, data in raw.items():
        try:
            manifest[asset_id] = ManifestEntry.model_validate(data)
        except ValidationError as e:
            log.debug(f"Dropping malformed manifest entry '{asset_id}': {e}")
    return manifest


def save_manifest(path: Path, manifest: Mapping[str, ManifestEntry]) -> None:
    """Writes the full manifest to ``path``, replacing any previous content."""
    path.parent.mkdir(parents=True, exist_ok=True)
    payload = {asset_id: entry.to_json() for asset_id, entry in manifest.items()}
    tmp_path = path.with_name(f".{path.name}.tmp")
    try:
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(payload, f, ensure_ascii=False, indent=2)
        os.replace(tmp_path, path)
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise


def merge_manifest(
    existing: Mapping[str, ManifestEntry], updates: Mapping[str, ManifestEntry]
) -> Manifest:
    """
    Overlays ``updates`` onto ``existing`` by asset id.

    An updated entry replaces the old one entirely; ids absent from
    ``updates`` are kept unchanged. Neither input is modified.
    """
    merged = dict(existing)
    merged.update(updates)
    return merged


class ManifestStore:
    """The manifest of a single output directory."""

    def __init__(self, save_dir: Path):
        self.path = save_dir / METADATA_FILE_NAME

    async def load(self) -> Manifest:
        return await asyncio.to_thread(load_manifest, self.path)

    async def save(self, manifest: Mapping[str, ManifestEntry]) -> None:
        await asyncio.to_thread(save_manifest, self.path, manifest)

    async def commit(self, updates: Mapping[str, ManifestEntry]) -> Manifest:
        """
        Merges ``updates`` into the manifest currently on disk and writes it back.

        The file is re-read first so entries recorded since it was loaded are
        preserved. No lock is taken: two processes committing to the same
        directory at once can still lose one side's updates.
        """
        current = await self.load()
        merged = merge_manifest(current, updates)
        await self.save(merged)
        log.debug(f"Recorded {len(updates)} manifest entries in '{self.path}'.")
        return merged

    async def invalidate(self, names: Iterable[str] | None = None) -> int:
        """
        Marks entries as needing a download on the next run.

        Args:
            names: Display names to invalidate. All entries when omitted.

        Returns:
            The number of entries that changed.
        """
        manifest = await self.load()
        wanted = set(names) if names is not None else None

        updates = {
            asset_id: entry.model_copy(update={"should_download": False})
            for asset_id, entry in manifest.items()
            if entry.should_download and (wanted is None or entry.name in wanted)
        }
        if updates:
            await self.save(merge_manifest(manifest, updates))
        return len(updates)
