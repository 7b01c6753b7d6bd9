"""
Data structures for remote assets and their persisted manifest state.
"""

from dataclasses import dataclass

from pydantic import BaseModel, ConfigDict, Field


@dataclass(frozen=True)
class AssetCandidate:
    """A remote asset eligible for export in the current invocation."""

    id: str
    name: str
    url: str | None = None

    @property
    def is_rendered(self) -> bool:
        return bool(self.url)


class ManifestEntry(BaseModel):
    """
    The last known state of one asset, as persisted in ``metadata.json``.

    ``should_download`` is True once a fetch for the asset has completed; an
    entry with ``should_download`` False is always fetched again.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    should_download: bool = Field(alias="shouldDownload")
    url: str = ""
    name: str = ""
    etag: str | None = Field(default=None, alias="eTag")

    def to_json(self) -> dict:
        """Serializes the entry with its on-disk key names, omitting an absent tag."""
        return self.model_dump(by_alias=True, exclude_none=True)
