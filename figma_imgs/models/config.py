"""
Pydantic model for per-invocation sync configuration.
Provides robust validation for all settings.
"""

from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from figma_imgs.exceptions import ConfigurationError

METADATA_FILE_NAME = "metadata.json"

# Export formats accepted by the Figma images endpoint
SUPPORTED_FORMATS = ("png", "jpg", "svg", "pdf")

DEFAULT_IMG_TYPES = ["FRAME", "COMPONENT"]


def _default_save_dir() -> Path:
    return Path.cwd() / "imgs"


class SyncConfig(BaseModel):
    """A validated, immutable configuration for one sync invocation."""

    model_config = ConfigDict(
        populate_by_name=True,
        frozen=True,
        str_strip_whitespace=True,
    )

    format: str = "png"
    scale: float = 1
    figma_img_types: list[str] = Field(
        default_factory=lambda: list(DEFAULT_IMG_TYPES), alias="figmaImgTypes"
    )
    concurrency: int = 5
    save_dir: Path = Field(default_factory=_default_save_dir, alias="saveDir")
    dry_run: bool = Field(default=False, alias="dryRun")

    @field_validator("format")
    @classmethod
    def validate_format(cls, v: str) -> str:
        v = v.lower().lstrip(".")
        if v not in SUPPORTED_FORMATS:
            raise ValueError(f"Format must be one of: {', '.join(SUPPORTED_FORMATS)}.")
        return v

    @field_validator("scale")
    @classmethod
    def validate_scale(cls, v: float) -> float:
        """Figma renders between 1% and 400% of the original size."""
        if v < 0.01 or v > 4:
            raise ValueError("Scale must be between 0.01 and 4.")
        return v

    @field_validator("concurrency")
    @classmethod
    def validate_concurrency(cls, v: int) -> int:
        if v < 1:
            raise ValueError("Concurrency must be at least 1.")
        return v

    @field_validator("figma_img_types", mode="before")
    @classmethod
    def validate_img_types(cls, v: Any) -> list[str]:
        if isinstance(v, str):
            v = v.split(",")
        types = [str(t).strip().upper() for t in v if str(t).strip()]
        if not types:
            raise ValueError("At least one exportable node type is required.")
        return types

    @field_validator("save_dir")
    @classmethod
    def validate_save_dir(cls, v: Path) -> Path:
        return v.expanduser().resolve()

    @property
    def metadata_path(self) -> Path:
        """Location of the manifest for this configuration's output directory."""
        return self.save_dir / METADATA_FILE_NAME

    def output_path(self, name: str) -> Path:
        """Returns where an asset with the given display name is written."""
        return self.save_dir / f"{name}.{self.format}"

    @classmethod
    def from_options(cls, options: dict[str, Any] | None = None) -> "SyncConfig":
        """
        Builds a configuration by shallow-merging options over the defaults.

        Keys may use either the snake_case field names or their camelCase
        aliases. ``None`` values are ignored so the default applies.

        Raises:
            ConfigurationError: If any option fails validation.
        """
        provided = {k: v for k, v in (options or {}).items() if v is not None}
        try:
            return cls(**provided)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid options:\n{e}") from e
