"""
figma-imgs: incremental exporter for images rendered from a Figma design file.
"""

__version__ = "1.0.0"

from figma_imgs.api.client import FigmaAPIClient  # noqa: E402
from figma_imgs.core.sync_manager import ImageSyncManager, SyncReport, save_imgs  # noqa: E402

__all__ = [
    "FigmaAPIClient",
    "ImageSyncManager",
    "SyncReport",
    "__version__",
    "save_imgs",
]
