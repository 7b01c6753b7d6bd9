"""
Data Models Layer.

This package contains the models that define the core data structures
used throughout the application, such as configuration, assets and statistics.
"""

from .assets import AssetCandidate, ManifestEntry
from .config import SyncConfig
from .stats import SyncStats

__all__ = ["AssetCandidate", "ManifestEntry", "SyncConfig", "SyncStats"]
