"""
Storage Layer.

This package handles all data persistence: the per-directory download
manifest and the user configuration file.
"""

from .config_manager import ConfigManager
from .manifest import ManifestStore, load_manifest, merge_manifest, save_manifest

__all__ = [
    "ConfigManager",
    "ManifestStore",
    "load_manifest",
    "merge_manifest",
    "save_manifest",
]
