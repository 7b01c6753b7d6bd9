"""
Media Transfer Layer.

This package is responsible for moving rendered image files from Figma's
CDN onto the local disk.
"""

from .downloader import AssetFetcher, FetchResult, ProbeResult, create_download_session

__all__ = ["AssetFetcher", "FetchResult", "ProbeResult", "create_download_session"]
