"""
Dataclass for tracking sync session statistics.
"""

from dataclasses import dataclass


@dataclass
class SyncStats:
    """Tracks the outcome counts of a single sync invocation."""

    candidates: int = 0
    skipped: int = 0
    downloaded: int = 0
    failed: int = 0
    unrendered: int = 0
    bytes_written: int = 0
    dry_run: bool = False
