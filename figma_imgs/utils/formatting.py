"""
Human-readable sizes, durations and rates for the end-of-run summary.
"""

_SIZE_UNITS = ("KB", "MB", "GB")


def format_size(bytes_size: int) -> str:
    """
    Formats a byte count for the summary panel.

    Exported images are usually a few kilobytes, so sizes below 1 KB keep
    their exact byte count ('512 B') and larger ones get one decimal
    ('48.2 KB', '3.1 MB').
    """
    if bytes_size < 1024:
        return f"{max(bytes_size, 0)} B"
    size = float(bytes_size)
    for unit in _SIZE_UNITS:
        size /= 1024
        if size < 1024 or unit == _SIZE_UNITS[-1]:
            return f"{size:.1f} {unit}"


def format_duration(seconds: float) -> str:
    """
    Formats the wall time of a sync ('0.8s', '42.0s', '3m 07s').

    Most syncs finish in seconds, so sub-minute durations keep a decimal.
    """
    if seconds < 60:
        return f"{max(seconds, 0.0):.1f}s"
    minutes, secs = divmod(int(seconds), 60)
    return f"{minutes}m {secs:02d}s"


def format_rate(images: int, seconds: float) -> str | None:
    """Download throughput in images per minute, or None when nothing was timed."""
    if images <= 0 or seconds <= 0:
        return None
    return f"{images / seconds * 60:.1f} images/min"
