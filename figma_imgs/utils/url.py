"""
Utilities for parsing Figma design URLs.
"""

import re
from dataclasses import dataclass
from urllib.parse import parse_qs, unquote, urlsplit

from figma_imgs.exceptions import InvalidUrlError

_FILE_KEY_PATTERN = re.compile(r"(?:file|design)/(?P<key>[-\w]+)/")


@dataclass(frozen=True)
class FigmaTarget:
    """The file key and node id a download is scoped to."""

    key: str
    node_id: str


def parse_figma_url(url: str) -> FigmaTarget:
    """
    Extracts the file key and node id from a Figma design URL.

    The URL is percent-decoded first, so a copied link such as
    ``https://www.figma.com/file/ABC123/Name?node-id=1%3A2`` resolves to the
    node id ``1:2``.

    Raises:
        InvalidUrlError: If the URL has no ``file/<key>/`` segment or no
        ``node-id`` query parameter.
    """
    parts = urlsplit(unquote(url.strip()))

    match = _FILE_KEY_PATTERN.search(parts.path)
    if not match:
        raise InvalidUrlError(f"No file key found in URL: {url}")

    node_ids = parse_qs(parts.query).get("node-id")
    if not node_ids or not node_ids[0]:
        raise InvalidUrlError(f"No 'node-id' query parameter found in URL: {url}")

    return FigmaTarget(key=match.group("key"), node_id=node_ids[0])
