"""
Async client for the parts of the Figma REST API used to enumerate and
render exportable images.
"""

import asyncio
import logging
import time
from collections.abc import Iterable
from typing import Any, Dict, List, Optional

import aiohttp

from figma_imgs.exceptions import AuthorizationError, CandidateFetchError

log = logging.getLogger(__name__)


class FigmaAPIClient:
    """
    Client for the Figma REST API (v1), authenticated with a personal access token.

    The client owns its own aiohttp session, created lazily on the first call.
    Use it as an async context manager, or call ``close()`` when done.
    """

    BASE_URL = "https://api.figma.com/v1/"

    def __init__(self, token: str, base_url: str = BASE_URL):
        """
        Args:
            token: A Figma personal access token.
            base_url: API root, overridable for testing.
        """
        self.token = token
        self.base_url = base_url if base_url.endswith("/") else base_url + "/"
        self._session: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self) -> "FigmaAPIClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def _initialize_session(self) -> None:
        """Ensures an active aiohttp session is available."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                headers={
                    "X-Figma-Token": self.token,
                    "Accept-Encoding": "gzip, deflate",
                },
                # Rendering large frames can keep the images endpoint busy for a while
                timeout=aiohttp.ClientTimeout(total=300, connect=15),
            )

    async def close(self) -> None:
        """Gracefully closes the aiohttp session."""
        if self._session and not self._session.closed:
            await self._session.close()

    async def api_call(self, endpoint: str, **params: Any) -> Dict[str, Any]:
        """
        Makes an authenticated GET request and returns the decoded JSON body.

        Raises:
            AuthorizationError: If Figma answers 403 (token rejected).
            CandidateFetchError: On any other HTTP or transport failure.
        """
        await self._initialize_session()
        start_time = time.monotonic()
        try:
            async with self._session.get(self.base_url + endpoint, params=params) as r:
                duration_ms = (time.monotonic() - start_time) * 1000
                log.debug(f"GET {endpoint} -> {r.status} ({duration_ms:.0f} ms)")

                if r.status == 403:
                    raise AuthorizationError(
                        "Figma rejected the access token. It may be invalid or expired."
                    )
                r.raise_for_status()
                return await r.json()
        except aiohttp.ClientResponseError as e:
            raise CandidateFetchError(
                f"Figma API request '{endpoint}' failed with status {e.status}: "
                f"{e.message}"
            ) from e
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise CandidateFetchError(
                f"Figma API request '{endpoint}' failed: {e!r}"
            ) from e

    async def get_node_children(
        self, file_key: str, node_id: str, node_types: Iterable[str]
    ) -> Dict[str, str]:
        """
        Lists the direct children of a node whose type is exportable.

        Returns:
            A mapping of child node id to its display name, in document order.
        """
        api_node_id = node_id.replace("-", ":", 1)
        response = await self.api_call(f"files/{file_key}/nodes", ids=api_node_id)

        nodes = response.get("nodes") or {}
        node = nodes.get(node_id) or nodes.get(api_node_id)
        if not node or not node.get("document"):
            raise CandidateFetchError(
                f"Node '{node_id}' was not found in file '{file_key}'."
            )

        wanted = set(node_types)
        children = node["document"].get("children", [])
        return {
            child["id"]: child.get("name", child["id"])
            for child in children
            if child.get("type") in wanted
        }

    async def get_image_urls(
        self,
        file_key: str,
        ids: List[str],
        image_format: str = "png",
        scale: float = 1,
    ) -> Dict[str, Optional[str]]:
        """
        Asks Figma to render the given nodes and returns their download URLs.

        The URLs are signed and expire after a while. A node Figma could not
        render maps to None.
        """
        if not ids:
            return {}

        response = await self.api_call(
            f"images/{file_key}",
            ids=",".join(ids),
            format=image_format,
            scale=str(scale),
        )
        if response.get("err"):
            raise CandidateFetchError(f"Figma could not render images: {response['err']}")
        return dict(response.get("images") or {})
