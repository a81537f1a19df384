"""Async HTTP client for YouTube watch pages.

WHY: The heatmap lives in the watch page HTML. Fetching it is the only
network call in a run and the only suspending point: when the service is
handling several requests, one slow page fetch must not block the others.

HOW: Uses httpx.AsyncClient. HeatmapClient is an async context manager:
enter it to open a connection pool with a browser User-Agent, exit to close
it. fetch_watch_page() returns the raw HTML; fetch_segments() feeds it
straight into the selector in core/heatmap.py.

RULES:
- Always use the async context manager (async with HeatmapClient() as client:)
- Transport errors and non-2xx responses raise HeatmapFetchError
- A page without markers raises NoMarkersFound (from the selector)
- transport is injectable so tests never touch the network
"""

from __future__ import annotations

import logging
from typing import List

import httpx

from heatmap_clipper.config import HTTP_TIMEOUT_S, USER_AGENT, YOUTUBE_WATCH_URL
from heatmap_clipper.core.heatmap import segments_from_page
from heatmap_clipper.core.models import HighlightSegment
from heatmap_clipper.errors import HeatmapFetchError

logger = logging.getLogger(__name__)


class HeatmapClient:
    """Async client that fetches watch pages and extracts highlight segments.

    RULES:
    - Use as: async with HeatmapClient() as client: ...
    - watch_url defaults to YOUTUBE_WATCH_URL from config
    - user_agent defaults to USER_AGENT from config
    """

    def __init__(
        self,
        watch_url: str | None = None,
        user_agent: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._watch_url = watch_url or YOUTUBE_WATCH_URL
        self._user_agent = user_agent or USER_AGENT
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> HeatmapClient:
        self._client = httpx.AsyncClient(
            headers={"User-Agent": self._user_agent},
            timeout=httpx.Timeout(HTTP_TIMEOUT_S),
            follow_redirects=True,
            transport=self._transport,
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # noqa: ANN001
        if self._client:
            await self._client.aclose()
            self._client = None

    def _ensure_client(self) -> httpx.AsyncClient:
        """Return the active httpx client, raising if not in context manager."""
        if self._client is None:
            raise RuntimeError(
                "HeatmapClient must be used as an async context manager: "
                "async with HeatmapClient() as client: ..."
            )
        return self._client

    async def fetch_watch_page(self, video_id: str) -> str:
        """Download the watch page HTML for a video.

        Raises:
            HeatmapFetchError: The request failed or returned a non-2xx status.
        """
        client = self._ensure_client()
        logger.debug("Fetching watch page for %s", video_id)
        try:
            resp = await client.get(self._watch_url, params={"v": video_id})
        except httpx.HTTPError as exc:
            raise HeatmapFetchError(
                "Could not fetch watch page for {}: {}".format(video_id, exc)
            ) from exc

        if resp.status_code >= 400:
            raise HeatmapFetchError(
                "Watch page for {} returned HTTP {}".format(video_id, resp.status_code)
            )
        return resp.text

    async def fetch_segments(self, video_id: str) -> List[HighlightSegment]:
        """Fetch the watch page and return its ranked highlight segments.

        Raises:
            HeatmapFetchError: The page could not be fetched.
            NoMarkersFound: The page has no recognizable heatmap array.
        """
        page = await self.fetch_watch_page(video_id)
        segments = segments_from_page(page)
        logger.info("Video %s: %d segment(s) above threshold", video_id, len(segments))
        return segments
