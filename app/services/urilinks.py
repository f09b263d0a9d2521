"""
URI forwarding DB client: external references and image renderings for an answer URI.

Connection failures are not errors here; the answer is simply sent without references.
"""

import logging
from typing import Any

import httpx

from app.core.config import FORWARDING_URL_MAX_LENGTH, URILINKS_TIMEOUT

logger = logging.getLogger(__name__)


class UrilinksClient:
    def __init__(self, base_url: str, client: httpx.Client | None = None, timeout: float = URILINKS_TIMEOUT) -> None:
        self.base_url = base_url.rstrip("/")
        self._client = client
        self._timeout = timeout

    def forwarded_urls(self, uri: str) -> tuple[list[dict[str, Any]] | None, dict[str, Any] | None]:
        """
        Return (candidates best first, first image rendering). Candidates are
        sorted by matching score then priority, both descending, and those with
        overlong forwarding URLs are left out.
        """
        try:
            response = self._get(uri)
        except httpx.TransportError as e:
            logger.debug("[urilinks] Failed to connect the URL forwarding DB at %s: %s", self.base_url, e)
            return None, None

        if response.status_code != 200:
            logger.debug("[urilinks] status %s for %s", response.status_code, uri)
            return None, None

        try:
            data = response.json()
        except ValueError as e:
            logger.debug("[urilinks] invalid JSON for %s: %s", uri, e)
            return None, None
        results = (data.get("results") or []) if isinstance(data, dict) else None
        if not isinstance(results, list) or not all(isinstance(m, dict) for m in results):
            logger.debug("[urilinks] unexpected response shape for %s", uri)
            return None, None

        urls = sorted(
            results,
            key=lambda m: (-(m.get("matching_score") or 0), -(m.get("priority") or 0)),
        )
        first_rendering = next(
            (
                u["rendering"]
                for u in urls
                if str((u.get("rendering") or {}).get("mime_type") or "").startswith("image")
            ),
            None,
        )
        urls = [
            u for u in urls
            if len((u.get("forwarding") or {}).get("url") or "") < FORWARDING_URL_MAX_LENGTH
        ]
        return urls, first_rendering

    def _get(self, uri: str) -> httpx.Response:
        url = f"{self.base_url}/url/translate.json"
        if self._client is not None:
            return self._client.get(url, params={"query": uri})
        with httpx.Client(timeout=self._timeout) as client:
            return client.get(url, params={"query": uri})
