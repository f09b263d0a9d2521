"""
Term lookup: map keywords of a question to candidate knowledge-base terms
through a dataset's dictionary service.
"""

import logging

import httpx

from app.core.config import DICTIONARY_TIMEOUT
from app.core.errors import DictionaryLookupError

logger = logging.getLogger(__name__)


class TermFinder:
    def __init__(self, dictionary_url: str, client: httpx.Client | None = None, timeout: float = DICTIONARY_TIMEOUT) -> None:
        self.dictionary_url = dictionary_url
        self._client = client
        self._timeout = timeout

    def find(self, keywords: list[str]) -> dict[str, list[str]]:
        """
        Return keyword -> candidate term URIs. Every keyword is present in the
        result; keywords the dictionary does not know map to [].
        """
        labels = list(dict.fromkeys(k for k in keywords if k and k.strip()))
        logger.info("[term_finder:find] IN  keywords=%r", labels)
        if not labels:
            return {k: [] for k in keywords}

        try:
            response = self._post(labels)
        except httpx.HTTPError as e:
            raise DictionaryLookupError(f"Dictionary {self.dictionary_url} does not respond: {e}") from e
        if response.status_code != 200:
            raise DictionaryLookupError(
                f"Dictionary {self.dictionary_url} returned status {response.status_code}: {response.text[:200]}"
            )
        try:
            data = response.json()
        except ValueError as e:
            raise DictionaryLookupError(f"Dictionary {self.dictionary_url} returned invalid JSON") from e
        if not isinstance(data, dict):
            raise DictionaryLookupError(f"Dictionary {self.dictionary_url} returned {type(data).__name__}, expected an object")

        mappings = {k: [str(term) for term in (data.get(k) or [])] for k in keywords}
        logger.info("[term_finder:find] OUT mapped=%d/%d", sum(1 for v in mappings.values() if v), len(mappings))
        return mappings

    def _post(self, labels: list[str]) -> httpx.Response:
        headers = {"Accept": "application/json"}
        if self._client is not None:
            return self._client.post(self.dictionary_url, json=labels, headers=headers)
        with httpx.Client(timeout=self._timeout) as client:
            return client.post(self.dictionary_url, json=labels, headers=headers)
