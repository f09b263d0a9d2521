"""
SPARQL endpoint client: synchronous and asynchronous queries with a result cache.

Responsibility: Execute SPARQL over HTTP (SPARQL 1.1 protocol, JSON results),
bound concurrent requests per endpoint, and classify failures as timeout,
temporary (this query only) or persistent (the whole endpoint).
"""

import logging
import threading
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from typing import Any
from urllib.parse import urlparse

import httpx

from app.core.config import ENDPOINT_PARALLELISM, READ_TIMEOUT
from app.core.errors import EndpointError, EndpointTemporaryError, EndpointTimeoutError

logger = logging.getLogger(__name__)

Solution = dict[str, str]
# error is an EndpointError when classified, or the unexpected exception itself
QueryCallback = Callable[[Exception | None, list[Solution] | None], None]

# Statuses that concern one query, not the endpoint
TEMPORARY_STATUSES: frozenset[int] = frozenset({400, 500, 502, 503, 504})


def _is_binding(binding: Any) -> bool:
    return isinstance(binding, dict) and all(isinstance(value, dict) for value in binding.values())


class SparqlClient:
    def __init__(
        self,
        endpoint_url: str,
        parallel: int = ENDPOINT_PARALLELISM,
        read_timeout: float = READ_TIMEOUT,
        client: httpx.Client | None = None,
    ) -> None:
        self.endpoint_url = endpoint_url
        self.endpoint_name = urlparse(endpoint_url).netloc or endpoint_url
        self.parallel = parallel
        self._client = client or httpx.Client(timeout=httpx.Timeout(read_timeout, connect=read_timeout))
        self._owns_client = client is None
        self._executor = ThreadPoolExecutor(max_workers=parallel, thread_name_prefix="sparql")
        self._cache: dict[str, list[Solution]] = {}
        self._lock = threading.Lock()

    def query(self, sparql: str) -> list[Solution]:
        """Run a SPARQL query and return its solutions as variable -> string value."""
        with self._lock:
            cached = self._cache.get(sparql)
        if cached is not None:
            return list(cached)

        solutions = self._fetch(sparql)
        with self._lock:
            self._cache[sparql] = solutions
        return list(solutions)

    def query_async(self, sparql: str, callback: QueryCallback) -> None:
        """Run the query on the worker pool; callback(error, solutions) is called exactly once."""
        self._executor.submit(self._run, sparql, callback)

    def close(self) -> None:
        """
        Stop accepting work and drop queued queries. Running queries finish and
        their callbacks still fire; dropped queries never call back.
        """
        self._executor.shutdown(wait=False, cancel_futures=True)
        if self._owns_client:
            threading.Thread(target=self._close_client_when_idle, daemon=True).start()

    def _close_client_when_idle(self) -> None:
        self._executor.shutdown(wait=True)
        self._client.close()

    def _run(self, sparql: str, callback: QueryCallback) -> None:
        try:
            solutions = self.query(sparql)
        except EndpointError as e:
            callback(e, None)
            return
        except Exception as e:
            logger.exception("[sparql_client:run] unexpected failure on %s", self.endpoint_name)
            callback(e, None)
            return
        callback(None, solutions)

    def _fetch(self, sparql: str) -> list[Solution]:
        logger.debug("[sparql_client:fetch] IN  endpoint=%s sparql=%r", self.endpoint_name, sparql)
        try:
            response = self._client.get(
                self.endpoint_url,
                params={"query": sparql},
                headers={"Accept": "application/sparql-results+json"},
            )
        except httpx.TimeoutException as e:
            raise EndpointTimeoutError(self.endpoint_name, sparql, f"timeout: {e}") from e
        except httpx.HTTPError as e:
            raise EndpointError(self.endpoint_name, sparql, f"connection failed: {e}") from e

        if response.status_code != 200:
            body = response.text[:500]
            if response.status_code == 500 and "timeout" in body.lower():
                raise EndpointTimeoutError(self.endpoint_name, sparql, body)
            if response.status_code in TEMPORARY_STATUSES:
                raise EndpointTemporaryError(self.endpoint_name, sparql, f"status {response.status_code}: {body}")
            raise EndpointError(self.endpoint_name, sparql, f"status {response.status_code}: {body}")

        try:
            data = response.json()
        except ValueError as e:
            raise EndpointTemporaryError(self.endpoint_name, sparql, "invalid JSON results") from e

        results = (data.get("results") or {}) if isinstance(data, dict) else None
        bindings = (results.get("bindings") or []) if isinstance(results, dict) else None
        if not isinstance(bindings, list) or not all(_is_binding(b) for b in bindings):
            raise EndpointTemporaryError(self.endpoint_name, sparql, "malformed SPARQL JSON results")
        return [{var: str(b.get("value", "")) for var, b in binding.items()} for binding in bindings]
