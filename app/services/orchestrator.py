"""
Query orchestration for one question against one dataset.

Responsibility: Build the PGP of the question, map its keywords to terms,
enumerate anchored PGPs and their SPARQLs, dispatch each distinct SPARQL once
to the endpoint, and report everything through events: the SPARQLs issued,
their solutions, and the answers found with their labels and external links.

Threading: one control thread enumerates and dispatches; each SPARQL runs on
the endpoint's worker pool and its result is handled on that worker. The
results queue is the only hand-off between them. cancel() is polled before
each anchored PGP and each SPARQL; it never interrupts running requests.
"""

import json
import queue
import threading
import time
from collections.abc import Callable
from enum import Enum
from typing import Any

from app.core.config import ENDPOINT_PARALLELISM, LABEL_PREDICATE, OrchestratorConfig
from app.core.errors import (
    DictionaryLookupError,
    EndpointError,
    EndpointTemporaryError,
    EndpointTimeoutError,
    ParserError,
)
from app.core.run_logger import get_run_logger
from app.schemas.dataset import Dataset
from app.schemas.pgp import AnchoredPgp, Pgp
from app.schemas.search import Answer, RunStats
from app.services import pgp_factory
from app.services.anchored_pgps import AnchoredPgps
from app.services.events import EventBus, EventHandler, EventName, Subscription
from app.services.graph_finder import GraphFinder
from app.services.sparql_client import Solution, SparqlClient
from app.services.term_finder import TermFinder
from app.services.urilinks import UrilinksClient

# Instance variables are named after their PGP node with this prefix (?it1 for node t1).
INSTANCE_MARKER = "i"

LABEL_QUERY = f"select ?label where {{{{ <{{uri}}> <{LABEL_PREDICATE}> ?label }}}}"


class RunState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


def is_focus_variable(variable: str, focus: str) -> bool:
    """True when the variable binds the focus node, directly or through its instance variable."""
    if variable.startswith(INSTANCE_MARKER):
        variable = variable[len(INSTANCE_MARKER):]
    return variable == focus


class QueryOrchestrator:
    """
    Runs one search. Not restartable: create a new instance per question and dataset.

    Collaborators can be replaced for tests through the keyword-only factories.
    """

    def __init__(
        self,
        dataset: Dataset,
        question: str,
        run_id: str,
        config: OrchestratorConfig | None = None,
        cancel_event: threading.Event | None = None,
        *,
        pgp_builder: Callable[[str, str], Pgp] = pgp_factory.create,
        term_finder_factory: Callable[[str], TermFinder] = TermFinder,
        endpoint_factory: Callable[..., SparqlClient] = SparqlClient,
        urilinks_factory: Callable[[str], UrilinksClient] = UrilinksClient,
    ) -> None:
        self.dataset = dataset
        self.question = question
        self.run_id = run_id
        self.config = config or OrchestratorConfig()
        self.logger = get_run_logger(__name__, run_id, self.config.debug)
        self.state = RunState.IDLE
        self.stats: RunStats | None = None

        self._cancel_event = cancel_event or threading.Event()
        self._abandoned = threading.Event()
        self._detached = False

        self._pgp_builder = pgp_builder
        self._term_finder_factory = term_finder_factory
        self._endpoint_factory = endpoint_factory
        self._urilinks_factory = urilinks_factory

        self._events = EventBus()
        self._context: dict[str, Any] = {}
        self._pgp: Pgp | None = None
        self._sparql_count = 0

    # --- events ---

    def on(self, *events: EventName | str, handler: EventHandler) -> Subscription:
        return self._events.on(*events, handler=handler)

    def off(self, subscription: Subscription) -> None:
        self._events.off(subscription)

    def _emit(self, event: EventName, **data: Any) -> None:
        if self._detached:
            return
        self._events.emit(event, {**self._context, **data})

    # --- cancellation ---

    def cancel(self) -> None:
        """Stop producing new SPARQLs. Running requests complete; queued ones are dropped."""
        self._cancel_event.set()

    @property
    def cancelled(self) -> bool:
        return self._cancel_event.is_set()

    # --- run ---

    @property
    def pgp(self) -> Pgp:
        if self._pgp is None:
            parser_url = self.dataset.parser_url or self.config.parser_url
            self._pgp = self._pgp_builder(parser_url, self.question)
        return self._pgp

    def perform(self) -> RunStats | None:
        """Run the whole search. Blocks until every dispatched SPARQL is answered, or until cancelled."""
        if self.state is not RunState.IDLE:
            raise RuntimeError(f"Search {self.run_id} already {self.state.value}; create a new orchestrator")
        self.state = RunState.RUNNING
        try:
            self.state = self._perform()
        except ParserError as e:
            self.logger.debug(e.message)
            self._emit(EventName.GATEWAY_ERROR, error_message="enju access error")
            self.state = RunState.FAILED
        except DictionaryLookupError as e:
            self.logger.debug(e.message)
            self._emit(EventName.GATEWAY_ERROR, error_message="dictionary lookup error")
            self.state = RunState.FAILED
        except EndpointError as e:
            self.logger.info(
                "The SPARQL Endpoint %s has a persistent error, continue to the next Endpoint: %s",
                e.endpoint_name, e.message,
            )
            self.state = RunState.FAILED
        except Exception:
            self.logger.exception("Search failed")
            self.state = RunState.FAILED
        return self.stats

    def _perform(self) -> RunState:
        self._context = {"dataset": self.dataset.summary()}
        self._emit(EventName.DATASETS)

        pgp = self.pgp
        self._context["pgp"] = pgp
        self._emit(EventName.PGP)

        mappings = self._mappings(pgp)
        self._context["mappings"] = mappings
        self._emit(EventName.MAPPINGS)

        endpoint = self._endpoint_factory(
            self.dataset.endpoint_url,
            ENDPOINT_PARALLELISM,
            self.config.read_timeout,
        )
        urilinks = self._urilinks_factory(self.config.urilinks_url)
        try:
            return self._search(endpoint, urilinks, pgp, mappings)
        finally:
            endpoint.close()

    def _mappings(self, pgp: Pgp) -> dict[str, list[str]]:
        finder = self._term_finder_factory(self.dataset.dictionary_url)
        return finder.find(pgp.keywords())

    def _search(self, endpoint: SparqlClient, urilinks: UrilinksClient, pgp: Pgp, mappings: dict[str, list[str]]) -> RunState:
        start = time.monotonic()
        results: queue.Queue = queue.Queue()
        count, stopped = self._dispatch_all(endpoint, urilinks, pgp, mappings, results)

        if stopped:
            # Completions still arriving are left on the queue and their events dropped;
            # SPARQLs not yet started are dropped when the endpoint closes.
            self._detached = True
            return RunState.CANCELLED

        error = 0
        success = 0
        for _ in range(count):
            e, _solutions = results.get()
            if e is None:
                success += 1
            else:
                error += 1

        if error + success > 0:
            self.stats = RunStats(
                parallel=ENDPOINT_PARALLELISM,
                duration=time.monotonic() - start,
                dataset=self.dataset.summary(),
                sparqls=error + success,
                error=error,
                success=success,
                error_rate=error / (error + success),
            )
            self.logger.info("Finish stats: %s", json.dumps(self.stats.model_dump(), indent=2))

        if self._abandoned.is_set():
            self.logger.info("The SPARQL Endpoint %s has a persistent error, continue to the next Endpoint", endpoint.endpoint_name)
            return RunState.FAILED
        return RunState.COMPLETED

    def _dispatch_all(
        self,
        endpoint: SparqlClient,
        urilinks: UrilinksClient,
        pgp: Pgp,
        mappings: dict[str, list[str]],
        results: queue.Queue,
    ) -> tuple[int, bool]:
        """Dispatch every distinct SPARQL. Returns (dispatched count, stopped by cancel)."""
        count = 0
        known_sparqls: set[str] = set()
        graph_finder = GraphFinder(
            max_hop=self.dataset.max_hop,
            ignore_predicates=self.dataset.ignore_predicates,
            sortal_predicates=self.dataset.sortal_predicates,
            sparql_limit=self.dataset.sparql_limit or self.config.sparql_limit,
            answer_limit=self.dataset.answer_limit or self.config.answer_limit,
        )

        for anchored_pgp in AnchoredPgps(pgp, mappings):
            if self.cancelled:
                self.logger.debug("Stop during processing an anchored_pgp: %s", anchored_pgp)
                return count, True
            if self._abandoned.is_set():
                return count, False

            for bgp, sparql_query in graph_finder.sparqls_of(anchored_pgp):
                if self.cancelled:
                    self.logger.debug("Stop during processing a bgp: %s", bgp)
                    return count, True
                if self._abandoned.is_set():
                    return count, False

                if sparql_query in known_sparqls:
                    continue
                known_sparqls.add(sparql_query)

                self._sparql_count += 1
                sparql = {"query": sparql_query, "number": self._sparql_count}
                self._emit(EventName.SPARQL, anchored_pgp=anchored_pgp, bgp=bgp, sparql=sparql)
                self._solutions_async(endpoint, urilinks, anchored_pgp, bgp, sparql, results)
                self._emit(EventName.QUERY_SPARQL, anchored_pgp=anchored_pgp, bgp=bgp, sparql=sparql)
                count += 1

        return count, False

    def _solutions_async(
        self,
        endpoint: SparqlClient,
        urilinks: UrilinksClient,
        anchored_pgp: AnchoredPgp,
        bgp: list,
        sparql: dict[str, Any],
        results: queue.Queue,
    ) -> None:
        fields = {"anchored_pgp": anchored_pgp, "bgp": bgp, "sparql": sparql}

        def on_result(error: Exception | None, solutions: list[Solution] | None) -> None:
            try:
                if error is None:
                    self._on_solutions(endpoint, urilinks, anchored_pgp, solutions or [], fields)
                elif isinstance(error, EndpointTimeoutError):
                    self.logger.debug(
                        "The SPARQL Endpoint %s return a timeout error for %s, continue to the next SPARQL",
                        error.endpoint_name, error.sparql,
                    )
                    self._emit(EventName.SOLUTIONS, **fields, solutions=[], error="sparql timeout error")
                elif isinstance(error, EndpointTemporaryError):
                    self.logger.info(
                        "The SPARQL Endpoint %s return a temporary error for %s, continue to the next SPARQL",
                        error.endpoint_name, error.sparql,
                    )
                    self._emit(EventName.SOLUTIONS, **fields, solutions=[], error="endpoint temporary error")
                elif isinstance(error, EndpointError):
                    self._abandon(error)
                else:
                    self.logger.error("Unexpected error on SPARQL #%s, continue to the next SPARQL: %r", sparql["number"], error)
            except EndpointError as e:
                self._abandon(e)
            except Exception:
                self.logger.exception("Failed to handle the result of SPARQL #%s", sparql["number"])
            finally:
                results.put((error, solutions))

        endpoint.query_async(sparql["query"], on_result)

    def _abandon(self, error: EndpointError) -> None:
        self.logger.info("The SPARQL Endpoint %s has a persistent error: %s", error.endpoint_name, error.message)
        self._abandoned.set()

    def _on_solutions(
        self,
        endpoint: SparqlClient,
        urilinks: UrilinksClient,
        anchored_pgp: AnchoredPgp,
        raw_solutions: list[Solution],
        fields: dict[str, Any],
    ) -> None:
        solutions = [{str(k): str(v) for k, v in s.items()} for s in raw_solutions]
        self._emit(EventName.SOLUTIONS, **fields, solutions=solutions)

        for solution in solutions:
            for variable, uri in solution.items():
                if is_focus_variable(variable, anchored_pgp.focus):
                    answer = self._answer(endpoint, urilinks, uri)
                    self._emit(EventName.ANSWER, **fields, solutions=solutions, solution=solution, answer=answer)

    def _answer(self, endpoint: SparqlClient, urilinks: UrilinksClient, uri: str) -> Answer:
        # Resolved synchronously: event order would be lost if fetched in parallel.
        label = self._label(endpoint, uri)
        urls, first_rendering = urilinks.forwarded_urls(uri)
        return Answer(uri=uri, label=label, urls=urls, first_rendering=first_rendering)

    def _label(self, endpoint: SparqlClient, uri: str) -> str:
        try:
            solutions = endpoint.query(LABEL_QUERY.format(uri=uri))
        except (EndpointTimeoutError, EndpointTemporaryError) as e:
            self.logger.debug("No label for %s: %s", uri, e.message)
            return ""
        labels = [s["label"] for s in solutions if "label" in s]
        return labels[0] if labels else ""
