"""
Events of one orchestration run and a small synchronous publish/subscribe bus.

Every payload carries the dataset summary; once known, the PGP and the term
mappings are carried too.
"""

import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, TypedDict

from app.schemas.pgp import AnchoredPgp, Pgp
from app.schemas.search import Answer


class EventName(str, Enum):
    DATASETS = "datasets"
    PGP = "pgp"
    MAPPINGS = "mappings"
    SPARQL = "sparql"
    QUERY_SPARQL = "query_sparql"
    SOLUTIONS = "solutions"
    ANSWER = "answer"
    GATEWAY_ERROR = "gateway_error"


class SparqlInfo(TypedDict):
    query: str
    number: int


class DatasetsPayload(TypedDict):
    dataset: dict[str, Any]


class PgpPayload(DatasetsPayload):
    pgp: Pgp


class MappingsPayload(PgpPayload):
    mappings: dict[str, list[str]]


class SparqlPayload(MappingsPayload):
    anchored_pgp: AnchoredPgp
    bgp: list[tuple[str, str, str]]
    sparql: SparqlInfo


class _SolutionsRequired(SparqlPayload):
    solutions: list[dict[str, str]]


class SolutionsPayload(_SolutionsRequired, total=False):
    error: str


class AnswerPayload(SparqlPayload):
    solutions: list[dict[str, str]]
    solution: dict[str, str]
    answer: Answer


class _GatewayErrorRequired(DatasetsPayload):
    error_message: str


class GatewayErrorPayload(_GatewayErrorRequired, total=False):
    pgp: Pgp
    mappings: dict[str, list[str]]


# Payload shape of each event
PAYLOAD_TYPES: dict[EventName, type] = {
    EventName.DATASETS: DatasetsPayload,
    EventName.PGP: PgpPayload,
    EventName.MAPPINGS: MappingsPayload,
    EventName.SPARQL: SparqlPayload,
    EventName.QUERY_SPARQL: SparqlPayload,
    EventName.SOLUTIONS: SolutionsPayload,
    EventName.ANSWER: AnswerPayload,
    EventName.GATEWAY_ERROR: GatewayErrorPayload,
}

EventHandler = Callable[[EventName, dict[str, Any]], None]


@dataclass(frozen=True)
class Subscription:
    events: tuple[EventName, ...]
    handler: EventHandler = field(compare=False)


class EventBus:
    """Handlers run synchronously, in registration order, on the emitting thread."""

    def __init__(self) -> None:
        self._subscriptions: list[Subscription] = []
        self._lock = threading.Lock()

    def on(self, *events: EventName | str, handler: EventHandler) -> Subscription:
        subscription = Subscription(tuple(EventName(e) for e in events), handler)
        with self._lock:
            self._subscriptions.append(subscription)
        return subscription

    def off(self, subscription: Subscription) -> None:
        with self._lock:
            self._subscriptions = [s for s in self._subscriptions if s is not subscription]

    def emit(self, event: EventName, payload: dict[str, Any]) -> None:
        with self._lock:
            handlers = [s.handler for s in self._subscriptions if event in s.events]
        for handler in handlers:
            handler(event, payload)
