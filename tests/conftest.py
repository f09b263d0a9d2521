"""
Shared fixtures: Enju CoNLL samples and in-memory stand-ins for the HTTP collaborators.
"""

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from app.core.config import OrchestratorConfig
from app.schemas.dataset import Dataset
from app.schemas.pgp import Pgp, PgpEdge, PgpNode
from app.services.events import EventName
from app.services.orchestrator import QueryOrchestrator

DEVICES_SENTENCE = "What devices are used to treat heart failure?"

# Enju CoNLL for DEVICES_SENTENCE. Row 0 is the synthetic root pointing at "used".
DEVICES_CONLL = "\n".join([
    "0\tROOT\tROOT\tROOT\tROOT\tROOT\tROOT:4",
    "1\tWhat\twhat\tWP\tWP\tnoun_arg0",
    "2\tdevices\tdevice\tNNS\tNN\tnoun_arg0",
    "3\tare\tbe\tVBP\tVB\tverb_arg12\tARG1:2 ARG2:4",
    "4\tused\tuse\tVBN\tVB\tverb_arg123\tARG2:2 ARG3:5",
    "5\tto\tto\tTO\tTO\tcomp_arg12\tARG1:4 ARG2:6",
    "6\ttreat\ttreat\tVB\tVB\tverb_arg12\tARG2:8",
    "7\theart\theart\tNN\tNN\tnoun_arg0",
    "8\tfailure\tfailure\tNN\tNN\tnoun_arg0",
    "9\t?\t?\t.\t.\tnoun_arg0",
]) + "\n"

CAPITAL_SENTENCE = "What is the capital of Japan?"

# Appositive question: the copula links the wh-word to "capital".
CAPITAL_CONLL = "\n".join([
    "0\tROOT\tROOT\tROOT\tROOT\tROOT\tROOT:2",
    "1\tWhat\twhat\tWP\tWP\tnoun_arg0",
    "2\tis\tbe\tVBZ\tVB\tverb_arg12\tARG1:1 ARG2:4",
    "3\tthe\tthe\tDT\tDT\tdet_arg1\tARG1:4",
    "4\tcapital\tcapital\tNN\tNN\tnoun_arg0",
    "5\tof\tof\tIN\tIN\tprep_arg12\tARG1:4 ARG2:6",
    "6\tJapan\tjapan\tNNP\tNNP\tnoun_arg0",
    "7\t?\t?\t.\t.\tnoun_arg0",
]) + "\n"

DEVICE = "http://example.org/Device"
HEART_FAILURE = "http://example.org/HeartFailure"


class FakeTermFinder:
    def __init__(self, mappings: dict[str, list[str]], error: Exception | None = None) -> None:
        self.mappings = mappings
        self.error = error
        self.keywords: list[str] | None = None

    def find(self, keywords: list[str]) -> dict[str, list[str]]:
        self.keywords = keywords
        if self.error is not None:
            raise self.error
        return {k: self.mappings.get(k, []) for k in keywords}


class FakeEndpoint:
    """
    SPARQL endpoint double. `responses` maps query text to solutions or to an
    exception to raise. Callbacks run inline unless threaded=True.
    """

    def __init__(self, responses=None, labels=None, threaded: bool = False) -> None:
        self.endpoint_name = "fake.example.org"
        self.responses = responses or {}
        self.labels = labels or {}
        self.dispatched: list[str] = []
        self.closed = False
        self._lock = threading.Lock()
        self._executor = ThreadPoolExecutor(max_workers=4) if threaded else None

    def query(self, sparql: str):
        for uri, label in self.labels.items():
            if f"<{uri}>" in sparql:
                return [{"label": label}]
        return []

    def query_async(self, sparql: str, callback) -> None:
        with self._lock:
            self.dispatched.append(sparql)
        if self._executor is not None:
            self._executor.submit(self._answer, sparql, callback)
        else:
            self._answer(sparql, callback)

    def _answer(self, sparql: str, callback) -> None:
        result = self.responses.get(sparql, [])
        if isinstance(result, Exception):
            callback(result, None)
        else:
            callback(None, result)

    def close(self) -> None:
        self.closed = True
        if self._executor is not None:
            self._executor.shutdown(wait=True)


class FakeUrilinks:
    def __init__(self, result=(None, None), error: Exception | None = None) -> None:
        self.result = result
        self.error = error
        self.requested: list[str] = []

    def forwarded_urls(self, uri: str):
        self.requested.append(uri)
        if self.error is not None:
            raise self.error
        return self.result


class ScriptedGraphFinder:
    """GraphFinder double yielding the same scripted (bgp, sparql) pairs for every anchored PGP."""

    def __init__(self, sparqls: list[str]) -> None:
        self.sparqls = sparqls

    def __call__(self, **_options):
        return self

    def sparqls_of(self, anchored_pgp):
        for i, sparql in enumerate(self.sparqls):
            yield [(f"?i{anchored_pgp.focus}", f"?p{i}", "?o")], sparql


@pytest.fixture
def dataset() -> Dataset:
    return Dataset(
        name="biomed",
        number=1,
        endpoint_url="http://fake.example.org/sparql",
        dictionary_url="http://dictionary.example.org/find_ids.json",
    )


@pytest.fixture
def devices_pgp() -> Pgp:
    return Pgp(
        nodes={
            "t1": PgpNode(head=1, text="What devices"),
            "t7": PgpNode(head=7, text="heart failure"),
        },
        edges=[PgpEdge(subject="t1", object="t7", text="used to treat")],
        focus="t1",
    )


@pytest.fixture
def make_orchestrator(dataset, devices_pgp):
    """Build a QueryOrchestrator wired to fakes. Returns (orchestrator, recorded events)."""

    def build(
        endpoint: FakeEndpoint | None = None,
        term_finder: FakeTermFinder | None = None,
        urilinks: FakeUrilinks | None = None,
        pgp_builder=None,
        config: OrchestratorConfig | None = None,
    ):
        endpoint = endpoint or FakeEndpoint()
        term_finder = term_finder or FakeTermFinder({"What devices": [DEVICE], "heart failure": [HEART_FAILURE]})
        urilinks = urilinks or FakeUrilinks()
        orchestrator = QueryOrchestrator(
            dataset,
            "What devices are used to treat heart failure?",
            "run-1",
            config or OrchestratorConfig(parser_url="http://enju.example.org", urilinks_url="http://urilinks.example.org"),
            pgp_builder=pgp_builder or (lambda _url, _question: devices_pgp),
            term_finder_factory=lambda _url: term_finder,
            endpoint_factory=lambda *_args: endpoint,
            urilinks_factory=lambda _url: urilinks,
        )
        events: list = []
        orchestrator.on(*EventName, handler=lambda name, payload: events.append((name.value, payload)))
        return orchestrator, events

    return build
