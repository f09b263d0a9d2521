"""
Graph finder: turn an anchored PGP into basic graph patterns (BGPs) and SPARQL.

Each PGP edge becomes a path of 1..max_hop triples through fresh variables,
every segment tried in both directions. Anchored nodes are read either as the
term itself (an instance) or as a class whose member is the instance variable
?i<node id>. BGPs are produced lazily, shortest paths first.
"""

import logging
from collections.abc import Iterator
from itertools import islice, product

from app.core.config import DEFAULT_MAX_HOP, DEFAULT_SORTAL_PREDICATES
from app.schemas.pgp import AnchoredPgp, PgpEdge

logger = logging.getLogger(__name__)

Triple = tuple[str, str, str]

# Reading of one node: (kind, sortal predicate). kind is "instance", "class" or "variable".
Reading = tuple[str, str | None]


def _uri(term: str) -> str:
    return f"<{term}>"


class GraphFinder:
    def __init__(
        self,
        max_hop: int = DEFAULT_MAX_HOP,
        ignore_predicates: list[str] | None = None,
        sortal_predicates: list[str] | None = None,
        sparql_limit: int | None = None,
        answer_limit: int | None = None,
    ) -> None:
        self.max_hop = max(1, max_hop)
        self.ignore_predicates = list(ignore_predicates or [])
        self.sortal_predicates = list(sortal_predicates or DEFAULT_SORTAL_PREDICATES)
        self.sparql_limit = sparql_limit
        self.answer_limit = answer_limit

    def sparqls_of(self, anchored_pgp: AnchoredPgp) -> Iterator[tuple[list[Triple], str]]:
        """Yield (bgp, sparql) pairs, at most sparql_limit of them."""
        logger.debug(
            "[graph_finder:sparqls_of] IN  focus=%s nodes=%d edges=%d max_hop=%d",
            anchored_pgp.focus, len(anchored_pgp.nodes), len(anchored_pgp.edges), self.max_hop,
        )
        pairs = ((bgp, self.to_sparql(bgp)) for bgp in self.bgps_of(anchored_pgp))
        if self.sparql_limit is not None:
            pairs = islice(pairs, self.sparql_limit)
        yield from pairs

    def bgps_of(self, anchored_pgp: AnchoredPgp) -> Iterator[list[Triple]]:
        ids = list(anchored_pgp.nodes)
        readings = [self._readings(anchored_pgp, nid) for nid in ids]
        edges = anchored_pgp.edges

        if not edges:
            focus = anchored_pgp.nodes.get(anchored_pgp.focus)
            if focus is None or focus.term is None:
                return
            for _kind, sortal in readings[ids.index(anchored_pgp.focus)]:
                yield [(f"?i{anchored_pgp.focus}", _uri(sortal), _uri(focus.term))]
            return

        lengths = sorted(product(range(1, self.max_hop + 1), repeat=len(edges)), key=sum)
        for path_lengths in lengths:
            for reading in product(*readings):
                chosen = dict(zip(ids, reading))
                node_triples = [
                    (f"?i{nid}", _uri(sortal), _uri(anchored_pgp.nodes[nid].term))
                    for nid, (kind, sortal) in chosen.items()
                    if kind == "class"
                ]
                terms = {nid: self._term(anchored_pgp, nid, chosen[nid]) for nid in ids}
                paths = [
                    list(self._paths(k, edge, n, terms))
                    for k, (edge, n) in enumerate(zip(edges, path_lengths))
                ]
                for edge_triples in product(*paths):
                    bgp = list(node_triples)
                    for triples in edge_triples:
                        bgp.extend(triples)
                    yield bgp

    def to_sparql(self, bgp: list[Triple]) -> str:
        lines = [f"  {s} {p} {o} ." for s, p, o in bgp]
        predicate_vars = sorted({p for _, p, _ in bgp if p.startswith("?")})
        if self.ignore_predicates and predicate_vars:
            conditions = " && ".join(
                f'!STRSTARTS(STR({var}), "{prefix}")'
                for var in predicate_vars
                for prefix in self.ignore_predicates
            )
            lines.append(f"  FILTER ({conditions})")
        sparql = "SELECT DISTINCT * WHERE {\n" + "\n".join(lines) + "\n}"
        if self.answer_limit is not None:
            sparql += f"\nLIMIT {self.answer_limit}"
        return sparql

    def _readings(self, anchored_pgp: AnchoredPgp, nid: str) -> list[Reading]:
        if anchored_pgp.nodes[nid].term is None:
            return [("variable", None)]
        classes: list[Reading] = [("class", sortal) for sortal in self.sortal_predicates]
        if nid == anchored_pgp.focus:
            return classes
        return [("instance", None)] + classes

    @staticmethod
    def _term(anchored_pgp: AnchoredPgp, nid: str, reading: Reading) -> str:
        kind, _ = reading
        if kind == "instance":
            return _uri(anchored_pgp.nodes[nid].term)
        if kind == "class":
            return f"?i{nid}"
        return f"?{nid}"

    @staticmethod
    def _paths(k: int, edge: PgpEdge, length: int, terms: dict[str, str]) -> Iterator[list[Triple]]:
        """All paths of `length` triples from the edge's subject to its object."""
        hops = [terms[edge.subject]] + [f"?x{k}_{j}" for j in range(1, length)] + [terms[edge.object]]
        for directions in product((True, False), repeat=length):
            triples = []
            for j, forward in enumerate(directions):
                a, b = hops[j], hops[j + 1]
                p = f"?p{k}_{j}"
                triples.append((a, p, b) if forward else (b, p, a))
            yield triples
