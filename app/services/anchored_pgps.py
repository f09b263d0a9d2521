"""
Anchored PGPs: every way of binding the nodes of a PGP to knowledge-base terms.
"""

import logging
from collections.abc import Iterator
from itertools import product

from app.schemas.pgp import AnchoredNode, AnchoredPgp, Pgp

logger = logging.getLogger(__name__)


class AnchoredPgps:
    """
    Lazy, restartable sequence of AnchoredPgp values for one PGP and its term
    mappings. Non-focus nodes without terms are dropped with their edges; the
    focus node stays, unbound when it has no terms.
    """

    def __init__(self, pgp: Pgp, mappings: dict[str, list[str]]) -> None:
        self.pgp = pgp
        self.mappings = mappings

    def __iter__(self) -> Iterator[AnchoredPgp]:
        pgp = self.pgp
        if pgp.focus is None or pgp.focus not in pgp.nodes:
            logger.info("[anchored_pgps] no focus node, nothing to anchor")
            return

        candidates: dict[str, list[str | None]] = {}
        for nid, node in pgp.nodes.items():
            terms = self.mappings.get(node.text) or []
            if terms:
                candidates[nid] = list(terms)
            elif nid == pgp.focus:
                candidates[nid] = [None]
            else:
                logger.info("[anchored_pgps] drop node %s (%r): no terms", nid, node.text)

        edges = [e for e in pgp.edges if e.subject in candidates and e.object in candidates]
        ids = list(candidates)
        for terms in product(*(candidates[nid] for nid in ids)):
            nodes = {
                nid: AnchoredNode(head=pgp.nodes[nid].head, text=pgp.nodes[nid].text, term=term)
                for nid, term in zip(ids, terms)
            }
            yield AnchoredPgp(nodes=nodes, edges=edges, focus=pgp.focus)
