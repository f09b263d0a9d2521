"""
Build the pseudo graph pattern (PGP) of a question from its parse.
"""

import logging

from app.parser.enju import EnjuParser
from app.schemas.parse import ParseResult
from app.schemas.pgp import Pgp, PgpEdge, PgpNode

logger = logging.getLogger(__name__)


def node_id(head: int) -> str:
    return f"t{head}"


def create(parser_url: str, question: str) -> Pgp:
    """Parse the question with the parser service and convert the parse into a PGP."""
    parse = EnjuParser(parser_url).parse(question)
    return from_parse(parse, question.strip())


def from_parse(parse: ParseResult, sentence: str) -> Pgp:
    tokens = parse.tokens
    nodes: dict[str, PgpNode] = {}
    for chunk in parse.base_noun_chunks:
        text = sentence[tokens[chunk.beg].beg:tokens[chunk.end].end]
        nodes[node_id(chunk.head)] = PgpNode(head=chunk.head, text=text)

    edges = [
        PgpEdge(
            subject=node_id(r.subject),
            object=node_id(r.object),
            text=" ".join(tokens[i].lex for i in r.path),
        )
        for r in parse.relations
    ]

    focus = None
    if parse.focus is not None and parse.base_noun_chunks:
        chunk = next((c for c in parse.base_noun_chunks if c.contains(parse.focus)), parse.base_noun_chunks[0])
        focus = node_id(chunk.head)

    pgp = Pgp(nodes=nodes, edges=edges, focus=focus)
    logger.info("[pgp_factory:from_parse] OUT nodes=%s edges=%d focus=%s", list(nodes), len(edges), focus)
    return pgp
