"""
Sentence parsing through an Enju CGI server.

Responsibility: Send a plain-English sentence to the parser service (CoNLL
output), build the token array, then derive base noun chunks, the shortest
relations between chunk heads, and the focus word of the question.
"""

import logging
from itertools import combinations

import httpx

from app.core.config import PARSER_TIMEOUT
from app.core.errors import ParseInvariantError, ParserError
from app.parser.graph import DependencyGraph
from app.schemas.parse import BaseNounChunk, ParseResult, Relation, Token

logger = logging.getLogger(__name__)

# Noun-chunk elements. PRP is left out; dialog analysis would need it.
NC_CAT: frozenset[str] = frozenset({"NN", "NNP", "CD", "FW", "JJ", "WP"})

# Noun-chunk elements that may appear at the head position
NC_HEAD_CAT: frozenset[str] = frozenset({"NN", "NNP", "CD", "FW", "WP"})

# wh-pronoun and wh-determiner
WH_CAT: frozenset[str] = frozenset({"WP", "WDT"})

_WHITESPACE = " \t\n"


class EnjuParser:
    """Parses sentences with an Enju CGI server. Pass `client` to reuse (or mock) an httpx.Client."""

    def __init__(self, parser_url: str, client: httpx.Client | None = None, timeout: float = PARSER_TIMEOUT) -> None:
        if not parser_url or not parser_url.strip():
            raise ParserError("The URL of the Enju web service is required.")
        self.parser_url = parser_url.strip()
        self._client = client
        self._timeout = timeout

    def parse(self, sentence: str | None) -> ParseResult:
        """
        Parse a sentence into tokens, root, focus, base noun chunks and relations.

        For "What devices are used to treat heart failure?" the focus is the
        index of "What", the word the question asks about.
        """
        tokens, root = self._get_parse(sentence)
        base_noun_chunks = get_base_noun_chunks(tokens)
        relations = get_relations(tokens, base_noun_chunks)
        focus = get_focus(tokens, base_noun_chunks, relations)
        logger.info(
            "[enju:parse] OUT tokens=%d root=%s focus=%s chunks=%d relations=%d",
            len(tokens), root, focus, len(base_noun_chunks), len(relations),
        )
        return ParseResult(
            tokens=tokens,
            root=root,
            focus=focus,
            base_noun_chunks=base_noun_chunks,
            relations=relations,
        )

    def _get_parse(self, sentence: str | None) -> tuple[list[Token], int | None]:
        if sentence is None or not sentence.strip():
            return [], None
        sentence = sentence.strip()
        logger.info("[enju:get_parse] IN  sentence=%r", sentence)

        try:
            response = self._request(sentence)
        except httpx.HTTPError as e:
            raise ParserError(f"Enju CGI server does not respond: {e}") from e

        if response.status_code != 200:
            raise ParserError(f"Enju CGI server does not respond (status {response.status_code}).")
        if response.text.startswith("Empty line"):
            raise ParserError("Empty input.")
        if response.headers.get("content-type", "").startswith("text/html"):
            raise ParserError("Enju CGI server returns html instead of tsv")

        return parse_conll(response.text, sentence)

    def _request(self, sentence: str) -> httpx.Response:
        params = {"sentence": sentence, "format": "conll"}
        if self._client is not None:
            return self._client.get(self.parser_url, params=params)
        with httpx.Client(timeout=self._timeout) as client:
            return client.get(self.parser_url, params=params)


def parse_conll(body: str, sentence: str) -> tuple[list[Token], int]:
    """
    Turn Enju CoNLL rows into tokens. Row 0 is a synthetic root whose first
    argument names the real root; it is dropped and indices start at 0.
    """
    rows = [line for line in body.splitlines() if line.strip()]
    if not rows:
        raise ParserError("Enju CGI server returned no tokens.")

    tokens: list[Token] = []
    for i, row in enumerate(rows):
        dat = row.split("\t", 6)
        if len(dat) < 6:
            raise ParserError(f"Malformed CoNLL row {i}: {row!r}")
        args: list[tuple[str, int]] = []
        if len(dat) > 6:
            for arg in dat[6].split():
                role, _, ref = arg.partition(":")
                try:
                    args.append((role, int(ref) - 1))
                except ValueError as e:
                    raise ParserError(f"Malformed argument {arg!r} in CoNLL row {i}") from e
        tokens.append(
            Token(idx=i - 1, lex=dat[1], base=dat[2], pos=dat[3], cat=dat[4], type=dat[5], args=args)
        )

    root_row = tokens.pop(0)
    if not root_row.args:
        raise ParserError("Enju CGI server returned no root.")
    root = root_row.args[0][1]

    # Span offsets: tokens appear in sentence order, separated only by whitespace.
    i = 0
    for t in tokens:
        while i < len(sentence) and sentence[i] in _WHITESPACE:
            i += 1
        t.beg = i
        t.end = i + len(t.lex)
        i = t.end

    return tokens, root


def get_base_noun_chunks(tokens: list[Token]) -> list[BaseNounChunk]:
    """Find base noun chunks from the category pattern. The last head-eligible word is the head."""
    base_noun_chunks: list[BaseNounChunk] = []
    beg = -1
    head = -1
    for i, t in enumerate(tokens):
        if beg < 0 and t.cat in NC_CAT:
            beg = t.idx
        if beg >= 0 and t.cat in NC_HEAD_CAT and not t.args:
            head = t.idx
        if beg >= 0 and t.cat not in NC_CAT:
            if head < 0:
                head = t.idx
            base_noun_chunks.append(BaseNounChunk(head=head, beg=beg, end=tokens[i - 1].idx))
            beg = -1
            head = -1

    if beg >= 0:
        if head < 0:
            raise ParseInvariantError(
                f"Strange parse: noun chunk starting at token {beg} has no head"
            )
        base_noun_chunks.append(BaseNounChunk(head=head, beg=beg, end=tokens[-1].idx))

    return base_noun_chunks


def get_relations(tokens: list[Token], base_noun_chunks: list[BaseNounChunk]) -> list[Relation]:
    """Shortest paths between any two chunk heads that do not pass through another chunk head."""
    graph = DependencyGraph()
    for t in tokens:
        for _role, arg in t.args:
            if arg >= 0:
                # Arguments are walked both ways: heads are linked through their predicates.
                graph.add_edge(t.idx, arg, 1)
                graph.add_edge(arg, t.idx, 1)

    heads = {c.head for c in base_noun_chunks}
    relations: list[Relation] = []
    for a, b in combinations(base_noun_chunks, 2):
        path = graph.shortest_path(a.head, b.head)
        if path is None or len(path) < 2:
            continue
        subject, intermediate, obj = path[0], path[1:-1], path[-1]
        if heads.isdisjoint(intermediate):
            relations.append(Relation(subject=subject, path=intermediate, object=obj))
    return relations


def get_focus(tokens: list[Token], base_noun_chunks: list[BaseNounChunk], relations: list[Relation]) -> int | None:
    """
    Return the index of the focus word. An appositive wh-question ("What is the
    capital of ...") drops the first chunk and the copula relation in place.
    """
    if not tokens:
        return None

    # assumption: one query has only one wh-word
    wh_token = next((t for t in tokens if t.cat in WH_CAT), None)

    if wh_token is None:
        if not base_noun_chunks:
            return 0
        return base_noun_chunks[0].head

    if wh_token.args:
        target = wh_token.args[0][1]
        return target if 0 <= target < len(tokens) else wh_token.idx

    wh_rel = next((r for r in relations if r.subject == wh_token.idx), None)
    if wh_rel is not None and wh_rel.path and tokens[wh_rel.path[0]].base == "be":
        del base_noun_chunks[0]
        relations.remove(wh_rel)
        return wh_rel.object
    return wh_token.idx
