"""
Tests for the Enju parser: CoNLL reading, noun chunks, relations and focus.

HTTP is served by httpx.MockTransport so no parser service is needed.
"""

import httpx
import pytest

from app.core.errors import ParseInvariantError, ParserError
from app.parser.enju import EnjuParser, get_base_noun_chunks, get_focus, get_relations, parse_conll
from app.schemas.parse import BaseNounChunk, Relation, Token

from conftest import CAPITAL_CONLL, CAPITAL_SENTENCE, DEVICES_CONLL, DEVICES_SENTENCE

PARSER_URL = "http://enju.example.org/cgi-lilfes/enju"


def parser_returning(body: str, status: int = 200, content_type: str = "text/plain; charset=utf-8") -> tuple[EnjuParser, list]:
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(status, text=body, headers={"content-type": content_type})

    client = httpx.Client(transport=httpx.MockTransport(handler))
    return EnjuParser(PARSER_URL, client=client), requests


def token(idx: int, cat: str, args=None, base: str = "") -> Token:
    return Token(idx=idx, lex=f"w{idx}", base=base, cat=cat, args=args or [])


class TestParse:
    """Tests for EnjuParser.parse()."""

    def test_devices_question(self) -> None:
        parser, requests = parser_returning(DEVICES_CONLL)
        result = parser.parse(DEVICES_SENTENCE)

        assert [t.idx for t in result.tokens] == list(range(9))
        assert [t.lex for t in result.tokens][:3] == ["What", "devices", "are"]
        assert result.root == 3
        assert result.base_noun_chunks == [
            BaseNounChunk(head=1, beg=0, end=1),
            BaseNounChunk(head=7, beg=6, end=7),
        ]
        assert result.relations == [Relation(subject=1, path=[3, 4, 5], object=7)]
        # "What" has no arguments and no copula relation: it is its own focus.
        assert result.focus == 0

        assert requests[0].url.params["sentence"] == DEVICES_SENTENCE
        assert requests[0].url.params["format"] == "conll"

    def test_span_offsets_skip_whitespace(self) -> None:
        parser, _ = parser_returning(DEVICES_CONLL)
        tokens = parser.parse("  " + DEVICES_SENTENCE + "  ").tokens
        spans = [(t.beg, t.end) for t in tokens]
        assert spans[:3] == [(0, 4), (5, 12), (13, 16)]
        assert spans[-1] == (44, 45)
        for t in tokens:
            assert DEVICES_SENTENCE[t.beg:t.end] == t.lex

    def test_appositive_question_focuses_on_apposition(self) -> None:
        parser, _ = parser_returning(CAPITAL_CONLL)
        result = parser.parse(CAPITAL_SENTENCE)

        assert result.focus == 3
        assert result.base_noun_chunks == [
            BaseNounChunk(head=3, beg=3, end=3),
            BaseNounChunk(head=5, beg=5, end=5),
        ]
        assert result.relations == [Relation(subject=3, path=[4], object=5)]

    def test_three_row_response_reindexes_and_resolves_root(self) -> None:
        body = "0\tROOT\tROOT\tROOT\tROOT\tROOT\tROOT:2\n1\tdogs\tdog\tNNS\tNN\tnoun_arg0\n2\tbark\tbark\tVBP\tVB\tverb_arg1\tARG1:1\n"
        parser, _ = parser_returning(body)
        result = parser.parse("dogs bark")

        assert [t.idx for t in result.tokens] == [0, 1]
        assert result.root == 1
        assert result.tokens[1].args == [("ARG1", 0)]

    @pytest.mark.parametrize("sentence", ["", "   ", "\n\t", None])
    def test_empty_input_is_empty_parse(self, sentence) -> None:
        parser, requests = parser_returning(DEVICES_CONLL)
        result = parser.parse(sentence)
        assert result.tokens == []
        assert result.root is None
        assert result.focus is None
        assert requests == []


class TestParserErrors:
    """Tests for parser service failures."""

    def test_non_success_status(self) -> None:
        parser, _ = parser_returning("oops", status=500)
        with pytest.raises(ParserError, match="does not respond"):
            parser.parse(DEVICES_SENTENCE)

    def test_empty_line_response(self) -> None:
        parser, _ = parser_returning("Empty line\n")
        with pytest.raises(ParserError, match="Empty input"):
            parser.parse(DEVICES_SENTENCE)

    def test_html_response(self) -> None:
        parser, _ = parser_returning("<html></html>", content_type="text/html; charset=utf-8")
        with pytest.raises(ParserError, match="html"):
            parser.parse(DEVICES_SENTENCE)

    def test_connection_failure(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        parser = EnjuParser(PARSER_URL, client=httpx.Client(transport=httpx.MockTransport(handler)))
        with pytest.raises(ParserError):
            parser.parse(DEVICES_SENTENCE)

    def test_missing_url(self) -> None:
        with pytest.raises(ParserError):
            EnjuParser("  ")

    def test_root_row_without_argument(self) -> None:
        with pytest.raises(ParserError, match="no root"):
            parse_conll("0\tROOT\tROOT\tROOT\tROOT\tROOT\n1\tdogs\tdog\tNNS\tNN\tnoun_arg0\n", "dogs")


class TestBaseNounChunks:
    """Tests for get_base_noun_chunks()."""

    def test_chunks_are_ordered_and_disjoint(self) -> None:
        tokens, _ = parse_conll(DEVICES_CONLL, DEVICES_SENTENCE)
        chunks = get_base_noun_chunks(tokens)
        for prev, nxt in zip(chunks, chunks[1:]):
            assert prev.end < nxt.beg
        for c in chunks:
            assert c.beg <= c.head <= c.end

    def test_head_falls_back_to_closing_token(self) -> None:
        tokens = [token(0, "JJ"), token(1, "VB")]
        assert get_base_noun_chunks(tokens) == [BaseNounChunk(head=1, beg=0, end=0)]

    def test_word_with_arguments_is_not_head(self) -> None:
        tokens = [token(0, "NN"), token(1, "NN", args=[("ARG1", 0)]), token(2, "VB")]
        assert get_base_noun_chunks(tokens) == [BaseNounChunk(head=0, beg=0, end=1)]

    def test_chunk_open_at_end_without_head_is_invariant_violation(self) -> None:
        with pytest.raises(ParseInvariantError):
            get_base_noun_chunks([token(0, "VB"), token(1, "JJ")])


class TestRelations:
    """Tests for get_relations()."""

    def test_relation_never_passes_through_another_head(self) -> None:
        tokens, _ = parse_conll(CAPITAL_CONLL, CAPITAL_SENTENCE)
        chunks = get_base_noun_chunks(tokens)
        relations = get_relations(tokens, chunks)
        heads = {c.head for c in chunks}

        assert heads == {0, 3, 5}
        # 0 -> 5 runs through head 3 and is not recorded.
        assert [(r.subject, r.object) for r in relations] == [(0, 3), (3, 5)]
        for r in relations:
            assert heads.isdisjoint(r.path)

    def test_unconnected_heads_have_no_relation(self) -> None:
        tokens = [token(0, "NN"), token(1, "VB"), token(2, "NN"), token(3, ".")]
        chunks = get_base_noun_chunks(tokens)
        assert len(chunks) == 2
        assert get_relations(tokens, chunks) == []


class TestFocus:
    """Tests for get_focus()."""

    def test_wh_word_with_argument_points_to_argument(self) -> None:
        tokens = [token(0, "WDT", args=[("ARG1", 1)]), token(1, "NN"), token(2, "VB")]
        chunks = get_base_noun_chunks(tokens)
        assert get_focus(tokens, chunks, []) == 1

    def test_without_wh_word_uses_first_chunk_head(self) -> None:
        tokens = [token(0, "DT"), token(1, "NN"), token(2, "VB")]
        chunks = get_base_noun_chunks(tokens)
        assert get_focus(tokens, chunks, []) == 1

    def test_without_wh_word_or_chunks_is_zero(self) -> None:
        tokens = [token(0, "VB"), token(1, "RB")]
        assert get_focus(tokens, [], []) == 0

    def test_no_tokens_has_no_focus(self) -> None:
        assert get_focus([], [], []) is None

    def test_wh_argument_outside_sentence_falls_back_to_wh_word(self) -> None:
        # ARG1:0 in CoNLL points at the synthetic root row, -1 after reindexing.
        tokens = [token(0, "WDT", args=[("ARG1", -1)]), token(1, "NN"), token(2, "VB")]
        chunks = get_base_noun_chunks(tokens)
        assert get_focus(tokens, chunks, []) == 0

    def test_wh_relation_with_empty_path_is_not_appositive(self) -> None:
        tokens = [token(0, "WP"), token(1, "NN", base="capital")]
        chunks = [BaseNounChunk(head=0, beg=0, end=0), BaseNounChunk(head=1, beg=1, end=1)]
        relations = [Relation(subject=0, path=[], object=1)]

        assert get_focus(tokens, chunks, relations) == 0
        assert len(chunks) == 2
        assert relations == [Relation(subject=0, path=[], object=1)]

    def test_appositive_drops_first_chunk_and_copula_relation(self) -> None:
        tokens = [token(0, "WP"), token(1, "VB", base="be"), token(2, "NN")]
        chunks = [BaseNounChunk(head=0, beg=0, end=0), BaseNounChunk(head=2, beg=2, end=2)]
        relations = [Relation(subject=0, path=[1], object=2)]

        assert get_focus(tokens, chunks, relations) == 2
        assert chunks == [BaseNounChunk(head=2, beg=2, end=2)]
        assert relations == []
