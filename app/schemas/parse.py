"""Schemas for sentence parses: tokens, base noun chunks, relations."""

from pydantic import BaseModel, Field


class Token(BaseModel):
    """One parsed word. Indices are 0-based after the synthetic root row is removed."""

    idx: int = Field(..., description="0-based position in the sentence.")
    lex: str = Field(..., description="Surface form.")
    base: str = Field("", description="Base (lemma) form.")
    pos: str = Field("", description="Part of speech.")
    cat: str = Field("", description="Phrase category.")
    type: str = Field("", description="Predicate-argument frame type.")
    args: list[tuple[str, int]] = Field(
        default_factory=list,
        description="Semantic arguments as (role label, argument token index).",
    )
    beg: int = Field(0, description="Start offset in the sentence.")
    end: int = Field(0, description="End offset in the sentence (exclusive).")


class BaseNounChunk(BaseModel):
    head: int
    beg: int
    end: int

    def contains(self, idx: int) -> bool:
        return self.beg <= idx <= self.end


class Relation(BaseModel):
    """Shortest path between two chunk heads that does not pass through another head."""

    subject: int
    path: list[int] = Field(default_factory=list, description="Intermediate token indices.")
    object: int


class ParseResult(BaseModel):
    tokens: list[Token] = Field(default_factory=list)
    root: int | None = Field(None, description="Index of the root word.")
    focus: int | None = Field(None, description="Index of the word the question asks about.")
    base_noun_chunks: list[BaseNounChunk] = Field(default_factory=list)
    relations: list[Relation] = Field(default_factory=list)
