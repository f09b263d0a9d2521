"""Dataset descriptor: where and how to search one knowledge base."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from app.core.config import DEFAULT_MAX_HOP


class Dataset(BaseModel):
    """Immutable description of a SPARQL endpoint and its dictionary."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1, description="Dataset name shown in events.")
    number: int | None = Field(None, description="Position of the dataset in a multi-dataset search.")
    endpoint_url: str = Field(..., min_length=1, description="SPARQL endpoint URL.")
    dictionary_url: str = Field(..., min_length=1, description="Term lookup (dictionary) service URL.")
    parser_url: str | None = Field(None, description="Overrides the default parser service URL.")
    max_hop: int = Field(DEFAULT_MAX_HOP, ge=1, description="Longest path (in triples) tried per edge.")
    ignore_predicates: list[str] = Field(default_factory=list, description="Predicate URI prefixes never used in paths.")
    sortal_predicates: list[str] = Field(default_factory=list, description="Predicates linking an instance to its class.")
    sparql_limit: int | None = Field(None, ge=1, description="Max SPARQLs per anchored pattern.")
    answer_limit: int | None = Field(None, ge=1, description="LIMIT of each SPARQL.")

    def summary(self) -> dict[str, Any]:
        return {"name": self.name, "number": self.number}
