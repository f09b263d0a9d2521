"""Schemas for searches: API request bodies, answers, run statistics."""

from typing import Any

from pydantic import BaseModel, Field

from app.schemas.dataset import Dataset


class SearchRequest(BaseModel):
    """Request body for POST /searches/stream."""

    question: str = Field(..., min_length=1, description="Natural-language question.")
    dataset: Dataset
    read_timeout: float | None = Field(None, gt=0, description="SPARQL read timeout (seconds).")
    debug: bool = False


class ParseRequest(BaseModel):
    """Request body for POST /parse."""

    sentence: str = Field("", description="Sentence to parse. Empty input yields an empty parse.")


class Answer(BaseModel):
    uri: str
    label: str = ""
    urls: list[dict[str, Any]] | None = Field(None, description="Forwarding candidates, best first.")
    first_rendering: dict[str, Any] | None = Field(None, description="First image rendering among the candidates.")


class RunStats(BaseModel):
    parallel: int
    duration: float = Field(..., description="Wall-clock seconds from first dispatch to drain.")
    dataset: dict[str, Any]
    sparqls: int
    error: int
    success: int
    error_rate: float
