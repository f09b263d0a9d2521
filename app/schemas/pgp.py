"""
Schemas for pseudo graph patterns (PGP): the semantic shape of a question.

A Pgp has one node per base noun chunk and one edge per relation between chunks.
An AnchoredPgp binds each node to at most one knowledge-base term.
"""

from pydantic import BaseModel, Field


class PgpNode(BaseModel):
    head: int
    text: str


class PgpEdge(BaseModel):
    subject: str
    object: str
    text: str = ""


class Pgp(BaseModel):
    nodes: dict[str, PgpNode] = Field(default_factory=dict, description="Node id (t<head>) -> node.")
    edges: list[PgpEdge] = Field(default_factory=list)
    focus: str | None = Field(None, description="Id of the node the question asks about.")

    def keywords(self) -> list[str]:
        """Texts of all nodes and edges, nodes first."""
        return [n.text for n in self.nodes.values()] + [e.text for e in self.edges]


class AnchoredNode(BaseModel):
    head: int
    text: str
    term: str | None = Field(None, description="Bound term URI; None leaves the node a free variable.")


class AnchoredPgp(BaseModel):
    nodes: dict[str, AnchoredNode] = Field(default_factory=dict)
    edges: list[PgpEdge] = Field(default_factory=list)
    focus: str
