"""
Application configuration (env, settings, constants).

Responsibility: Centralize config loading, environment variables, and app-wide
constants. Keeps the rest of the app decoupled from how config is sourced.
"""

import os
from dataclasses import dataclass

from dotenv import load_dotenv

load_dotenv()


def _int_or_none(name: str) -> int | None:
    value = os.getenv(name, "").strip()
    return int(value) if value else None


# Enju parser CGI (CoNLL output)
PARSER_URL: str = os.getenv("PARSER_URL", "").strip() or "http://enju-gtrec.dbcls.jp"

# URI forwarding DB (external references and renderings for answers)
URILINKS_URL: str = os.getenv("URILINKS_URL", "").strip() or "http://urilinks.lodqa.org"

# HTTP timeouts (seconds)
READ_TIMEOUT: float = float(os.getenv("READ_TIMEOUT", "5").strip() or 5)
PARSER_TIMEOUT: float = 30.0
DICTIONARY_TIMEOUT: float = 30.0
URILINKS_TIMEOUT: float = 10.0

# Concurrent SPARQL requests per endpoint
ENDPOINT_PARALLELISM: int = 16

# Forwarding URLs this long or longer are dropped from answers
FORWARDING_URL_MAX_LENGTH: int = 10_000

# Graph search defaults (used when a dataset does not set its own)
DEFAULT_MAX_HOP: int = 2
DEFAULT_SORTAL_PREDICATES: tuple[str, ...] = ("http://www.w3.org/1999/02/22-rdf-syntax-ns#type",)
LABEL_PREDICATE: str = "http://www.w3.org/2000/01/rdf-schema#label"

# Optional caps: SPARQLs generated per anchored pattern, and LIMIT of each SPARQL
SPARQL_LIMIT: int | None = _int_or_none("SPARQL_LIMIT")
ANSWER_LIMIT: int | None = _int_or_none("ANSWER_LIMIT")

DEBUG: bool = os.getenv("DEBUG", "").strip().lower() in ("1", "true", "yes")


@dataclass
class OrchestratorConfig:
    """Per-run options for a QueryOrchestrator."""

    parser_url: str = PARSER_URL
    urilinks_url: str = URILINKS_URL
    read_timeout: float = READ_TIMEOUT
    sparql_limit: int | None = SPARQL_LIMIT
    answer_limit: int | None = ANSWER_LIMIT
    debug: bool = DEBUG
