"""
API route aggregator: register endpoints; no logic, only delegate to handlers.
"""

import logging

from fastapi import APIRouter, HTTPException
from fastapi.responses import StreamingResponse

from app.api.handlers import stream_search
from app.core.config import PARSER_URL
from app.core.errors import ParseInvariantError, ParserError
from app.parser.enju import EnjuParser
from app.schemas.parse import ParseResult
from app.schemas.search import ParseRequest, SearchRequest

logger = logging.getLogger(__name__)
router = APIRouter()


# --- System ---

@router.get("/", tags=["system"])
def root():
    return {"status": "LODQA search backend running"}


@router.get("/health", tags=["system"])
def health():
    return {"ok": True}


# --- Parsing ---

@router.post(
    "/parse",
    response_model=ParseResult,
    tags=["parse"],
    summary="Parse a sentence",
    description="Tokens, root, focus, base noun chunks and relations of a sentence. 502 when the parser service fails.",
)
def post_parse(body: ParseRequest) -> ParseResult:
    logger.info("[api:post_parse] IN  sentence=%r", body.sentence)
    try:
        return EnjuParser(PARSER_URL).parse(body.sentence)
    except ParserError as e:
        raise HTTPException(status_code=502, detail=e.message) from e
    except ParseInvariantError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e


# --- Search (SSE) ---

@router.post(
    "/searches/stream",
    tags=["search"],
    summary="Search a dataset for answers (SSE stream)",
    description=(
        "Stream the search via Server-Sent Events. Events: datasets, pgp, mappings, sparql, "
        "query_sparql, solutions, answer, gateway_error, then done."
    ),
)
def post_search_stream(body: SearchRequest) -> StreamingResponse:
    logger.info("[api:post_search_stream] IN  question=%r dataset=%s", body.question, body.dataset.name)
    return StreamingResponse(
        stream_search(body),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )
