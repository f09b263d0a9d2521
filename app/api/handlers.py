"""
API handlers: run a search on a background thread and stream its events.

Responsibility: Bridge the blocking orchestrator and the HTTP stream. Lives in
the API layer so services stay free of FastAPI/HTTP types.
"""

import json
import logging
import queue
import threading
import uuid
from collections.abc import Iterator
from typing import Any

from fastapi.encoders import jsonable_encoder

from app.core.config import OrchestratorConfig
from app.schemas.search import SearchRequest
from app.services.events import EventName
from app.services.orchestrator import QueryOrchestrator

logger = logging.getLogger(__name__)

_DONE = object()


def sse_frame(event: str, data: Any) -> str:
    return f"event: {event}\ndata: {json.dumps(jsonable_encoder(data))}\n\n"


def build_orchestrator(body: SearchRequest, run_id: str) -> QueryOrchestrator:
    config = OrchestratorConfig(debug=body.debug)
    if body.read_timeout is not None:
        config.read_timeout = body.read_timeout
    return QueryOrchestrator(body.dataset, body.question, run_id, config)


def stream_search(body: SearchRequest) -> Iterator[str]:
    """
    Yield one Server-Sent Event per orchestration event, then a final `done`
    event with the run state and stats. Closing the stream cancels the search.
    """
    run_id = uuid.uuid4().hex
    orchestrator = build_orchestrator(body, run_id)
    events: queue.Queue = queue.Queue()
    orchestrator.on(*EventName, handler=lambda name, payload: events.put((name, payload)))

    def run() -> None:
        try:
            orchestrator.perform()
        finally:
            events.put(_DONE)

    logger.info("[handlers:stream_search] START run_id=%s dataset=%s question=%r", run_id, body.dataset.name, body.question)
    threading.Thread(target=run, name=f"search-{run_id[:8]}", daemon=True).start()
    try:
        while True:
            item = events.get()
            if item is _DONE:
                break
            name, payload = item
            yield sse_frame(name.value, payload)
        stats = orchestrator.stats.model_dump() if orchestrator.stats else None
        yield sse_frame("done", {"run_id": run_id, "state": orchestrator.state.value, "stats": stats})
    finally:
        orchestrator.cancel()
        logger.info("[handlers:stream_search] END run_id=%s state=%s", run_id, orchestrator.state.value)
