#!/usr/bin/env python3
"""
Ask one question against one SPARQL endpoint and print the search events.

Each event is printed as one JSON line: {"event": name, "data": payload}.
Ctrl-C cancels the search (running SPARQLs are not interrupted).

Run from project root:

    python scripts/ask.py --endpoint http://bio2rdf.org/sparql \\
        --dictionary http://pubdictionaries.org/find_ids.json?dictionary=qald-biomed \\
        "What devices are used to treat heart failure?"
"""

import argparse
import json
import logging
import sys
import threading
import uuid
from pathlib import Path

# Project root on path so "app" resolves
_ROOT = Path(__file__).resolve().parent.parent
if str(_ROOT) not in sys.path:
    sys.path.insert(0, str(_ROOT))

from fastapi.encoders import jsonable_encoder

from app.core.config import DEFAULT_MAX_HOP, OrchestratorConfig
from app.schemas.dataset import Dataset
from app.services.events import EventName
from app.services.orchestrator import QueryOrchestrator


def print_event(name: EventName, payload: dict) -> None:
    print(json.dumps({"event": name.value, "data": jsonable_encoder(payload)}), flush=True)


def main() -> None:
    parser = argparse.ArgumentParser(description="Answer a question from a SPARQL endpoint.")
    parser.add_argument("question", help="Natural-language question.")
    parser.add_argument("--endpoint", required=True, help="SPARQL endpoint URL.")
    parser.add_argument("--dictionary", required=True, help="Dictionary (term lookup) URL.")
    parser.add_argument("--name", default="cli", help="Dataset name shown in events.")
    parser.add_argument("--parser-url", default=None, help="Enju CGI URL (default from PARSER_URL).")
    parser.add_argument("--max-hop", type=int, default=DEFAULT_MAX_HOP)
    parser.add_argument("--sparql-limit", type=int, default=None)
    parser.add_argument("--answer-limit", type=int, default=None)
    parser.add_argument("--debug", action="store_true")
    args = parser.parse_args()

    logging.basicConfig(level=logging.DEBUG if args.debug else logging.WARNING, stream=sys.stderr)

    dataset = Dataset(
        name=args.name,
        endpoint_url=args.endpoint,
        dictionary_url=args.dictionary,
        parser_url=args.parser_url,
        max_hop=args.max_hop,
        sparql_limit=args.sparql_limit,
        answer_limit=args.answer_limit,
    )
    orchestrator = QueryOrchestrator(dataset, args.question, uuid.uuid4().hex, OrchestratorConfig(debug=args.debug))
    orchestrator.on(*EventName, handler=print_event)

    worker = threading.Thread(target=orchestrator.perform, daemon=True)
    worker.start()
    try:
        while worker.is_alive():
            worker.join(0.5)
    except KeyboardInterrupt:
        orchestrator.cancel()
        worker.join()

    print(f"Done. state={orchestrator.state.value}", file=sys.stderr)


if __name__ == "__main__":
    main()
