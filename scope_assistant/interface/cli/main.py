"""CLI for the grounding pipeline.

Commands:
    retrieve  --document ID --query TEXT [--method hybrid] [--limit 20]
    ask       --document ID --user ID --message TEXT [--session ID] [--stream]
    serve     [--host 0.0.0.0] [--port 8000]

The interface layer stays thin: parse args, call a use case, format output.
"""

from __future__ import annotations

import argparse
import sys
from collections.abc import Sequence

from scope_assistant.application.dto.converse_dto import ConverseRequest
from scope_assistant.application.dto.retrieve_dto import RetrieveRequest
from scope_assistant.config.compose import Container, build_container
from scope_assistant.infrastructure.logging import configure_logging


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="scope-assistant")
    sub = parser.add_subparsers(dest="command", required=True)

    r = sub.add_parser("retrieve", help="Rank passages of a document for a query")
    r.add_argument("--document", required=True)
    r.add_argument("--query", required=True)
    r.add_argument("--method", choices=["vector", "keyword", "hybrid"], default="hybrid")
    r.add_argument("--limit", type=int, default=20)

    a = sub.add_parser("ask", help="Ask a grounded question about a document")
    a.add_argument("--document", required=True)
    a.add_argument("--user", required=True)
    a.add_argument("--message", required=True)
    a.add_argument("--session", default=None)
    a.add_argument("--stream", action="store_true", help="Print tokens as they arrive")

    s = sub.add_parser("serve", help="Run the HTTP API")
    s.add_argument("--host", default="0.0.0.0")
    s.add_argument("--port", type=int, default=8000)
    return parser


def cmd_retrieve(container: Container, args: argparse.Namespace) -> int:
    uc = container.get_retrieve_use_case()
    result = uc.execute(
        RetrieveRequest(
            query=args.query, document_id=args.document, method=args.method, limit=args.limit
        )
    )
    if not result.ok or result.value is None:
        print(f"[ERROR] {type(result.error).__name__}: {result.error}")
        return 1
    outcome = result.value
    print(f"method={outcome.method.value} results={len(outcome.results)}")
    for i, r in enumerate(outcome.results, 1):
        print(f"[{i}] {r.passage.section_title} ({r.passage_id}) weight={r.similarity:.4f}")
    return 0


def cmd_ask(container: Container, args: argparse.Namespace) -> int:
    uc = container.get_converse_use_case()
    req = ConverseRequest(
        message=args.message,
        document_id=args.document,
        user_id=args.user,
        session_id=args.session,
    )

    if args.stream:
        opened = uc.open_stream(req)
        if not opened.ok or opened.value is None:
            print(f"[ERROR] {type(opened.error).__name__}: {opened.error}")
            return 1
        sources = []
        failed = False
        for event in opened.value.events:
            if event.done:
                sources = event.sources or []
                failed = event.error is not None
            else:
                print(event.chunk, end="", flush=True)
        print()
        session_id = opened.value.session_id
    else:
        result = uc.execute(req)
        if not result.ok or result.value is None:
            print(f"[ERROR] {type(result.error).__name__}: {result.error}")
            return 1
        print(result.value.content)
        sources = result.value.sources
        session_id = result.value.session_id
        failed = result.value.failed

    print("\n" + "=" * 80)
    print(f"SOURCES (session {session_id}):")
    print("=" * 80)
    for i, c in enumerate(sources, 1):
        print(f"[{i}] {c.section_title}: {c.preview}")
    return 1 if failed else 0


def cmd_serve(container: Container, args: argparse.Namespace) -> int:
    import uvicorn

    from scope_assistant.interface.http.api import create_app

    uvicorn.run(create_app(container), host=args.host, port=args.port)
    return 0


def main(argv: Sequence[str] | None = None, container: Container | None = None) -> int:
    args = build_parser().parse_args(argv)
    container = container or build_container()
    configure_logging(container.settings.log_level, container.settings.log_json)

    handlers = {"retrieve": cmd_retrieve, "ask": cmd_ask, "serve": cmd_serve}
    return handlers[args.command](container, args)


if __name__ == "__main__":
    sys.exit(main())
