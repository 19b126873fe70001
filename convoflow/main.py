"""CLI entry point."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Iterable, Sequence, TextIO

from .core import (
    Config,
    ConfigError,
    ContextManager,
    ConversationHistory,
    ConversationRouter,
    FlowOrchestrator,
    FlowTriggerDetector,
    QueryClassifier,
    RoutedMessage,
    SessionStore,
    load_config,
)

LOGGER = logging.getLogger(__name__)

EXIT_COMMANDS = frozenset({"exit", "quit"})


def cli(argv: Sequence[str] | None = None) -> int:
    """Command-line entry point."""
    parser = argparse.ArgumentParser(
        prog="convoflow",
        description="convoflow - guided conversation flows over a local session store",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to convoflow.yaml (default: ./convoflow.yaml)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    subparsers.add_parser(
        "chat",
        help="Chat interactively on stdin (default)",
    )

    stats_parser = subparsers.add_parser(
        "stats",
        help="Replay a transcript file and print session and memory statistics",
    )
    stats_parser.add_argument("transcript", type=Path, help="File with one user message per line")

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        config = load_config(args.config)
        logging.getLogger().setLevel(getattr(logging, config.log_level, logging.INFO))
        router, store, context_manager = build_router(config)

        if args.command == "stats":
            return _run_stats(args.transcript, router, store, context_manager)
        return _run_chat(router, store, sys.stdin, sys.stdout)
    except ConfigError as exc:
        LOGGER.error("Configuration error: %s", exc)
        return 1
    except KeyboardInterrupt:
        LOGGER.info("Interrupted by user")
        return 130


def build_router(config: Config):
    """Wire the store, context manager, orchestrator and router from ``config``."""
    store = SessionStore(session_defaults=config.session)
    context_manager = ContextManager(store, config.context)
    history = ConversationHistory(store)
    orchestrator = FlowOrchestrator(store, history, config.flows)
    triggers = FlowTriggerDetector(store, orchestrator)
    router = ConversationRouter(
        store,
        context_manager,
        QueryClassifier(),
        orchestrator,
        triggers,
        config.knowledge_entries,
    )
    LOGGER.info("Loaded %s knowledge entr(ies)", len(config.knowledge_entries))
    return router, store, context_manager


def _run_chat(router: ConversationRouter, store: SessionStore, stdin: TextIO, stdout: TextIO) -> int:
    session = store.create()
    LOGGER.info("Started session %s; type 'exit' to quit", session.id)
    for line in stdin:
        text = line.strip()
        if not text:
            continue
        if text.lower() in EXIT_COMMANDS:
            break
        routed = router.handle_message(session.id, text)
        if routed is None:
            stdout.write("Sorry, something went wrong handling that message.\n")
            continue
        for reply in _render(routed):
            stdout.write(reply + "\n")
        stdout.flush()
    return 0


def _run_stats(
    transcript: Path,
    router: ConversationRouter,
    store: SessionStore,
    context_manager: ContextManager,
) -> int:
    try:
        lines = transcript.read_text(encoding="utf-8").splitlines()
    except OSError as exc:
        LOGGER.error("Failed to read transcript %s: %s", transcript, exc)
        return 1

    session = store.create()
    handled = sum(
        1 for text in (line.strip() for line in lines) if text and router.handle_message(session.id, text)
    )

    session_stats = store.stats()
    memory = context_manager.memory_stats()
    status = router.flow_status(session.id)
    print(f"Messages handled: {handled}")
    print(f"Sessions: {session_stats['total_sessions']} total, {session_stats['active_sessions']} active")
    print(
        f"Memory: {memory.total_messages} message(s), "
        f"{memory.avg_messages_per_session} per session, ~{memory.rough_size_estimate}"
    )
    if status:
        print(f"Flow: {status.mode}")
    summary = context_manager.summary(session.id)
    if summary:
        print(f"Summary: {summary.summary} ({summary.timespan})")
    return 0


def _render(routed: RoutedMessage) -> Iterable[str]:
    if routed.replies:
        for reply in routed.replies:
            yield reply.content
        return
    suggestions = routed.analysis.suggested_entries
    if suggestions:
        yield suggestions[0].answer
        return
    yield f"(understood as {routed.analysis.classification.intent.value})"


if __name__ == "__main__":
    raise SystemExit(cli())
