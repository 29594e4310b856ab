"""Command line entry-point for the RFP builder."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, Optional, cast

from .config import AppSettings
from .document import assemble_document
from .models import AnswerRecord
from .sessions import RfpSession
from .store import LeadRepository
from .topics import is_ready_to_complete

TERMINATION_TOKENS = {"exit", "quit", "종료"}


def _parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="rfp-builder",
        description="Interview a client and draft an RFP document.",
        epilog="Subcommands: 'serve' runs the HTTP API, 'render' prints a document.",
    )
    parser.add_argument(
        "--no-save",
        action="store_true",
        help="Do not persist the session to the archive or Redis.",
    )
    parser.add_argument(
        "--output-dir",
        type=Path,
        help="Directory for the exported RFP. Overrides RFP_OUTPUT_DIR.",
    )
    return parser.parse_args(argv)


def _parse_render_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="rfp-builder render",
        description="Render the template RFP for a saved answer record.",
    )
    parser.add_argument("answers", type=Path, help="Path to an answers JSON file")
    parser.add_argument(
        "-o",
        "--output",
        type=Path,
        help="Write the document here instead of printing it.",
    )
    return parser.parse_args(argv)


def load_answers(path: Path) -> AnswerRecord:
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise SystemExit(f"Unable to read {path}: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise SystemExit(f"{path} is not valid JSON: {exc}") from exc
    if not isinstance(payload, dict):
        raise SystemExit(f"{path} must contain a JSON object of answers.")
    record = cast(Dict[str, Any], payload)
    # Accept both a bare answer record and a saved session snapshot.
    nested = record.get("answers")
    if isinstance(nested, dict):
        record = cast(Dict[str, Any], nested)
    return AnswerRecord.from_dict(record)


def run_render_cli(argv: list[str]) -> None:
    args = _parse_render_args(argv)
    document = assemble_document(load_answers(args.answers))
    if args.output is None:
        print(document.text)  # noqa: T201 - CLI output
        return
    args.output.parent.mkdir(parents=True, exist_ok=True)
    args.output.write_text(document.text, encoding="utf-8")
    print(f"RFP saved to: {args.output}")  # noqa: T201


async def run_interview(session: RfpSession) -> Optional[str]:
    """Conduct the interview in the terminal and return the document text."""

    print()  # noqa: T201 - CLI UX newline
    print(f"RFP Builder: {session.kickoff()}")  # noqa: T201
    while not session.completed:
        try:
            answer = input("You: ")  # noqa: PLW1514 - intentional CLI input
        except EOFError:
            break
        if answer.strip().lower() in TERMINATION_TOKENS:
            break
        for update in await session.handle_user_message(answer):
            print()  # noqa: T201
            print(f"RFP Builder: {update}")  # noqa: T201

    if session.document is not None:
        return session.document.text
    if not is_ready_to_complete(session.state.answers):
        print("Interview ended before enough topics were covered.")  # noqa: T201
        return None
    document = await session.finalize()
    print()  # noqa: T201
    print(document.text)  # noqa: T201
    if session.document_path is not None:
        print(f"RFP saved to: {session.document_path}")  # noqa: T201
    return document.text


def run_cli(argv: Optional[list[str]] = None) -> None:
    """Entry-point invoked from ``python -m rfp_builder``."""

    arg_list = list(argv) if argv is not None else sys.argv[1:]
    if arg_list:
        command = arg_list[0]
        if command == "serve":
            from .api import main as serve_main

            serve_main(arg_list[1:])
            return
        if command == "render":
            run_render_cli(arg_list[1:])
            return

    args = _parse_args(arg_list)
    logging.basicConfig(level=logging.WARNING)
    try:
        settings = AppSettings.load()
    except RuntimeError as exc:
        raise SystemExit(f"Invalid configuration: {exc}") from exc
    repository = None
    if not args.no_save:
        repository = LeadRepository(settings.archive_log, settings.redis_url)
    session = RfpSession.create(settings, repository=repository)
    if args.output_dir is not None:
        session.output_dir = args.output_dir
    asyncio.run(run_interview(session))


if __name__ == "__main__":  # pragma: no cover - manual execution hook
    run_cli()
