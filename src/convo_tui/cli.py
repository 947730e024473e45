"""CLI entry point for convo-tui."""

import argparse
import logging
import os
import sys

import convo_tui.io.logging_setup
from convo_tui.app.session_service import HttpSessionService
from convo_tui.tui.app import ConvoApp

logger = logging.getLogger(__name__)

DEFAULT_SERVER = "http://127.0.0.1:4096"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Terminal view of a coding-agent conversation")
    parser.add_argument(
        "--server",
        type=str,
        default=os.environ.get("CONVO_TUI_SERVER", DEFAULT_SERVER),
        help=f"Agent server base URL (default: $CONVO_TUI_SERVER or {DEFAULT_SERVER})",
    )
    parser.add_argument("--session", type=str, required=True, help="Session id to open")
    parser.add_argument(
        "--no-settings",
        action="store_true",
        help="Ignore and never write the settings file",
    )
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    log_runtime = convo_tui.io.logging_setup.configure(session_name=args.session)
    logger.info("convo-tui starting: server=%s session=%s", args.server, args.session)

    app = ConvoApp(
        service=HttpSessionService(args.server),
        session_id=args.session,
        persist_settings=not args.no_settings,
    )
    app.run()

    logger.info("convo-tui exited")
    print(f"Log file: {log_runtime.file_path}", file=sys.stderr)


if __name__ == "__main__":
    main()
