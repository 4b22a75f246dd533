"""
AI Assistant entry point.

This file handles startup concerns (arg-parsing, env setup, logging) and launches the appropriate
interface (API server, or API server plus CLI client).
"""

import argparse
import logging
import os
import sys
from pathlib import Path

from ai_assistant.config import settings

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def _init_logging(level: str) -> None:
    numeric = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=numeric,
        format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
        stream=sys.stdout,
    )
    # Provider requests are logged by the gateway; keep httpx quiet
    logging.getLogger("httpx").setLevel(logging.WARNING)


def _ensure_data_dir() -> bool:
    data_dir = Path(settings.DATA_DIR)
    data_dir.mkdir(parents=True, exist_ok=True)
    return data_dir.is_dir() and os.access(data_dir, os.W_OK)


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------
def main(argv: list[str] | None = None) -> None:
    """
    Main entry point for the AI Assistant application.

    This function sets up the command-line interface, initializes logging, and starts the
    application in either API or CLI mode.
    """
    if argv is None:
        argv = sys.argv[1:]

    parser = argparse.ArgumentParser(description="Run the AI Assistant agent")
    parser.add_argument(
        "--mode",
        choices=["api", "cli"],
        type=str.lower,
        default="api",
        help="Launch the REST API, or the API plus an interactive CLI (default: api)",
    )
    parser.add_argument(
        "--log-level",
        choices=["debug", "info", "warning", "error", "critical"],
        type=str.lower,
        default=settings.LOG_LEVEL,
        help="Logging level (default from env: %(default)s)",
    )
    parser.add_argument(
        "--provider",
        default=settings.PROVIDER,
        help="Preferred provider id (default from env: %(default)s)",
    )
    parser.add_argument(
        "--max-step-retries",
        type=int,
        default=settings.MAX_STEP_RETRIES,
        help="Model re-prompts allowed per step for unknown tool calls (default: %(default)s)",
    )
    args = parser.parse_args(argv)

    if args.max_step_retries < 1:
        parser.error("--max-step-retries must be at least 1")

    # Override settings with command-line arguments
    settings.LOG_LEVEL = args.log_level
    settings.PROVIDER = args.provider
    settings.MAX_STEP_RETRIES = args.max_step_retries

    _init_logging(settings.LOG_LEVEL)

    if settings.STORE == "jsonl" and not _ensure_data_dir():
        logger.error("Data directory is not writable: %s", settings.DATA_DIR)
        sys.exit(1)

    logger.info("Starting AI Assistant [%s mode, provider=%s]", args.mode, settings.PROVIDER)

    # Lazy import so --help works without the web stack importing
    from ai_assistant.api.app import run_api  # pylint: disable=import-outside-toplevel

    if args.mode == "api":
        run_api(host="0.0.0.0", port=settings.API_PORT, reload=settings.DEBUG)
        return

    import threading  # pylint: disable=import-outside-toplevel

    # Start API server in a separate thread
    api_thread = threading.Thread(
        target=run_api,
        kwargs={
            "host": "127.0.0.1",
            "port": settings.API_PORT,
            "reload": False,  # Reload doesn't work well with threading
            "log_level": "warning",
        },
        daemon=True,
    )
    api_thread.start()

    from ai_assistant.client.cli import run_cli  # pylint: disable=import-outside-toplevel

    run_cli()


if __name__ == "__main__":
    main()
