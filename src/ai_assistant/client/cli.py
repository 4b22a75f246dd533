"""CLI client for the AI Assistant API."""

from __future__ import annotations

import logging
import time
from typing import (
    Any,
    Dict,
    Tuple,
    cast,
)

import httpx

from ai_assistant.common import (
    AnsiColors,
    colored_print,
    print_chat_message,
)
from ai_assistant.config import settings

logger = logging.getLogger(__name__)


class ApiError(RuntimeError):
    """Raised when the API cannot be reached or answers with an error."""


# ---------------------------------------------------------------------------
# CLI Client
# ---------------------------------------------------------------------------
def get_user_message() -> Tuple[str, bool]:
    """
    Get a message from the user via standard input.

    Returns:
        Tuple of (user_input, success_flag)
        The success_flag is False if input couldn't be read (e.g., Ctrl+C)
    """
    try:
        user_input = input().strip()
        return user_input, True
    except (EOFError, KeyboardInterrupt):
        return "", False


def call_api(
    method: str,
    endpoint: str,
    data: Dict[str, Any] | None = None,
    max_retries: int = 5,
    client: httpx.Client | None = None,
) -> Any:
    """Make a request to the API and return the decoded JSON body, retrying while it starts."""
    api_url = f"http://localhost:{settings.API_PORT}{endpoint}"
    owns_client = client is None
    http = client or httpx.Client(timeout=settings.REQUEST_TIMEOUT * settings.MAX_AGENT_STEPS)

    try:
        for attempt in range(max_retries):
            try:
                response = http.request(method, api_url, json=data)
                response.raise_for_status()
                return cast(Any, response.json())
            except httpx.ConnectError as exc:
                if attempt == max_retries - 1:
                    raise ApiError(f"Error connecting to API: {exc}") from exc
                retry_delay = 0.5 * (2**attempt)  # exponential backoff: 0.5s, 1s, 2s, 4s...
                logger.info(
                    "API not ready yet, retrying in %.1f seconds (attempt %d/%d)...",
                    retry_delay,
                    attempt + 1,
                    max_retries,
                )
                time.sleep(retry_delay)
            except httpx.HTTPStatusError as exc:
                detail = exc.response.text
                try:
                    detail = exc.response.json().get("detail", detail)
                except ValueError:
                    pass
                raise ApiError(f"API error: {detail}") from exc
            except httpx.HTTPError as exc:
                raise ApiError(f"API request error: {exc}") from exc
    finally:
        if owns_client:
            http.close()

    raise ApiError(f"Failed to connect to API after {max_retries} attempts")


def run_cli() -> None:
    """Run the CLI client that communicates with the API."""
    try:
        session_id = call_api("POST", "/sessions")["session_id"]
    except ApiError as exc:
        colored_print(f"Failed to create a session: {exc}", AnsiColors.RED)
        return

    colored_print(
        "\nAI Assistant shell - type 'reset' to start over, 'exit' or 'quit' (or Ctrl+C) to exit",
        AnsiColors.GREEN,
    )
    while True:
        colored_print("\nYou: ", AnsiColors.BLUE, end="")
        user_msg, ok = get_user_message()
        if not ok:
            break  # Exit if user input couldn't be retrieved (e.g., Ctrl+C)
        if user_msg.lower() in {"exit", "quit"}:
            break
        if not user_msg:
            continue

        try:
            if user_msg.lower() == "reset":
                call_api("DELETE", f"/sessions/{session_id}/messages")
                colored_print("Conversation reset.", AnsiColors.GREEN)
                continue
            response = call_api("POST", f"/sessions/{session_id}/messages", {"message": user_msg})
        except ApiError as exc:
            colored_print(str(exc), AnsiColors.RED)
            continue

        print_chat_message(response["reply"])


if __name__ == "__main__":
    run_cli()
