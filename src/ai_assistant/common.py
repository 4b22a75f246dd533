"""Common utility functions for the project."""

from enum import Enum
from typing import (
    Any,
    Mapping,
)


class AnsiColors(Enum):
    """
    ANSI color codes for terminal output.
    """

    RED = "\033[91m"
    GREEN = "\033[92m"
    YELLOW = "\033[33m"
    BLUE = "\033[94m"


ROLE_COLORS = {
    "user": AnsiColors.BLUE,
    "model": AnsiColors.YELLOW,
    "system": AnsiColors.GREEN,
}


def colored_print(text: str, color: AnsiColors, *args: Any, **kwargs: Any) -> None:
    """
    Print text in color.

    Args:
        text: The text to print
        color: The color to use (AnsiColors enum)
        args: Additional positional arguments for print
        kwargs: Additional keyword arguments for print
    """
    print(f"{color.value}{text}\033[0m", *args, **kwargs)  # ANSI reset at the end


def format_chat_message(message: Mapping[str, Any]) -> str:
    """
    Render a JSON chat message (``{"role": ..., "parts": [...]}``) as plain text.

    Text parts are joined; function calls and responses are shown as one-line summaries.
    """
    lines = []
    for part in message.get("parts", []):
        kind = part.get("type")
        if kind == "text" and part.get("channel", "content") == "content":
            lines.append(part.get("text", ""))
        elif kind == "function_call":
            call = part.get("function_call", {})
            lines.append(f"-> {call.get('name')}({call.get('args', {})})")
        elif kind == "function_response":
            response = part.get("function_response", {})
            lines.append(f"<- {response.get('name')}: {response.get('response')}")
    return "\n".join(lines)


def print_chat_message(message: Mapping[str, Any]) -> None:
    """Print a chat message in the color of its role (errors in red)."""
    color = (
        AnsiColors.RED
        if message.get("type") == "error"
        else ROLE_COLORS.get(message.get("role", ""), AnsiColors.YELLOW)
    )
    colored_print(format_chat_message(message), color)
