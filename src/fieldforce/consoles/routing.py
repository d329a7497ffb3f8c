"""Path based selection of the console to serve."""

from __future__ import annotations

from enum import Enum


class ConsoleKind(str, Enum):
    ADMIN = "admin"
    FIELD_AGENT = "field_agent"


FIELD_AGENT_PATHS = frozenset({"/mobile", "/mobile/"})


def resolve_console(path: str) -> ConsoleKind:
    """``/mobile`` serves the field agent console, every other path the admin console."""
    return ConsoleKind.FIELD_AGENT if path in FIELD_AGENT_PATHS else ConsoleKind.ADMIN
