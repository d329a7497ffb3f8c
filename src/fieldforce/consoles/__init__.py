"""Admin and field agent consoles."""

from .admin import AdminConsole, deny_all
from .field_agent import FieldAgentConsole
from .routing import ConsoleKind, resolve_console

__all__ = ["AdminConsole", "ConsoleKind", "FieldAgentConsole", "deny_all", "resolve_console"]
