"""Route group exports."""

from . import admin, mobile

__all__ = ["admin", "mobile"]
