"""Explicit per-screen view state.

Each screen has one immutable state value instead of a handful of independent
flags; the transition methods only produce legal combinations (one dialog at
a time, edit dialogs always bound to a salesperson, tracking only with an
identity selected).
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional


class Section(str, Enum):
    MAP = "map"
    SALESPEOPLE = "salespeople"
    VISITS = "visits"
    ORDERS = "orders"
    CLIENTS = "clients"


class Dialog(str, Enum):
    ADD_SALESPERSON = "add_salesperson"
    EDIT_SALESPERSON = "edit_salesperson"
    EDIT_LOCATION = "edit_location"
    ADD_VISIT = "add_visit"
    ADD_ORDER = "add_order"


_NEEDS_SELECTION = {Dialog.EDIT_SALESPERSON, Dialog.EDIT_LOCATION}


@dataclass(frozen=True)
class AdminViewState:
    section: Section = Section.MAP
    dialog: Optional[Dialog] = None
    selected_salesperson_id: Optional[int] = None
    sidebar_open: bool = True

    def __post_init__(self) -> None:
        if self.dialog in _NEEDS_SELECTION and self.selected_salesperson_id is None:
            raise ValueError(f"{self.dialog.value} requires a selected salesperson")
        if self.dialog not in _NEEDS_SELECTION and self.selected_salesperson_id is not None:
            raise ValueError("A salesperson can only be selected while an edit dialog is open")

    def open_dialog(self, dialog: Dialog, salesperson_id: int | None = None) -> "AdminViewState":
        if dialog not in _NEEDS_SELECTION:
            salesperson_id = None
        return replace(self, dialog=dialog, selected_salesperson_id=salesperson_id)

    def close_dialog(self) -> "AdminViewState":
        return replace(self, dialog=None, selected_salesperson_id=None)

    def show(self, section: Section) -> "AdminViewState":
        return replace(self, section=section)

    def toggle_sidebar(self) -> "AdminViewState":
        return replace(self, sidebar_open=not self.sidebar_open)


class Tab(str, Enum):
    LOCATION = "location"
    VISITS = "visits"
    ORDERS = "orders"


class CaptureStatus(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    SUCCESS = "success"
    ERROR = "error"


@dataclass(frozen=True)
class FieldAgentViewState:
    tab: Tab = Tab.LOCATION
    salesperson_id: Optional[int] = None
    capture: CaptureStatus = CaptureStatus.IDLE
    message: str = ""
    current_location: Optional[tuple[float, float]] = None
    tracking: bool = False

    def __post_init__(self) -> None:
        if self.tracking and self.salesperson_id is None:
            raise ValueError("Tracking requires a selected salesperson")

    @property
    def can_capture(self) -> bool:
        return self.salesperson_id is not None and self.capture is not CaptureStatus.LOADING

    def report(self, capture: CaptureStatus, message: str, **changes) -> "FieldAgentViewState":
        return replace(self, capture=capture, message=message, **changes)
