"""Admin console endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Request

from ...consoles.routing import ConsoleKind, resolve_console
from ...schemas.snapshots import AdminSnapshot
from .mobile import field_agent_snapshot

router = APIRouter(tags=["admin"])


@router.get("/", response_model=AdminSnapshot)
async def admin_view(request: Request) -> AdminSnapshot:
    return request.app.state.admin_console.snapshot()


@router.get("/{path:path}", include_in_schema=False)
async def any_path(path: str, request: Request):
    if resolve_console(request.url.path) is ConsoleKind.FIELD_AGENT:
        return await field_agent_snapshot(request)
    return request.app.state.admin_console.snapshot()
