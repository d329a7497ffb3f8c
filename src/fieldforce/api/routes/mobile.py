"""Field agent console endpoints."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Query, Request

from ...consoles.field_agent import FieldAgentConsole
from ...schemas.snapshots import FieldAgentSnapshot

router = APIRouter(tags=["field-agent"])


async def field_agent_snapshot(request: Request, salesperson_id: Optional[int] = None) -> FieldAgentSnapshot:
    """Build a console for this request, load it and return its snapshot."""
    console = FieldAgentConsole(request.app.state.field_agent_store, request.app.state.geolocation)
    try:
        await console.load()
        if salesperson_id is not None:
            await console.select(salesperson_id)
        return console.snapshot()
    finally:
        await console.close()


@router.get("/mobile", response_model=FieldAgentSnapshot)
@router.get("/mobile/", response_model=FieldAgentSnapshot, include_in_schema=False)
async def mobile_view(
    request: Request,
    salesperson_id: Optional[int] = Query(default=None, description="Identity to report as."),
) -> FieldAgentSnapshot:
    return await field_agent_snapshot(request, salesperson_id)
