"""REST API router for the relay.

All endpoints require the shared access token (see :mod:`relay.auth`).
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from pydantic import BaseModel

from relay.auth import require_token
from relay.errors import RelayError, Unreachable
from relay.router import DispatchStatus
from relay.service import RelayService

router = APIRouter(dependencies=[Depends(require_token)])


# ── Helper ────────────────────────────────────────────────────────

def _service(request: Request) -> RelayService:
    return request.app.state.relay


def _http_error(exc: RelayError) -> HTTPException:
    return HTTPException(status_code=exc.status_code, detail=str(exc))


async def _dispatch(service: RelayService, agent_id: str | None, command: str | None, payload: Any) -> dict:
    try:
        result = await service.dispatch(agent_id, command, payload)
        if result is DispatchStatus.UNREACHABLE:
            raise Unreachable("Agent channel is closed")
    except RelayError as e:
        raise _http_error(e)
    return {"message": "command sent"}


# ══════════════════════════════════════════════════════════════════
# AGENTS
# ══════════════════════════════════════════════════════════════════

@router.get("/agents")
async def list_agents(request: Request):
    return [record.to_dict() for record in _service(request).list_agents()]


@router.get("/agents/{agent_id}")
async def get_agent(agent_id: str, request: Request):
    record = _service(request).lookup(agent_id)
    if record is None:
        raise HTTPException(status_code=404, detail="Agent not found")
    return {**record.to_dict(), "connected": record.connected}


@router.delete("/agents/{agent_id}")
async def delete_agent(agent_id: str, request: Request):
    try:
        await _service(request).delete_agent(agent_id)
    except RelayError as e:
        raise _http_error(e)
    return {"message": f"{agent_id} deleted"}


# ══════════════════════════════════════════════════════════════════
# COMMANDS
# ══════════════════════════════════════════════════════════════════

class CommandRequest(BaseModel):
    clientId: str | None = None
    command: str | None = None
    payload: Any = None
    token: str | None = None


@router.get("/commands")
async def send_command_query(
    request: Request,
    clientId: str | None = Query(None),
    command: str | None = Query(None),
    payload: str | None = Query(None),
):
    return await _dispatch(_service(request), clientId, command, payload)


@router.post("/commands")
async def send_command_body(req: CommandRequest, request: Request):
    return await _dispatch(_service(request), req.clientId, req.command, req.payload)


# ══════════════════════════════════════════════════════════════════
# LOGS
# ══════════════════════════════════════════════════════════════════

@router.get("/logs")
async def get_log(
    request: Request,
    category: str | None = Query(None),
    clientId: str | None = Query(None),
):
    try:
        return await _service(request).get_log(category, clientId)
    except RelayError as e:
        raise _http_error(e)
