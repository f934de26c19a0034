from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, WebSocket, WebSocketDisconnect, status

from roomvars.api.deps import get_room_registry
from roomvars.api.models import (
    RoomCreateRequest,
    RoomListResponse,
    RoomResponse,
    SetVariableRequest,
    SetVariableResponse,
    VariablesResponse,
)
from roomvars.errors import AuthorizationDeniedError, PersistenceError, UnknownVariableError
from roomvars.rooms import Room, RoomRegistry
from roomvars.websocket_hub import hub

logger = logging.getLogger(__name__)

router = APIRouter()


def _require_room(registry: RoomRegistry, room_id: str) -> Room:
    room = registry.get(room_id)
    if room is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Room not found")
    return room


def _room_response(room: Room) -> RoomResponse:
    return RoomResponse(
        room_id=room.room_id,
        schema_bound=room.schema_bound,
        persisting=room.variables.should_persist(),
        state=room.lifecycle.state_id,
        variables=room.get_variables_for_tags(()),
    )


@router.websocket("/ws/rooms/{room_id}")
async def room_variables_ws(
    websocket: WebSocket,
    room_id: str,
    tags: list[str] = Query(default=[]),
    registry: RoomRegistry = Depends(get_room_registry),
) -> None:
    room = registry.get(room_id)
    if room is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    user_tags = frozenset(tags)
    await hub.connect(room_id, websocket, user_tags)
    try:
        await websocket.send_json({"type": "variables", "room_id": room_id, "variables": room.get_variables_for_tags(user_tags)})
        # Keep the socket open; client can optionally send pings.
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        await hub.disconnect(room_id, websocket)
    except Exception:
        await hub.disconnect(room_id, websocket)
        raise


@router.get("/healthcheck")
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


@router.post("/rooms", response_model=RoomResponse, status_code=status.HTTP_201_CREATED)
async def create_room_route(
    payload: RoomCreateRequest,
    registry: RoomRegistry = Depends(get_room_registry),
) -> RoomResponse:
    try:
        room = await registry.get_or_create(payload.room_id, payload.map)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e)) from e
    except PersistenceError as e:
        logger.exception("Could not load saved variables of room %s", payload.room_id)
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e)) from e
    return _room_response(room)


@router.get("/rooms", response_model=RoomListResponse)
async def list_rooms_route(registry: RoomRegistry = Depends(get_room_registry)) -> RoomListResponse:
    return RoomListResponse(room_ids=registry.room_ids())


@router.get("/rooms/{room_id}", response_model=RoomResponse)
async def get_room_route(room_id: str, registry: RoomRegistry = Depends(get_room_registry)) -> RoomResponse:
    return _room_response(_require_room(registry, room_id))


@router.delete("/rooms/{room_id}", status_code=status.HTTP_204_NO_CONTENT)
async def close_room_route(room_id: str, registry: RoomRegistry = Depends(get_room_registry)) -> None:
    if not await registry.close(room_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Room not found")
    await hub.close_room(room_id)


@router.get("/rooms/{room_id}/variables", response_model=VariablesResponse)
async def get_variables_route(
    room_id: str,
    tags: list[str] = Query(default=[]),
    registry: RoomRegistry = Depends(get_room_registry),
) -> VariablesResponse:
    room = _require_room(registry, room_id)
    return VariablesResponse(room_id=room_id, variables=room.get_variables_for_tags(frozenset(tags)))


@router.put("/rooms/{room_id}/variables/{name}", response_model=SetVariableResponse)
async def set_variable_route(
    room_id: str,
    name: str,
    payload: SetVariableRequest,
    registry: RoomRegistry = Depends(get_room_registry),
) -> SetVariableResponse:
    room = _require_room(registry, room_id)
    user = payload.user.to_user()
    try:
        readable_by = room.set_variable(name, payload.value, user)
    except AuthorizationDeniedError as e:
        logger.info(
            "Denied write of %r in room %s: user %r lacks tag %r (has %s)",
            e.variable,
            room_id,
            e.user_name,
            e.required_tag,
            ", ".join(e.user_tags) or "no tags",
        )
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e)) from e
    except UnknownVariableError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e)) from e
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e)) from e

    await hub.broadcast_variable(room_id, name=name, value=payload.value, readable_by=readable_by)
    return SetVariableResponse(name=name, value=payload.value, readable_by=readable_by)
