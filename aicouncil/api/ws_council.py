"""
WebSocket Council Gateway — Real-time council chat rooms.

Protocol (JSON frames, both directions):
  { "event": "<name>", "data": { ... } }

  Client events:
    join_council   { "councilId": "..." }
    send_message   { "councilId": "...", "content": "..." }
    leave_council  { "councilId": "..." }
    ping           {}

  Server events:
    joined_council        { "success": true, "councilId": "...", "councilName": "..." }
    user_message          { "messageId": "...", "content": "...", "createdAt": "..." }
    agent_typing          { "agentNumber": 1, "totalAgents": 4 }
    agent_response        { "agentId", "agentName", "content", "messageId", "tokensUsed", "cost", "slot" }
    all_agents_responded  { "totalResponses": 4 }
    error                 { "message": "..." }
    pong                  {}

Authentication:
  Connect with token as query param: ws://host/api/ws/council?token=JWT_TOKEN
  A missing or invalid token gets an error frame and close code 4001 before
  any event is handled.

Rooms are named "council-<id>"; room broadcasts reach every socket that has
joined. Nothing about a connection is persisted, and disconnecting does not
stop a turn that is already running.
"""

import asyncio
import json
import logging
from typing import Any, Dict, List, Optional, Set

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect, Query

from aicouncil.api.deps import user_from_token
from aicouncil.config import settings
from aicouncil.db import async_session_maker, User
from aicouncil.services.council_chat_service import AgentResponse, CouncilChatService
from aicouncil.services.council_service import CouncilService, SLOT_COUNT
from aicouncil.services.errors import CouncilAppError, TurnFailedError
from aicouncil.services.llm_service import LLMService, get_llm_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["WebSocket Council"])


def room_name(council_id: str) -> str:
    return f"council-{council_id}"


def frame(event: str, data: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    return {"event": event, "data": data or {}}


class RoomManager:
    """Tracks which sockets are in which council room."""

    def __init__(self):
        self._rooms: Dict[str, Set[WebSocket]] = {}

    def join(self, room: str, websocket: WebSocket) -> None:
        self._rooms.setdefault(room, set()).add(websocket)

    def leave(self, room: str, websocket: WebSocket) -> None:
        members = self._rooms.get(room)
        if not members:
            return
        members.discard(websocket)
        if not members:
            del self._rooms[room]

    def leave_all(self, websocket: WebSocket) -> None:
        for room in list(self._rooms):
            self.leave(room, websocket)

    def members(self, room: str) -> List[WebSocket]:
        return list(self._rooms.get(room, ()))

    def rooms_of(self, websocket: WebSocket) -> List[str]:
        return [room for room, members in self._rooms.items() if websocket in members]

    async def broadcast(self, room: str, event: str, data: Optional[Dict[str, Any]] = None) -> None:
        """Send to every socket in the room; sockets that fail to receive are dropped."""
        for websocket in self.members(room):
            try:
                await websocket.send_json(frame(event, data))
            except (WebSocketDisconnect, RuntimeError) as e:
                logger.warning(f"[WS] Dropping dead socket from {room}: {e}")
                self.leave(room, websocket)


def get_room_manager(websocket: WebSocket) -> RoomManager:
    return websocket.app.state.room_manager


def agent_response_payload(response: AgentResponse) -> Dict[str, Any]:
    return {
        "slot": response.slot,
        "agentId": response.agent_id,
        "agentName": response.agent_name,
        "content": response.content,
        "messageId": response.message_id,
        "tokensUsed": response.tokens_used,
        "cost": response.cost,
    }


class CouncilSocketSession:
    """Event handlers for one authenticated connection."""

    def __init__(
        self,
        websocket: WebSocket,
        user: User,
        rooms: RoomManager,
        llm: LLMService,
        pacing_seconds: float,
    ):
        self.websocket = websocket
        self.user_id = user.id
        self.rooms = rooms
        self.llm = llm
        self.pacing_seconds = pacing_seconds

    async def emit(self, event: str, data: Optional[Dict[str, Any]] = None) -> None:
        await self.websocket.send_json(frame(event, data))

    async def error(self, message: str) -> None:
        await self.emit("error", {"message": message})

    async def dispatch(self, event: str, data: Dict[str, Any]) -> None:
        if event == "ping":
            await self.emit("pong")
        elif event == "join_council":
            await self.join_council(data)
        elif event == "send_message":
            await self.send_message(data)
        elif event == "leave_council":
            self.leave_council(data)
        else:
            await self.error(f"Unknown event: {event}")

    async def join_council(self, data: Dict[str, Any]) -> None:
        council_id = str(data.get("councilId") or "")
        try:
            async with async_session_maker() as db:
                council = await CouncilService(db).get(council_id, self.user_id)
        except CouncilAppError as e:
            logger.info(f"[WS] Join refused for user {self.user_id} on council {council_id}: {e.message}")
            await self.error(e.message)
            return

        self.rooms.join(room_name(council_id), self.websocket)
        await self.emit("joined_council", {
            "success": True,
            "councilId": council_id,
            "councilName": council.name,
        })
        logger.info(f"[WS] User {self.user_id} joined council {council_id}")

    def leave_council(self, data: Dict[str, Any]) -> None:
        council_id = str(data.get("councilId") or "")
        self.rooms.leave(room_name(council_id), self.websocket)
        logger.info(f"[WS] User {self.user_id} left council {council_id}")

    async def _emit_replies(self, room: str, responses: List[AgentResponse]) -> None:
        for index, response in enumerate(responses):
            if index and self.pacing_seconds > 0:
                await asyncio.sleep(self.pacing_seconds)
            await self.rooms.broadcast(room, "agent_response", agent_response_payload(response))

    async def send_message(self, data: Dict[str, Any]) -> None:
        council_id = str(data.get("councilId") or "")
        content = data.get("content")

        if not isinstance(content, str) or not content.strip():
            await self.error("Message content cannot be empty")
            return
        if len(content) > settings.max_message_chars:
            await self.error(f"Message too long (max {settings.max_message_chars} characters)")
            return

        room = room_name(council_id)

        async def on_user_message(message) -> None:
            await self.rooms.broadcast(room, "user_message", {
                "messageId": message.id,
                "content": message.content,
                "createdAt": message.created_at.isoformat() if message.created_at else None,
            })
            await self.rooms.broadcast(room, "agent_typing", {
                "agentNumber": 1,
                "totalAgents": SLOT_COUNT,
            })

        try:
            async with async_session_maker() as db:
                council = await CouncilService(db).get(council_id, self.user_id)
                chat = CouncilChatService(db, self.llm)
                turn = await chat.respond_to_message(
                    council, content.strip(), on_user_message=on_user_message
                )
        except TurnFailedError as e:
            # Replies that made it are already persisted; show them before the error
            await self._emit_replies(room, e.completed)
            cause = e.cause.message if isinstance(e.cause, CouncilAppError) else e.message
            await self.error(cause)
            return
        except CouncilAppError as e:
            await self.error(e.message)
            return

        await self._emit_replies(room, turn.responses)
        await self.rooms.broadcast(room, "all_agents_responded", {
            "totalResponses": len(turn.responses),
        })
        logger.info(f"[WS] All {len(turn.responses)} agents responded in council {council_id}")


@router.websocket("/ws/council")
async def ws_council(
    websocket: WebSocket,
    token: Optional[str] = Query(None),
    llm: LLMService = Depends(get_llm_service),
):
    """WebSocket endpoint for council rooms."""
    await websocket.accept()

    async with async_session_maker() as db:
        user = await user_from_token(db, token)

    if user is None:
        await websocket.send_json(frame("error", {"message": "Authentication required"}))
        await websocket.close(code=4001, reason="Unauthorized")
        return

    rooms = get_room_manager(websocket)
    pacing = getattr(websocket.app.state, "emission_pacing_seconds", settings.emission_pacing_seconds)
    session = CouncilSocketSession(websocket, user, rooms, llm, pacing)
    logger.info(f"[WS] Authenticated user: {user.id}")

    try:
        while True:
            raw = await websocket.receive_text()
            try:
                msg = json.loads(raw)
            except json.JSONDecodeError:
                await session.error("Invalid JSON")
                continue
            if not isinstance(msg, dict):
                await session.error("Invalid frame")
                continue

            data = msg.get("data") if isinstance(msg.get("data"), dict) else {}
            try:
                await session.dispatch(str(msg.get("event", "")), data)
            except WebSocketDisconnect:
                raise
            except Exception:
                logger.exception(f"[WS] Failed to handle {msg.get('event')} for {user.id}")
                await session.error("Failed to process message")
    except WebSocketDisconnect:
        logger.info(f"[WS] Client disconnected: {user.id}")
    finally:
        rooms.leave_all(websocket)
