"""Council endpoints - CRUD plus a REST chat turn"""

import logging

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from aicouncil.api.deps import get_current_user
from aicouncil.db import get_db, User, CouncilStatus
from aicouncil.schemas import CouncilCreate, CouncilUpdate, CouncilMessageCreate, ok
from aicouncil.services.council_chat_service import CouncilChatService
from aicouncil.services.council_service import CouncilService, council_to_dict, message_to_dict
from aicouncil.services.errors import CouncilAppError, TurnFailedError
from aicouncil.services.llm_service import LLMService, get_llm_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/councils", tags=["Councils"])


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_council(
    council_data: CouncilCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    council = await CouncilService(db).create(
        current_user.id,
        council_data.name,
        council_data.description,
        council_data.agent_ids,
        council_data.custom_prompts,
    )
    return ok(council_to_dict(council), message="Council created successfully")


@router.get("")
async def list_councils(
    council_status: CouncilStatus = Query(CouncilStatus.ACTIVE, alias="status"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    rows = await CouncilService(db).list_for_user(current_user.id, council_status)
    return ok(
        [council_to_dict(council, count) for council, count in rows],
        message=f"Found {len(rows)} councils",
    )


@router.get("/{council_id}")
async def get_council(
    council_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Council with its full transcript, oldest message first"""
    council = await CouncilService(db).get_with_messages(council_id, current_user.id)
    data = council_to_dict(council)
    data["messages"] = [message_to_dict(m) for m in council.messages]
    return ok(data)


@router.put("/{council_id}")
async def update_council(
    council_id: str,
    update_data: CouncilUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    council = await CouncilService(db).update(
        council_id, current_user.id, name=update_data.name, status=update_data.status
    )
    return ok(council_to_dict(council), message="Council updated successfully")


@router.delete("/{council_id}")
async def delete_council(
    council_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await CouncilService(db).delete(council_id, current_user.id)
    return ok(message="Council deleted successfully")


@router.post("/{council_id}/messages")
async def send_council_message(
    council_id: str,
    message: CouncilMessageCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    llm: LLMService = Depends(get_llm_service),
):
    """
    Run one council turn without a socket.

    If an agent fails part way, the replies already persisted are returned
    in `data` with a 502.
    """
    council = await CouncilService(db).get(council_id, current_user.id)
    chat = CouncilChatService(db, llm)

    try:
        turn = await chat.respond_to_message(council, message.content)
    except TurnFailedError as e:
        return JSONResponse(
            status_code=status.HTTP_502_BAD_GATEWAY,
            content={
                "success": False,
                "error": e.cause.message if isinstance(e.cause, CouncilAppError) else e.message,
                "data": {
                    "responses": [r.to_dict() for r in e.completed],
                    "failedSlot": e.failed_slot,
                },
            },
        )

    return ok(
        {
            "userMessage": message_to_dict(turn.user_message),
            "responses": [r.to_dict() for r in turn.responses],
        },
        message=f"All {len(turn.responses)} agents responded",
    )
