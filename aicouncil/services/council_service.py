"""Council service - create, list, update and soft-delete councils"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Sequence, Tuple

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from aicouncil.db.models import Council, CouncilMessage, CouncilStatus, MessageRole
from aicouncil.services.agent_catalog import AgentCatalog, AgentTemplate, get_agent_catalog
from aicouncil.services.errors import ForbiddenError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)

SLOT_COUNT = 4


@dataclass
class CouncilAgentSlot:
    slot: int  # 1-based
    agent: AgentTemplate
    custom_prompt: Optional[str] = None

    @property
    def system_prompt(self) -> str:
        return self.agent.council_prompt(self.custom_prompt)


def created_message(name: str) -> str:
    return f'Council "{name}" created! Your AI team is ready to help you achieve your goal.'


class CouncilService:
    """Owner-scoped council persistence. Councils are never physically deleted."""

    def __init__(self, db: AsyncSession, catalog: Optional[AgentCatalog] = None):
        self.db = db
        self.catalog = catalog or get_agent_catalog()

    async def create(
        self,
        user_id: str,
        name: str,
        description: str,
        agent_ids: Sequence[str],
        custom_prompts: Optional[Sequence[Optional[str]]] = None,
    ) -> Council:
        """
        Create a council with exactly four catalog agents.

        Also appends the SYSTEM greeting that opens every transcript.
        """
        if len(agent_ids) != SLOT_COUNT:
            raise ValidationError(f"A council needs exactly {SLOT_COUNT} agents")
        for agent_id in agent_ids:
            if self.catalog.get_by_id(agent_id) is None:
                raise ValidationError(f"Agent not found: {agent_id}")

        customs = list(custom_prompts or [])
        customs += [None] * (SLOT_COUNT - len(customs))

        council = Council(
            user_id=user_id,
            name=name,
            description=description,
            agent1_id=agent_ids[0],
            agent2_id=agent_ids[1],
            agent3_id=agent_ids[2],
            agent4_id=agent_ids[3],
            agent1_custom=customs[0] or None,
            agent2_custom=customs[1] or None,
            agent3_custom=customs[2] or None,
            agent4_custom=customs[3] or None,
        )
        self.db.add(council)
        await self.db.flush()

        self.db.add(CouncilMessage(
            council_id=council.id,
            role=MessageRole.SYSTEM.value,
            content=created_message(name),
        ))
        await self.db.commit()
        await self.db.refresh(council)

        logger.info(f"[COUNCIL] Created council {council.id} for user {user_id}")
        return council

    async def list_for_user(
        self,
        user_id: str,
        status: CouncilStatus = CouncilStatus.ACTIVE,
    ) -> List[Tuple[Council, int]]:
        """Councils with their message counts, most recently active first."""
        message_count = (
            select(func.count(CouncilMessage.id))
            .where(CouncilMessage.council_id == Council.id)
            .correlate(Council)
            .scalar_subquery()
        )
        result = await self.db.execute(
            select(Council, message_count)
            .where(Council.user_id == user_id, Council.status == CouncilStatus(status).value)
            .order_by(Council.updated_at.desc())
        )
        return [(council, count) for council, count in result.all()]

    async def get(self, council_id: str, user_id: str) -> Council:
        council = await self.db.get(Council, council_id)
        return self._check_owner(council, user_id)

    async def get_with_messages(self, council_id: str, user_id: str) -> Council:
        result = await self.db.execute(
            select(Council)
            .where(Council.id == council_id)
            .options(selectinload(Council.messages))
        )
        return self._check_owner(result.scalar_one_or_none(), user_id)

    @staticmethod
    def _check_owner(council: Optional[Council], user_id: str) -> Council:
        if council is None:
            raise NotFoundError("Council not found")
        if council.user_id != user_id:
            raise ForbiddenError("Unauthorized: You do not have access to this council")
        return council

    async def update(
        self,
        council_id: str,
        user_id: str,
        name: Optional[str] = None,
        status: Optional[CouncilStatus] = None,
    ) -> Council:
        council = await self.get(council_id, user_id)
        if name is not None:
            council.name = name
        if status is not None:
            council.status = CouncilStatus(status).value
        council.updated_at = datetime.utcnow()
        await self.db.commit()
        await self.db.refresh(council)
        return council

    async def delete(self, council_id: str, user_id: str) -> Council:
        """Soft delete: the row and its transcript stay in storage."""
        council = await self.update(council_id, user_id, status=CouncilStatus.DELETED)
        logger.info(f"[COUNCIL] Council {council_id} marked DELETED")
        return council

    def council_agents(self, council: Council) -> List[CouncilAgentSlot]:
        """The four slots in order. Agent ids were validated at creation time."""
        slots = []
        for index, (agent_id, custom) in enumerate(zip(council.agent_ids, council.custom_prompts), start=1):
            agent = self.catalog.get_by_id(agent_id)
            if agent is None:
                raise NotFoundError(f"Agent not found: {agent_id}")
            slots.append(CouncilAgentSlot(slot=index, agent=agent, custom_prompt=custom))
        return slots


def council_to_dict(council: Council, message_count: Optional[int] = None) -> dict:
    data = {
        "id": council.id,
        "name": council.name,
        "description": council.description,
        "agent1Id": council.agent1_id,
        "agent2Id": council.agent2_id,
        "agent3Id": council.agent3_id,
        "agent4Id": council.agent4_id,
        "agent1Custom": council.agent1_custom,
        "agent2Custom": council.agent2_custom,
        "agent3Custom": council.agent3_custom,
        "agent4Custom": council.agent4_custom,
        "status": council.status,
        "createdAt": council.created_at.isoformat() if council.created_at else None,
        "updatedAt": council.updated_at.isoformat() if council.updated_at else None,
    }
    if message_count is not None:
        data["messageCount"] = message_count
    return data


def message_to_dict(message: CouncilMessage) -> dict:
    return {
        "id": message.id,
        "councilId": message.council_id,
        "role": message.role,
        "agentId": message.agent_id,
        "content": message.content,
        "tokensUsed": message.tokens_used,
        "cost": message.cost,
        "createdAt": message.created_at.isoformat() if message.created_at else None,
    }
