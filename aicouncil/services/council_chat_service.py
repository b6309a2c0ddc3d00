"""
Council Chat — Sequential four-agent turn orchestration.

One user message produces one reply from each council slot, strictly in
slot order. Each agent sees the recent transcript, the new user message and
every reply already produced earlier in the same turn, so agent 2 builds on
agent 1, agent 3 on 1+2 and agent 4 on 1+2+3.

Each reply is committed before the next agent is asked. There is no
turn-level transaction: if agent N fails, replies 1..N-1 stay persisted, the
failure is raised as TurnFailedError carrying them, and later slots never
run.

Usage:
    chat = CouncilChatService(db, llm)
    result = await chat.respond_to_message(council, "How do I launch my SaaS?")
    for reply in result.responses:
        print(reply.agent_name, reply.content)
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from aicouncil.config import settings
from aicouncil.db.models import Council, CouncilMessage, MessageRole
from aicouncil.services.agent_catalog import AgentCatalog, get_agent_catalog
from aicouncil.services.council_service import CouncilAgentSlot, CouncilService
from aicouncil.services.errors import TurnFailedError, ValidationError
from aicouncil.services.llm_service import LLMService

logger = logging.getLogger(__name__)


class TurnState(str, Enum):
    AWAITING_USER_MESSAGE = "awaiting_user_message"
    PERSIST_USER_MESSAGE = "persist_user_message"
    GENERATE_AGENT_REPLY = "generate_agent_reply"
    PERSIST_AGENT_REPLY = "persist_agent_reply"
    TURN_COMPLETE = "turn_complete"
    FAILED = "failed"


_TRANSITIONS = {
    TurnState.AWAITING_USER_MESSAGE: {TurnState.PERSIST_USER_MESSAGE, TurnState.FAILED},
    TurnState.PERSIST_USER_MESSAGE: {TurnState.GENERATE_AGENT_REPLY, TurnState.FAILED},
    TurnState.GENERATE_AGENT_REPLY: {TurnState.PERSIST_AGENT_REPLY, TurnState.FAILED},
    TurnState.PERSIST_AGENT_REPLY: {
        TurnState.GENERATE_AGENT_REPLY,
        TurnState.TURN_COMPLETE,
        TurnState.FAILED,
    },
    TurnState.TURN_COMPLETE: set(),
    TurnState.FAILED: set(),
}


@dataclass
class AgentResponse:
    """One agent's persisted reply within a turn."""
    slot: int
    agent_id: str
    agent_name: str
    content: str
    tokens_used: int
    cost: float
    message_id: str
    created_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "slot": self.slot,
            "agentId": self.agent_id,
            "agentName": self.agent_name,
            "content": self.content,
            "tokensUsed": self.tokens_used,
            "cost": self.cost,
            "messageId": self.message_id,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }


@dataclass
class TurnResult:
    council_id: str
    user_message: Optional[CouncilMessage] = None
    responses: List[AgentResponse] = field(default_factory=list)
    state: TurnState = TurnState.AWAITING_USER_MESSAGE

    def advance(self, new_state: TurnState) -> None:
        if new_state not in _TRANSITIONS[self.state]:
            raise RuntimeError(f"Invalid turn transition {self.state.value} -> {new_state.value}")
        logger.debug(f"[COUNCIL] {self.council_id}: {self.state.value} -> {new_state.value}")
        self.state = new_state


def build_user_prompt(user_message: str, prior: List[AgentResponse]) -> str:
    """The user-turn prompt: the message plus a digest of this turn's earlier replies."""
    prompt = f'The user said: "{user_message}"\n\n'
    if prior:
        digest = "\n".join(f"- {r.agent_name}: {r.content}" for r in prior)
        prompt += f"Other agents have responded:\n{digest}\n\n"
    return prompt + "Provide your perspective and advice."


class CouncilChatService:
    """Runs council turns against the LLM client and persists the transcript."""

    def __init__(
        self,
        db: AsyncSession,
        llm: LLMService,
        catalog: Optional[AgentCatalog] = None,
    ):
        self.db = db
        self.llm = llm
        self.catalog = catalog or get_agent_catalog()
        self.councils = CouncilService(db, self.catalog)

    def _speaker_label(self, message: CouncilMessage) -> str:
        if message.role == MessageRole.USER.value:
            return "You"
        if message.agent_id:
            agent = self.catalog.get_by_id(message.agent_id)
            return agent.name if agent else "Unknown Agent"
        return "System"

    async def load_history(self, council_id: str) -> List[Dict[str, str]]:
        """The most recent transcript messages, oldest first, as role-tagged chat messages."""
        result = await self.db.execute(
            select(CouncilMessage)
            .where(CouncilMessage.council_id == council_id)
            .order_by(CouncilMessage.created_at.desc())
            .limit(settings.chat_history_limit)
        )
        recent = list(result.scalars().all())
        recent.reverse()
        return [
            {
                "role": "user" if m.role == MessageRole.USER.value else "assistant",
                "content": f"[{self._speaker_label(m)}]: {m.content}",
            }
            for m in recent
        ]

    async def save_user_message(self, council: Council, content: str) -> CouncilMessage:
        message = CouncilMessage(
            council_id=council.id,
            role=MessageRole.USER.value,
            content=content,
        )
        self.db.add(message)
        council.updated_at = datetime.utcnow()
        await self.db.commit()
        await self.db.refresh(message)
        return message

    async def _save_agent_reply(
        self, council: Council, agent_id: str, content: str, tokens: int, cost: float
    ) -> CouncilMessage:
        message = CouncilMessage(
            council_id=council.id,
            role=MessageRole.AGENT.value,
            agent_id=agent_id,
            content=content,
            tokens_used=tokens,
            cost=cost,
        )
        self.db.add(message)
        council.updated_at = datetime.utcnow()
        await self.db.commit()
        await self.db.refresh(message)
        return message

    async def _generate(
        self,
        slot: CouncilAgentSlot,
        user_message: str,
        history: List[Dict[str, str]],
        prior: List[AgentResponse],
    ):
        context = list(history)
        context.append({"role": "user", "content": f"[User]: {user_message}"})
        context.extend(
            {"role": "assistant", "content": f"[{r.agent_name}]: {r.content}"} for r in prior
        )
        return await self.llm.complete(
            system_prompt=slot.system_prompt,
            user_prompt=build_user_prompt(user_message, prior),
            history=context,
            model=slot.agent.model,
            temperature=slot.agent.temperature,
        )

    async def respond_to_message(
        self,
        council: Council,
        user_message: str,
        on_user_message: Optional[Callable[[CouncilMessage], Awaitable[None]]] = None,
    ) -> TurnResult:
        """
        Run one council turn.

        The caller is responsible for checking that the requester owns
        `council`. `on_user_message` is awaited right after the user message
        is committed, before any agent is asked.

        Raises:
            ValidationError: empty message
            TurnFailedError: an agent's completion failed; earlier replies
                are in `completed` and remain persisted
        """
        content = (user_message or "").strip()
        if not content:
            raise ValidationError("Message content cannot be empty")

        slots = self.councils.council_agents(council)
        turn = TurnResult(council_id=council.id)

        history = await self.load_history(council.id)

        turn.advance(TurnState.PERSIST_USER_MESSAGE)
        turn.user_message = await self.save_user_message(council, content)
        if on_user_message is not None:
            await on_user_message(turn.user_message)

        for slot in slots:
            turn.advance(TurnState.GENERATE_AGENT_REPLY)
            try:
                completion = await self._generate(slot, content, history, turn.responses)
            except Exception as e:
                turn.advance(TurnState.FAILED)
                logger.error(
                    f"[COUNCIL] Agent {slot.slot} ({slot.agent.id}) failed in council {council.id} "
                    f"after {len(turn.responses)} replies: {e}"
                )
                raise TurnFailedError(
                    f"Agent {slot.agent.name} failed to respond",
                    completed=list(turn.responses),
                    failed_slot=slot.slot,
                    cause=e,
                ) from e

            turn.advance(TurnState.PERSIST_AGENT_REPLY)
            message = await self._save_agent_reply(
                council, slot.agent.id, completion.content, completion.tokens_used, completion.estimated_cost
            )
            turn.responses.append(AgentResponse(
                slot=slot.slot,
                agent_id=slot.agent.id,
                agent_name=slot.agent.name,
                content=completion.content,
                tokens_used=completion.tokens_used,
                cost=completion.estimated_cost,
                message_id=message.id,
                created_at=message.created_at,
            ))

        turn.advance(TurnState.TURN_COMPLETE)
        logger.info(f"[COUNCIL] All {len(turn.responses)} agents responded in council {council.id}")
        return turn
