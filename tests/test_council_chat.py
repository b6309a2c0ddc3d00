"""
Tests for council persistence and the sequential four-agent turn.
"""

import pytest
from sqlalchemy import select

from aicouncil.db.models import CouncilMessage, CouncilStatus, MessageRole
from aicouncil.services.council_chat_service import (
    CouncilChatService,
    TurnResult,
    TurnState,
    build_user_prompt,
)
from aicouncil.services.council_service import CouncilService, created_message
from aicouncil.services.errors import (
    ForbiddenError,
    LLMServiceError,
    NotFoundError,
    TurnFailedError,
    ValidationError,
)

AGENT_IDS = ["agent-coder", "agent-strategist", "agent-writer", "agent-marketer"]
AGENT_NAMES = ["CodeMaster", "StrategyPro", "WordSmith", "MarketGenius"]


@pytest.fixture
def councils(db_session):
    return CouncilService(db_session)


@pytest.fixture
def chat(db_session, fake_llm):
    return CouncilChatService(db_session, fake_llm)


async def make_council(councils, user, customs=None):
    return await councils.create(
        user.id,
        "Launch Team",
        "Help me launch a SaaS product for small bakeries",
        AGENT_IDS,
        customs,
    )


async def transcript(db_session, council_id):
    result = await db_session.execute(
        select(CouncilMessage)
        .where(CouncilMessage.council_id == council_id)
        .order_by(CouncilMessage.created_at)
    )
    return list(result.scalars().all())


# ── Council persistence ─────────────────────────────────────────────

class TestCouncilService:
    @pytest.mark.asyncio
    async def test_create_writes_system_greeting(self, councils, user, db_session):
        council = await make_council(councils, user)

        assert council.agent_ids == AGENT_IDS
        assert council.status == CouncilStatus.ACTIVE.value

        messages = await transcript(db_session, council.id)
        assert len(messages) == 1
        assert messages[0].role == MessageRole.SYSTEM.value
        assert messages[0].content == created_message("Launch Team")

    @pytest.mark.asyncio
    async def test_create_rejects_unknown_agent(self, councils, user):
        with pytest.raises(ValidationError) as exc_info:
            await councils.create(
                user.id, "Bad", "A council with one unknown agent in it",
                ["agent-coder", "agent-nope", "agent-writer", "agent-marketer"],
            )
        assert exc_info.value.message == "Agent not found: agent-nope"

    @pytest.mark.asyncio
    async def test_create_requires_four_agents(self, councils, user):
        with pytest.raises(ValidationError):
            await councils.create(user.id, "Small", "Only three agents here, not enough", AGENT_IDS[:3])

    @pytest.mark.asyncio
    async def test_ownership(self, councils, user, other_user):
        council = await make_council(councils, user)
        with pytest.raises(ForbiddenError):
            await councils.get(council.id, other_user.id)
        with pytest.raises(NotFoundError):
            await councils.get("missing", user.id)

    @pytest.mark.asyncio
    async def test_soft_delete_hides_from_active_list(self, councils, user):
        kept = await make_council(councils, user)
        removed = await make_council(councils, user)

        await councils.delete(removed.id, user.id)

        active = await councils.list_for_user(user.id)
        assert [c.id for c, _ in active] == [kept.id]
        assert active[0][1] == 1  # system greeting

        deleted = await councils.list_for_user(user.id, CouncilStatus.DELETED)
        assert [c.id for c, _ in deleted] == [removed.id]
        assert (await councils.get(removed.id, user.id)).status == "DELETED"

    @pytest.mark.asyncio
    async def test_update_name_and_status(self, councils, user):
        council = await make_council(councils, user)
        updated = await councils.update(council.id, user.id, name="Renamed", status=CouncilStatus.ARCHIVED)
        assert updated.name == "Renamed"
        assert updated.status == "ARCHIVED"

    @pytest.mark.asyncio
    async def test_custom_prompt_replaces_default(self, councils, user):
        council = await make_council(councils, user, ["Only answer in haiku.", None, "", None])
        slots = councils.council_agents(council)
        assert [s.slot for s in slots] == [1, 2, 3, 4]
        assert slots[0].system_prompt == "Only answer in haiku."
        assert slots[1].system_prompt == slots[1].agent.council_prompt()
        assert council.agent3_custom is None


# ── Turn state machine ──────────────────────────────────────────────

class TestTurnState:
    def test_valid_path(self):
        turn = TurnResult(council_id="c1")
        turn.advance(TurnState.PERSIST_USER_MESSAGE)
        for _ in range(4):
            turn.advance(TurnState.GENERATE_AGENT_REPLY)
            turn.advance(TurnState.PERSIST_AGENT_REPLY)
        turn.advance(TurnState.TURN_COMPLETE)
        assert turn.state == TurnState.TURN_COMPLETE

    def test_cannot_skip_persisting_user_message(self):
        turn = TurnResult(council_id="c1")
        with pytest.raises(RuntimeError):
            turn.advance(TurnState.GENERATE_AGENT_REPLY)

    def test_failed_is_terminal(self):
        turn = TurnResult(council_id="c1")
        turn.advance(TurnState.FAILED)
        with pytest.raises(RuntimeError):
            turn.advance(TurnState.PERSIST_USER_MESSAGE)

    def test_user_prompt_digest(self):
        assert build_user_prompt("Hi", []) == 'The user said: "Hi"\n\nProvide your perspective and advice.'


# ── Council turn ────────────────────────────────────────────────────

class TestCouncilTurn:
    @pytest.mark.asyncio
    async def test_four_replies_in_slot_order(self, chat, councils, user, fake_llm, db_session):
        council = await make_council(councils, user)

        result = await chat.respond_to_message(council, "How do I launch my SaaS?")

        assert result.state == TurnState.TURN_COMPLETE
        assert [r.slot for r in result.responses] == [1, 2, 3, 4]
        assert [r.agent_name for r in result.responses] == AGENT_NAMES
        assert [r.content for r in result.responses] == [f"Reply number {i}" for i in range(1, 5)]

        messages = await transcript(db_session, council.id)
        assert [m.role for m in messages] == ["SYSTEM", "USER", "AGENT", "AGENT", "AGENT", "AGENT"]
        assert [m.agent_id for m in messages[2:]] == AGENT_IDS
        assert messages[2].tokens_used == 100


    @pytest.mark.asyncio
    async def test_each_agent_sees_earlier_replies(self, chat, councils, user, fake_llm):
        council = await make_council(councils, user)
        await chat.respond_to_message(council, "How do I launch my SaaS?")

        assert len(fake_llm.calls) == 4
        for index, call in enumerate(fake_llm.calls):
            history = call["history"]
            # Greeting from the transcript, then the new message, then prior replies
            assert history[0] == {
                "role": "assistant",
                "content": f"[System]: {created_message('Launch Team')}",
            }
            assert history[1] == {"role": "user", "content": "[User]: How do I launch my SaaS?"}
            prior = history[2:]
            assert len(prior) == index
            assert [p["content"] for p in prior] == [
                f"[{AGENT_NAMES[i]}]: Reply number {i + 1}" for i in range(index)
            ]
            assert call["user_prompt"].startswith('The user said: "How do I launch my SaaS?"')

        assert "Other agents have responded" not in fake_llm.calls[0]["user_prompt"]
        assert "- CodeMaster: Reply number 1" in fake_llm.calls[3]["user_prompt"]

    @pytest.mark.asyncio
    async def test_agent_settings_are_passed(self, chat, councils, user, fake_llm):
        council = await make_council(councils, user)
        await chat.respond_to_message(council, "Hello council")

        slots = councils.council_agents(council)
        for call, slot in zip(fake_llm.calls, slots):
            assert call["system_prompt"] == slot.system_prompt
            assert call["model"] == slot.agent.model
            assert call["temperature"] == slot.agent.temperature

    @pytest.mark.asyncio
    async def test_second_turn_history_uses_speaker_labels(self, chat, councils, user, fake_llm):
        council = await make_council(councils, user)
        await chat.respond_to_message(council, "First question")
        await chat.respond_to_message(council, "Second question")

        history = fake_llm.calls[4]["history"]
        assert history[1] == {"role": "user", "content": "[You]: First question"}
        assert history[2] == {"role": "assistant", "content": "[CodeMaster]: Reply number 1"}
        assert history[6] == {"role": "user", "content": "[User]: Second question"}

    @pytest.mark.asyncio
    async def test_failure_keeps_earlier_replies(self, chat, councils, user, fake_llm, db_session):
        council = await make_council(councils, user)
        fake_llm.fail_on_call = 3

        with pytest.raises(TurnFailedError) as exc_info:
            await chat.respond_to_message(council, "How do I launch my SaaS?")

        error = exc_info.value
        assert error.failed_slot == 3
        assert [r.agent_id for r in error.completed] == AGENT_IDS[:2]
        assert isinstance(error.cause, LLMServiceError)
        assert error.status_code == 502

        messages = await transcript(db_session, council.id)
        assert [m.role for m in messages] == ["SYSTEM", "USER", "AGENT", "AGENT"]
        # Agent 4 was never asked
        assert len(fake_llm.calls) == 3

    @pytest.mark.asyncio
    async def test_empty_message_rejected(self, chat, councils, user, fake_llm, db_session):
        council = await make_council(councils, user)
        with pytest.raises(ValidationError):
            await chat.respond_to_message(council, "   ")
        assert fake_llm.calls == []
        assert len(await transcript(db_session, council.id)) == 1

    @pytest.mark.asyncio
    async def test_user_message_callback_runs_before_agents(self, chat, councils, user, fake_llm):
        council = await make_council(councils, user)
        seen = []

        async def on_user_message(message):
            seen.append((message.content, len(fake_llm.calls)))

        result = await chat.respond_to_message(council, "  Trim me  ", on_user_message=on_user_message)
        assert seen == [("Trim me", 0)]
        assert result.user_message.role == "USER"
