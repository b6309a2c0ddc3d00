"""
Tests for owner-scoped memory storage and similarity search.
"""

import pytest

from aicouncil.services.council_service import CouncilService
from aicouncil.services.embedding_service import EmbeddingService
from aicouncil.services.errors import ForbiddenError, NotFoundError, ValidationError
from aicouncil.services.memory_service import MemoryService, memory_to_dict


@pytest.fixture
def memories(db_session, fake_embeddings):
    return MemoryService(db_session, embeddings=fake_embeddings)


# ── Storage ─────────────────────────────────────────────────────────

class TestStore:
    @pytest.mark.asyncio
    async def test_store_and_get(self, memories, user, fake_embeddings):
        memory = await memories.store(user.id, "  I love hiking in the mountains  ", tags=["hobby"])

        assert memory.content == "I love hiking in the mountains"
        assert memory.tags == ["hobby"]
        assert fake_embeddings.calls == ["I love hiking in the mountains"]

        fetched = await memories.get_by_id(memory.id, user.id)
        data = memory_to_dict(fetched)
        assert data["content"] == "I love hiking in the mountains"
        assert data["councilId"] is None
        assert "similarity" not in data

        stored = EmbeddingService.embedding_from_json(fetched.embedding_json)
        assert len(stored) == fake_embeddings.dimension
        assert any(value != 0.0 for value in stored)

    @pytest.mark.asyncio
    async def test_content_length_bounds(self, memories, user):
        with pytest.raises(ValidationError):
            await memories.store(user.id, "too short")
        with pytest.raises(ValidationError):
            await memories.store(user.id, "x" * 5001)
        assert (await memories.store(user.id, "x" * 10)).content == "x" * 10

    @pytest.mark.asyncio
    async def test_council_must_belong_to_user(self, db_session, memories, user, other_user):
        council = await CouncilService(db_session).create(
            other_user.id, "Bob's council", "A council owned by somebody else entirely",
            ["agent-coder", "agent-strategist", "agent-writer", "agent-marketer"],
        )
        with pytest.raises(ForbiddenError):
            await memories.store(user.id, "Attach me to Bob's council", council_id=council.id)
        with pytest.raises(NotFoundError):
            await memories.store(user.id, "Attach me to a missing council", council_id="missing")

    @pytest.mark.asyncio
    async def test_list_newest_first_and_tag_filter(self, memories, user):
        await memories.store(user.id, "First memory about work", tags=["work"])
        await memories.store(user.id, "Second memory about travel", tags=["travel", "fun"])
        await memories.store(user.id, "Third memory with no tags")

        listed = await memories.list(user.id)
        assert [m.content for m in listed] == [
            "Third memory with no tags",
            "Second memory about travel",
            "First memory about work",
        ]

        tagged = await memories.list(user.id, tags=["work", "fun"])
        assert {m.content for m in tagged} == {"First memory about work", "Second memory about travel"}

    @pytest.mark.asyncio
    async def test_update_reembeds_and_keeps_tags(self, memories, user, fake_embeddings):
        memory = await memories.store(user.id, "Original memory content", tags=["keep"])
        updated = await memories.update(memory.id, user.id, "Rewritten memory content")

        assert updated.content == "Rewritten memory content"
        assert updated.tags == ["keep"]
        assert fake_embeddings.calls[-1] == "Rewritten memory content"

        retagged = await memories.update(memory.id, user.id, "Rewritten memory content", tags=[])
        assert retagged.tags == []

    @pytest.mark.asyncio
    async def test_delete(self, memories, user):
        memory = await memories.store(user.id, "Memory that will be removed")
        await memories.delete(memory.id, user.id)
        with pytest.raises(NotFoundError):
            await memories.get_by_id(memory.id, user.id)

    @pytest.mark.asyncio
    async def test_stats(self, memories, user, other_user):
        await memories.store(user.id, "One memory for the stats")
        await memories.store(user.id, "Two memories for the stats")
        await memories.store(other_user.id, "Someone else's memory here")
        assert await memories.stats(user.id) == {"totalMemories": 2, "memoriesThisWeek": 2}


# ── Ownership ───────────────────────────────────────────────────────

class TestOwnership:
    @pytest.mark.asyncio
    async def test_other_user_is_forbidden_not_missing(self, memories, user, other_user):
        memory = await memories.store(user.id, "Alice's private diary entry")

        with pytest.raises(ForbiddenError):
            await memories.get_by_id(memory.id, other_user.id)
        with pytest.raises(ForbiddenError):
            await memories.update(memory.id, other_user.id, "Bob overwrote this entry")
        with pytest.raises(ForbiddenError):
            await memories.delete(memory.id, other_user.id)

        # Untouched
        assert (await memories.get_by_id(memory.id, user.id)).content == "Alice's private diary entry"

    @pytest.mark.asyncio
    async def test_missing_memory(self, memories, user):
        with pytest.raises(NotFoundError):
            await memories.get_by_id("no-such-memory", user.id)

    @pytest.mark.asyncio
    async def test_list_only_returns_own(self, memories, user, other_user):
        await memories.store(user.id, "Alice remembers this")
        await memories.store(other_user.id, "Bob remembers that")
        assert [m.content for m in await memories.list(other_user.id)] == ["Bob remembers that"]


# ── Search ──────────────────────────────────────────────────────────

class TestSearch:
    @pytest.mark.asyncio
    async def test_search_orders_by_similarity_and_applies_threshold(
        self, memories, user, fake_embeddings
    ):
        fake_embeddings.vectors.update({
            "Exact match memory": [1.0, 0.0, 0.0],
            "Close match memory": [0.9, 0.1, 0.0],
            "Unrelated memory text": [0.0, 0.0, 1.0],
            "query": [1.0, 0.0, 0.0],
        })
        await memories.store(user.id, "Close match memory")
        await memories.store(user.id, "Unrelated memory text")
        await memories.store(user.id, "Exact match memory")

        results = await memories.search("query", user.id, limit=5, threshold=0.7)

        assert [m.content for m, _ in results] == ["Exact match memory", "Close match memory"]
        assert results[0][1] == pytest.approx(1.0)
        assert results[1][1] < 1.0
        assert all(similarity >= 0.7 for _, similarity in results)

    @pytest.mark.asyncio
    async def test_search_limit(self, memories, user):
        for i in range(4):
            await memories.store(user.id, "The same memory text")
        results = await memories.search("The same memory text", user.id, limit=2)
        assert len(results) == 2

    @pytest.mark.asyncio
    async def test_search_never_crosses_users(self, memories, user, other_user):
        await memories.store(user.id, "I love hiking in the mountains")

        assert await memories.search("I love hiking in the mountains", other_user.id) == []
        own = await memories.search("I love hiking in the mountains", user.id)
        assert len(own) == 1
