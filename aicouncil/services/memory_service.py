"""Memory service - owner-scoped CRUD and similarity search for user memories

Every operation takes the caller's user id, which must come from the verified
access token and never from request data. Reads filter by owner in SQL before
anything else happens; single-row operations distinguish a missing row
(NotFoundError) from another user's row (ForbiddenError) without exposing its
content.
"""

import json
import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from aicouncil.config import settings
from aicouncil.db.models import Memory, Council
from aicouncil.services.embedding_service import (
    EmbeddingService,
    cosine_similarity,
    get_embedding_service,
)
from aicouncil.services.errors import ForbiddenError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)


def memory_to_dict(memory: Memory, similarity: Optional[float] = None) -> Dict[str, Any]:
    data = {
        "id": memory.id,
        "content": memory.content,
        "tags": memory.tags,
        "councilId": memory.council_id,
        "createdAt": memory.created_at.isoformat() if memory.created_at else None,
        "updatedAt": memory.updated_at.isoformat() if memory.updated_at else None,
    }
    if similarity is not None:
        data["similarity"] = similarity
    return data


class MemoryService:
    """Service for memory CRUD operations and search"""

    def __init__(self, db: AsyncSession, embeddings: Optional[EmbeddingService] = None):
        self.db = db
        self.embedding_service = embeddings or get_embedding_service()

    def _check_content(self, content: str) -> str:
        content = content.strip() if content else ""
        if not (settings.memory_min_chars <= len(content) <= settings.memory_max_chars):
            raise ValidationError(
                f"Content must be between {settings.memory_min_chars} and "
                f"{settings.memory_max_chars} characters"
            )
        return content

    async def _check_council_owner(self, council_id: str, user_id: str) -> None:
        council = await self.db.get(Council, council_id)
        if council is None:
            raise NotFoundError("Council not found")
        if council.user_id != user_id:
            raise ForbiddenError("Unauthorized: You do not have access to this council")

    async def store(
        self,
        user_id: str,
        content: str,
        tags: Optional[List[str]] = None,
        council_id: Optional[str] = None,
    ) -> Memory:
        """Embed and persist a new memory owned by user_id."""
        content = self._check_content(content)
        if council_id:
            await self._check_council_owner(council_id, user_id)

        embedding = await self.embedding_service.embed(content)

        memory = Memory(
            user_id=user_id,
            content=content,
            embedding_json=EmbeddingService.embedding_to_json(embedding),
            tags_json=json.dumps(list(tags or [])),
            council_id=council_id,
        )
        self.db.add(memory)
        await self.db.commit()
        await self.db.refresh(memory)

        logger.info(f"[MEMORY] Stored memory {memory.id} for user {user_id}")
        return memory

    async def list(self, user_id: str, tags: Optional[List[str]] = None) -> List[Memory]:
        """
        List the user's memories, newest first.

        With tags, only memories sharing at least one of them are returned.
        """
        result = await self.db.execute(
            select(Memory)
            .where(Memory.user_id == user_id)
            .order_by(Memory.created_at.desc())
        )
        memories = list(result.scalars().all())

        if tags:
            wanted = set(tags)
            memories = [m for m in memories if wanted.intersection(m.tags)]
        return memories

    async def get_by_id(self, memory_id: str, user_id: str) -> Memory:
        memory = await self.db.get(Memory, memory_id)
        if memory is None:
            raise NotFoundError("Memory not found")
        if memory.user_id != user_id:
            logger.warning(f"[MEMORY] User {user_id} denied access to memory {memory_id}")
            raise ForbiddenError("Unauthorized: You do not have access to this memory")
        return memory

    async def update(
        self,
        memory_id: str,
        user_id: str,
        content: str,
        tags: Optional[List[str]] = None,
    ) -> Memory:
        """Replace content (re-embedding it) and optionally tags."""
        memory = await self.get_by_id(memory_id, user_id)
        content = self._check_content(content)

        embedding = await self.embedding_service.embed(content)

        memory.content = content
        memory.embedding_json = EmbeddingService.embedding_to_json(embedding)
        if tags is not None:
            memory.tags_json = json.dumps(list(tags))
        memory.updated_at = datetime.utcnow()

        await self.db.commit()
        await self.db.refresh(memory)
        return memory

    async def delete(self, memory_id: str, user_id: str) -> None:
        memory = await self.get_by_id(memory_id, user_id)
        await self.db.delete(memory)
        await self.db.commit()
        logger.info(f"[MEMORY] Deleted memory {memory_id} for user {user_id}")

    async def search(
        self,
        query: str,
        user_id: str,
        limit: Optional[int] = None,
        threshold: Optional[float] = None,
    ) -> List[Tuple[Memory, float]]:
        """
        Linear-scan cosine search over the caller's own memories.

        Cost grows with the user's memory count; there is no index.

        Returns:
            (memory, similarity) pairs, most similar first, at most `limit`,
            none below `threshold`.
        """
        limit = limit if limit is not None else settings.memory_search_limit
        threshold = threshold if threshold is not None else settings.similarity_threshold

        query_embedding = await self.embedding_service.embed(query)

        # Owner filter happens here, before any similarity is computed
        result = await self.db.execute(
            select(Memory)
            .where(Memory.user_id == user_id)
            .order_by(Memory.created_at.desc())
        )

        scored = []
        for memory in result.scalars().all():
            similarity = cosine_similarity(
                query_embedding,
                EmbeddingService.embedding_from_json(memory.embedding_json),
            )
            if similarity >= threshold:
                scored.append((memory, similarity))

        scored.sort(key=lambda pair: pair[1], reverse=True)
        return scored[:limit]

    async def stats(self, user_id: str) -> Dict[str, int]:
        week_ago = datetime.utcnow() - timedelta(days=7)

        total = await self.db.scalar(
            select(func.count()).select_from(Memory).where(Memory.user_id == user_id)
        )
        this_week = await self.db.scalar(
            select(func.count())
            .select_from(Memory)
            .where(Memory.user_id == user_id, Memory.created_at >= week_ago)
        )
        return {
            "totalMemories": total or 0,
            "memoriesThisWeek": this_week or 0,
        }
