"""Memory endpoints

The owning user always comes from the verified access token; request bodies
never carry a user id.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from aicouncil.api.deps import get_current_user
from aicouncil.db import get_db, User
from aicouncil.schemas import MemoryCreate, MemoryUpdate, MemorySearchRequest, ok
from aicouncil.services.embedding_service import EmbeddingService, get_embedding_service
from aicouncil.services.memory_service import MemoryService, memory_to_dict

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/memory", tags=["Memories"])


def get_memory_service(
    db: AsyncSession = Depends(get_db),
    embeddings: EmbeddingService = Depends(get_embedding_service),
) -> MemoryService:
    return MemoryService(db, embeddings)


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_memory(
    memory_data: MemoryCreate,
    current_user: User = Depends(get_current_user),
    memories: MemoryService = Depends(get_memory_service),
):
    memory = await memories.store(
        current_user.id,
        memory_data.content,
        memory_data.tags,
        memory_data.council_id,
    )
    return ok(memory_to_dict(memory), message="Memory stored successfully")


@router.get("")
async def list_memories(
    tags: Optional[str] = Query(None, description="Comma-separated tags; matches any"),
    current_user: User = Depends(get_current_user),
    memories: MemoryService = Depends(get_memory_service),
):
    tag_list = [t.strip() for t in tags.split(",") if t.strip()] if tags else None
    rows = await memories.list(current_user.id, tags=tag_list)
    return ok([memory_to_dict(m) for m in rows], message=f"Found {len(rows)} memories")


@router.get("/stats")
async def memory_stats(
    current_user: User = Depends(get_current_user),
    memories: MemoryService = Depends(get_memory_service),
):
    return ok(await memories.stats(current_user.id))


@router.post("/search")
async def search_memories(
    request: MemorySearchRequest,
    current_user: User = Depends(get_current_user),
    memories: MemoryService = Depends(get_memory_service),
):
    """Cosine-similarity search over the caller's own memories"""
    results = await memories.search(
        request.query,
        current_user.id,
        limit=request.limit,
        threshold=request.threshold,
    )
    return ok(
        [memory_to_dict(m, similarity) for m, similarity in results],
        message=f"Found {len(results)} similar memories",
    )


@router.get("/{memory_id}")
async def get_memory(
    memory_id: str,
    current_user: User = Depends(get_current_user),
    memories: MemoryService = Depends(get_memory_service),
):
    memory = await memories.get_by_id(memory_id, current_user.id)
    return ok(memory_to_dict(memory))


@router.put("/{memory_id}")
async def update_memory(
    memory_id: str,
    update_data: MemoryUpdate,
    current_user: User = Depends(get_current_user),
    memories: MemoryService = Depends(get_memory_service),
):
    memory = await memories.update(memory_id, current_user.id, update_data.content, update_data.tags)
    return ok(memory_to_dict(memory), message="Memory updated successfully")


@router.delete("/{memory_id}")
async def delete_memory(
    memory_id: str,
    current_user: User = Depends(get_current_user),
    memories: MemoryService = Depends(get_memory_service),
):
    await memories.delete(memory_id, current_user.id)
    return ok(message="Memory deleted successfully")
