"""Agent catalog, recommendation and agent test endpoints"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from aicouncil.api.deps import get_current_user, enforce_rate_limit
from aicouncil.db import User
from aicouncil.schemas import RecommendRequest, AgentTestRequest, ok
from aicouncil.services.agent_catalog import AgentCatalog, AgentCategory, get_agent_catalog
from aicouncil.services.errors import NotFoundError
from aicouncil.services.llm_service import LLMService, get_llm_service
from aicouncil.services.recommendation_service import RecommendationService
from aicouncil.services.usage_tracker import EndpointCategory, UsageTracker, get_usage_tracker

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/agents", tags=["Agents"])


@router.get("/templates")
async def list_templates(catalog: AgentCatalog = Depends(get_agent_catalog)):
    """Every agent template with per-category counts"""
    agents = catalog.all()
    return ok(
        {
            "agents": [a.to_dict() for a in agents],
            "total": len(agents),
            "categoryCounts": catalog.counts_by_category(),
        },
        message=f"{len(agents)} agent templates available",
    )


@router.get("/templates/{category}")
async def list_templates_by_category(
    category: str,
    catalog: AgentCatalog = Depends(get_agent_catalog),
):
    try:
        agents = catalog.get_by_category(category)
    except ValueError:
        valid = ", ".join(c.value for c in AgentCategory)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid category. Must be one of: {valid}",
        )
    return ok(
        {"category": category, "agents": [a.to_dict() for a in agents], "total": len(agents)},
        message=f"Found {len(agents)} agents in {category} category",
    )


@router.get("/search")
async def search_templates(
    q: Optional[str] = Query(None),
    catalog: AgentCatalog = Depends(get_agent_catalog),
):
    if not q or not q.strip():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='Search query parameter "q" is required',
        )
    results = catalog.search(q)
    return ok(
        {"query": q, "results": [a.to_dict() for a in results], "total": len(results)},
        message=f"Found {len(results)} matching agents",
    )


@router.post("/recommend")
async def recommend_agents(
    request: RecommendRequest,
    current_user: User = Depends(get_current_user),
    tracker: UsageTracker = Depends(get_usage_tracker),
    llm: LLMService = Depends(get_llm_service),
):
    """Four recommended agents for the user's goal (rate-limited)"""
    description = request.description.strip()
    enforce_rate_limit(tracker, current_user)

    result = await RecommendationService(llm).recommend(description)
    tracker.record(
        current_user.id,
        result.model,
        result.tokens_used,
        result.estimated_cost,
        EndpointCategory.RECOMMENDATION,
    )

    data = result.to_dict()
    data["description"] = description
    return ok(data, message="Generated 4 agent recommendations based on your goal")


@router.post("/test")
async def test_agent(
    request: AgentTestRequest,
    current_user: User = Depends(get_current_user),
    tracker: UsageTracker = Depends(get_usage_tracker),
    llm: LLMService = Depends(get_llm_service),
    catalog: AgentCatalog = Depends(get_agent_catalog),
):
    """Single ad-hoc completion against one agent (rate-limited)"""
    agent = catalog.get_by_id(request.agent_id)
    if agent is None:
        raise NotFoundError(f"Agent not found: {request.agent_id}")

    enforce_rate_limit(tracker, current_user)

    response = await llm.complete(
        agent.system_prompt,
        request.prompt.strip(),
        [],
        agent.model,
        agent.temperature,
    )
    tracker.record(
        current_user.id,
        response.model,
        response.tokens_used,
        response.estimated_cost,
        EndpointCategory.TEST,
    )

    return ok(
        {
            "agentName": agent.name,
            "agentRole": agent.role.value,
            "response": response.content,
            "tokensUsed": response.tokens_used,
            "estimatedCost": response.estimated_cost,
            "model": response.model,
        },
        message="Agent test successful",
    )


@router.get("/usage")
async def get_usage(
    current_user: User = Depends(get_current_user),
    tracker: UsageTracker = Depends(get_usage_tracker),
):
    stats = tracker.stats_for(current_user.id)
    return ok(stats.to_dict(), message="Usage statistics retrieved")
