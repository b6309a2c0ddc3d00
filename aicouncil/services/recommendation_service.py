"""Agent recommendation - pick four catalog agents for a user's goal

The LLM is asked to choose from the catalog and answer in JSON. Output that
does not parse, has the wrong shape or names unknown agents is logged and
replaced by local keyword scoring; an upstream LLM failure also falls back
to keyword scoring, reported with model "fallback".
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from aicouncil.services.agent_catalog import AgentCatalog, AgentCategory, AgentTemplate, get_agent_catalog
from aicouncil.services.errors import LLMError
from aicouncil.services.llm_service import LLMService

logger = logging.getLogger(__name__)

TEAM_SIZE = 4

DEFAULT_AGENT_IDS = [
    "agent-coder",
    "agent-strategist",
    "agent-writer",
    "agent-researcher",
]

# Category boosts for the keyword fallback
CATEGORY_KEYWORDS = {
    AgentCategory.CODING: ("code", "program", "develop"),
    AgentCategory.BUSINESS: ("business", "market", "strategy"),
    AgentCategory.WRITING: ("write", "content", "blog"),
    AgentCategory.LEARNING: ("learn", "teach", "study"),
    AgentCategory.HEALTH: ("health", "fitness", "workout"),
    AgentCategory.CREATIVE: ("design", "creative", "art"),
}

SYSTEM_PROMPT_TEMPLATE = """You are an expert at matching AI agents to user needs. You have access to a library of AI agent templates, each with specific expertise.

Your task is to analyze the user's goal description and recommend EXACTLY 4 agents that would work best together as a team to help the user achieve their goal.

Consider:
- What skills are needed for this goal?
- Which agents complement each other well?
- What diverse perspectives would be valuable?
- Balance between specialized and general expertise

Available agents:
{agents_list}

Respond in VALID JSON format with this exact structure (no markdown, no code blocks, just raw JSON):
{{
  "recommendations": [
    {{
      "agentId": "agent-id-here",
      "reason": "Brief explanation why this agent is recommended",
      "relevanceScore": 95
    }}
  ]
}}

Return exactly 4 recommendations ordered by relevance (highest score first). Scores should be 1-100."""


class RecommendationParseError(ValueError):
    """LLM output was not the expected recommendation JSON."""


@dataclass
class AgentRecommendation:
    agent: AgentTemplate
    reason: str
    relevance_score: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "agent": self.agent.to_dict(),
            "reason": self.reason,
            "relevanceScore": self.relevance_score,
        }


@dataclass
class RecommendationResult:
    recommendations: List[AgentRecommendation] = field(default_factory=list)
    model: str = "fallback"
    tokens_used: int = 0
    estimated_cost: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "recommendations": [r.to_dict() for r in self.recommendations],
            "analysisUsed": {
                "model": self.model,
                "tokensUsed": self.tokens_used,
                "estimatedCost": self.estimated_cost,
            },
        }


def strip_code_fences(content: str) -> str:
    cleaned = content.strip()
    if cleaned.startswith("```"):
        cleaned = cleaned.replace("```json", "").replace("```", "").strip()
    return cleaned


class RecommendationService:
    def __init__(self, llm: LLMService, catalog: Optional[AgentCatalog] = None):
        self.llm = llm
        self.catalog = catalog or get_agent_catalog()

    async def recommend(self, description: str) -> RecommendationResult:
        """Recommend exactly four agents for the goal description."""
        system_prompt = SYSTEM_PROMPT_TEMPLATE.format(agents_list=self.catalog.agents_list_for_prompt())
        user_prompt = (
            f'User\'s goal: "{description}"\n\n'
            "Recommend 4 agents that would best help achieve this goal."
        )

        try:
            response = await self.llm.complete(system_prompt, user_prompt, [], "gpt-4", 0.7)
        except LLMError as e:
            logger.warning(f"[RECOMMEND] LLM unavailable, using keyword fallback: {e.message}")
            return RecommendationResult(recommendations=self.keyword_recommendations(description))

        try:
            recommendations = self.parse_recommendations(response.content)
        except RecommendationParseError as e:
            logger.warning(f"[RECOMMEND] Failed to parse LLM recommendation response: {e}")
            logger.debug(f"[RECOMMEND] Raw response: {response.content}")
            recommendations = self.keyword_recommendations(description)

        if len(recommendations) < TEAM_SIZE:
            logger.info("[RECOMMEND] Not enough recommendations, filling with catalog agents")
            chosen = {r.agent.id for r in recommendations}
            for agent in self.catalog.all():
                if len(recommendations) >= TEAM_SIZE:
                    break
                if agent.id not in chosen:
                    recommendations.append(AgentRecommendation(
                        agent=agent,
                        reason="Additional agent to complete your team",
                        relevance_score=50,
                    ))

        return RecommendationResult(
            recommendations=recommendations[:TEAM_SIZE],
            model=response.model,
            tokens_used=response.tokens_used,
            estimated_cost=response.estimated_cost,
        )

    def parse_recommendations(self, content: str) -> List[AgentRecommendation]:
        try:
            parsed = json.loads(strip_code_fences(content))
        except json.JSONDecodeError as e:
            raise RecommendationParseError(f"Invalid JSON: {e}") from e

        items = parsed.get("recommendations") if isinstance(parsed, dict) else None
        if not isinstance(items, list):
            raise RecommendationParseError("Invalid response format: missing recommendations list")

        recommendations = []
        seen = set()
        for item in items[:TEAM_SIZE]:
            if not isinstance(item, dict):
                raise RecommendationParseError("Invalid recommendation entry")
            agent = self.catalog.get_by_id(str(item.get("agentId")))
            if agent is None:
                raise RecommendationParseError(f"Agent not found: {item.get('agentId')}")
            if agent.id in seen:
                continue
            seen.add(agent.id)
            try:
                score = int(item.get("relevanceScore", 50))
            except (TypeError, ValueError) as e:
                raise RecommendationParseError("Invalid relevanceScore") from e
            recommendations.append(AgentRecommendation(
                agent=agent,
                reason=str(item.get("reason", "")),
                relevance_score=score,
            ))
        return recommendations

    def keyword_recommendations(self, description: str) -> List[AgentRecommendation]:
        """Score every agent by keyword overlap with the description; top four win."""
        text = description.lower()

        scored = []
        for agent in self.catalog.all():
            keywords = agent.name.lower().split(" ") + agent.description.lower().split(" ")
            keywords += [agent.category.value, agent.role.value]
            score = sum(20 for k in keywords if k and k in text)
            if any(word in text for word in CATEGORY_KEYWORDS[agent.category]):
                score += 30
            scored.append((agent, score))

        scored.sort(key=lambda pair: pair[1], reverse=True)
        top = [
            AgentRecommendation(
                agent=agent,
                reason=f"Matched based on keywords related to {agent.category.value} and {agent.role.value}",
                relevance_score=min(score, 100),
            )
            for agent, score in scored[:TEAM_SIZE]
        ]

        if len(top) < TEAM_SIZE:
            existing = {r.agent.id for r in top}
            for agent_id in DEFAULT_AGENT_IDS:
                if len(top) >= TEAM_SIZE:
                    break
                agent = self.catalog.get_by_id(agent_id)
                if agent and agent_id not in existing:
                    top.append(AgentRecommendation(
                        agent=agent,
                        reason="Versatile agent suitable for general tasks",
                        relevance_score=40,
                    ))
        return top[:TEAM_SIZE]
