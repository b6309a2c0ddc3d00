from aicouncil.services.agent_catalog import AgentCatalog, AgentTemplate, AgentCategory, get_agent_catalog
from aicouncil.services.usage_tracker import UsageTracker, Tier, EndpointCategory, get_usage_tracker
from aicouncil.services.llm_service import LLMService, LLMResponse, get_llm_service
from aicouncil.services.embedding_service import EmbeddingService, cosine_similarity, get_embedding_service
from aicouncil.services.auth_service import (
    verify_password, get_password_hash, create_access_token,
    decode_access_token, authenticate_user, create_user,
    get_user_by_id, get_user_by_email
)
from aicouncil.services.memory_service import MemoryService
from aicouncil.services.council_service import CouncilService
from aicouncil.services.council_chat_service import CouncilChatService, AgentResponse, TurnResult, TurnState
from aicouncil.services.recommendation_service import RecommendationService

__all__ = [
    "AgentCatalog",
    "AgentTemplate",
    "AgentCategory",
    "get_agent_catalog",
    "UsageTracker",
    "Tier",
    "EndpointCategory",
    "get_usage_tracker",
    "LLMService",
    "LLMResponse",
    "get_llm_service",
    "EmbeddingService",
    "cosine_similarity",
    "get_embedding_service",
    "verify_password",
    "get_password_hash",
    "create_access_token",
    "decode_access_token",
    "authenticate_user",
    "create_user",
    "get_user_by_id",
    "get_user_by_email",
    "MemoryService",
    "CouncilService",
    # Council turns
    "CouncilChatService",
    "AgentResponse",
    "TurnResult",
    "TurnState",
    "RecommendationService",
]
