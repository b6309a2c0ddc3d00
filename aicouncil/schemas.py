"""Pydantic schemas for API request/response validation

Request bodies use the camelCase keys the web client sends (agentId,
councilId, ...); snake_case names are accepted too.
"""

import re
from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, Field, EmailStr, field_validator

from aicouncil.db.models import CouncilStatus

_NAME_RE = re.compile(r"^[a-zA-Z\s'-]+$")


def ok(data: Any = None, message: Optional[str] = None) -> dict:
    """Success envelope: {success, data, message?}"""
    body = {"success": True, "data": data}
    if message:
        body["message"] = message
    return body


# ============ Auth Schemas ============

class UserCreate(BaseModel):
    email: EmailStr = Field(max_length=254)
    password: str = Field(min_length=8, max_length=128)
    name: Optional[str] = Field(None, max_length=100)

    @field_validator("password")
    @classmethod
    def password_has_letter(cls, v: str) -> str:
        if not re.search(r"[a-zA-Z]", v):
            raise ValueError("Password must contain at least one letter")
        return v

    @field_validator("name")
    @classmethod
    def name_characters(cls, v: Optional[str]) -> Optional[str]:
        if v is None or not v.strip():
            return None
        v = v.strip()
        if not _NAME_RE.match(v):
            raise ValueError("Name contains invalid characters")
        return v


class UserLogin(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1)


class UserResponse(BaseModel):
    id: str
    email: str
    name: Optional[str]
    subscription_tier: str = Field(serialization_alias="subscriptionTier")
    role: str
    is_active: bool = Field(serialization_alias="isActive")
    created_at: datetime = Field(serialization_alias="createdAt")

    class Config:
        from_attributes = True


# ============ Agent Schemas ============

class RecommendRequest(BaseModel):
    description: str = Field(min_length=10, max_length=500)


class AgentTestRequest(BaseModel):
    agent_id: str = Field(alias="agentId", min_length=1)
    prompt: str = Field(min_length=5, max_length=2000)

    class Config:
        populate_by_name = True


# ============ Council Schemas ============

class CouncilCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    description: str = Field(min_length=20, max_length=500)
    agent1_id: str = Field(alias="agent1Id", min_length=1)
    agent2_id: str = Field(alias="agent2Id", min_length=1)
    agent3_id: str = Field(alias="agent3Id", min_length=1)
    agent4_id: str = Field(alias="agent4Id", min_length=1)
    agent1_custom: Optional[str] = Field(None, alias="agent1Custom")
    agent2_custom: Optional[str] = Field(None, alias="agent2Custom")
    agent3_custom: Optional[str] = Field(None, alias="agent3Custom")
    agent4_custom: Optional[str] = Field(None, alias="agent4Custom")

    class Config:
        populate_by_name = True

    @property
    def agent_ids(self) -> List[str]:
        return [self.agent1_id, self.agent2_id, self.agent3_id, self.agent4_id]

    @property
    def custom_prompts(self) -> List[Optional[str]]:
        return [self.agent1_custom, self.agent2_custom, self.agent3_custom, self.agent4_custom]


class CouncilUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    status: Optional[CouncilStatus] = None


class CouncilMessageCreate(BaseModel):
    content: str = Field(min_length=1, max_length=2000)

    @field_validator("content")
    @classmethod
    def not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Message content cannot be empty")
        return v.strip()


# ============ Memory Schemas ============

class MemoryCreate(BaseModel):
    content: str = Field(min_length=10, max_length=5000)
    tags: List[str] = Field(default_factory=list)
    council_id: Optional[str] = Field(None, alias="councilId")

    class Config:
        populate_by_name = True


class MemoryUpdate(BaseModel):
    content: str = Field(min_length=10, max_length=5000)
    tags: Optional[List[str]] = None


class MemorySearchRequest(BaseModel):
    query: str = Field(min_length=1, max_length=5000)
    limit: int = Field(5, ge=1, le=50)
    threshold: float = Field(0.7, ge=-1.0, le=1.0)
