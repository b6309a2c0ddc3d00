"""
Database models for the AI Council service

- Users own councils and memories
- Councils hold exactly four agent slots and an append-only transcript
- Memories carry a JSON-encoded embedding for in-process similarity search
"""

from datetime import datetime
from typing import Optional, List
from enum import Enum
import json
import uuid

from sqlalchemy import (
    String, Text, DateTime, Float, Integer, Boolean, ForeignKey, Index
)
from sqlalchemy.orm import relationship, Mapped, mapped_column, declarative_base

Base = declarative_base()


class SubscriptionTier(str, Enum):
    """Subscription levels controlling the hourly request ceiling"""
    FREE = "FREE"
    PRO = "PRO"
    BUSINESS = "BUSINESS"


class UserRole(str, Enum):
    """User roles for access control"""
    ADMIN = "admin"  # Usage administration
    USER = "user"


class CouncilStatus(str, Enum):
    ACTIVE = "ACTIVE"
    ARCHIVED = "ARCHIVED"
    DELETED = "DELETED"  # Soft delete, row is kept


class MessageRole(str, Enum):
    USER = "USER"
    AGENT = "AGENT"
    SYSTEM = "SYSTEM"


class User(Base):
    """User model for multi-user isolation"""
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    hashed_password: Mapped[str] = mapped_column(String(255))
    name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    subscription_tier: Mapped[str] = mapped_column(String(20), default=SubscriptionTier.FREE.value)
    role: Mapped[str] = mapped_column(String(20), default=UserRole.USER.value, index=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    councils: Mapped[List["Council"]] = relationship("Council", back_populates="user")
    memories: Mapped[List["Memory"]] = relationship("Memory", back_populates="user")


class Council(Base):
    """
    A named group of four agent slots owned by one user.
    Each slot may carry a custom system prompt that replaces the catalog default.
    """
    __tablename__ = "councils"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), index=True)
    name: Mapped[str] = mapped_column(String(255))
    description: Mapped[str] = mapped_column(Text)

    # Agent slots (catalog ids) and optional per-council prompt overrides
    agent1_id: Mapped[str] = mapped_column(String(64))
    agent2_id: Mapped[str] = mapped_column(String(64))
    agent3_id: Mapped[str] = mapped_column(String(64))
    agent4_id: Mapped[str] = mapped_column(String(64))
    agent1_custom: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    agent2_custom: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    agent3_custom: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    agent4_custom: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    status: Mapped[str] = mapped_column(String(20), default=CouncilStatus.ACTIVE.value, index=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    user: Mapped["User"] = relationship("User", back_populates="councils")
    messages: Mapped[List["CouncilMessage"]] = relationship(
        "CouncilMessage", back_populates="council", order_by="CouncilMessage.created_at"
    )

    __table_args__ = (
        Index("ix_councils_user_status", "user_id", "status"),
    )

    @property
    def agent_ids(self) -> List[str]:
        return [self.agent1_id, self.agent2_id, self.agent3_id, self.agent4_id]

    @property
    def custom_prompts(self) -> List[Optional[str]]:
        return [self.agent1_custom, self.agent2_custom, self.agent3_custom, self.agent4_custom]


class CouncilMessage(Base):
    """Transcript entry. Append-only: rows are never updated or deleted."""
    __tablename__ = "council_messages"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    council_id: Mapped[str] = mapped_column(String(36), ForeignKey("councils.id"), index=True)
    role: Mapped[str] = mapped_column(String(20))  # MessageRole value
    agent_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)  # Set iff role == AGENT
    content: Mapped[str] = mapped_column(Text)

    # Token tracking (AGENT rows only)
    tokens_used: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    cost: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)

    council: Mapped["Council"] = relationship("Council", back_populates="messages")

    __table_args__ = (
        Index("ix_council_messages_council_created", "council_id", "created_at"),
    )


class Memory(Base):
    """
    A user-owned piece of text with its embedding.
    user_id is always taken from the authenticated session.
    """
    __tablename__ = "memories"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), index=True)
    council_id: Mapped[Optional[str]] = mapped_column(String(36), ForeignKey("councils.id"), nullable=True)

    content: Mapped[str] = mapped_column(Text)

    # Embedding stored as JSON array (SQLite compatible)
    embedding_json: Mapped[str] = mapped_column(Text)

    # JSON array of tags
    tags_json: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    user: Mapped["User"] = relationship("User", back_populates="memories")

    __table_args__ = (
        Index("ix_memories_user_created", "user_id", "created_at"),
    )

    @property
    def tags(self) -> List[str]:
        return json.loads(self.tags_json) if self.tags_json else []
