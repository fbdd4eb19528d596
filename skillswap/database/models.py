"""
skillswap.database.models — SQLAlchemy 2.0 Data Models
=======================================================

Tables:
- users              — Community member profiles (identity-provider uid PK)
- skills             — Declared skills, unique by name per user
- skill_endorsements — Endorser set per skill (composite PK = set semantics)
- user_badges        — Earned badges, one row per (user, badge id)
- user_links         — Profile links
- requests           — Help-wanted posts
- responses          — Offers to help with a request
- notifications      — Per-recipient notification inbox
- chats              — Two-participant threads keyed deterministically
- chat_unread        — Per-participant unread counters
- messages           — Chat messages
- testimonials       — Receiver-approved testimonials
- karma_awards       — Append-only karma ledger with idempotency key
- outbox             — Pending best-effort side effects
"""

from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------
class Base(DeclarativeBase):
    """Shared base for all SkillSwap ORM models."""


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class SkillCategory(enum.StrEnum):
    PROGRAMMING = "Programming"
    DESIGN = "Design"
    WRITING = "Writing"
    MATH = "Math"
    LANGUAGE = "Language"
    MUSIC = "Music"
    ART = "Art"
    BUSINESS = "Business"


class Proficiency(enum.StrEnum):
    BEGINNER = "Beginner"
    INTERMEDIATE = "Intermediate"
    EXPERT = "Expert"


class RequestStatus(enum.StrEnum):
    """Request lifecycle.  Transitions only move forward."""
    OPEN = "open"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class ResponseStatus(enum.StrEnum):
    """Offer lifecycle: pending → accepted|rejected → (accepted) completed."""
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    COMPLETED = "completed"


class NotificationType(enum.StrEnum):
    NEW_OFFER = "new_offer"
    OFFER_ACCEPTED = "offer_accepted"
    OFFER_REJECTED = "offer_rejected"
    KARMA_AWARDED = "karma_awarded"
    NEW_CHAT = "new_chat"
    NEW_MESSAGE = "new_message"


class OutboxKind(enum.StrEnum):
    """Side effects the outbox dispatcher knows how to deliver."""
    NOTIFY = "notify"
    BADGE_CHECK = "badge_check"
    BADGE_GRANT = "badge_grant"


# ---------------------------------------------------------------------------
# Users — one row per signed-in identity
# ---------------------------------------------------------------------------
class User(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(128), primary_key=True)
    display_name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str] = mapped_column(String(255), default="")
    photo_url: Mapped[str] = mapped_column(String(500), default="")
    bio: Mapped[str] = mapped_column(Text, default="")
    karma: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    highest_leaderboard_rank: Mapped[int | None] = mapped_column(Integer, default=None)
    notifications_enabled: Mapped[bool] = mapped_column(Boolean, default=True)
    profile_visible: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    # Relationships
    skills: Mapped[list[Skill]] = relationship(
        back_populates="user", cascade="all, delete-orphan", order_by="Skill.id"
    )
    badges: Mapped[list[UserBadge]] = relationship(
        back_populates="user", cascade="all, delete-orphan"
    )
    links: Mapped[list[UserLink]] = relationship(
        back_populates="user", cascade="all, delete-orphan", order_by="UserLink.id"
    )

    __table_args__ = (
        CheckConstraint("karma >= 0", name="ck_users_karma_non_negative"),
        Index("ix_users_karma_desc", "karma"),
    )

    def __repr__(self) -> str:
        return f"<User id={self.id!r} name={self.display_name!r} karma={self.karma}>"


# ---------------------------------------------------------------------------
# Skills & endorsements
# ---------------------------------------------------------------------------
class Skill(Base):
    __tablename__ = "skills"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(
        String(128), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    category: Mapped[str] = mapped_column(
        String(30), nullable=False, default=SkillCategory.PROGRAMMING.value
    )
    proficiency: Mapped[str] = mapped_column(
        String(20), nullable=False, default=Proficiency.INTERMEDIATE.value
    )

    user: Mapped[User] = relationship(back_populates="skills")
    endorsements: Mapped[list[SkillEndorsement]] = relationship(
        back_populates="skill", cascade="all, delete-orphan"
    )

    __table_args__ = (
        UniqueConstraint("user_id", "name", name="uq_skills_user_name"),
    )

    def __repr__(self) -> str:
        return f"<Skill id={self.id} user={self.user_id!r} name={self.name!r}>"


class SkillEndorsement(Base):
    __tablename__ = "skill_endorsements"

    skill_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("skills.id", ondelete="CASCADE"), primary_key=True
    )
    endorser_id: Mapped[str] = mapped_column(
        String(128), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    skill: Mapped[Skill] = relationship(back_populates="endorsements")

    def __repr__(self) -> str:
        return f"<SkillEndorsement skill={self.skill_id} by={self.endorser_id!r}>"


# ---------------------------------------------------------------------------
# UserBadge — earned badges (composite PK keeps one row per badge id)
# ---------------------------------------------------------------------------
class UserBadge(Base):
    __tablename__ = "user_badges"

    user_id: Mapped[str] = mapped_column(
        String(128), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    badge_id: Mapped[str] = mapped_column(String(120), primary_key=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, default="")
    category: Mapped[str | None] = mapped_column(String(30), default=None)
    tier: Mapped[str | None] = mapped_column(String(20), default=None)
    icon: Mapped[str | None] = mapped_column(String(50), default=None)
    awarded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    user: Mapped[User] = relationship(back_populates="badges")

    def __repr__(self) -> str:
        return f"<UserBadge user={self.user_id!r} badge={self.badge_id!r}>"


class UserLink(Base):
    __tablename__ = "user_links"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(
        String(128), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    type: Mapped[str] = mapped_column(String(30), nullable=False, default="website")
    url: Mapped[str] = mapped_column(String(500), nullable=False)
    title: Mapped[str] = mapped_column(String(200), default="")

    user: Mapped[User] = relationship(back_populates="links")


# ---------------------------------------------------------------------------
# Requests & responses
# ---------------------------------------------------------------------------
class HelpRequest(Base):
    __tablename__ = "requests"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(
        String(128), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    offer_in_return: Mapped[str] = mapped_column(Text, default="")
    tags: Mapped[list | None] = mapped_column(JSONB, default=list)
    urgency: Mapped[str] = mapped_column(String(10), default="medium")
    estimated_time: Mapped[str] = mapped_column(String(20), default="30min")
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=RequestStatus.OPEN.value
    )
    accepted_helper_id: Mapped[str | None] = mapped_column(
        String(128), ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    responses: Mapped[list[HelpResponse]] = relationship(
        back_populates="request", cascade="all, delete-orphan",
        order_by="HelpResponse.id",
    )

    __table_args__ = (
        Index("ix_requests_status_created", "status", "created_at"),
        Index("ix_requests_helper", "accepted_helper_id"),
    )

    def __repr__(self) -> str:
        return f"<HelpRequest id={self.id} title={self.title!r} status={self.status}>"


class HelpResponse(Base):
    __tablename__ = "responses"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    request_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("requests.id", ondelete="CASCADE"), nullable=False
    )
    helper_id: Mapped[str] = mapped_column(
        String(128), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    message: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ResponseStatus.PENDING.value
    )
    karma_awarded: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    accepted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    rejected_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    request: Mapped[HelpRequest] = relationship(back_populates="responses")

    __table_args__ = (
        Index("ix_responses_helper", "helper_id"),
    )

    def __repr__(self) -> str:
        return f"<HelpResponse id={self.id} helper={self.helper_id!r} status={self.status}>"


# ---------------------------------------------------------------------------
# Notifications
# ---------------------------------------------------------------------------
class Notification(Base):
    __tablename__ = "notifications"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    recipient_id: Mapped[str] = mapped_column(
        String(128), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    type: Mapped[str] = mapped_column(String(30), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    is_read: Mapped[bool] = mapped_column(Boolean, default=False)
    chat_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    request_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    offerer_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        Index("ix_notifications_recipient_time", "recipient_id", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Notification id={self.id} to={self.recipient_id!r} type={self.type}>"


# ---------------------------------------------------------------------------
# Chats — id is a digest of (request id, sorted participants)
# ---------------------------------------------------------------------------
class Chat(Base):
    __tablename__ = "chats"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    request_id: Mapped[int] = mapped_column(Integer, nullable=False)
    request_title: Mapped[str] = mapped_column(String(200), nullable=False)
    participants: Mapped[list] = mapped_column(JSONB, nullable=False)
    last_message_text: Mapped[str | None] = mapped_column(Text, default=None)
    last_message_sender_id: Mapped[str | None] = mapped_column(String(128), default=None)
    last_message_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    unread: Mapped[list[ChatUnread]] = relationship(
        back_populates="chat", cascade="all, delete-orphan"
    )
    messages: Mapped[list[Message]] = relationship(
        back_populates="chat", cascade="all, delete-orphan", order_by="Message.id"
    )

    __table_args__ = (
        Index("ix_chats_request", "request_id"),
    )

    def __repr__(self) -> str:
        return f"<Chat id={self.id[:8]!r} request={self.request_id}>"


class ChatUnread(Base):
    __tablename__ = "chat_unread"

    chat_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("chats.id", ondelete="CASCADE"), primary_key=True
    )
    user_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    chat: Mapped[Chat] = relationship(back_populates="unread")

    __table_args__ = (
        Index("ix_chat_unread_user", "user_id"),
    )


class Message(Base):
    __tablename__ = "messages"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    chat_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("chats.id", ondelete="CASCADE"), nullable=False
    )
    sender_id: Mapped[str] = mapped_column(String(128), nullable=False)
    text: Mapped[str] = mapped_column(Text, nullable=False)
    read: Mapped[bool] = mapped_column(Boolean, default=False)
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    chat: Mapped[Chat] = relationship(back_populates="messages")

    def __repr__(self) -> str:
        return f"<Message id={self.id} chat={self.chat_id[:8]!r} from={self.sender_id!r}>"


# ---------------------------------------------------------------------------
# Testimonials — hidden until the receiver approves
# ---------------------------------------------------------------------------
class Testimonial(Base):
    __tablename__ = "testimonials"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    sender_id: Mapped[str] = mapped_column(
        String(128), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    receiver_id: Mapped[str] = mapped_column(
        String(128), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    text: Mapped[str] = mapped_column(Text, nullable=False)
    is_approved: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        Index("ix_testimonials_receiver_time", "receiver_id", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Testimonial id={self.id} to={self.receiver_id!r} approved={self.is_approved}>"


# ---------------------------------------------------------------------------
# KarmaAward — append-only ledger; source_key makes an award idempotent
# ---------------------------------------------------------------------------
class KarmaAward(Base):
    __tablename__ = "karma_awards"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(
        String(128), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    delta: Mapped[int] = mapped_column(Integer, nullable=False)
    reason: Mapped[str] = mapped_column(String(200), default="")
    source_key: Mapped[str | None] = mapped_column(String(200), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint("source_key", name="uq_karma_awards_source_key"),
        Index("ix_karma_awards_user_time", "user_id", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<KarmaAward id={self.id} user={self.user_id!r} delta={self.delta}>"


# ---------------------------------------------------------------------------
# OutboxEvent — side effects recorded with the primary write
# ---------------------------------------------------------------------------
class OutboxEvent(Base):
    __tablename__ = "outbox"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    kind: Mapped[str] = mapped_column(String(30), nullable=False)
    payload: Mapped[dict] = mapped_column(JSONB, nullable=False)
    attempts: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_error: Mapped[str | None] = mapped_column(Text, default=None)
    delivered_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        Index("ix_outbox_pending", "delivered_at", "id"),
    )

    def __repr__(self) -> str:
        return f"<OutboxEvent id={self.id} kind={self.kind} attempts={self.attempts}>"
