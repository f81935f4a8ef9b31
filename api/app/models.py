import uuid
from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
    func,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB, UUID
from .database import Base


class UserAccount(Base):
    __tablename__ = "user_account"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    email = Column(Text, nullable=False, unique=True)
    display_name = Column(Text, nullable=True)
    image_url = Column(Text, nullable=True)
    last_active_at = Column(DateTime(timezone=True), nullable=True)
    disabled_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class MatchAction(Base):
    __tablename__ = "match_action"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    actor_id = Column(UUID(as_uuid=True), ForeignKey("user_account.id", ondelete="CASCADE"), nullable=False)
    target_id = Column(UUID(as_uuid=True), ForeignKey("user_account.id", ondelete="CASCADE"), nullable=False)
    action = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        UniqueConstraint("actor_id", "target_id", name="uq_match_action_pair"),
        CheckConstraint("actor_id <> target_id", name="ck_match_action_no_self"),
        CheckConstraint("action IN ('like', 'reject', 'skip')", name="ck_match_action_action"),
        Index("idx_match_action_actor_action", "actor_id", "action"),
        Index("idx_match_action_target_action", "target_id", "action"),
    )


class MutualMatch(Base):
    __tablename__ = "mutual_match"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    # Canonical order: user_low_id is always the smaller id of the pair.
    user_low_id = Column(UUID(as_uuid=True), ForeignKey("user_account.id", ondelete="CASCADE"), nullable=False)
    user_high_id = Column(UUID(as_uuid=True), ForeignKey("user_account.id", ondelete="CASCADE"), nullable=False)
    matched_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    is_active = Column(Boolean, nullable=False, default=True)
    last_message_at = Column(DateTime(timezone=True), nullable=True)
    user_low_seen = Column(Boolean, nullable=False, default=False)
    user_high_seen = Column(Boolean, nullable=False, default=False)

    __table_args__ = (
        CheckConstraint("user_low_id < user_high_id", name="ck_mutual_match_order"),
        Index(
            "uq_mutual_match_active_pair",
            "user_low_id",
            "user_high_id",
            unique=True,
            postgresql_where=text("is_active"),
        ),
        Index("idx_mutual_match_low_active", "user_low_id", "is_active"),
        Index("idx_mutual_match_high_active", "user_high_id", "is_active"),
    )


class Message(Base):
    __tablename__ = "message"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    match_id = Column(UUID(as_uuid=True), ForeignKey("mutual_match.id", ondelete="CASCADE"), nullable=False)
    sender_id = Column(UUID(as_uuid=True), ForeignKey("user_account.id", ondelete="CASCADE"), nullable=False)
    receiver_id = Column(UUID(as_uuid=True), ForeignKey("user_account.id", ondelete="CASCADE"), nullable=False)
    content = Column(String(1000), nullable=False)
    message_type = Column(Text, nullable=False, default="text")
    is_read = Column(Boolean, nullable=False, default=False)
    read_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        CheckConstraint("message_type IN ('text', 'image', 'emoji')", name="ck_message_type"),
        Index("idx_message_match_created", "match_id", "created_at"),
        Index("idx_message_receiver_unread", "receiver_id", "is_read"),
        Index("idx_message_sender_created", "sender_id", "created_at"),
    )


class ProductEvent(Base):
    __tablename__ = "product_event"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("user_account.id", ondelete="CASCADE"), nullable=True)
    event_name = Column(Text, nullable=False)
    properties = Column(JSONB, nullable=False, server_default=text("'{}'::jsonb"))
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (Index("idx_product_event_name_created", "event_name", "created_at"),)
