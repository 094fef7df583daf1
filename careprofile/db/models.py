import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    text,
)
from sqlalchemy.orm import relationship

from careprofile.core.constants import PROFILE_STATUS_IN_PROGRESS, SESSION_STATUS_ACTIVE

from .session import Base


def uuid4_str():
    return str(uuid.uuid4())


def utcnow():
    return datetime.now(timezone.utc)


class CaregiverProfile(Base):
    """One row per onboarding attempt. List/map fields hold JSON text; scalars hold plain text."""
    __tablename__ = "caregiver_profiles"

    id = Column(String(36), primary_key=True, default=uuid4_str)
    status = Column(String(20), nullable=False, default=PROFILE_STATUS_IN_PROGRESS)

    # Critical
    location = Column(Text, nullable=True)
    languages = Column(Text, nullable=True)
    care_types = Column(Text, nullable=True)
    hourly_rate = Column(Text, nullable=True)

    # High priority
    qualifications = Column(Text, nullable=True)
    start_date = Column(Text, nullable=True)
    general_availability = Column(Text, nullable=True)
    years_of_experience = Column(Text, nullable=True)
    weekly_hours = Column(Text, nullable=True)

    # Optional
    preferred_age_groups = Column(Text, nullable=True)
    responsibilities = Column(Text, nullable=True)
    commute_distance = Column(Text, nullable=True)
    commute_type = Column(Text, nullable=True)
    will_drive_children = Column(Text, nullable=True)
    accessibility_needs = Column(Text, nullable=True)
    dietary_preferences = Column(Text, nullable=True)
    additional_child_rate = Column(Text, nullable=True)
    payroll_required = Column(Text, nullable=True)
    benefits_required = Column(Text, nullable=True)
    profile_picture_url = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=utcnow)

    sessions = relationship("ConversationSession", back_populates="profile")


class ConversationSession(Base):
    __tablename__ = "conversation_sessions"

    id = Column(String(36), primary_key=True, default=uuid4_str)
    profile_id = Column(
        String(36), ForeignKey("caregiver_profiles.id", ondelete="RESTRICT"), nullable=False
    )
    status = Column(String(20), nullable=False, default=SESSION_STATUS_ACTIVE)
    started_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    last_updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    version = Column(Integer, nullable=False, default=1)

    profile = relationship("CaregiverProfile", back_populates="sessions")
    turns = relationship(
        "ConversationTurn",
        back_populates="session",
        order_by="ConversationTurn.timestamp",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        Index("ix_conversation_sessions_profile_id", "profile_id"),
        Index("ix_conversation_sessions_status", "status"),
        # At most one active session per profile
        Index(
            "uq_conversation_sessions_profile_active",
            "profile_id",
            unique=True,
            postgresql_where=text("status = 'active'"),
            sqlite_where=text("status = 'active'"),
        ),
    )


class ConversationTurn(Base):
    """One user/agent exchange. Append-only."""
    __tablename__ = "conversation_turns"

    id = Column(String(36), primary_key=True, default=uuid4_str)
    session_id = Column(
        String(36), ForeignKey("conversation_sessions.id", ondelete="CASCADE"), nullable=False
    )
    timestamp = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    user_message = Column(Text, nullable=False)
    agent_response = Column(Text, nullable=False)
    raw_model_output = Column(Text, nullable=False)
    extracted_data = Column(JSON, nullable=True)
    extracted_fields = Column(JSON, nullable=True)

    session = relationship("ConversationSession", back_populates="turns")

    __table_args__ = (
        Index("ix_conversation_turns_session_id", "session_id"),
        Index("ix_conversation_turns_timestamp", "timestamp"),
    )
