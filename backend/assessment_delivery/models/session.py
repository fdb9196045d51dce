from sqlalchemy import Column, String, DateTime, Enum, Index
from sqlalchemy.orm import relationship
from ..platform.database import Base
from ..shared.utils import generate_external_session_id, new_id, utcnow
import enum


class SessionStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    EXPIRED = "EXPIRED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class AssessmentSession(Base):
    """One assessment attempt by one student."""

    __tablename__ = "sessions"
    __table_args__ = (
        Index("ix_sessions_student_created", "student_id", "created_at"),
        Index("ix_sessions_student_expires", "student_id", "expires_at"),
    )

    id = Column(String(36), primary_key=True, default=new_id)
    student_id = Column(String(255), nullable=False, index=True)
    assessment_id = Column(String(255), nullable=False, index=True)
    # Handed to the assessment player; never changes after creation.
    external_session_id = Column(
        String(36), nullable=False, unique=True, index=True, default=generate_external_session_id
    )
    status = Column(Enum(SessionStatus, name="session_status"), nullable=False, default=SessionStatus.ACTIVE)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    expires_at = Column(DateTime(timezone=True), nullable=True, index=True)

    results = relationship(
        "Result",
        back_populates="session",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="Result.created_at",
        # Async sessions cannot lazy-load on attribute access.
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<AssessmentSession id={self.id} student_id={self.student_id} status={self.status}>"
