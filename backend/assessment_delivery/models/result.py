from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, JSON, Float
from sqlalchemy.orm import relationship
from ..platform.database import Base
from ..shared.utils import new_id, utcnow


class Result(Base):
    __tablename__ = "results"

    id = Column(String(36), primary_key=True, default=new_id)
    session_id = Column(
        String(36),
        ForeignKey("sessions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    response = Column(JSON(none_as_null=True), nullable=False)  # opaque player payload, stored verbatim
    score = Column(Float)
    time_spent = Column(Integer)  # seconds
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    session = relationship("AssessmentSession", back_populates="results")
