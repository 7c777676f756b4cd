"""
SQLAlchemy database models.
"""
from datetime import datetime
from typing import Optional

from sqlalchemy import BigInteger, Boolean, DateTime, Float, Index, Integer, JSON, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from acars_processor.core.database import Base


class MessageLifecycle:
    """Columns shared by stored ACARS and VDLM2 messages."""

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    deleted_at: Mapped[Optional[datetime]] = mapped_column(DateTime, index=True)
    processing_started_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    processing_finished_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    processed: Mapped[bool] = mapped_column(Boolean, default=False, index=True)
    text: Mapped[Optional[str]] = mapped_column(Text)
    flight: Mapped[Optional[str]] = mapped_column(String(20))
    label: Mapped[Optional[str]] = mapped_column(String(10))
    # Full decoded upstream message
    payload: Mapped[dict] = mapped_column(JSON, nullable=False)

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None


class ACARSRecord(MessageLifecycle, Base):
    """ACARS message received from ACARSHub."""
    __tablename__ = "acars_messages"

    frequency_mhz: Mapped[Optional[float]] = mapped_column(Float)
    station_id: Mapped[Optional[str]] = mapped_column(String(100))
    tail: Mapped[Optional[str]] = mapped_column(String(20), index=True)

    __table_args__ = (
        Index("idx_acars_pending", "processed", "deleted_at", "created_at"),
    )


class VDLM2Record(MessageLifecycle, Base):
    """VDL Mode 2 frame received from ACARSHub."""
    __tablename__ = "vdlm2_messages"

    frequency_hz: Mapped[Optional[int]] = mapped_column(BigInteger)
    station: Mapped[Optional[str]] = mapped_column(String(100))
    registration: Mapped[Optional[str]] = mapped_column(String(20), index=True)

    __table_args__ = (
        Index("idx_vdlm2_pending", "processed", "deleted_at", "created_at"),
    )


class AIDecision(Base):
    """Verdict returned by a language model filter."""
    __tablename__ = "ai_decisions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)
    provider: Mapped[str] = mapped_column(String(20), nullable=False)
    model: Mapped[str] = mapped_column(String(100), nullable=False)
    system_prompt: Mapped[Optional[str]] = mapped_column(Text)
    user_prompt: Mapped[Optional[str]] = mapped_column(Text)
    input_text: Mapped[Optional[str]] = mapped_column(Text)
    verdict: Mapped[bool] = mapped_column(Boolean, nullable=False)
    reasoning: Mapped[Optional[str]] = mapped_column(Text)
