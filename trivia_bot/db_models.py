"""
Database tables for trivia sessions, round state, scores and channel config.
"""
from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    pass


class TriviaSession(Base):
    __tablename__ = "trivia_session"
    __table_args__ = (
        # At most one active game per channel
        Index(
            "uq_trivia_session_active_channel",
            "channel_id",
            unique=True,
            sqlite_where=text("is_active = 1"),
            postgresql_where=text("is_active"),
        ),
        Index("idx_trivia_session_channel", "channel_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    channel_id: Mapped[str] = mapped_column(String(64), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)


class TriviaQuestionBatch(Base):
    __tablename__ = "trivia_question_batch"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    payload: Mapped[list] = mapped_column(JSON, nullable=False)


class TriviaRoundState(Base):
    __tablename__ = "trivia_round_state"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    session_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("trivia_session.id"), nullable=False, unique=True
    )
    question_batch_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("trivia_question_batch.id"), nullable=False
    )
    round_index: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    round_total: Mapped[int] = mapped_column(Integer, nullable=False)


class TriviaScore(Base):
    __tablename__ = "trivia_score"
    __table_args__ = (
        Index("idx_trivia_score_session", "session_id"),
        Index("idx_trivia_score_user", "user_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    session_id: Mapped[int] = mapped_column(Integer, ForeignKey("trivia_session.id"), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)


class TriviaConfig(Base):
    __tablename__ = "trivia_config"
    __table_args__ = (UniqueConstraint("channel_id", "key", name="uq_trivia_config_channel_key"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    channel_id: Mapped[str] = mapped_column(String(64), nullable=False)
    key: Mapped[str] = mapped_column(String(64), nullable=False)
    value: Mapped[str] = mapped_column(String(255), nullable=False)
