"""
Session store for the Trivia Bot.
Durable state for sessions, round progress, scores and per-channel config.
"""
import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, List, Optional, Sequence

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from .db_models import (
    Base,
    TriviaConfig,
    TriviaQuestionBatch,
    TriviaRoundState,
    TriviaScore,
    TriviaSession,
)
from .errors import SessionConflictError, TransientStoreError
from .models import Question, RoundState, ScoreEntry, Session, UserScore

DEFAULT_DATABASE_URL = "sqlite+aiosqlite:///trivia.db"
LEADERBOARD_SIZE = 3


def _to_session(row: TriviaSession) -> Session:
    return Session(id=row.id, channel_id=row.channel_id, active=row.is_active, created_at=row.created_at)


class SessionStore:
    """
    Persists trivia games and scores through SQLAlchemy.

    Each public method is one short transaction. Round advances and game
    endings are conditional writes, so concurrent resolvers of the same
    round cannot both succeed.
    """

    def __init__(self, database_url: str = DEFAULT_DATABASE_URL, engine: Optional[AsyncEngine] = None):
        """
        Initialize the store.

        Args:
            database_url: SQLAlchemy async database URL
            engine: Pre-built engine, overrides database_url
        """
        self.logger = logging.getLogger(__name__)
        self.engine = engine or create_async_engine(database_url)
        self._sessionmaker = async_sessionmaker(self.engine, expire_on_commit=False)

    async def create_tables(self) -> None:
        """Create all trivia tables if they don't exist."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        self.logger.info("Trivia tables ready")

    async def close(self) -> None:
        await self.engine.dispose()

    @asynccontextmanager
    async def _transaction(self, operation: str) -> AsyncIterator[AsyncSession]:
        try:
            async with self._sessionmaker() as db:
                async with db.begin():
                    yield db
        except SQLAlchemyError as e:
            self.logger.error(
                f"Store operation {operation} failed: {e}",
                extra={
                    'event_type': 'store_error',
                    'operation': operation,
                    'timestamp': time.time()
                }
            )
            raise TransientStoreError(f"Store operation {operation} failed") from e

    # Sessions

    async def create_session(self, channel_id: str) -> Optional[Session]:
        """
        Create an active session for a channel.

        Returns:
            The new Session, or None if the store is unavailable

        Raises:
            SessionConflictError: If the channel already has an active session
        """
        try:
            async with self._sessionmaker() as db:
                async with db.begin():
                    row = TriviaSession(channel_id=channel_id, is_active=True)
                    db.add(row)
                    await db.flush()
                    session = _to_session(row)
        except IntegrityError as e:
            self.logger.warning(f"Rejected second active session for channel {channel_id}")
            raise SessionConflictError(f"Game already running in channel {channel_id}") from e
        except SQLAlchemyError as e:
            self.logger.error(f"Failed to create session for channel {channel_id}: {e}")
            return None

        self.logger.info(f"Created session {session.id} for channel {channel_id}")
        return session

    async def get_active_session(self, channel_id: str) -> Optional[Session]:
        async with self._transaction("get_active_session") as db:
            stmt = select(TriviaSession).where(
                TriviaSession.channel_id == channel_id,
                TriviaSession.is_active.is_(True),
            )
            row = (await db.execute(stmt)).scalars().first()
            return _to_session(row) if row else None

    async def list_active_sessions(self) -> List[Session]:
        async with self._transaction("list_active_sessions") as db:
            stmt = select(TriviaSession).where(TriviaSession.is_active.is_(True)).order_by(TriviaSession.id)
            return [_to_session(row) for row in (await db.execute(stmt)).scalars().all()]

    async def stop_session(self, session_id: int, expected_index: Optional[int] = None) -> bool:
        """
        Deactivate a session and delete its round state.

        Args:
            session_id: Session to stop
            expected_index: If given, only stop when the stored round index still equals it

        Returns:
            True if this call ended the session, False if it was already
            ended or the round index moved on
        """
        async with self._transaction("stop_session") as db:
            stmt = delete(TriviaRoundState).where(TriviaRoundState.session_id == session_id)
            if expected_index is not None:
                stmt = stmt.where(TriviaRoundState.round_index == expected_index)
            deleted = await db.execute(stmt.execution_options(synchronize_session=False))
            if expected_index is not None and deleted.rowcount == 0:
                return False

            deactivated = await db.execute(
                update(TriviaSession)
                .where(TriviaSession.id == session_id, TriviaSession.is_active.is_(True))
                .values(is_active=False)
                .execution_options(synchronize_session=False)
            )
            stopped = deactivated.rowcount > 0

        if stopped:
            self.logger.info(f"Stopped session {session_id}")
        return stopped

    # Round state

    async def init_round_state(self, session_id: int, batch: Sequence[Question], total: int) -> RoundState:
        """Persist the question batch and the first round for a session."""
        async with self._transaction("init_round_state") as db:
            batch_row = TriviaQuestionBatch(payload=[question.to_dict() for question in batch])
            db.add(batch_row)
            await db.flush()
            state_row = TriviaRoundState(
                session_id=session_id,
                question_batch_id=batch_row.id,
                round_index=0,
                round_total=total,
            )
            db.add(state_row)
            await db.flush()

        return RoundState(
            session_id=session_id,
            question_batch_id=batch_row.id,
            round_index=0,
            round_total=total,
            questions=tuple(batch),
        )

    async def advance_round(self, session_id: int, expected_index: int, new_index: int) -> Optional[RoundState]:
        """
        Move a session to its next round if nobody else already did.

        Returns:
            The updated RoundState, or None if the stored index no longer
            equals expected_index
        """
        if new_index != expected_index + 1:
            raise ValueError(f"Rounds advance one at a time: {expected_index} -> {new_index}")

        async with self._transaction("advance_round") as db:
            result = await db.execute(
                update(TriviaRoundState)
                .where(
                    TriviaRoundState.session_id == session_id,
                    TriviaRoundState.round_index == expected_index,
                    TriviaRoundState.round_total > new_index,
                )
                .values(round_index=new_index)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                return None
            return await self._load_round_state(db, session_id)

    async def get_round_state(self, session_id: int) -> Optional[RoundState]:
        async with self._transaction("get_round_state") as db:
            return await self._load_round_state(db, session_id)

    async def _load_round_state(self, db: AsyncSession, session_id: int) -> Optional[RoundState]:
        stmt = select(TriviaRoundState).where(TriviaRoundState.session_id == session_id)
        row = (await db.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None

        batch = await db.get(TriviaQuestionBatch, row.question_batch_id)
        questions = tuple(Question.from_dict(item) for item in batch.payload) if batch else ()
        return RoundState(
            session_id=row.session_id,
            question_batch_id=row.question_batch_id,
            round_index=row.round_index,
            round_total=row.round_total,
            questions=questions,
        )

    # Scores

    async def record_score(self, user_id: str, session_id: int) -> ScoreEntry:
        async with self._transaction("record_score") as db:
            row = TriviaScore(user_id=user_id, session_id=session_id)
            db.add(row)
            await db.flush()
            entry = ScoreEntry(user_id=row.user_id, session_id=row.session_id, created_at=row.created_at)

        self.logger.info(f"Recorded point for user {user_id} in session {session_id}")
        return entry

    def _ranked_scores(self):
        points = func.count(TriviaScore.id).label("points")
        return (
            select(TriviaScore.user_id, points)
            .group_by(TriviaScore.user_id)
            .order_by(points.desc(), TriviaScore.user_id.asc())
        )

    async def scores_for_session(self, session_id: int) -> List[UserScore]:
        """Top scorers of one game, best first."""
        async with self._transaction("scores_for_session") as db:
            stmt = self._ranked_scores().where(TriviaScore.session_id == session_id).limit(LEADERBOARD_SIZE)
            rows = (await db.execute(stmt)).all()
            return [UserScore(user_id=row.user_id, count=row.points) for row in rows]

    async def score_for_user(self, user_id: str) -> Optional[UserScore]:
        """All-time points of one user, or None if they never scored."""
        async with self._transaction("score_for_user") as db:
            stmt = self._ranked_scores().where(TriviaScore.user_id == user_id)
            row = (await db.execute(stmt)).first()
            return UserScore(user_id=row.user_id, count=row.points) if row else None

    async def top_scores_all_time(self) -> List[UserScore]:
        async with self._transaction("top_scores_all_time") as db:
            rows = (await db.execute(self._ranked_scores().limit(LEADERBOARD_SIZE))).all()
            return [UserScore(user_id=row.user_id, count=row.points) for row in rows]

    # Channel config

    async def get_channel_config(self, channel_id: str) -> Dict[str, str]:
        async with self._transaction("get_channel_config") as db:
            stmt = select(TriviaConfig.key, TriviaConfig.value).where(TriviaConfig.channel_id == channel_id)
            return {row.key: row.value for row in (await db.execute(stmt)).all()}

    async def set_channel_config(self, channel_id: str, key: str, value: str) -> None:
        """Store a config value for a channel, replacing any previous value."""
        async with self._transaction("set_channel_config") as db:
            await db.execute(
                delete(TriviaConfig)
                .where(TriviaConfig.channel_id == channel_id, TriviaConfig.key == key)
                .execution_options(synchronize_session=False)
            )
            db.add(TriviaConfig(channel_id=channel_id, key=key, value=value))
