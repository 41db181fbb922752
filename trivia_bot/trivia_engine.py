"""
Trivia session engine.
Runs the per-channel game state machine: start, guess, round expiry and stop.
"""
import logging
import time
from typing import Any, Dict, List, Optional

from .answer_matcher import matches
from .config_manager import ChannelConfigManager
from .errors import (
    QuestionProviderUnavailable,
    SessionConflictError,
    StaleOperation,
    TransientStoreError,
    TriviaError,
    ValidationError,
)
from .models import Notifier, QuestionProvider, RoundState, UserScore
from .question_presenter import format_game_over, mention, present
from .question_provider import validate_amount
from .round_scheduler import RoundScheduler
from .session_store import SessionStore


class TriviaEngine:
    """
    Orchestrates trivia games across chat channels.

    The engine keeps no game state of its own. Every call is keyed by
    channel id and reads the current session and round from the store. The
    round index works as a version tag: a round ends only for the caller
    whose conditional store write succeeds, and everyone else is stale.
    """

    def __init__(
        self,
        store: SessionStore,
        provider: QuestionProvider,
        round_scheduler: RoundScheduler,
        notifier: Notifier,
        config_manager: ChannelConfigManager,
        command_prefix: str = "!"
    ):
        """
        Initialize the trivia engine.

        Args:
            store: Durable session, round and score storage
            provider: Source of question batches
            round_scheduler: Arms round expiry timers
            notifier: Sends text to channels
            config_manager: Per-channel timeout and question count
            command_prefix: Prefix shown in player-facing hints
        """
        self.logger = logging.getLogger(__name__)
        self.store = store
        self.provider = provider
        self.round_scheduler = round_scheduler
        self.notifier = notifier
        self.config_manager = config_manager
        self.command_prefix = command_prefix

    # Commands

    async def start(self, channel_id: str, amount: Optional[int] = None) -> Dict[str, Any]:
        """
        Start a new game in a channel.

        Args:
            channel_id: Channel identifier
            amount: Number of questions, channel default if None

        Returns:
            Dictionary with operation result and error information
        """
        try:
            if await self.store.get_active_session(channel_id) is not None:
                raise SessionConflictError(f"Game already running in channel {channel_id}")

            config = await self.config_manager.get(channel_id)
            if amount is None:
                amount = config.default_question_count
            validate_amount(amount)

            # Nothing is written until the batch is in hand
            batch = await self.provider.fetch(amount)
            if not batch:
                raise ValidationError("The question bank returned no questions, try a smaller number")

            session = await self.store.create_session(channel_id)
            if session is None:
                raise TransientStoreError(f"Could not create session for channel {channel_id}")

            try:
                state = await self.store.init_round_state(session.id, batch, len(batch))
            except TransientStoreError:
                await self._abandon_session(session.id)
                raise

        except TriviaError as e:
            return self._handle_session_error(channel_id, e, "start")

        self.logger.info(
            f"Started game in channel {channel_id}: session={session.id}, questions={state.round_total}",
            extra={
                'event_type': 'session_started',
                'channel_id': channel_id,
                'session_id': session.id,
                'round_total': state.round_total,
                'timestamp': time.time()
            }
        )

        await self.notifier.send(channel_id, f"Starting trivia, use {self.command_prefix}stop to stop")
        try:
            await self._open_round(channel_id, state)
        except TriviaError as e:
            return self._handle_session_error(channel_id, e, "start")

        return {
            'success': True,
            'message': f"Started game with {state.round_total} questions",
            'session_id': session.id,
            'round_total': state.round_total
        }

    async def stop(self, channel_id: str) -> Dict[str, Any]:
        """
        Stop the active game in a channel and announce the winners.

        Returns:
            Dictionary with operation result and error information
        """
        try:
            session = await self.store.get_active_session(channel_id)
            if session is None:
                return {
                    'success': False,
                    'message': "No active game to stop in this channel"
                }

            if not await self.store.stop_session(session.id):
                # A concurrent completion or stop already ended and announced it
                return {
                    'success': False,
                    'message': "Game already ended"
                }

            self.logger.info(
                f"Stopped game in channel {channel_id}",
                extra={
                    'event_type': 'session_stopped',
                    'channel_id': channel_id,
                    'session_id': session.id,
                    'timestamp': time.time()
                }
            )
            scores = await self.store.scores_for_session(session.id)

        except TriviaError as e:
            return self._handle_session_error(channel_id, e, "stop")

        await self.notifier.send(channel_id, format_game_over(scores))
        return {
            'success': True,
            'message': "Game stopped",
            'session_id': session.id,
            'scores': scores
        }

    async def guess(self, channel_id: str, user_id: str, text: str) -> Dict[str, Any]:
        """
        Evaluate a free-text guess against the current question.

        Wrong guesses get no reply.

        Args:
            channel_id: Channel identifier
            user_id: Player who guessed
            text: Raw message text

        Returns:
            Dictionary with operation result and error information
        """
        try:
            session = await self.store.get_active_session(channel_id)
            if session is None:
                return {'success': False, 'message': "No active game"}

            state = await self.store.get_round_state(session.id)
            if state is None or state.current_question is None:
                return {'success': False, 'message': "No open round"}

            if not matches(state.current_question, text):
                return {'success': False, 'message': "Incorrect guess"}

            await self._resolve_round(channel_id, state, winner_id=user_id)

        except StaleOperation as e:
            self.logger.debug(f"Dropped late correct guess from {user_id} in channel {channel_id}: {e}")
            return {'success': False, 'message': "Round already resolved"}
        except TriviaError as e:
            return self._handle_session_error(channel_id, e, "guess")

        return {
            'success': True,
            'message': f"Correct guess by {user_id}",
            'session_id': session.id,
            'round_index': state.round_index
        }

    # Timer path

    async def expire(self, channel_id: str, session_id: int, round_index: int) -> None:
        """
        End a round whose timer ran out.

        Called by the round scheduler with the ids it was armed with.
        """
        try:
            state = await self.store.get_round_state(session_id)
            if state is None or state.round_index != round_index:
                raise StaleOperation(session_id, round_index)
            await self._resolve_round(channel_id, state, winner_id=None)
        except StaleOperation as e:
            self.logger.debug(f"Dropped stale expiry in channel {channel_id}: {e}")
        except TriviaError as e:
            self.logger.error(
                f"Round expiry failed in channel {channel_id}: {e}",
                extra={
                    'event_type': 'round_expiry_failed',
                    'channel_id': channel_id,
                    'session_id': session_id,
                    'round_index': round_index,
                    'timestamp': time.time()
                },
                exc_info=True
            )

    # Shared advance path

    async def _resolve_round(self, channel_id: str, state: RoundState, winner_id: Optional[str]) -> None:
        """
        End the current round, by correct guess or by timeout.

        Raises:
            StaleOperation: If another resolver already ended this round
        """
        session_id = state.session_id
        presentation = present(state.current_question, state.round_index, state.round_total)

        # Claim the round before any side effect
        if state.is_last_round:
            next_state = None
            claimed = await self.store.stop_session(session_id, expected_index=state.round_index)
        else:
            next_state = await self.store.advance_round(session_id, state.round_index, state.round_index + 1)
            claimed = next_state is not None
        if not claimed:
            raise StaleOperation(session_id, state.round_index)

        self.logger.info(
            f"Resolved round {state.round_index + 1}/{state.round_total} in channel {channel_id}",
            extra={
                'event_type': 'round_resolved',
                'channel_id': channel_id,
                'session_id': session_id,
                'round_index': state.round_index,
                'resolution': 'answered' if winner_id else 'expired',
                'timestamp': time.time()
            }
        )

        if winner_id is not None:
            text = f"Correct {mention(winner_id)}! The answer was: {presentation.correct_choice}"
            try:
                await self.store.record_score(winner_id, session_id)
            except TransientStoreError as e:
                # The round is already claimed; keep the game moving
                self.logger.error(f"Failed to record point for {winner_id} in session {session_id}: {e}")
                text += "\n(Your point could not be saved, sorry!)"
            await self.notifier.send(channel_id, text)
        else:
            await self.notifier.send(
                channel_id, f"**Time's up!** The answer was: {presentation.correct_choice}"
            )

        if next_state is None:
            scores = await self.store.scores_for_session(session_id)
            self.logger.info(
                f"Game completed in channel {channel_id}",
                extra={
                    'event_type': 'session_completed',
                    'channel_id': channel_id,
                    'session_id': session_id,
                    'timestamp': time.time()
                }
            )
            await self.notifier.send(channel_id, format_game_over(scores))
            return

        await self._open_round(channel_id, next_state)

    async def _open_round(self, channel_id: str, state: RoundState) -> bool:
        """
        Announce a round and arm its timer.

        The reveal before it awaits the notifier, so a stop or another
        resolution may have landed in between. In that case the round
        stays quiet.

        Returns:
            True if the round was announced
        """
        if not await self.round_scheduler.is_current(channel_id, state.session_id, state.round_index):
            self.logger.debug(
                f"Skipped announcing round {state.round_index + 1} in channel {channel_id}, game moved on"
            )
            return False

        config = await self.config_manager.get(channel_id)
        await self._announce_round(channel_id, state)
        self._arm_round(channel_id, state, config.round_timeout_seconds)
        return True

    async def _announce_round(self, channel_id: str, state: RoundState) -> None:
        presentation = present(state.current_question, state.round_index, state.round_total)
        await self.notifier.send(channel_id, presentation.prompt)

    def _arm_round(self, channel_id: str, state: RoundState, timeout_seconds: int) -> None:
        self.round_scheduler.arm(
            channel_id,
            state.session_id,
            state.round_index,
            timeout_seconds,
            self.expire
        )

    async def _abandon_session(self, session_id: int) -> None:
        try:
            await self.store.stop_session(session_id)
        except TransientStoreError as e:
            self.logger.error(f"Failed to clean up session {session_id} after a failed start: {e}")

    async def rearm_active_sessions(self) -> int:
        """
        Re-arm round timers for games that were running when the process stopped.

        Timers live in memory only, so after a restart every active game would
        otherwise wait forever for a correct guess. Each resumed round gets a
        full timeout.

        Returns:
            Number of rounds re-armed
        """
        rearmed = 0
        for session in await self.store.list_active_sessions():
            state = await self.store.get_round_state(session.id)
            if state is None:
                # Start failed halfway; nothing to resume
                await self._abandon_session(session.id)
                continue
            config = await self.config_manager.get(session.channel_id)
            self._arm_round(session.channel_id, state, config.round_timeout_seconds)
            rearmed += 1

        if rearmed:
            self.logger.info(
                f"Re-armed {rearmed} round timers after startup",
                extra={
                    'event_type': 'sessions_resumed',
                    'count': rearmed,
                    'timestamp': time.time()
                }
            )
        return rearmed

    # Scores

    async def user_score(self, user_id: str) -> Optional[UserScore]:
        return await self.store.score_for_user(user_id)

    async def all_time_scores(self) -> List[UserScore]:
        return await self.store.top_scores_all_time()

    # Error handling

    def _handle_session_error(self, channel_id: str, error: Exception, operation: str) -> Dict[str, Any]:
        """
        Log a failed operation and build its result.

        Args:
            channel_id: Channel identifier
            error: The exception that occurred
            operation: Description of the operation that failed

        Returns:
            Dictionary with error handling results
        """
        if isinstance(error, (ValidationError, SessionConflictError)):
            self.logger.info(f"Rejected {operation} in channel {channel_id}: {error}")
        else:
            self.logger.error(f"Error in {operation} for channel {channel_id}: {error}", exc_info=True)

        return {
            'success': False,
            'error': str(error),
            'operation': operation,
            'user_message': self._get_user_friendly_error_message(error)
        }

    def _get_user_friendly_error_message(self, error: Exception) -> str:
        if isinstance(error, SessionConflictError):
            return "Game already in progress"

        elif isinstance(error, ValidationError):
            return str(error)

        elif isinstance(error, QuestionProviderUnavailable):
            return "Couldn't reach the question bank. Please try again in a moment."

        else:
            return "Could not complete that right now; please try again."
