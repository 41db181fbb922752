"""
Configuration manager for per-channel trivia settings.
"""
import logging
from typing import Any, Dict, Optional

from .errors import TransientStoreError
from .models import ChannelConfig

ROUND_TIMEOUT_KEY = "round_timeout"
QUESTION_TOTAL_KEY = "question_total"


class ChannelConfigManager:
    """Reads and validates per-channel game defaults stored in the session store."""

    # Default configuration values
    DEFAULT_ROUND_TIMEOUT = 20
    DEFAULT_QUESTION_COUNT = 10

    # Validation limits
    MIN_ROUND_TIMEOUT = 10
    MAX_ROUND_TIMEOUT = 60
    MIN_QUESTION_COUNT = 1
    MAX_QUESTION_COUNT = 20

    def __init__(
        self,
        store,
        default_round_timeout: Optional[int] = None,
        default_question_count: Optional[int] = None
    ):
        """
        Initialize ChannelConfigManager.

        Args:
            store: SessionStore holding the per-channel config records
            default_round_timeout: Fallback round timeout, must be within limits
            default_question_count: Fallback question count, must be within limits
        """
        self.logger = logging.getLogger(__name__)
        self.store = store
        self.defaults = ChannelConfig(
            round_timeout_seconds=self._checked_default(
                default_round_timeout, self.DEFAULT_ROUND_TIMEOUT,
                self.MIN_ROUND_TIMEOUT, self.MAX_ROUND_TIMEOUT, "round timeout"
            ),
            default_question_count=self._checked_default(
                default_question_count, self.DEFAULT_QUESTION_COUNT,
                self.MIN_QUESTION_COUNT, self.MAX_QUESTION_COUNT, "question count"
            ),
        )

    def _checked_default(self, value: Optional[int], fallback: int, low: int, high: int, name: str) -> int:
        if value is None:
            return fallback
        if not isinstance(value, int) or not low <= value <= high:
            self.logger.warning(f"Ignoring invalid default {name} {value!r}, using {fallback}")
            return fallback
        return value

    async def get(self, channel_id: str) -> ChannelConfig:
        """
        Get the effective config for a channel.

        Stored values that are missing or out of range fall back to defaults.

        Args:
            channel_id: Channel identifier

        Returns:
            ChannelConfig for the channel
        """
        stored = await self.store.get_channel_config(channel_id)
        return ChannelConfig(
            round_timeout_seconds=self._stored_int(
                stored.get(ROUND_TIMEOUT_KEY), self.defaults.round_timeout_seconds,
                self.MIN_ROUND_TIMEOUT, self.MAX_ROUND_TIMEOUT
            ),
            default_question_count=self._stored_int(
                stored.get(QUESTION_TOTAL_KEY), self.defaults.default_question_count,
                self.MIN_QUESTION_COUNT, self.MAX_QUESTION_COUNT
            ),
        )

    def _stored_int(self, raw: Optional[str], fallback: int, low: int, high: int) -> int:
        if raw is None:
            return fallback
        try:
            value = int(raw)
        except ValueError:
            self.logger.warning(f"Ignoring non-numeric stored config value {raw!r}")
            return fallback
        return value if low <= value <= high else fallback

    async def set_round_timeout(self, channel_id: str, seconds: Any) -> Dict[str, Any]:
        """
        Set the round timeout for a channel.

        Args:
            channel_id: Channel identifier
            seconds: Round length in seconds

        Returns:
            Dictionary with success status, error message, and user-friendly message
        """
        error = self._range_error(
            seconds, self.MIN_ROUND_TIMEOUT, self.MAX_ROUND_TIMEOUT,
            f"Timeout must be between {self.MIN_ROUND_TIMEOUT} and {self.MAX_ROUND_TIMEOUT} seconds"
        )
        if error:
            return error

        return await self._store_value(
            channel_id, ROUND_TIMEOUT_KEY, seconds,
            f"Round timeout set to {seconds} seconds"
        )

    async def set_default_question_count(self, channel_id: str, count: Any) -> Dict[str, Any]:
        """
        Set the default number of questions for a channel.

        Args:
            channel_id: Channel identifier
            count: Number of questions per game

        Returns:
            Dictionary with success status, error message, and user-friendly message
        """
        error = self._range_error(
            count, self.MIN_QUESTION_COUNT, self.MAX_QUESTION_COUNT,
            f"Number of questions must be between {self.MIN_QUESTION_COUNT} and {self.MAX_QUESTION_COUNT}"
        )
        if error:
            return error

        return await self._store_value(
            channel_id, QUESTION_TOTAL_KEY, count,
            f"Default question count set to {count}"
        )

    def _range_error(self, value: Any, low: int, high: int, message: str) -> Optional[Dict[str, Any]]:
        # Type validation
        if not isinstance(value, int) or isinstance(value, bool):
            error_msg = f"Expected an integer, got {type(value).__name__}"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': "Value must be a number"
            }

        # Range validation
        if value < low or value > high:
            self.logger.error(f"{message}, got {value}")
            return {
                'success': False,
                'error': f"{message}, got {value}",
                'user_message': message
            }
        return None

    async def _store_value(self, channel_id: str, key: str, value: int, message: str) -> Dict[str, Any]:
        try:
            await self.store.set_channel_config(channel_id, key, str(value))
        except TransientStoreError as e:
            self.logger.error(f"Failed to store {key} for channel {channel_id}: {e}")
            return {
                'success': False,
                'error': str(e),
                'user_message': "Could not save that setting right now; please try again."
            }

        self.logger.info(f"{message} for channel {channel_id}")
        return {
            'success': True,
            'message': message,
            'user_message': message
        }

    async def get_settings_summary(self, channel_id: str) -> str:
        """
        Get a formatted summary of a channel's settings.

        Returns:
            Human-readable string describing current settings
        """
        config = await self.get(channel_id)
        return (
            f"Trivia Settings:\n"
            f"• Questions per game: {config.default_question_count}\n"
            f"• Round timeout: {config.round_timeout_seconds} seconds"
        )
