"""
Chat command router for the Trivia Bot.
Maps prefixed verbs to handlers and sends everything else to the engine as a guess.
"""
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple, Union

from .config_manager import ChannelConfigManager
from .errors import TransientStoreError
from .models import Notifier
from .question_presenter import format_all_time, format_user_score, id_from_mention, is_mention
from .trivia_engine import TriviaEngine

logger = logging.getLogger(__name__)

DEFAULT_PREFIX = "!"
TRANSIENT_MESSAGE = "Could not complete that right now; please try again."

Handler = Callable[[str, str, List[str]], Awaitable[Dict[str, Any]]]

# Verb aliases, first entry is the name shown in help
START_VERBS = ("trivia", "t", "start")
STOP_VERBS = ("strivia", "stop")
SCORE_VERBS = ("scores", "score", "stats", "stat", "hiscores", "leaderboard")
TIMEOUT_VERBS = ("timeout", "roundlen")
COUNT_VERBS = ("count", "total")
SETTINGS_VERBS = ("settings", "config")
HELP_VERBS = ("help", "h")


def parse_command(content: str, prefix: str = DEFAULT_PREFIX) -> Optional[Tuple[str, List[str]]]:
    """
    Split a prefixed message into verb and arguments.

    Args:
        content: Raw message text
        prefix: Command prefix

    Returns:
        (verb, args) with the verb lowercased, or None if the message isn't a command
    """
    if not content or not content.startswith(prefix):
        return None
    parts = content[len(prefix):].split()
    if not parts:
        return None
    return parts[0].lower(), parts[1:]


def _usage(verbs: Tuple[str, ...], description: str, args: str = "") -> str:
    usage = f"({'|'.join(verbs)})"
    if args:
        usage += f" {args}"
    return f"{description}\nUsage: {usage}"


def _to_int(value: str) -> Union[int, str]:
    try:
        return int(value)
    except ValueError:
        return value


class CommandRouter:
    """Dispatches chat messages for one bot."""

    def __init__(
        self,
        engine: TriviaEngine,
        config_manager: ChannelConfigManager,
        notifier: Notifier,
        prefix: str = DEFAULT_PREFIX
    ):
        self.engine = engine
        self.config_manager = config_manager
        self.notifier = notifier
        self.prefix = prefix

        self.help_texts: Dict[str, str] = {}
        self.handlers: Dict[str, Handler] = {}
        self._register(START_VERBS, self.handle_start,
                       _usage(START_VERBS, "Start a new trivia game.", "[amount]"))
        self._register(STOP_VERBS, self.handle_stop,
                       _usage(STOP_VERBS, "Stop the current trivia game."))
        self._register(SCORE_VERBS, self.handle_scores,
                       _usage(SCORE_VERBS, "View the high scores.", "[me|@user]"))
        self._register(TIMEOUT_VERBS, self.handle_timeout,
                       _usage(TIMEOUT_VERBS, "Set the default round length.", "<seconds>"))
        self._register(COUNT_VERBS, self.handle_count,
                       _usage(COUNT_VERBS, "Set the default number of questions.", "<number>"))
        self._register(SETTINGS_VERBS, self.handle_settings,
                       _usage(SETTINGS_VERBS, "Show this channel's trivia settings."))
        self._register(HELP_VERBS, self.handle_help,
                       _usage(HELP_VERBS, "Get help with commands.", "[command]"))

    def _register(self, verbs: Tuple[str, ...], handler: Handler, help_text: str) -> None:
        self.help_texts[verbs[0]] = help_text
        for verb in verbs:
            self.handlers[verb] = handler

    async def handle(self, channel_id: str, user_id: str, content: str) -> Dict[str, Any]:
        """
        Route one chat message.

        Commands run their handler. Anything else, including unknown verbs,
        is a guess. A result's user_message, if any, is sent back to the channel.

        Args:
            channel_id: Channel the message came from
            user_id: Author of the message
            content: Raw message text

        Returns:
            The handler's result dictionary
        """
        parsed = parse_command(content, self.prefix)
        handler = self.handlers.get(parsed[0]) if parsed else None

        if handler is None:
            result = await self.engine.guess(channel_id, user_id, content)
        else:
            verb, args = parsed
            logger.debug(f"Command {verb} {args} from {user_id} in channel {channel_id}")
            result = await handler(channel_id, user_id, args)

        if result.get('user_message'):
            await self.notifier.send(channel_id, result['user_message'])
        return result

    # Handlers

    async def handle_start(self, channel_id: str, user_id: str, args: List[str]) -> Dict[str, Any]:
        amount = None
        if args:
            try:
                amount = int(args[0])
            except ValueError:
                return {
                    'success': False,
                    'error': f"Invalid amount {args[0]!r}",
                    'user_message': "Number of questions must be a number"
                }
        return await self.engine.start(channel_id, amount)

    async def handle_stop(self, channel_id: str, user_id: str, args: List[str]) -> Dict[str, Any]:
        return await self.engine.stop(channel_id)

    async def handle_scores(self, channel_id: str, user_id: str, args: List[str]) -> Dict[str, Any]:
        """All-time leaderboard, or one user's total with me/self or a mention."""
        target = None
        if args:
            if args[0].lower() in ("me", "self"):
                target = user_id
            elif is_mention(args[0]):
                target = id_from_mention(args[0])

        try:
            if target is not None:
                text = format_user_score(target, await self.engine.user_score(target))
            else:
                text = format_all_time(await self.engine.all_time_scores())
        except TransientStoreError as e:
            logger.error(f"Failed to load scores for channel {channel_id}: {e}")
            return {'success': False, 'error': str(e), 'user_message': TRANSIENT_MESSAGE}

        return {'success': True, 'message': "Scores listed", 'user_message': text}

    async def handle_timeout(self, channel_id: str, user_id: str, args: List[str]) -> Dict[str, Any]:
        if not args:
            return {'success': False, 'error': "Missing seconds", 'user_message': self.help_texts["timeout"]}
        return await self.config_manager.set_round_timeout(channel_id, _to_int(args[0]))

    async def handle_count(self, channel_id: str, user_id: str, args: List[str]) -> Dict[str, Any]:
        if not args:
            return {'success': False, 'error': "Missing number", 'user_message': self.help_texts["count"]}
        return await self.config_manager.set_default_question_count(channel_id, _to_int(args[0]))

    async def handle_settings(self, channel_id: str, user_id: str, args: List[str]) -> Dict[str, Any]:
        try:
            summary = await self.config_manager.get_settings_summary(channel_id)
        except TransientStoreError as e:
            logger.error(f"Failed to load settings for channel {channel_id}: {e}")
            return {'success': False, 'error': str(e), 'user_message': TRANSIENT_MESSAGE}

        return {'success': True, 'message': "Settings shown", 'user_message': summary}

    async def handle_help(self, channel_id: str, user_id: str, args: List[str]) -> Dict[str, Any]:
        if args:
            name = args[0].lower().lstrip(self.prefix)
            handler = self.handlers.get(name)
            if handler is None:
                return {'success': False, 'error': f"Unknown command {name}", 'user_message': f"Command `{name}` not found"}
            primary = next(verb for verb, h in self.handlers.items() if h == handler)
            return {'success': True, 'message': "Help shown", 'user_message': f"```{self.help_texts[primary]}```"}

        listing = "\n\n".join(f"{verb} - {text}" for verb, text in self.help_texts.items())
        return {'success': True, 'message': "Help shown", 'user_message': f"```Available commands:\n\n{listing}```"}
