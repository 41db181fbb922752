import asyncio
import logging
import os
from typing import Optional

import discord
from discord.ext import commands

from .commands import DEFAULT_PREFIX, CommandRouter
from .config_manager import ChannelConfigManager
from .question_provider import DEFAULT_API_URL, OpenTriviaProvider
from .round_scheduler import AsyncioScheduler, RoundScheduler
from .session_store import DEFAULT_DATABASE_URL, SessionStore
from .trivia_engine import TriviaEngine

logger = logging.getLogger(__name__)


class DiscordNotifier:
    """Sends engine and router output to Discord text channels."""

    def __init__(self, client: discord.Client, max_retries: int = 3):
        self.client = client
        self.max_retries = max_retries

    async def _resolve_channel(self, channel_id: str):
        channel = self.client.get_channel(int(channel_id))
        if channel is None:
            channel = await self.client.fetch_channel(int(channel_id))
        return channel

    async def send(self, channel_id: str, text: str) -> None:
        """Send a message, retrying rate limits and Discord server errors. Never raises."""
        for attempt in range(self.max_retries):
            try:
                channel = await self._resolve_channel(channel_id)
                await channel.send(text)
                return

            except (discord.Forbidden, discord.NotFound) as e:
                logger.error(f"Cannot send to channel {channel_id}: {e}")
                return

            except discord.HTTPException as e:
                if attempt == self.max_retries - 1:
                    logger.error(f"All retry attempts failed sending to channel {channel_id}: {e}")
                    return

                # Wait before retry with exponential backoff
                wait_time = getattr(e, 'retry_after', None) or 2 ** attempt
                logger.warning(f"Discord API error (attempt {attempt + 1}), retrying in {wait_time}s: {e}")
                await asyncio.sleep(wait_time)


class TriviaBot(commands.Bot):
    """Discord bot that runs trivia games from chat messages"""

    def __init__(self, config=None):
        # Guesses are plain messages, so message content is required
        intents = discord.Intents.none()
        intents.guilds = True
        intents.guild_messages = True
        intents.message_content = True

        command_prefix = DEFAULT_PREFIX
        if config and 'bot' in config:
            command_prefix = config['bot'].get('command_prefix', DEFAULT_PREFIX)

        super().__init__(
            command_prefix=command_prefix,
            intents=intents,
            help_command=None  # Help is served by the command router
        )

        # Store configuration
        self.app_config = config or {}
        self.prefix = command_prefix

        # Initialize core components
        self.store: Optional[SessionStore] = None
        self.provider: Optional[OpenTriviaProvider] = None
        self.scheduler: Optional[AsyncioScheduler] = None
        self.notifier = DiscordNotifier(self)
        self.config_manager: Optional[ChannelConfigManager] = None
        self.engine: Optional[TriviaEngine] = None
        self.router: Optional[CommandRouter] = None

    async def setup_hook(self):
        """Called when the bot is starting up"""
        try:
            logger.info("Setting up bot components...")

            database_url = self.app_config.get('database', {}).get('url', DEFAULT_DATABASE_URL)
            trivia_config = self.app_config.get('trivia', {})

            self.store = SessionStore(database_url)
            await self.store.create_tables()

            self.provider = OpenTriviaProvider(
                api_url=trivia_config.get('api_url', DEFAULT_API_URL),
                timeout=trivia_config.get('request_timeout', 10.0)
            )
            self.scheduler = AsyncioScheduler()
            self.config_manager = ChannelConfigManager(
                self.store,
                default_round_timeout=trivia_config.get('default_round_timeout'),
                default_question_count=trivia_config.get('default_question_count')
            )
            self.engine = TriviaEngine(
                self.store,
                self.provider,
                RoundScheduler(self.store, self.scheduler),
                self.notifier,
                self.config_manager,
                command_prefix=self.prefix
            )
            self.router = CommandRouter(self.engine, self.config_manager, self.notifier, prefix=self.prefix)

            await self.engine.rearm_active_sessions()

            logger.info("Bot setup completed successfully")

        except Exception as e:
            logger.error(f"Error during bot setup: {e}")
            raise

    async def on_ready(self):
        """Called when the bot has successfully connected to Discord"""
        logger.info(f"Bot is ready! Logged in as {self.user}")
        logger.info(f"Bot is in {len(self.guilds)} guilds")
        print(f"🤖 {self.user} is Ready and Online!")
        print(f"📊 Connected to {len(self.guilds)} server(s)")

    async def on_message(self, message: discord.Message):
        """Route every human message in a guild channel to the command router"""
        if message.author.bot or self.router is None:
            return

        channel_id = str(message.channel.id)
        try:
            await self.router.handle(channel_id, str(message.author.id), message.content)
        except Exception as e:
            logger.error(
                f"Unexpected error handling message in channel {channel_id}: {e}",
                extra={
                    'event_type': 'message_error',
                    'channel_id': channel_id,
                    'user_id': str(message.author.id)
                },
                exc_info=True
            )
            await self.notifier.send(
                channel_id, "An error occurred while processing your message. Please try again."
            )

    async def on_error(self, event, *args, **kwargs):
        """Handle general bot errors"""
        logger.error(f"An error occurred in event {event}", exc_info=True)

    async def close(self):
        """Cancel pending round timers and release the HTTP client and database"""
        if self.scheduler is not None:
            await self.scheduler.shutdown()
        if self.provider is not None:
            await self.provider.close()
        if self.store is not None:
            await self.store.close()
        await super().close()


async def run_bot(token=None, config=None):
    """Run the bot with proper error handling"""
    # Fall back to environment variable if no token provided
    if not token:
        token = os.getenv('DISCORD_BOT_TOKEN')

    if not token:
        logger.error("No Discord bot token provided")
        return

    bot = TriviaBot(config)

    try:
        logger.info("Starting Discord Trivia Bot...")
        await bot.start(token)
    except discord.LoginFailure:
        logger.error("Invalid bot token provided")
    except discord.PrivilegedIntentsRequired:
        logger.error("Message content intent is not enabled for this bot in the Discord Developer Portal")
    except discord.HTTPException as e:
        logger.error(f"HTTP error occurred: {e}")
    finally:
        if not bot.is_closed():
            await bot.close()
