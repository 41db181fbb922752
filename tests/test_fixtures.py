"""
Test fixtures and sample data for Trivia Bot tests.
"""
import shutil
import tempfile
import unittest
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple
from unittest.mock import AsyncMock, Mock

import discord

from trivia_bot.models import Question, QuestionType
from trivia_bot.session_store import SessionStore


class TestFixtures:
    """Centralized test fixtures for all test modules."""

    @staticmethod
    def create_boolean_question(correct: str = "True") -> Question:
        return Question(
            type=QuestionType.BOOLEAN,
            prompt="The Great Wall of China is visible from the Moon with the naked eye.",
            correct_answer=correct,
            incorrect_answers=("False" if correct == "True" else "True",),
            category="General Knowledge",
            difficulty="easy",
        )

    @staticmethod
    def create_multiple_question() -> Question:
        """Capital question whose answers sort to Berlin, London, Madrid, Paris."""
        return Question(
            type=QuestionType.MULTIPLE,
            prompt="What is the capital of France?",
            correct_answer="Paris",
            incorrect_answers=("London", "Berlin", "Madrid"),
            category="Geography",
            difficulty="easy",
        )

    @staticmethod
    def create_long_answer_question() -> Question:
        """Every answer is between 6 and 12 characters long."""
        return Question(
            type=QuestionType.MULTIPLE,
            prompt="Which planet has the most moons?",
            correct_answer="Jupiter",
            incorrect_answers=("Neptune", "Mercury", "Uranus"),
        )

    @staticmethod
    def create_sample_questions() -> List[Question]:
        """Create sample questions for testing."""
        return [
            TestFixtures.create_multiple_question(),
            TestFixtures.create_boolean_question(),
            Question(
                type=QuestionType.MULTIPLE,
                prompt="Who wrote &quot;Hamlet&quot;?",
                correct_answer="William Shakespeare",
                incorrect_answers=("Christopher Marlowe", "Ben Jonson", "John Milton"),
                category="Entertainment: Books",
                difficulty="medium",
            ),
        ]

    @staticmethod
    def create_api_payload(questions: Optional[List[Question]] = None, response_code: int = 0) -> Dict[str, Any]:
        """Create an Open Trivia DB style response body."""
        if questions is None:
            questions = TestFixtures.create_sample_questions()
        return {
            "response_code": response_code,
            "results": [question.to_dict() for question in questions],
        }


class RecordingNotifier:
    """Notifier that keeps every message instead of sending it."""

    def __init__(self):
        self.messages: List[Tuple[str, str]] = []

    async def send(self, channel_id: str, text: str) -> None:
        self.messages.append((channel_id, text))

    def texts(self, channel_id: Optional[str] = None) -> List[str]:
        return [text for channel, text in self.messages if channel_id is None or channel == channel_id]

    def count_containing(self, fragment: str) -> int:
        return sum(1 for _, text in self.messages if fragment in text)

    def clear(self) -> None:
        self.messages.clear()


class ManualScheduler:
    """Scheduler whose callbacks only run when a test fires them."""

    def __init__(self):
        self.pending: List[Tuple[float, Callable[[], Awaitable[None]]]] = []

    def after(self, seconds: float, callback: Callable[[], Awaitable[None]]) -> None:
        self.pending.append((seconds, callback))

    def take(self, index: int = 0) -> Callable[[], Awaitable[None]]:
        """Remove a pending callback without running it."""
        return self.pending.pop(index)[1]

    async def fire_next(self) -> None:
        await self.take(0)()

    async def fire_all(self) -> None:
        callbacks = [callback for _, callback in self.pending]
        self.pending.clear()
        for callback in callbacks:
            await callback()


class FakeQuestionProvider:
    """Question provider serving a fixed batch."""

    def __init__(self, questions: Optional[List[Question]] = None, error: Optional[Exception] = None):
        self.questions = questions if questions is not None else TestFixtures.create_sample_questions()
        self.error = error
        self.calls: List[int] = []

    async def fetch(self, amount: int) -> List[Question]:
        self.calls.append(amount)
        if self.error is not None:
            raise self.error
        return list(self.questions[:amount])


class StoreTestCase(unittest.IsolatedAsyncioTestCase):
    """Base class giving each test a fresh SQLite database file."""

    async def asyncSetUp(self):
        self.temp_dir = tempfile.mkdtemp()
        self.database_url = f"sqlite+aiosqlite:///{Path(self.temp_dir) / 'trivia_test.db'}"
        self.store = SessionStore(self.database_url)
        await self.store.create_tables()

    async def asyncTearDown(self):
        await self.store.close()
        shutil.rmtree(self.temp_dir, ignore_errors=True)


class MockDiscordObjects:
    """Mock Discord objects for testing bot functionality."""

    @staticmethod
    def create_mock_channel(channel_id: int = 12345) -> Mock:
        """Create mock Discord channel."""
        channel = Mock(spec=discord.TextChannel)
        channel.id = channel_id
        channel.send = AsyncMock()
        return channel

    @staticmethod
    def create_mock_message(
        content: str = "!trivia",
        channel_id: int = 12345,
        author_id: int = 67890,
        is_bot: bool = False
    ) -> Mock:
        """Create mock Discord message."""
        message = Mock(spec=discord.Message)
        message.content = content
        message.channel = MockDiscordObjects.create_mock_channel(channel_id)
        message.author = Mock()
        message.author.id = author_id
        message.author.bot = is_bot
        return message

    @staticmethod
    def create_http_exception(status: int, message: str = "HTTP error") -> discord.HTTPException:
        response = Mock()
        response.status = status
        response.reason = message
        if status == 403:
            return discord.Forbidden(response, message)
        if status == 404:
            return discord.NotFound(response, message)
        return discord.HTTPException(response, message)
