"""
Core data models for the Trivia Bot.
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol, Tuple, Union


class QuestionType(Enum):
    """Question kinds served by the question bank."""
    BOOLEAN = "boolean"
    MULTIPLE = "multiple"


@dataclass(frozen=True)
class Question:
    """A single trivia question, immutable once fetched."""
    type: Union[QuestionType, str]
    prompt: str
    correct_answer: str
    incorrect_answers: Tuple[str, ...] = ()
    category: str = ""
    difficulty: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Question":
        """Build a question from the question-bank payload shape."""
        raw_type = data.get("type", "")
        try:
            question_type: Union[QuestionType, str] = QuestionType(raw_type)
        except ValueError:
            question_type = raw_type
        return cls(
            type=question_type,
            prompt=data["question"],
            correct_answer=data["correct_answer"],
            incorrect_answers=tuple(data.get("incorrect_answers", [])),
            category=data.get("category", ""),
            difficulty=data.get("difficulty", ""),
        )

    def to_dict(self) -> Dict[str, Any]:
        type_value = self.type.value if isinstance(self.type, QuestionType) else self.type
        return {
            "type": type_value,
            "question": self.prompt,
            "correct_answer": self.correct_answer,
            "incorrect_answers": list(self.incorrect_answers),
            "category": self.category,
            "difficulty": self.difficulty,
        }


@dataclass(frozen=True)
class Presentation:
    """Player-facing layout of a question."""
    choices: List[str]
    correct_index: int
    prompt: str
    answers: List[str] = field(default_factory=list)

    @property
    def correct_choice(self) -> str:
        return self.choices[self.correct_index]

    @property
    def correct_text(self) -> str:
        return self.answers[self.correct_index]


@dataclass(frozen=True)
class Session:
    """One game bound to a channel."""
    id: int
    channel_id: str
    active: bool
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class RoundState:
    """Progress of a session through its question batch."""
    session_id: int
    question_batch_id: int
    round_index: int
    round_total: int
    questions: Tuple[Question, ...] = ()

    @property
    def current_question(self) -> Optional[Question]:
        if 0 <= self.round_index < len(self.questions):
            return self.questions[self.round_index]
        return None

    @property
    def is_last_round(self) -> bool:
        return self.round_index + 1 >= self.round_total


@dataclass(frozen=True)
class ScoreEntry:
    """Append-only record of one correct guess."""
    user_id: str
    session_id: int
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class UserScore:
    """Aggregated point count for a user."""
    user_id: str
    count: int


@dataclass
class ChannelConfig:
    """Per-channel game defaults."""
    round_timeout_seconds: int = 20
    default_question_count: int = 10


# Collaborator contracts consumed by the engine

ExpiryCallback = Callable[[str, int, int], Awaitable[None]]


class Notifier(Protocol):
    async def send(self, channel_id: str, text: str) -> None: ...


class QuestionProvider(Protocol):
    async def fetch(self, amount: int) -> List[Question]: ...


class Scheduler(Protocol):
    def after(self, seconds: float, callback: Callable[[], Awaitable[None]]) -> None: ...
