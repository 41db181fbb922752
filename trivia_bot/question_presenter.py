"""
Question presentation for the Trivia Bot.
Turns questions and scores into player-facing text. Pure functions, no I/O.
"""
import html
import string
from typing import List, Optional, Sequence

from .models import Presentation, Question, QuestionType, UserScore

MEDALS = ["🥇", "🥈", "🥉"]


def present(question: Question, round_index: int = 0, round_total: int = 1) -> Presentation:
    """
    Lay out a question's choices and prompt.

    Multiple-choice answers are decoded, sorted and labelled A, B, C... so the
    same question always yields the same labels, even after a restart.

    Args:
        question: Question to present
        round_index: 0-based round number
        round_total: Number of rounds in the game

    Returns:
        Presentation with choices, the correct choice index and the prompt text
    """
    header = f"**Question {round_index + 1} / {round_total}**:\n"
    prompt_text = html.unescape(question.prompt)

    if question.type != QuestionType.MULTIPLE:
        answers = [question.correct_answer, *question.incorrect_answers]
        prefix = "True or False: " if question.type == QuestionType.BOOLEAN else ""
        return Presentation(
            choices=list(answers),
            correct_index=0,
            prompt=f"{header}{prefix}{prompt_text}",
            answers=list(answers),
        )

    correct = html.unescape(question.correct_answer)
    answers = sorted(
        html.unescape(answer)
        for answer in [*question.incorrect_answers, question.correct_answer]
    )
    labels = string.ascii_uppercase
    choices = [f"**{labels[idx]}**. {answer}" for idx, answer in enumerate(answers)]
    prompt = f"{header}{prompt_text}\n**Answers**:\n" + "\n".join(choices)

    return Presentation(
        choices=choices,
        correct_index=answers.index(correct),
        prompt=prompt,
        answers=answers,
    )


def choice_label(index: int) -> str:
    return string.ascii_uppercase[index]


def mention(user_id: str) -> str:
    return f"<@{user_id}>"


def is_mention(text: Optional[str]) -> bool:
    if not text:
        return False
    return text.startswith("<@") and text.endswith(">")


def id_from_mention(text: str) -> str:
    # Nickname mentions look like <@!123>
    return text[2:-1].lstrip("!")


def _points(count: int) -> str:
    return "point" if count == 1 else "points"


def format_leaderboard(scores: Sequence[UserScore]) -> str:
    """Medal-prefixed ranking lines, best first."""
    lines = []
    for idx, score in enumerate(scores):
        medal = MEDALS[idx] if idx < len(MEDALS) else ""
        lines.append(f"{medal} {mention(score.user_id)} - **{score.count}** {_points(score.count)}")
    return "\n".join(lines)


def format_game_over(scores: Sequence[UserScore]) -> str:
    if not scores:
        return "Game over! Nobody scored any points this time."
    return f"Game over! The winners are:\n{format_leaderboard(scores)}"


def format_user_score(user_id: str, score: Optional[UserScore]) -> str:
    if score is None or score.count == 0:
        return f"{mention(user_id)} has no points! Sad!"
    return f"Total points for {mention(user_id)}: {score.count} {_points(score.count)}"


def format_all_time(scores: List[UserScore]) -> str:
    if not scores:
        return "**Trivia** - No one has scored any points yet."
    return f"**Trivia** - All Time High Scores:\n{format_leaderboard(scores)}"
