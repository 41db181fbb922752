"""
Answer matching for trivia guesses.
"""

from rapidfuzz.distance import Levenshtein

from .models import Question, QuestionType
from .question_presenter import choice_label, present

# Shortest-answer length bounds for the fuzzy tolerance tiers
SHORT_ANSWER_LENGTH = 6
LONG_ANSWER_LENGTH = 12


def max_edit_distance(min_answer_length: int) -> int:
    """
    Edit-distance tolerance for a question.

    Args:
        min_answer_length: Length of the shortest candidate answer

    Returns:
        0 for short answers, 3 for long ones, 2 in between
    """
    if min_answer_length < SHORT_ANSWER_LENGTH:
        return 0
    if min_answer_length > LONG_ANSWER_LENGTH:
        return 3
    return 2


def matches(question: Question, guess: str) -> bool:
    """
    Decide whether a guess answers the question.

    Boolean questions need the exact answer text (any case). Multiple-choice
    questions accept the correct label, or text within the question's edit
    distance tolerance. Any other question type never matches.
    """
    guess = guess.strip()
    if not guess:
        return False

    if question.type == QuestionType.BOOLEAN:
        return guess.lower() == question.correct_answer.lower()

    if question.type == QuestionType.MULTIPLE:
        presentation = present(question)
        if guess.lower() == choice_label(presentation.correct_index).lower():
            return True

        # Tolerance depends on the question only, never on the guess
        shortest = min(len(answer) for answer in presentation.answers)
        distance = Levenshtein.distance(guess.lower(), presentation.correct_text.lower())
        return distance <= max_edit_distance(shortest)

    return False
