"""
Unit tests for question presentation and score formatting.
"""
import unittest

from trivia_bot.models import Question, QuestionType, UserScore
from trivia_bot.question_presenter import (
    format_all_time,
    format_game_over,
    format_leaderboard,
    format_user_score,
    id_from_mention,
    is_mention,
    mention,
    present,
)
from tests.test_fixtures import TestFixtures


class TestPresent(unittest.TestCase):
    """Test cases for choice layout."""

    def test_multiple_choice_sorted_and_labelled(self):
        presentation = present(TestFixtures.create_multiple_question(), 0, 10)

        self.assertEqual(presentation.answers, ["Berlin", "London", "Madrid", "Paris"])
        self.assertEqual(
            presentation.choices,
            ["**A**. Berlin", "**B**. London", "**C**. Madrid", "**D**. Paris"]
        )
        self.assertEqual(presentation.correct_index, 3)
        self.assertEqual(presentation.correct_choice, "**D**. Paris")
        self.assertEqual(presentation.correct_text, "Paris")

    def test_multiple_choice_prompt(self):
        presentation = present(TestFixtures.create_multiple_question(), 2, 5)

        self.assertEqual(
            presentation.prompt,
            "**Question 3 / 5**:\n"
            "What is the capital of France?\n"
            "**Answers**:\n"
            "**A**. Berlin\n**B**. London\n**C**. Madrid\n**D**. Paris"
        )

    def test_layout_is_deterministic(self):
        question = TestFixtures.create_multiple_question()
        reordered = Question(
            type=QuestionType.MULTIPLE,
            prompt=question.prompt,
            correct_answer="Paris",
            incorrect_answers=("Madrid", "Berlin", "London"),
        )
        self.assertEqual(present(question), present(question))
        self.assertEqual(present(question).choices, present(reordered).choices)

    def test_entities_decoded(self):
        question = TestFixtures.create_sample_questions()[2]
        presentation = present(question, 0, 1)

        self.assertIn('Who wrote "Hamlet"?', presentation.prompt)
        self.assertEqual(presentation.correct_text, "William Shakespeare")

    def test_encoded_correct_answer_found_after_decoding(self):
        question = Question(
            type=QuestionType.MULTIPLE,
            prompt="Pick one",
            correct_answer="Caf&eacute;",
            incorrect_answers=("Bistro", "Diner", "Tavern"),
        )
        presentation = present(question)
        self.assertEqual(presentation.correct_text, "Café")
        self.assertEqual(presentation.correct_choice, "**C**. Café")

    def test_boolean_question(self):
        presentation = present(TestFixtures.create_boolean_question(correct="False"), 0, 3)

        self.assertEqual(presentation.choices, ["False", "True"])
        self.assertEqual(presentation.correct_index, 0)
        self.assertEqual(presentation.correct_choice, "False")
        self.assertTrue(presentation.prompt.startswith("**Question 1 / 3**:\nTrue or False: "))
        self.assertNotIn("**Answers**", presentation.prompt)


class TestMentions(unittest.TestCase):

    def test_mention_round_trip(self):
        self.assertEqual(mention("42"), "<@42>")
        self.assertTrue(is_mention("<@42>"))
        self.assertEqual(id_from_mention("<@42>"), "42")

    def test_nickname_mention(self):
        self.assertTrue(is_mention("<@!42>"))
        self.assertEqual(id_from_mention("<@!42>"), "42")

    def test_not_a_mention(self):
        self.assertFalse(is_mention(None))
        self.assertFalse(is_mention(""))
        self.assertFalse(is_mention("me"))


class TestScoreFormatting(unittest.TestCase):
    """Test cases for leaderboard and score text."""

    def test_leaderboard_medals_and_plurals(self):
        scores = [UserScore("1", 3), UserScore("2", 1), UserScore("3", 1)]

        self.assertEqual(
            format_leaderboard(scores),
            "🥇 <@1> - **3** points\n🥈 <@2> - **1** point\n🥉 <@3> - **1** point"
        )

    def test_game_over_with_winners(self):
        text = format_game_over([UserScore("1", 2)])
        self.assertEqual(text, "Game over! The winners are:\n🥇 <@1> - **2** points")

    def test_game_over_without_winners(self):
        self.assertEqual(format_game_over([]), "Game over! Nobody scored any points this time.")

    def test_user_score(self):
        self.assertEqual(format_user_score("7", UserScore("7", 1)), "Total points for <@7>: 1 point")
        self.assertEqual(format_user_score("7", UserScore("7", 4)), "Total points for <@7>: 4 points")

    def test_user_without_score(self):
        self.assertEqual(format_user_score("7", None), "<@7> has no points! Sad!")

    def test_all_time(self):
        self.assertTrue(format_all_time([UserScore("1", 5)]).startswith("**Trivia** - All Time High Scores:\n🥇"))
        self.assertEqual(format_all_time([]), "**Trivia** - No one has scored any points yet.")


if __name__ == '__main__':
    unittest.main()
