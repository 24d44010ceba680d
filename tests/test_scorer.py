"""
Unit tests for answer scoring.
"""
import unittest

from trivia_bot.models import MissedQuestion
from trivia_bot.scorer import calculate_score, score_answers
from tests.test_fixtures import TestFixtures


class TestScoreAnswers(unittest.TestCase):
    """Test cases for score_answers."""

    def setUp(self):
        self.questions = TestFixtures.create_sample_questions()

    def test_scoring_example(self):
        report = score_answers(self.questions, {0: "Paris", 2: "False"})

        self.assertEqual(report.score, 1)
        self.assertEqual(report.total, 3)
        self.assertEqual(
            list(report.missed),
            [
                MissedQuestion("Q2 text", None, "42"),
                MissedQuestion("Q3 text", "False", "True"),
            ]
        )
        self.assertEqual(
            [(m.question_text, m.display_answer, m.correct_answer) for m in report.missed],
            [("Q2 text", "No answer", "42"), ("Q3 text", "False", "True")]
        )

    def test_no_answers_misses_everything(self):
        report = score_answers(self.questions, {})
        self.assertEqual(report.score, 0)
        self.assertEqual(len(report.missed), 3)
        self.assertTrue(all(m.user_answer is None for m in report.missed))

    def test_all_correct(self):
        report = score_answers(self.questions, {0: "Paris", 1: "42", 2: "True"})
        self.assertEqual(report.score, 3)
        self.assertTrue(report.is_perfect)

    def test_score_is_monotonic_and_capped(self):
        answers = {}
        previous = calculate_score(self.questions, answers)
        for index, question in enumerate(self.questions):
            answers[index] = question.correct_answer
            current = calculate_score(self.questions, answers)
            self.assertGreaterEqual(current, previous)
            self.assertLessEqual(current, len(self.questions))
            previous = current
        self.assertEqual(previous, len(self.questions))

    def test_empty_quiz(self):
        report = score_answers([], {})
        self.assertEqual(report.score, 0)
        self.assertEqual(report.total, 0)
        self.assertEqual(report.missed, ())

    def test_does_not_modify_inputs(self):
        answers = {0: "Paris"}
        score_answers(self.questions, answers)
        self.assertEqual(answers, {0: "Paris"})

    def test_exact_string_match(self):
        report = score_answers(self.questions, {0: "paris"})
        self.assertEqual(report.score, 0)


if __name__ == '__main__':
    unittest.main()
