"""
Answer scoring for trivia quizzes.
"""
from typing import Mapping, Sequence

from .models import MissedQuestion, ScoreReport, TriviaQuestion


def score_answers(questions: Sequence[TriviaQuestion], answers: Mapping[int, str]) -> ScoreReport:
    """
    Tally correct answers and collect the questions that were missed.

    Args:
        questions: Questions in presentation order
        answers: Selected answer per question index; missing means unanswered

    Returns:
        ScoreReport with the score, total and missed questions in order
    """
    score = 0
    missed = []

    for index, question in enumerate(questions):
        user_answer = answers.get(index)
        if user_answer == question.correct_answer:
            score += 1
        else:
            missed.append(MissedQuestion(question.question_text, user_answer, question.correct_answer))

    return ScoreReport(score=score, total=len(questions), missed=tuple(missed))


def calculate_score(questions: Sequence[TriviaQuestion], answers: Mapping[int, str]) -> int:
    """Return only the number of correct answers."""
    return score_answers(questions, answers).score
