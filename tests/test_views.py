"""
Tests for the options, quiz and results panels.
"""
import logging
import unittest
from unittest.mock import Mock, patch

import discord

from trivia_bot.config_manager import ConfigManager
from trivia_bot.models import MissedQuestion, ScoreReport, ScreenKind
from trivia_bot.quiz_controller import QuizController
from trivia_bot.trivia_provider import NetworkFailure
from trivia_bot.views import (
    AnswerButton,
    CategorySelect,
    CountButton,
    OptionsView,
    QuizView,
    ResultsView,
    StartButton,
    build_options_embed,
    build_results_embed,
    truncate,
)
from tests.test_fixtures import FakeProvider, MockDiscordObjects, TestFixtures


class TestEmbeds(unittest.TestCase):
    """Test cases for panel embeds."""

    def test_options_embed_shows_settings(self):
        embed = build_options_embed(TestFixtures.create_sample_quiz_options())
        fields = {field.name: field.value for field in embed.fields}

        self.assertEqual(fields["Number of Questions"], "3")
        self.assertEqual(fields["Category"], "General Knowledge")
        self.assertEqual(fields["Difficulty"], "Easy")
        self.assertEqual(fields["Timer"], "10 seconds")
        self.assertIsNone(embed.footer.text)

    def test_options_embed_loading(self):
        embed = build_options_embed(TestFixtures.create_sample_quiz_options(), loading=True)
        self.assertIn("Fetching", embed.footer.text)

    def test_results_embed_perfect(self):
        embed = build_results_embed(ScoreReport(score=3, total=3))
        self.assertIn("**3** out of **3**", embed.description)
        self.assertEqual(embed.fields[0].name, "Perfect!")

    def test_results_embed_lists_missed_questions(self):
        report = ScoreReport(
            score=1,
            total=3,
            missed=(
                MissedQuestion("Q2 text", None, "42"),
                MissedQuestion("Q3 text", "False", "True"),
            )
        )
        embed = build_results_embed(report)

        self.assertEqual([field.name for field in embed.fields], ["1. Q2 text", "2. Q3 text"])
        self.assertIn("Your answer: No answer", embed.fields[0].value)
        self.assertIn("Correct answer: 42", embed.fields[0].value)
        self.assertIn("Your answer: False", embed.fields[1].value)

    def test_results_embed_caps_missed_fields(self):
        missed = tuple(MissedQuestion(f"Q{i}", None, "A") for i in range(13))
        embed = build_results_embed(ScoreReport(score=0, total=13, missed=missed))

        self.assertEqual(len(embed.fields), 10)
        self.assertIn("3 more", embed.footer.text)

    def test_truncate(self):
        self.assertEqual(truncate("short", 10), "short")
        self.assertEqual(len(truncate("x" * 100, 80)), 80)


class PanelTestCase(unittest.IsolatedAsyncioTestCase):
    """Shared setup: a real controller backed by a fake provider."""

    def setUp(self):
        self.provider = FakeProvider()
        self.controller = QuizController(self.provider, ConfigManager())
        self.channel_id = 12345
        self.owner_id = 67890
        self.interaction = MockDiscordObjects.create_mock_interaction(self.channel_id, self.owner_id)
        logging.disable(logging.CRITICAL)

    def tearDown(self):
        logging.disable(logging.NOTSET)

    async def start_quiz_view(self) -> QuizView:
        await self.controller.start_quiz(self.channel_id)
        view = QuizView(self.controller, self.channel_id, self.owner_id)
        view.message = MockDiscordObjects.create_mock_message()
        return view


class TestOptionsView(PanelTestCase):
    """Test cases for the options panel."""

    async def test_components_fit_discord_limits(self):
        """Test the panel layout: four selects and one row of buttons."""
        view = OptionsView(self.controller, self.channel_id, self.owner_id)

        self.assertEqual(len(view.children), 9)
        category = next(item for item in view.children if isinstance(item, CategorySelect))
        self.assertEqual(len(category.options), 25)
        self.assertTrue(any(option.default and option.value == "9" for option in category.options))

    async def test_count_buttons_respect_bounds(self):
        """Test that steps past the question count limits are disabled."""
        self.controller.update_options(self.channel_id, question_count=1)
        view = OptionsView(self.controller, self.channel_id, self.owner_id)

        disabled = {item.step: item.disabled for item in view.children if isinstance(item, CountButton)}
        self.assertEqual(disabled, {-5: True, -1: True, 1: False, 5: False})

    async def test_interaction_check_rejects_other_users(self):
        """Test that only the panel owner may use the controls."""
        view = OptionsView(self.controller, self.channel_id, self.owner_id)
        stranger = MockDiscordObjects.create_mock_interaction(self.channel_id, user_id=1)

        self.assertFalse(await view.interaction_check(stranger))
        stranger.response.send_message.assert_awaited_once()
        self.assertTrue(await view.interaction_check(self.interaction))

    async def test_apply_change_updates_draft(self):
        """Test that a select change updates the session and the panel."""
        view = OptionsView(self.controller, self.channel_id, self.owner_id)

        await view.apply_change(self.interaction, difficulty="hard")

        self.assertEqual(self.controller.get_session(self.channel_id).options.difficulty.value, "hard")
        self.interaction.response.edit_message.assert_awaited_once()
        embed = self.interaction.response.edit_message.await_args.kwargs['embed']
        self.assertIn("Hard", [field.value for field in embed.fields])

    async def test_change_count_clamps(self):
        """Test that the count never leaves the allowed range."""
        self.controller.update_options(self.channel_id, question_count=48)
        view = OptionsView(self.controller, self.channel_id, self.owner_id)

        await view.change_count(self.interaction, 5)

        self.assertEqual(self.controller.get_session(self.channel_id).options.question_count, 50)

    async def test_start_success_shows_quiz(self):
        """Test that a successful fetch swaps in the quiz panel and starts the timer."""
        view = OptionsView(self.controller, self.channel_id, self.owner_id)

        with patch.object(self.controller, 'start_quiz_timer', return_value=True) as start_timer:
            await view.start(self.interaction)

        loading_embed = self.interaction.response.edit_message.await_args.kwargs['embed']
        self.assertIn("Fetching", loading_embed.footer.text)

        new_view = self.interaction.edit_original_response.await_args.kwargs['view']
        self.assertIsInstance(new_view, QuizView)
        self.assertTrue(view.is_finished())
        self.assertFalse(view.is_starting)
        start_timer.assert_called_once()
        self.assertIs(self.controller.get_session(self.channel_id).screen.kind, ScreenKind.QUIZ)

    async def test_start_failure_keeps_options(self):
        """Test that a failed fetch leaves the options panel usable and reports the error."""
        self.provider.error = NetworkFailure("down")
        view = OptionsView(self.controller, self.channel_id, self.owner_id)

        await view.start(self.interaction)

        self.assertIs(self.interaction.edit_original_response.await_args.kwargs['view'], view)
        start_button = next(item for item in view.children if isinstance(item, StartButton))
        self.assertFalse(start_button.disabled)
        self.interaction.followup.send.assert_awaited_once()
        self.assertTrue(self.interaction.followup.send.await_args.kwargs['ephemeral'])
        self.assertIs(self.controller.get_session(self.channel_id).screen.kind, ScreenKind.OPTIONS)

    async def test_start_while_starting_is_rejected(self):
        """Test that a second press during loading does not fetch again."""
        view = OptionsView(self.controller, self.channel_id, self.owner_id)
        view._starting = True

        await view.start(self.interaction)

        self.provider.fetch_questions.assert_not_awaited()
        self.interaction.response.send_message.assert_awaited_once()


class TestQuizView(PanelTestCase):
    """Test cases for the quiz panel."""

    async def test_answer_buttons_match_question(self):
        """Test that the first page shows every answer of the first question."""
        view = await self.start_quiz_view()
        question = self.controller.get_session(self.channel_id).questions[0]

        labels = [item.label for item in view.children if isinstance(item, AnswerButton)]
        self.assertEqual(labels, list(question.answer_options))

    async def test_select_records_answer(self):
        """Test that pressing an answer stores it and highlights the button."""
        view = await self.start_quiz_view()

        await view.select(self.interaction, "Paris")

        self.assertEqual(self.controller.get_session(self.channel_id).answers, {0: "Paris"})
        selected = [item for item in view.children if isinstance(item, AnswerButton)
                    and item.style is discord.ButtonStyle.primary]
        self.assertEqual([item.answer for item in selected], ["Paris"])
        self.interaction.response.edit_message.assert_awaited_once()

    async def test_navigate_between_pages(self):
        """Test page navigation stays within the quiz."""
        view = await self.start_quiz_view()

        await view.navigate(self.interaction, 1)
        self.assertEqual(view.page, 1)
        await view.navigate(self.interaction, 5)
        self.assertEqual(view.page, 2)
        await view.navigate(self.interaction, -10)
        self.assertEqual(view.page, 0)

    async def test_submit_shows_results(self):
        """Test that submitting swaps in the results panel."""
        view = await self.start_quiz_view()
        await view.select(self.interaction, "Paris")
        self.interaction.response.edit_message.reset_mock()

        await view.submit(self.interaction)

        kwargs = self.interaction.response.edit_message.await_args.kwargs
        self.assertIsInstance(kwargs['view'], ResultsView)
        self.assertIn("**1** out of **3**", kwargs['embed'].description)
        self.assertTrue(view.is_finished())

    async def test_timer_update_edits_message(self):
        """Test that countdown updates refresh the footer."""
        view = await self.start_quiz_view()

        await view.on_timer_update(25)

        embed = view.message.edit.await_args.kwargs['embed']
        self.assertIn("25s left", embed.footer.text)

    async def test_timer_update_ignores_http_errors(self):
        """Test that a failed edit does not stop the countdown."""
        view = await self.start_quiz_view()
        view.message.edit.side_effect = discord.HTTPException(Mock(status=500), "error")

        await view.on_timer_update(20)

        self.assertEqual(view.remaining_time, 20)

    async def test_timer_expired_shows_results(self):
        """Test that expiry displays the auto-submitted results."""
        view = await self.start_quiz_view()
        result = self.controller.submit_quiz(self.channel_id)

        await view.on_timer_expired(result)

        kwargs = view.message.edit.await_args.kwargs
        self.assertEqual(kwargs['content'], "⏰ Time's up!")
        self.assertIsInstance(kwargs['view'], ResultsView)

    async def test_session_gone_after_stop(self):
        """Test that controls on a stopped quiz explain what happened."""
        view = await self.start_quiz_view()
        self.controller.stop_session(self.channel_id)

        await view.navigate(self.interaction, 1)

        self.assertIn("/trivia", self.interaction.response.send_message.await_args.args[0])

    async def test_stop_stops_live_panels(self):
        """Test that /stop stops the channel's panels."""
        view = await self.start_quiz_view()

        self.controller.stop_session(self.channel_id)

        self.assertTrue(view.is_finished())

    async def test_old_panel_cannot_touch_next_round(self):
        """Test that a quiz panel from a stopped round leaves the new round alone."""
        old_view = await self.start_quiz_view()
        self.controller.stop_session(self.channel_id)
        await self.controller.start_quiz(self.channel_id)
        new_session = self.controller.get_session(self.channel_id)

        await old_view.select(self.interaction, "Paris")
        await old_view.submit(self.interaction)

        self.assertIs(new_session.screen.kind, ScreenKind.QUIZ)
        self.assertEqual(new_session.answers, {})
        self.assertEqual(self.interaction.response.send_message.await_count, 2)
        self.interaction.response.edit_message.assert_not_awaited()

    async def test_old_options_panel_cannot_start_next_round(self):
        """Test that an options panel from a stopped session does not start a quiz."""
        old_view = OptionsView(self.controller, self.channel_id, self.owner_id)
        self.controller.stop_session(self.channel_id)
        self.controller.open_session(self.channel_id)

        await old_view.start(self.interaction)
        await old_view.apply_change(self.interaction, question_count=10)

        self.provider.fetch_questions.assert_not_awaited()
        self.assertEqual(self.controller.get_session(self.channel_id).options.question_count, 5)


class TestResultsView(PanelTestCase):
    """Test cases for the results panel."""

    async def test_play_again_returns_to_options(self):
        """Test that Play Again resets the session and keeps the options."""
        self.controller.update_options(self.channel_id, question_count=3, timer_seconds=45)
        await self.controller.start_quiz(self.channel_id)
        self.controller.submit_quiz(self.channel_id)
        view = ResultsView(self.controller, self.channel_id, self.owner_id)

        await view.play_again(self.interaction)

        kwargs = self.interaction.response.edit_message.await_args.kwargs
        self.assertIsInstance(kwargs['view'], OptionsView)
        self.assertIsNone(kwargs['content'])
        session = self.controller.get_session(self.channel_id)
        self.assertIs(session.screen.kind, ScreenKind.OPTIONS)
        self.assertEqual(session.options.timer_seconds, 45)
        self.assertEqual(session.questions, ())

    async def test_play_again_twice_reports_error(self):
        """Test that a stale Play Again press is reported, not applied."""
        await self.controller.start_quiz(self.channel_id)
        self.controller.submit_quiz(self.channel_id)
        view = ResultsView(self.controller, self.channel_id, self.owner_id)
        await view.play_again(self.interaction)

        second = MockDiscordObjects.create_mock_interaction(self.channel_id, self.owner_id)
        await view.play_again(second)

        second.response.send_message.assert_awaited_once()
        self.assertTrue(second.response.send_message.await_args.kwargs['ephemeral'])


if __name__ == '__main__':
    unittest.main()
