"""
Unit tests for Discord bot integration and slash command handling.
"""
import logging
import unittest
from unittest.mock import AsyncMock, Mock, patch

import discord
from discord.ext import commands

from trivia_bot.bot import TriviaBot, run_bot
from trivia_bot.models import ScreenKind
from trivia_bot.quiz_controller import QuizController
from trivia_bot.views import OptionsView
from tests.test_fixtures import FakeProvider, MockDiscordObjects


class TestDiscordBotIntegration(unittest.IsolatedAsyncioTestCase):
    """Test Discord bot integration with mocked Discord API."""

    async def asyncSetUp(self):
        """Create a bot whose components use a fake question provider."""
        logging.disable(logging.CRITICAL)
        self.bot = TriviaBot({
            'bot': {'command_prefix': '?'},
            'quiz': {'default_question_count': 3, 'default_timer_seconds': 20},
            'trivia_api': {'timeout': 5}
        })
        self.bot.setup_components()
        self.provider = FakeProvider()
        self.bot.quiz_controller = QuizController(self.provider, self.bot.config_manager)
        self.interaction = MockDiscordObjects.create_mock_interaction()

    async def asyncTearDown(self):
        self.bot.provider.close()
        logging.disable(logging.NOTSET)

    def test_setup_components_applies_config(self):
        """Test that config.json values reach the config manager and provider."""
        self.assertEqual(self.bot.command_prefix, '?')
        self.assertEqual(self.bot.config_manager.get_quiz_options().question_count, 3)
        self.assertEqual(self.bot.config_manager.get_quiz_options().timer_seconds, 20)
        self.assertEqual(self.bot.provider.timeout, 5.0)
        self.assertEqual(self.bot.provider.base_url, "https://opentdb.com/api.php")

    async def test_command_setup_and_registration(self):
        """Test that every slash command is registered on the tree."""
        await self.bot.setup_commands()

        names = sorted(command.name for command in self.bot.tree.get_commands())
        self.assertEqual(names, ["help", "status", "stop", "trivia"])

        trivia = self.bot.tree.get_command("trivia")
        parameters = {parameter.name for parameter in trivia.parameters}
        self.assertEqual(parameters, {"questions", "category", "difficulty", "question_type", "timer"})

    async def test_help_command_success(self):
        """Test that /help shows commands and current defaults."""
        await self.bot.handle_help(self.interaction)

        self.interaction.response.send_message.assert_awaited_once()
        embed = self.interaction.response.send_message.await_args.kwargs['embed']
        field_names = [field.name for field in embed.fields]
        self.assertIn("🎮 Commands", field_names)
        self.assertIn("Questions: 3", embed.fields[field_names.index("⚙️ Defaults")].value)

    async def test_trivia_command_opens_options_panel(self):
        """Test that /trivia sends the options panel and tracks its message."""
        await self.bot.handle_trivia(self.interaction)

        kwargs = self.interaction.response.send_message.await_args.kwargs
        self.assertIsInstance(kwargs['view'], OptionsView)
        self.assertEqual(kwargs['view'].owner_id, self.interaction.user.id)
        self.assertIs(kwargs['view'].message, self.interaction.message)
        self.assertTrue(self.bot.quiz_controller.has_session(self.interaction.channel_id))

    async def test_trivia_command_with_overrides(self):
        """Test that command arguments pre-fill the options draft."""
        await self.bot.handle_trivia(
            self.interaction,
            question_count=10,
            category=0,
            difficulty="hard",
            question_type=None,
            timer_seconds=None
        )

        options = self.bot.quiz_controller.get_session(self.interaction.channel_id).options
        self.assertEqual(options.question_count, 10)
        self.assertEqual(options.category, 0)
        self.assertEqual(options.difficulty.value, "hard")
        self.assertEqual(options.timer_seconds, 20)

    async def test_trivia_command_invalid_category(self):
        """Test that an unknown category id is reported without opening a panel."""
        await self.bot.handle_trivia(self.interaction, category=7)

        kwargs = self.interaction.response.send_message.await_args.kwargs
        self.assertNotIn('view', kwargs)
        self.assertEqual(kwargs['embed'].title, "❌ Invalid Option")
        self.assertTrue(kwargs['ephemeral'])

    async def test_trivia_command_while_quiz_running(self):
        """Test that /trivia does not replace a running quiz."""
        await self.bot.quiz_controller.start_quiz(self.interaction.channel_id)

        await self.bot.handle_trivia(self.interaction)

        embed = self.interaction.response.send_message.await_args.kwargs['embed']
        self.assertEqual(embed.title, "ℹ️ Quiz In Progress")

    async def test_trivia_command_after_results_returns_to_options(self):
        """Test that /trivia on a finished round reopens options with the same settings."""
        channel_id = self.interaction.channel_id
        self.bot.quiz_controller.update_options(channel_id, difficulty="hard")
        await self.bot.quiz_controller.start_quiz(channel_id)
        self.bot.quiz_controller.submit_quiz(channel_id)

        await self.bot.handle_trivia(self.interaction)

        kwargs = self.interaction.response.send_message.await_args.kwargs
        self.assertIsInstance(kwargs['view'], OptionsView)
        session = self.bot.quiz_controller.get_session(channel_id)
        self.assertIs(session.screen.kind, ScreenKind.OPTIONS)
        self.assertEqual(session.options.difficulty.value, "hard")
        self.assertEqual(session.options.question_count, 3)

    async def test_status_command(self):
        """Test that /status reports the channel's quiz."""
        await self.bot.quiz_controller.start_quiz(self.interaction.channel_id)

        await self.bot.handle_status(self.interaction)

        kwargs = self.interaction.response.send_message.await_args.kwargs
        self.assertIn("Quiz in progress", kwargs['embed'].description)
        self.assertTrue(kwargs['ephemeral'])

    async def test_stop_command_success(self):
        """Test that /stop discards the channel's session."""
        self.bot.quiz_controller.open_session(self.interaction.channel_id)

        await self.bot.handle_stop(self.interaction)

        embed = self.interaction.response.send_message.await_args.kwargs['embed']
        self.assertEqual(embed.title, "🛑 Quiz Stopped")
        self.assertFalse(self.bot.quiz_controller.has_session(self.interaction.channel_id))

    async def test_stop_command_without_quiz(self):
        """Test /stop in a channel with nothing running."""
        await self.bot.handle_stop(self.interaction)

        embed = self.interaction.response.send_message.await_args.kwargs['embed']
        self.assertEqual(embed.title, "ℹ️ Nothing To Stop")

    async def test_error_response_uses_followup_when_responded(self):
        """Test that errors after the initial response go through the followup."""
        self.interaction.response.is_done.return_value = True

        await self.bot.send_error_response(self.interaction, "Something broke")

        self.interaction.followup.send.assert_awaited_once()
        self.interaction.response.send_message.assert_not_awaited()

    async def test_discord_api_error_handling(self):
        """Test that HTTP errors while replying are logged, not raised."""
        self.interaction.response.send_message.side_effect = discord.HTTPException(Mock(status=500), "error")

        await self.bot.send_error_response(self.interaction, "Something broke")
        await self.bot.send_info_response(self.interaction, "Something happened")

    async def test_trivia_command_unexpected_error(self):
        """Test that unexpected failures end in an error message."""
        self.bot.quiz_controller = Mock()
        self.bot.quiz_controller.open_session.side_effect = RuntimeError("boom")

        await self.bot.handle_trivia(self.interaction)

        embed = self.interaction.response.send_message.await_args.kwargs['embed']
        self.assertEqual(embed.title, "❌ Trivia Error")

    async def test_close_releases_provider(self):
        """Test that closing the bot closes the HTTP session."""
        self.bot.provider = Mock()

        with patch.object(commands.Bot, 'close', new=AsyncMock()) as parent_close:
            await self.bot.close()

        self.bot.provider.close.assert_called_once()
        parent_close.assert_awaited_once()


class TestRunBot(unittest.IsolatedAsyncioTestCase):
    """Test cases for bot startup."""

    async def test_run_bot_without_token(self):
        """Test that startup stops when no token is available."""
        with patch.dict('os.environ', {}, clear=True):
            with patch('trivia_bot.bot.TriviaBot') as bot_class:
                await run_bot(None)

        bot_class.assert_not_called()

    async def test_run_bot_invalid_token(self):
        """Test that a login failure is handled and the bot closed."""
        bot = Mock()
        bot.start = AsyncMock(side_effect=discord.LoginFailure("bad token"))
        bot.close = AsyncMock()
        bot.is_closed.return_value = False

        with patch('trivia_bot.bot.TriviaBot', return_value=bot):
            await run_bot("token", {})

        bot.start.assert_awaited_once_with("token")
        bot.close.assert_awaited_once()


if __name__ == '__main__':
    unittest.main()
