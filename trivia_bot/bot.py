import discord
from discord import app_commands
from discord.ext import commands
import logging
import os
from pathlib import Path
from typing import Any, Dict, Literal, Optional

from .config_manager import ConfigManager
from .models import CATEGORIES, MAX_QUESTION_COUNT, MAX_TIMER_SECONDS, MIN_QUESTION_COUNT, MIN_TIMER_SECONDS, ScreenKind
from .quiz_controller import QuizController
from .trivia_provider import TriviaProvider
from .views import OptionsView, build_options_embed


logger = logging.getLogger(__name__)


def setup_logging(level: int = logging.INFO, log_directory: Path = Path("logs")) -> None:
    """Set up console and file logging for the bot."""
    log_directory.mkdir(parents=True, exist_ok=True)

    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(),
            logging.FileHandler(log_directory / "bot.log", encoding='utf-8'),
        ]
    )

    # Errors also go to their own file
    error_handler = logging.FileHandler(log_directory / "errors.log", encoding='utf-8')
    error_handler.setLevel(logging.ERROR)
    error_handler.setFormatter(logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s'))
    logging.getLogger().addHandler(error_handler)

    # Reduce discord.py noise
    logging.getLogger('discord').setLevel(logging.WARNING)
    logging.getLogger('discord.http').setLevel(logging.WARNING)


class TriviaBot(commands.Bot):
    """Discord bot that runs Open Trivia DB quizzes"""

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        # Slash commands only need the guilds intent
        intents = discord.Intents.none()
        intents.guilds = True

        command_prefix = '!'
        if config and 'bot' in config:
            command_prefix = config['bot'].get('command_prefix', '!')

        super().__init__(
            command_prefix=command_prefix,
            intents=intents,
            help_command=None
        )

        self.app_config = config or {}

        self.config_manager: Optional[ConfigManager] = None
        self.provider: Optional[TriviaProvider] = None
        self.quiz_controller: Optional[QuizController] = None

    async def setup_hook(self):
        """Called when the bot is starting up"""
        try:
            logger.info("Setting up bot components...")
            self.setup_components()
            await self.setup_commands()
            logger.info("Bot setup completed successfully")

        except Exception as e:
            logger.error(f"Error during bot setup: {e}")
            raise

    def setup_components(self) -> None:
        """Create the configuration, provider and controller from app config."""
        self.config_manager = ConfigManager()
        if self.app_config:
            rejected = self.config_manager.apply_config(self.app_config)
            for error in rejected:
                logger.warning(f"Ignoring configuration entry: {error}")

        self.provider = TriviaProvider(
            base_url=self.config_manager.get_api_url(),
            timeout=self.config_manager.get_request_timeout()
        )
        self.quiz_controller = QuizController(self.provider, self.config_manager)

    async def setup_commands(self):
        """Register all slash commands"""
        try:
            @self.tree.command(name="help", description="Display available commands and their descriptions")
            async def help_command(interaction: discord.Interaction):
                await self.handle_help(interaction)

            @self.tree.command(name="trivia", description="Open the trivia options panel for this channel")
            @app_commands.describe(
                questions="Number of questions (1-50)",
                category="Open Trivia DB category id (0 for any)",
                difficulty="Question difficulty",
                question_type="Multiple choice or true/false",
                timer="Quiz timer in seconds (10-60)"
            )
            async def trivia_command(
                interaction: discord.Interaction,
                questions: Optional[app_commands.Range[int, MIN_QUESTION_COUNT, MAX_QUESTION_COUNT]] = None,
                category: Optional[int] = None,
                difficulty: Optional[Literal["easy", "medium", "hard"]] = None,
                question_type: Optional[Literal["multiple", "boolean"]] = None,
                timer: Optional[app_commands.Range[int, MIN_TIMER_SECONDS, MAX_TIMER_SECONDS]] = None
            ):
                await self.handle_trivia(
                    interaction,
                    question_count=questions,
                    category=category,
                    difficulty=difficulty,
                    question_type=question_type,
                    timer_seconds=timer
                )

            @self.tree.command(name="status", description="Show the current quiz status")
            async def status_command(interaction: discord.Interaction):
                await self.handle_status(interaction)

            @self.tree.command(name="stop", description="Stop the quiz in this channel")
            async def stop_command(interaction: discord.Interaction):
                await self.handle_stop(interaction)

            logger.info("Slash commands registered successfully")

        except Exception as e:
            logger.error(f"Error setting up commands: {e}")
            raise

    async def on_ready(self):
        """Called when the bot has successfully connected to Discord"""
        logger.info(f"Bot is ready! Logged in as {self.user}")
        logger.info(f"Bot is in {len(self.guilds)} guilds")

        try:
            synced = await self.tree.sync()
            logger.info(f"Synced {len(synced)} slash commands")
        except discord.HTTPException as e:
            logger.error(f"Failed to sync slash commands: {e}")

    async def on_error(self, event, *args, **kwargs):
        """Handle general bot errors"""
        logger.error(f"An error occurred in event {event}", exc_info=True)

    async def close(self):
        if self.provider is not None:
            self.provider.close()
        await super().close()

    async def handle_help(self, interaction: discord.Interaction):
        """Handle /help command"""
        try:
            help_embed = discord.Embed(
                title="🎯 Trivia Bot Commands",
                description="Answer questions from the Open Trivia Database",
                color=0x00ff00
            )

            help_embed.add_field(
                name="🎮 Commands",
                value=(
                    "`/trivia` - Open the options panel (optionally set questions, category, difficulty, type, timer)\n"
                    "`/status` - Show the quiz status in this channel\n"
                    "`/stop` - Stop the quiz in this channel\n"
                    "`/help` - Show this help message"
                ),
                inline=False
            )

            help_embed.add_field(
                name="📋 How to play",
                value=(
                    "1. Choose your settings and press **Start Trivia**\n"
                    "2. Answer each question, use ◀ / ▶ to move between them\n"
                    "3. Press **Submit Answers** before the timer runs out\n"
                    "4. Review missed questions and press **Play Again**"
                ),
                inline=False
            )

            settings_summary = self.config_manager.get_settings_summary()
            help_embed.add_field(
                name="⚙️ Defaults",
                value=f"```\n{settings_summary}\n```",
                inline=False
            )

            categories = ", ".join(f"{name} ({category_id})" for category_id, name in CATEGORIES.items())
            help_embed.add_field(name="📚 Categories", value=categories[:1024], inline=False)

            help_embed.set_footer(text="Use slash commands to interact with the bot")

            await interaction.response.send_message(embed=help_embed)

        except Exception as e:
            logger.error(f"Error in help command: {e}")
            await self.send_error_response(interaction, "Failed to display help information", "❌ Help Error")

    async def handle_trivia(self, interaction: discord.Interaction, **overrides: Any):
        """Handle /trivia command: show the options panel for the channel"""
        try:
            channel_id = interaction.channel_id
            session = self.quiz_controller.open_session(channel_id)

            # A finished round goes back to options, its results panel may have timed out
            if session.screen.kind is ScreenKind.RESULTS:
                self.quiz_controller.stop_panels(channel_id)
                result = self.quiz_controller.play_again(channel_id)
                if not result['success']:
                    await self.send_error_response(interaction, result['user_message'], "❌ Trivia Error")
                    return

            if session.screen.kind is not ScreenKind.OPTIONS:
                await self.send_info_response(
                    interaction,
                    "A quiz is already running in this channel. Finish it or use `/stop` first.",
                    "ℹ️ Quiz In Progress"
                )
                return

            if session.is_fetching:
                await self.send_info_response(interaction, "⏳ Questions are loading for this channel.")
                return

            changes = {name: value for name, value in overrides.items() if value is not None}
            if changes:
                result = self.quiz_controller.update_options(channel_id, **changes)
                if not result['success']:
                    await self.send_error_response(interaction, result['user_message'], "❌ Invalid Option")
                    return

            view = OptionsView(self.quiz_controller, channel_id, interaction.user.id)
            await interaction.response.send_message(embed=build_options_embed(session.options), view=view)
            view.message = await interaction.original_response()

            logger.info(f"Options panel opened in channel {channel_id} by user {interaction.user.id}")

        except Exception as e:
            logger.error(f"Error in trivia command: {e}", exc_info=True)
            await self.send_error_response(interaction, "Failed to open the trivia panel", "❌ Trivia Error")

    async def handle_status(self, interaction: discord.Interaction):
        """Handle /status command"""
        try:
            channel_id = interaction.channel_id
            summary = self.quiz_controller.get_session_status_summary(channel_id)

            embed = discord.Embed(
                title="📊 Quiz Status",
                description=summary,
                color=0x6699ff
            )
            await interaction.response.send_message(embed=embed, ephemeral=True)

        except Exception as e:
            logger.error(f"Error in status command: {e}")
            await self.send_error_response(interaction, "Failed to get quiz status", "❌ Status Error")

    async def handle_stop(self, interaction: discord.Interaction):
        """Handle /stop command"""
        try:
            channel_id = interaction.channel_id

            if self.quiz_controller.stop_session(channel_id):
                embed = discord.Embed(
                    title="🛑 Quiz Stopped",
                    description="The quiz in this channel has been stopped. Use `/trivia` to play again.",
                    color=0xffaa00
                )
                await interaction.response.send_message(embed=embed)
            else:
                await self.send_info_response(interaction, "There is no quiz in this channel.", "ℹ️ Nothing To Stop")

        except Exception as e:
            logger.error(f"Error in stop command: {e}")
            await self.send_error_response(interaction, "Failed to stop the quiz", "❌ Stop Error")

    async def send_error_response(self, interaction: discord.Interaction, message: str, title: str = "❌ Error"):
        """Send formatted error response to user"""
        try:
            embed = discord.Embed(
                title=title,
                description=message,
                color=0xff0000
            )
            embed.set_footer(text="If this error persists, try using /help for available commands")

            if interaction.response.is_done():
                await interaction.followup.send(embed=embed, ephemeral=True)
            else:
                await interaction.response.send_message(embed=embed, ephemeral=True)
        except discord.HTTPException:
            logger.error("Failed to send error response to user")

    async def send_info_response(self, interaction: discord.Interaction, message: str, title: str = "ℹ️ Information"):
        """Send formatted info response to user"""
        try:
            embed = discord.Embed(
                title=title,
                description=message,
                color=0x6699ff
            )

            if interaction.response.is_done():
                await interaction.followup.send(embed=embed, ephemeral=True)
            else:
                await interaction.response.send_message(embed=embed, ephemeral=True)
        except discord.HTTPException:
            logger.error("Failed to send info response to user")


async def run_bot(token: Optional[str] = None, config: Optional[Dict[str, Any]] = None):
    """Run the bot with proper error handling"""
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
    except discord.HTTPException as e:
        logger.error(f"HTTP error occurred: {e}")
    finally:
        if not bot.is_closed():
            await bot.close()
