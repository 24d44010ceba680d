"""
Discord panels for the trivia game: options, quiz and results.

Each panel is an embed plus a discord.ui.View. Moving between screens edits
the same message, swapping the embed and the view.
"""
import logging
from typing import Any, Dict, Optional

import discord

from .models import (
    CATEGORIES,
    MAX_QUESTION_COUNT,
    MAX_TIMER_SECONDS,
    MIN_QUESTION_COUNT,
    MIN_TIMER_SECONDS,
    Difficulty,
    QuestionType,
    QuizOptions,
    ScoreReport,
)
from .quiz_controller import QuizController
from .quiz_session import QuizSession


logger = logging.getLogger(__name__)

COLOR_OPTIONS = 0x6699ff
COLOR_QUIZ = 0x00ff00
COLOR_RESULTS = 0xffaa00
COLOR_ERROR = 0xff0000

COUNT_STEPS = (-5, -1, 1, 5)
TIMER_CHOICES = tuple(range(MIN_TIMER_SECONDS, MAX_TIMER_SECONDS + 1, 5))
MAX_MISSED_FIELDS = 10
PANEL_TIMEOUT = 900


def truncate(text: str, limit: int) -> str:
    """Shorten text to fit Discord's length limits."""
    if len(text) <= limit:
        return text
    return text[:limit - 1] + "…"


def build_options_embed(options: QuizOptions, loading: bool = False) -> discord.Embed:
    """Embed for the options screen."""
    embed = discord.Embed(
        title="🎯 Trivia Game",
        description="Pick your settings, then press **Start Trivia**.",
        color=COLOR_OPTIONS
    )
    embed.add_field(name="Number of Questions", value=str(options.question_count), inline=True)
    embed.add_field(name="Category", value=options.category_name, inline=True)
    embed.add_field(name="Difficulty", value=options.difficulty.label, inline=True)
    embed.add_field(name="Type", value=options.question_type.label, inline=True)
    embed.add_field(name="Timer", value=f"{options.timer_seconds} seconds", inline=True)

    if loading:
        embed.set_footer(text="⏳ Fetching questions...")
    return embed


def build_question_embed(session: QuizSession, index: int, remaining_time: Optional[int] = None) -> discord.Embed:
    """Embed for one page of the quiz screen."""
    questions = session.questions
    answers = session.answers

    if not questions:
        embed = discord.Embed(title="Quiz Time!", description="There are no questions in this quiz.", color=COLOR_QUIZ)
        return embed

    question = questions[index]
    embed = discord.Embed(
        title=f"Question {index + 1}/{len(questions)}",
        description=truncate(question.question_text, 4096),
        color=COLOR_QUIZ
    )

    details = [part for part in (question.category, (question.difficulty or "").capitalize()) if part]
    if details:
        embed.set_author(name=truncate(" • ".join(details), 256))

    selected = answers.get(index)
    embed.add_field(
        name="Your Answer",
        value=truncate(selected, 1024) if selected is not None else "Not answered yet",
        inline=False
    )

    footer = f"Answered {len(answers)}/{len(questions)}"
    if remaining_time is not None:
        footer += f" • ⏱️ {remaining_time}s left"
    else:
        footer += f" • You have {session.options.timer_seconds} seconds"
    embed.set_footer(text=footer)
    return embed


def build_results_embed(report: ScoreReport) -> discord.Embed:
    """Embed for the results screen, listing missed questions."""
    embed = discord.Embed(
        title="🏁 Results",
        description=f"You scored **{report.score}** out of **{report.total}**!",
        color=COLOR_RESULTS
    )

    if report.is_perfect:
        embed.add_field(name="Perfect!", value="You got everything correct.", inline=False)
        return embed

    for number, missed in enumerate(report.missed[:MAX_MISSED_FIELDS], start=1):
        embed.add_field(
            name=truncate(f"{number}. {missed.question_text}", 256),
            value=truncate(
                f"Your answer: {missed.display_answer}\nCorrect answer: {missed.correct_answer}",
                1024
            ),
            inline=False
        )

    hidden = len(report.missed) - MAX_MISSED_FIELDS
    if hidden > 0:
        embed.set_footer(text=f"... and {hidden} more missed questions")
    return embed


def build_error_embed(message: str, title: str = "❌ Quiz did not start") -> discord.Embed:
    embed = discord.Embed(title=title, description=message, color=COLOR_ERROR)
    embed.set_footer(text="If this error persists, try using /help for available commands")
    return embed


class PanelView(discord.ui.View):
    """
    Base view: tracks the panel message and limits use to the quiz owner.

    A panel is bound to the session it was built for. Once the channel's
    session is stopped or replaced, the panel's controls no longer act.
    """

    def __init__(
        self,
        controller: QuizController,
        channel_id: int,
        owner_id: int,
        timeout: Optional[float] = PANEL_TIMEOUT,
        session: Optional[QuizSession] = None
    ):
        super().__init__(timeout=timeout)
        self.controller = controller
        self.channel_id = channel_id
        self.owner_id = owner_id
        self.message: Optional[discord.Message] = None
        self._session = session if session is not None else controller.get_session(channel_id)
        controller.attach_panel(channel_id, self)

    async def interaction_check(self, interaction: discord.Interaction) -> bool:
        if interaction.user.id == self.owner_id:
            return True
        await interaction.response.send_message(
            "Only the player who opened this quiz can use these controls.", ephemeral=True
        )
        return False

    def session(self) -> Optional[QuizSession]:
        """The bound session, or None if the channel has moved on from it."""
        current = self.controller.get_session(self.channel_id)
        if current is None or current is not self._session:
            return None
        return current

    async def report_failure(self, interaction: discord.Interaction, result: Dict[str, Any]) -> None:
        embed = build_error_embed(result.get('user_message', "Something went wrong."), title="❌ Error")
        if interaction.response.is_done():
            await interaction.followup.send(embed=embed, ephemeral=True)
        else:
            await interaction.response.send_message(embed=embed, ephemeral=True)

    async def session_gone(self, interaction: discord.Interaction) -> None:
        self.stop()
        await interaction.response.send_message(
            "This quiz has ended. Use `/trivia` to start a new one.", ephemeral=True
        )


class CategorySelect(discord.ui.Select):
    def __init__(self, options: QuizOptions, disabled: bool):
        choices = [
            discord.SelectOption(label=name, value=str(category_id), default=category_id == options.category)
            for category_id, name in CATEGORIES.items()
        ]
        super().__init__(placeholder="Select Category", options=choices, row=0, disabled=disabled)

    async def callback(self, interaction: discord.Interaction):
        await self.view.apply_change(interaction, category=int(self.values[0]))


class DifficultySelect(discord.ui.Select):
    def __init__(self, options: QuizOptions, disabled: bool):
        choices = [
            discord.SelectOption(label=f"Difficulty: {level.label}", value=level.value, default=level is options.difficulty)
            for level in Difficulty
        ]
        super().__init__(placeholder="Select Difficulty", options=choices, row=1, disabled=disabled)

    async def callback(self, interaction: discord.Interaction):
        await self.view.apply_change(interaction, difficulty=self.values[0])


class QuestionTypeSelect(discord.ui.Select):
    def __init__(self, options: QuizOptions, disabled: bool):
        choices = [
            discord.SelectOption(label=kind.label, value=kind.value, default=kind is options.question_type)
            for kind in QuestionType
        ]
        super().__init__(placeholder="Select Type", options=choices, row=2, disabled=disabled)

    async def callback(self, interaction: discord.Interaction):
        await self.view.apply_change(interaction, question_type=self.values[0])


class TimerSelect(discord.ui.Select):
    def __init__(self, options: QuizOptions, disabled: bool):
        choices = [
            discord.SelectOption(label=f"Timer: {seconds} seconds", value=str(seconds), default=seconds == options.timer_seconds)
            for seconds in TIMER_CHOICES
        ]
        super().__init__(placeholder="Timer Duration", options=choices, row=3, disabled=disabled)

    async def callback(self, interaction: discord.Interaction):
        await self.view.apply_change(interaction, timer_seconds=int(self.values[0]))


class CountButton(discord.ui.Button):
    def __init__(self, step: int, current: int, disabled: bool):
        target = current + step
        super().__init__(
            label=f"{step:+d}",
            style=discord.ButtonStyle.secondary,
            row=4,
            disabled=disabled or not MIN_QUESTION_COUNT <= target <= MAX_QUESTION_COUNT
        )
        self.step = step

    async def callback(self, interaction: discord.Interaction):
        await self.view.change_count(interaction, self.step)


class StartButton(discord.ui.Button):
    def __init__(self, disabled: bool):
        super().__init__(label="Start Trivia", style=discord.ButtonStyle.success, row=4, disabled=disabled)

    async def callback(self, interaction: discord.Interaction):
        await self.view.start(interaction)


class OptionsView(PanelView):
    """Options screen: edit the draft and start the quiz."""

    def __init__(self, controller: QuizController, channel_id: int, owner_id: int):
        super().__init__(controller, channel_id, owner_id, session=controller.open_session(channel_id))
        self._starting = False
        self.refresh_items()

    @property
    def is_starting(self) -> bool:
        return self._starting

    def refresh_items(self) -> None:
        """Rebuild components so they reflect the session's options."""
        session = self._session
        options = session.options
        locked = self._starting or session.is_fetching

        self.clear_items()
        self.add_item(CategorySelect(options, locked))
        self.add_item(DifficultySelect(options, locked))
        self.add_item(QuestionTypeSelect(options, locked))
        self.add_item(TimerSelect(options, locked))
        for step in COUNT_STEPS:
            self.add_item(CountButton(step, options.question_count, locked))
        self.add_item(StartButton(locked))

    async def apply_change(self, interaction: discord.Interaction, **changes: Any) -> None:
        if self.session() is None:
            await self.session_gone(interaction)
            return

        result = self.controller.update_options(self.channel_id, **changes)
        if not result['success']:
            await self.report_failure(interaction, result)
            return

        self.refresh_items()
        await interaction.response.edit_message(embed=build_options_embed(result['options']), view=self)

    async def change_count(self, interaction: discord.Interaction, step: int) -> None:
        session = self.session()
        if session is None:
            await self.session_gone(interaction)
            return

        count = min(MAX_QUESTION_COUNT, max(MIN_QUESTION_COUNT, session.options.question_count + step))
        await self.apply_change(interaction, question_count=count)

    async def start(self, interaction: discord.Interaction) -> None:
        """Fetch questions and replace this panel with the quiz panel."""
        session = self.session()
        if session is None:
            await self.session_gone(interaction)
            return

        if self._starting or session.is_fetching:
            await interaction.response.send_message("⏳ Questions are already loading.", ephemeral=True)
            return

        self._starting = True
        self.refresh_items()
        await interaction.response.edit_message(embed=build_options_embed(session.options, loading=True), view=self)

        try:
            result = await self.controller.start_quiz(self.channel_id)
        finally:
            self._starting = False

        if result['success']:
            quiz_view = QuizView(self.controller, self.channel_id, self.owner_id, session)
            quiz_view.message = self.message or interaction.message
            self.stop()
            await interaction.edit_original_response(embed=quiz_view.current_embed(), view=quiz_view)
            quiz_view.start_timer()
            return

        if result.get('stale'):
            self.stop()
            await interaction.edit_original_response(
                embed=build_error_embed(result['user_message'], title="Quiz stopped"),
                view=None
            )
            return

        self.refresh_items()
        await interaction.edit_original_response(embed=build_options_embed(session.options), view=self)
        await interaction.followup.send(embed=build_error_embed(result['user_message']), ephemeral=True)


class AnswerButton(discord.ui.Button):
    def __init__(self, answer: str, selected: bool, row: int):
        super().__init__(
            label=truncate(answer, 80),
            style=discord.ButtonStyle.primary if selected else discord.ButtonStyle.secondary,
            row=row
        )
        self.answer = answer

    async def callback(self, interaction: discord.Interaction):
        await self.view.select(interaction, self.answer)


class NavigateButton(discord.ui.Button):
    def __init__(self, label: str, delta: int, disabled: bool):
        super().__init__(label=label, style=discord.ButtonStyle.secondary, row=2, disabled=disabled)
        self.delta = delta

    async def callback(self, interaction: discord.Interaction):
        await self.view.navigate(interaction, self.delta)


class SubmitButton(discord.ui.Button):
    def __init__(self):
        super().__init__(label="Submit Answers", style=discord.ButtonStyle.success, row=2)

    async def callback(self, interaction: discord.Interaction):
        await self.view.submit(interaction)


class QuizView(PanelView):
    """Quiz screen: one question per page with answer buttons."""

    def __init__(self, controller: QuizController, channel_id: int, owner_id: int, session: Optional[QuizSession] = None):
        super().__init__(controller, channel_id, owner_id, timeout=None, session=session)
        self.page = 0
        self.remaining_time: Optional[int] = None
        self.refresh_items()

    def refresh_items(self) -> None:
        session = self.session()
        self.clear_items()
        if session is None:
            return

        questions = session.questions
        if questions:
            question = questions[self.page]
            selected = session.answers.get(self.page)
            for position, answer in enumerate(question.answer_options):
                self.add_item(AnswerButton(answer, answer == selected, row=position // 2))

        self.add_item(NavigateButton("◀ Prev", -1, disabled=self.page == 0))
        self.add_item(NavigateButton("Next ▶", 1, disabled=self.page >= len(questions) - 1))
        self.add_item(SubmitButton())

    def current_embed(self) -> discord.Embed:
        return build_question_embed(self.session(), self.page, self.remaining_time)

    async def select(self, interaction: discord.Interaction, answer: str) -> None:
        if self.session() is None:
            await self.session_gone(interaction)
            return

        result = self.controller.select_answer(self.channel_id, self.page, answer)
        if not result['success']:
            await self.report_failure(interaction, result)
            return

        self.refresh_items()
        await interaction.response.edit_message(embed=self.current_embed(), view=self)

    async def navigate(self, interaction: discord.Interaction, delta: int) -> None:
        session = self.session()
        if session is None:
            await self.session_gone(interaction)
            return

        self.page = min(max(self.page + delta, 0), max(len(session.questions) - 1, 0))
        self.refresh_items()
        await interaction.response.edit_message(embed=self.current_embed(), view=self)

    async def submit(self, interaction: discord.Interaction) -> None:
        session = self.session()
        if session is None:
            await self.session_gone(interaction)
            return

        result = self.controller.submit_quiz(self.channel_id)
        if not result['success']:
            await self.report_failure(interaction, result)
            return

        results_view = ResultsView(self.controller, self.channel_id, self.owner_id, session)
        results_view.message = self.message or interaction.message
        self.stop()
        await interaction.response.edit_message(embed=build_results_embed(result['report']), view=results_view)

    def start_timer(self) -> bool:
        return self.controller.start_quiz_timer(self.channel_id, self.on_timer_update, self.on_timer_expired)

    async def on_timer_update(self, remaining_time: int) -> None:
        self.remaining_time = remaining_time
        if self.message is None or self.session() is None:
            return
        try:
            await self.message.edit(embed=self.current_embed(), view=self)
        except discord.HTTPException as e:
            logger.warning(f"Could not refresh quiz timer in channel {self.channel_id}: {e}")

    async def on_timer_expired(self, result: Dict[str, Any]) -> None:
        if not result['success']:
            return

        results_view = ResultsView(self.controller, self.channel_id, self.owner_id, self._session)
        results_view.message = self.message
        self.stop()
        if self.message is None:
            return
        try:
            await self.message.edit(
                content="⏰ Time's up!",
                embed=build_results_embed(result['report']),
                view=results_view
            )
        except discord.HTTPException as e:
            logger.warning(f"Could not show results in channel {self.channel_id}: {e}")


class PlayAgainButton(discord.ui.Button):
    def __init__(self):
        super().__init__(label="Play Again", style=discord.ButtonStyle.primary)

    async def callback(self, interaction: discord.Interaction):
        await self.view.play_again(interaction)


class ResultsView(PanelView):
    """Results screen: offers a new round."""

    def __init__(self, controller: QuizController, channel_id: int, owner_id: int, session: Optional[QuizSession] = None):
        super().__init__(controller, channel_id, owner_id, session=session)
        self.add_item(PlayAgainButton())

    async def play_again(self, interaction: discord.Interaction) -> None:
        if self.session() is None:
            await self.session_gone(interaction)
            return

        result = self.controller.play_again(self.channel_id)
        if not result['success']:
            await self.report_failure(interaction, result)
            return

        options_view = OptionsView(self.controller, self.channel_id, self.owner_id)
        options_view.message = self.message or interaction.message
        self.stop()
        await interaction.response.edit_message(
            content=None,
            embed=build_options_embed(result['options']),
            view=options_view
        )
