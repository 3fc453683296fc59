"""
Ping Controller
Registers the /ping slash command and connects it to the ping service
"""

import asyncio
import logging
from typing import List, Optional

import discord
from discord import app_commands
from discord.ext import commands

from controllers.ping_views import ConfirmView, StopView
from models.ping_session import (
    ConfirmationChoice,
    DeliveryMethod,
    PingRequest,
    PingResult,
    PingSession,
    StopResult,
)
from services.ping_service import DeliveryError, PingService
from utils.embeds import (
    confirmation_embed,
    delivery_failure_embed,
    outcome_embed,
    progress_embed,
    stop_embed,
)

logger = logging.getLogger("ping-bot")

CONFIRM_VIEW_MARGIN = 1.0  # Seconds the buttons expire before the service timeout


def confirm_view_timeout(confirmation_timeout: float) -> float:
    """Timeout of the Confirm/Cancel buttons for a service confirmation timeout"""
    return max(confirmation_timeout - CONFIRM_VIEW_MARGIN, confirmation_timeout / 2)


class DiscordPingDelivery:
    """Sends pings through discord.py"""

    async def send_direct(self, target, text: str):
        try:
            await target.send(text)
        except discord.HTTPException as e:
            raise DeliveryError(str(e)) from e

    async def send_to_channel(self, channel, text: str):
        await channel.send(text)


class DiscordPingPresenter:
    """Renders a single /ping invocation as ephemeral embeds"""

    def __init__(self, interaction: discord.Interaction, on_stop, confirmation_timeout: float = 30.0):
        """
        Initialize the presenter.

        Args:
            interaction: The slash command interaction
            on_stop: Coroutine called when the Stop button is pressed
            confirmation_timeout: Seconds the service waits for an answer; the buttons expire slightly earlier
        """
        self.interaction = interaction
        self.on_stop = on_stop
        self.confirmation_timeout = confirmation_timeout
        self._pending: Optional[discord.Interaction] = None  # Button press not answered yet
        self._views: List[discord.ui.View] = []

    async def confirm(self, request: PingRequest) -> ConfirmationChoice:
        view = ConfirmView(request.inviter_id, timeout=confirm_view_timeout(self.confirmation_timeout))
        self._views.append(view)
        await self.interaction.response.send_message(
            embed=confirmation_embed(request),
            view=view,
            ephemeral=True
        )

        try:
            timed_out = await view.wait()
        except asyncio.CancelledError:
            # A press that raced the timeout still needs a response
            if view.interaction is not None:
                self._pending = view.interaction
            raise

        if timed_out:
            return ConfirmationChoice.TIMEOUT
        self._pending = view.interaction
        return view.choice

    async def show_progress(self, request: PingRequest, session: PingSession):
        view = StopView(request.inviter_id, self.on_stop)
        self._views.append(view)
        await self._render(progress_embed(request), view)

    async def notify_delivery_failure(self, request: PingRequest):
        await self.interaction.followup.send(embed=delivery_failure_embed(request), ephemeral=True)

    async def show_outcome(self, request: PingRequest, result: PingResult):
        for view in self._views:
            view.stop()
        self._views.clear()

        embed = outcome_embed(request, result)
        if not self.interaction.response.is_done():
            await self.interaction.response.send_message(embed=embed, ephemeral=True)
            return
        await self._render(embed, None)

    async def _render(self, embed: discord.Embed, view: Optional[discord.ui.View]):
        """Replace the prompt with a new embed and view"""
        if self._pending is not None:
            pending, self._pending = self._pending, None
            await pending.response.edit_message(embed=embed, view=view)
        else:
            await self.interaction.edit_original_response(embed=embed, view=view)


class PingController:
    """Controller for the /ping slash command"""

    def __init__(self, bot: commands.Bot, ping_service: PingService):
        """
        Initialize the ping controller.

        Args:
            bot: Discord bot instance
            ping_service: Service running ping sessions
        """
        self.bot = bot
        self.ping_service = ping_service
        self.delivery = DiscordPingDelivery()

        # Register commands
        self._register_commands()

    def _register_commands(self):
        """Register the /ping command on the bot's command tree"""
        max_pings = self.ping_service.config.max_pings

        @self.bot.tree.command(name="ping", description="Ping a user multiple times!")
        @app_commands.describe(
            user="The user to ping",
            amount="The amount of times to ping the user",
            method="Where to send the pings to the user from",
            context="Additional message to send with the ping"
        )
        @app_commands.choices(method=[
            app_commands.Choice(name="Server", value=DeliveryMethod.SERVER.value),
            app_commands.Choice(name="Direct Message", value=DeliveryMethod.DIRECT_MESSAGE.value),
        ])
        async def ping(interaction: discord.Interaction,
                       user: discord.User,
                       amount: app_commands.Range[int, 1, max_pings],
                       method: app_commands.Choice[str],
                       context: Optional[str] = None):
            await self.ping(interaction, user, amount, method.value, context)

        @self.bot.tree.error
        async def on_app_command_error(interaction: discord.Interaction, error: app_commands.AppCommandError):
            await self.on_app_command_error(interaction, error)

    def build_request(self, interaction: discord.Interaction, user, amount: int,
                      method: str, context: Optional[str] = None) -> PingRequest:
        """Turn slash command arguments into a ping request"""
        guild = interaction.guild
        bot_user = self.bot.user
        return PingRequest(
            inviter_id=str(interaction.user.id),
            inviter_mention=interaction.user.mention,
            target_id=str(user.id) if user is not None else None,
            target_mention=user.mention if user is not None else None,
            amount=amount,
            method=DeliveryMethod(method),
            context=context,
            guild_id=str(guild.id) if guild is not None else None,
            guild_name=guild.name if guild is not None else None,
            bot_user_id=str(bot_user.id) if bot_user is not None else None,
            target=user,
            channel=interaction.channel
        )

    async def ping(self, interaction: discord.Interaction, user, amount: int,
                   method: str, context: Optional[str] = None) -> PingResult:
        """Run a /ping invocation"""
        request = self.build_request(interaction, user, amount, method, context)
        presenter = DiscordPingPresenter(
            interaction,
            self.handle_stop,
            self.ping_service.config.confirmation_timeout
        )

        logger.info(f"User {interaction.user.name} ({request.inviter_id}): /ping "
                    f"{request.target_id} x{amount} via {request.method.label}")
        result = await self.ping_service.run(request, presenter, self.delivery)
        logger.info(f"/ping from user {request.inviter_id} finished: {result.state.value} "
                    f"({result.completed}/{result.amount})")
        return result

    async def handle_stop(self, interaction: discord.Interaction, owner_id: str) -> StopResult:
        """Handle a press of a Stop button"""
        result = self.ping_service.stop(str(interaction.user.id), owner_id)
        await interaction.response.send_message(embed=stop_embed(result), ephemeral=True)
        return result

    async def on_app_command_error(self, interaction: discord.Interaction, error):
        """Handle slash command errors"""
        logger.error(f"Command error: {error}")
        message = f"An error occurred: {error}"
        if interaction.response.is_done():
            await interaction.followup.send(message, ephemeral=True)
        else:
            await interaction.response.send_message(message, ephemeral=True)
