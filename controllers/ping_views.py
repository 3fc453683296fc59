"""
Ping Views
Confirm/Cancel prompt and Stop button for the /ping command
"""

import logging
from typing import Awaitable, Callable, Optional

import discord

from models.ping_session import ConfirmationChoice

logger = logging.getLogger("ping-bot")

STOP_CUSTOM_ID_PREFIX = "ping_stop:"


def stop_custom_id(owner_id: str) -> str:
    """Custom id of the Stop button for a session owner"""
    return f"{STOP_CUSTOM_ID_PREFIX}{owner_id}"


def parse_stop_custom_id(custom_id: str) -> Optional[str]:
    """Extract the session owner from a Stop button custom id"""
    if not custom_id or not custom_id.startswith(STOP_CUSTOM_ID_PREFIX):
        return None
    return custom_id[len(STOP_CUSTOM_ID_PREFIX):] or None


class ConfirmView(discord.ui.View):
    """Confirm/Cancel prompt shown before a ping run starts.

    ``wait()`` returns True when nobody answered before the timeout. Otherwise
    ``choice`` holds the answer and ``interaction`` the button press, which is
    still waiting for a response.
    """

    def __init__(self, owner_id: str, timeout: float = 30.0):
        super().__init__(timeout=timeout)
        self.owner_id = owner_id
        self.choice = ConfirmationChoice.TIMEOUT
        self.interaction: Optional[discord.Interaction] = None

    async def interaction_check(self, interaction: discord.Interaction) -> bool:
        if str(interaction.user.id) != self.owner_id:
            await interaction.response.send_message("This confirmation isn't yours.", ephemeral=True)
            return False
        return True

    @discord.ui.button(label="✔ Confirm", style=discord.ButtonStyle.success)
    async def confirm(self, interaction: discord.Interaction, button: discord.ui.Button):
        self._set_choice(interaction, ConfirmationChoice.CONFIRM)

    @discord.ui.button(label="❌ Cancel", style=discord.ButtonStyle.danger)
    async def cancel(self, interaction: discord.Interaction, button: discord.ui.Button):
        self._set_choice(interaction, ConfirmationChoice.CANCEL)

    def _set_choice(self, interaction: discord.Interaction, choice: ConfirmationChoice):
        self.choice = choice
        self.interaction = interaction
        self.stop()


class StopButton(discord.ui.Button):
    """Stop button; the owner it stops is carried in its custom id"""

    def __init__(self, owner_id: str, on_stop: Callable[[discord.Interaction, str], Awaitable]):
        super().__init__(
            label="🛑 Stop Pinging",
            style=discord.ButtonStyle.danger,
            custom_id=stop_custom_id(owner_id)
        )
        self.on_stop = on_stop

    async def callback(self, interaction: discord.Interaction):
        owner_id = parse_stop_custom_id(self.custom_id)
        await self.on_stop(interaction, owner_id)


class StopView(discord.ui.View):
    """View holding the Stop button while a session runs"""

    def __init__(self, owner_id: str, on_stop: Callable[[discord.Interaction, str], Awaitable]):
        super().__init__(timeout=None)
        self.add_item(StopButton(owner_id, on_stop))
