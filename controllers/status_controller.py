"""
Status Controller
Exposes bot and ping session status over HTTP
"""

import logging
import os

from fastapi import APIRouter

logger = logging.getLogger("ping-bot")

# APIRouter for status endpoints
status_router = APIRouter(
    prefix="/api/bot",
    tags=["Bot Status"]
)


class StatusController:
    """Controller reporting the state of the bot and its ping sessions"""

    def __init__(self):
        self.bot = None
        self.ping_service = None
        self.bot_startup_attempted = False

    def set_references(self, bot=None, ping_service=None, startup_attempted: bool = None):
        """Set references to the running bot and ping service"""
        if bot is not None:
            self.bot = bot
        if ping_service is not None:
            self.ping_service = ping_service
        if startup_attempted is not None:
            self.bot_startup_attempted = startup_attempted

    def clear_bot(self):
        self.bot = None

    def get_status(self) -> dict:
        """Get the current bot status"""
        bot_token = os.getenv("DISCORD_BOT_TOKEN")

        return {
            "success": True,
            "bot_running": not self.bot.is_closed() if self.bot else False,
            "bot_ready": self.bot.is_ready() if self.bot else False,
            "bot_startup_attempted": self.bot_startup_attempted,
            "discord_configured": bool(bot_token)
        }

    def get_session_stats(self) -> dict:
        """Get ping session and cooldown statistics"""
        if self.ping_service is None:
            return {"success": False, "message": "Ping service not initialized"}
        return {"success": True, **self.ping_service.stats}

    def get_health_info(self) -> dict:
        """Get health check information"""
        stats = self.ping_service.registry.stats if self.ping_service else {}
        return {
            "bot_startup_attempted": self.bot_startup_attempted,
            "sessions": stats
        }


# Create status controller instance
status_controller = StatusController()


# Register API endpoints
@status_router.get("/status")
async def get_bot_status():
    """Get the current bot status"""
    return status_controller.get_status()


@status_router.get("/sessions")
async def get_session_stats():
    """Get ping session statistics"""
    return status_controller.get_session_stats()
