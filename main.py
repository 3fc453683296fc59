"""
Ping Bot
Discord bot with a /ping command that repeatedly pings a user
Serves health and session status over HTTP
"""

import os
import asyncio
import logging
import threading

import discord
from discord.ext import commands
from dotenv import load_dotenv

from services.cooldown_service import CooldownConfig, CooldownService
from services.session_registry import SessionRegistry
from services.ping_service import PingConfig, PingService
from controllers.ping_controller import PingController
from controllers.status_controller import status_controller, status_router

load_dotenv()

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger("ping-bot")

# Services
ping_service = None
BOT = None


def load_ping_config() -> PingConfig:
    """Read ping configuration from the environment"""
    return PingConfig(
        max_pings=int(os.getenv("PING_MAX_AMOUNT", "100")),
        confirmation_timeout=float(os.getenv("PING_CONFIRM_TIMEOUT", "30")),
        pacing_delay=float(os.getenv("PING_PACING_DELAY", "0.3")),
        cooldown_on_failure=os.getenv("PING_COOLDOWN_ON_FAILURE", "false").lower() == "true"
    )


def initialize_services():
    """Initialize all services once"""
    global ping_service

    cooldowns = CooldownService(CooldownConfig(
        cooldown_ms=int(os.getenv("PING_COOLDOWN_MS", "60000"))
    ))
    config = load_ping_config()
    ping_service = PingService(
        registry=SessionRegistry(),
        cooldowns=cooldowns,
        config=config
    )
    status_controller.set_references(ping_service=ping_service)

    logger.info(f"Ping config: max_pings={config.max_pings}, pacing_delay={config.pacing_delay}s, "
                f"confirmation_timeout={config.confirmation_timeout}s, "
                f"cooldown={cooldowns.config.cooldown_ms}ms")


def create_discord_bot():
    """Create and configure a new Discord bot instance"""
    INTENTS = discord.Intents.default()
    INTENTS.members = True

    bot = commands.Bot(
        command_prefix='!',
        intents=INTENTS,
        description='Ping Bot - Ping a user multiple times'
    )
    PingController(bot, ping_service)
    synced = False

    @bot.event
    async def on_ready():
        """Bot is ready and connected to Discord"""
        nonlocal synced

        logger.info(f"Bot logged in as {bot.user.name} ({bot.user.id})")

        # on_ready fires again after reconnects
        if not synced:
            try:
                commands_synced = await bot.tree.sync()
                synced = True
                logger.info(f"Successfully reloaded {len(commands_synced)} application (/) commands")
            except discord.HTTPException as e:
                logger.error(f"Error reloading application (/) commands: {e}")

        status_controller.set_references(bot=bot)
        logger.info("Ping Bot is ready!")

    return bot


# Health check endpoint for Docker
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import uvicorn

app = FastAPI(
    title="Ping Bot Health",
    description="Health check endpoint for the ping bot"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include status router
app.include_router(status_router)


def _bot_ready() -> bool:
    if BOT and not BOT.is_closed():
        return BOT.is_ready()
    return False


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    health_info = status_controller.get_health_info()
    return {
        "status": "healthy",
        "service": "ping-bot",
        "bot_ready": _bot_ready(),
        "bot_startup_attempted": health_info.get("bot_startup_attempted", False),
        "discord_enabled": bool(os.getenv("DISCORD_BOT_TOKEN")),
        "sessions": health_info.get("sessions", {})
    }


@app.get("/ready")
async def readiness_check():
    """Readiness check endpoint - HTTP server is always ready"""
    return {
        "status": "ready",
        "bot_ready": _bot_ready()
    }


def run_health_server():
    """Run the health check server on a separate thread"""
    port = int(os.getenv("PORT", "8004"))
    uvicorn.run(app, host="0.0.0.0", port=port)


async def shutdown():
    """Graceful shutdown"""
    global BOT
    if BOT and not BOT.is_closed():
        await BOT.close()
    status_controller.clear_bot()
    BOT = None


async def main():
    """Main entry point"""
    global BOT

    bot_token = os.getenv("DISCORD_BOT_TOKEN")

    # Initialize services
    initialize_services()

    # Start health check server in a separate thread
    health_thread = threading.Thread(target=run_health_server, daemon=True)
    health_thread.start()

    if not bot_token:
        logger.warning("DISCORD_BOT_TOKEN not set - Discord bot features disabled")
        logger.info("Ping Bot running in HTTP mode (health endpoints active)")
        # Keep the HTTP server running
        while True:
            await asyncio.sleep(3600)

    logger.info("Starting Ping Bot...")
    status_controller.set_references(startup_attempted=True)

    # Main execution loop
    while True:
        try:
            # Create a fresh Bot instance for each run
            BOT = create_discord_bot()
            await BOT.start(bot_token)
            logger.info("Bot execution finished (stopped).")
            break
        except discord.LoginFailure as e:
            logger.error(f"Discord login failed: {e}")
            break
        except Exception as e:
            logger.error(f"Bot execution error: {e}")
            # Prevent tight loop if it crashes immediately
            await asyncio.sleep(5)
        finally:
            await shutdown()


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass
