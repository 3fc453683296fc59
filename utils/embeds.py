"""
Embed Builders
Rich embeds for every state of a /ping invocation
"""

import discord

from models.ping_session import PingRequest, PingResult, PingState, Rejection, StopResult

RED = 0xFF0000
GREEN = 0x00FF00
BLUE = 0x0000FF
ORANGE = 0xFFA500
ORANGE_RED = 0xFF4500


def _embed(color: int, title: str, description: str) -> discord.Embed:
    return discord.Embed(color=color, title=title, description=description)


def rejection_embed(rejection: Rejection, remaining_seconds: int = None) -> discord.Embed:
    """Embed explaining why a request was refused"""
    if rejection is Rejection.ALREADY_ACTIVE:
        return _embed(RED, "Command in Progress",
                      "⚠️ You already have an active ping command running. Please wait for it to finish.")
    if rejection is Rejection.ON_COOLDOWN:
        return _embed(RED, "Cooldown Active",
                      f"⏳ You're on cooldown. Please wait **{remaining_seconds} seconds** "
                      f"before using this command again.")
    if rejection is Rejection.SELF_TARGET:
        return _embed(RED, "Invalid Target", "❌ I cannot ping myself!")
    if rejection is Rejection.TARGET_NOT_FOUND:
        return _embed(RED, "Invalid Target", "❌ Cannot find the specified user!")
    return _embed(RED, "Invalid Execution", "❌ This command can only be called in a server.")


def confirmation_embed(request: PingRequest) -> discord.Embed:
    """Embed asking the inviter to confirm the run"""
    embed = discord.Embed(color=GREEN, title="Ping Confirmation")
    embed.add_field(name="Target", value=f"**{request.target_mention}**", inline=False)
    embed.add_field(name="Amount", value=f"**{request.amount}**", inline=False)
    embed.add_field(name="Method", value=f"**{request.method.label}**", inline=False)
    embed.add_field(
        name="Context",
        value=f"` ' {request.context} ' `" if request.context else "`None`",
        inline=False
    )
    embed.set_footer(text="Click Confirm to start or Cancel to abort.")
    return embed


def progress_embed(request: PingRequest) -> discord.Embed:
    """Embed shown while the pings are being sent"""
    embed = discord.Embed(
        color=BLUE,
        title="Pinging in Progress",
        description="Click Stop below to interrupt."
    )
    embed.add_field(name="Target", value=f"**{request.target_mention}**", inline=True)
    embed.add_field(name="Method", value=f"**{request.method.label}**", inline=True)
    embed.add_field(name="Pings", value=f"**{request.amount}**", inline=True)
    embed.set_footer(text="Sit tight while the magic happens!")
    return embed


def delivery_failure_embed(request: PingRequest) -> discord.Embed:
    return _embed(RED, "Failed to Ping",
                  f"⚠ Could not DM {request.target_mention}. They might have DMs disabled.")


def outcome_message(request: PingRequest, result: PingResult) -> str:
    """Final description for a run that was confirmed"""
    target = request.target_mention
    method = request.method.label
    if result.state is PingState.COMPLETED:
        return f"✅ Successfully completed all {result.amount} pings to {target} through {method}!"
    if result.state is PingState.PARTIALLY_STOPPED:
        return (f"⏹ Stopped after sending {result.completed} out of {result.amount} "
                f"pings to {target} through {method}.")
    return f"❌ Failed to ping {target} through {method}!"


def outcome_embed(request: PingRequest, result: PingResult) -> discord.Embed:
    """Embed for any terminal state"""
    if result.state is PingState.REJECTED:
        return rejection_embed(result.rejection, result.remaining_seconds)
    if result.state is PingState.CANCELLED:
        return _embed(ORANGE, "Command Cancelled", "❌ You aborted the ping operation.")
    if result.state is PingState.TIMED_OUT:
        return _embed(ORANGE_RED, "Timeout", "⏳ You didn't respond in time.")
    return _embed(GREEN, "Ping Complete", outcome_message(request, result))


def stop_embed(result: StopResult) -> discord.Embed:
    """Embed answering a press of the Stop button"""
    if result is StopResult.STOPPING:
        return _embed(ORANGE, "Stopping Pings", "🛑 Stopping the ping sequence...")
    if result is StopResult.NO_ACTIVE_SESSION:
        return _embed(RED, "No Active Ping", "❌ No active ping sequence found.")
    return _embed(RED, "Permission Denied", "❌ You can only stop your own ping sequences.")
