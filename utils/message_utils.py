"""
Message Utilities
Helper functions for formatting ping messages
"""

import logging
from typing import Optional

from models.ping_session import DeliveryMethod, PingRequest

logger = logging.getLogger("ping-bot")

MAX_MESSAGE_LENGTH = 2000  # Discord's message limit


def truncate(text: str, max_length: int) -> str:
    """
    Shorten text to max_length characters, marking the cut with an ellipsis.

    Args:
        text: The text to shorten
        max_length: Maximum length of the result

    Returns:
        The text, shortened if necessary
    """
    if len(text) <= max_length:
        return text
    return text[:max_length - 3] + "..."


def format_context(context: Optional[str]) -> str:
    """Context line appended to a ping, empty when there is no context"""
    if not context:
        return ""
    return f"\n📜 **Context:** ` {context} `"


def format_direct_ping(request: PingRequest) -> str:
    """
    Build the text of a ping delivered by direct message.

    Args:
        request: The ping request

    Returns:
        Message text naming the inviter and the server it came from
    """
    text = (
        f"👤 **Pinged By:** {request.inviter_mention}\n\n"
        f"🌐 **Server:** {request.guild_name}\n"
        f"{format_context(request.context)}"
    )
    return truncate(text, MAX_MESSAGE_LENGTH)


def format_channel_ping(request: PingRequest) -> str:
    """Build the text of a ping delivered in the originating channel"""
    text = f"👤 **Pinged:** {request.target_mention}\n{format_context(request.context)}"
    return truncate(text, MAX_MESSAGE_LENGTH)


def format_ping(request: PingRequest) -> str:
    """Build the ping text for the request's delivery method"""
    if request.method is DeliveryMethod.DIRECT_MESSAGE:
        return format_direct_ping(request)
    return format_channel_ping(request)
