"""
Services package for Ping Bot
"""

from services.cooldown_service import CooldownService, CooldownConfig, CooldownCheck
from services.session_registry import SessionRegistry
from services.ping_service import PingService, PingConfig, DeliveryError

__all__ = [
    "CooldownService",
    "CooldownConfig",
    "CooldownCheck",
    "SessionRegistry",
    "PingService",
    "PingConfig",
    "DeliveryError"
]
