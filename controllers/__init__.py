"""
Controllers package for Ping Bot
"""

from controllers.ping_controller import PingController
from controllers.status_controller import StatusController

__all__ = ["PingController", "StatusController"]
