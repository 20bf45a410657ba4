"""Websocket server feeding display surfaces and accepting their commands."""

from .config import ServerConfigurationError, UIServerConfig
from .events import InboundCommand
from .service import UIServer

__all__ = [
    "InboundCommand",
    "ServerConfigurationError",
    "UIServerConfig",
    "UIServer",
]
