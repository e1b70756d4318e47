from .server import DiscordServer
from .history import ServerHistory
from .hourly_summary import HourlySummary

__all__ = [
    "DiscordServer",
    "ServerHistory",
    "HourlySummary",
]
