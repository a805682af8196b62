from chatterbox.client import ChatterboxClient
from chatterbox.connection import ServerConnection
from chatterbox.errors import (
    ArgumentError,
    AuthenticationError,
    ChatterboxError,
    ServerConnectionError,
    StreamDisconnect,
)
from chatterbox.options import ChatterboxOptions, parse_args

__all__ = [
    "ArgumentError",
    "AuthenticationError",
    "ChatterboxClient",
    "ChatterboxError",
    "ChatterboxOptions",
    "ServerConnection",
    "ServerConnectionError",
    "StreamDisconnect",
    "parse_args",
]
