class ChatterboxError(Exception):
    """Base class for every error raised by the chatterbox client."""


class ArgumentError(ChatterboxError, ValueError):
    """Malformed command-line input, detected before any network activity."""


class ServerConnectionError(ChatterboxError, ConnectionError):
    """
    The TCP connection to the chat server could not be established.

    The underlying OSError (refused, unreachable, DNS failure) is kept
    as ``__cause__``.
    """


class AuthenticationError(ChatterboxError):
    """
    The server rejected the credentials.

    ``str(error)`` is the server's response line, verbatim.
    """

    def __init__(self, response: str) -> None:
        super().__init__(response)
        self.response = response


class StreamDisconnect(ChatterboxError, OSError):
    """The server closed the stream where another line was required."""
