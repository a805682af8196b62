from dataclasses import dataclass, field
from typing import Sequence

from chatterbox.errors import ArgumentError

MIN_PORT = 1
MAX_PORT = 65535

USAGE = "Usage: chatterbox HOST PORT USERNAME PASSWORD"


@dataclass(frozen=True)
class ChatterboxOptions:
    """
    Validated connection and authentication parameters.

    Attributes:
        host (str): Server hostname or IP address
        port (int): Server port, always within 1..65535
        username (str): Account name sent during the handshake
        password (str): Account password; kept out of repr()
    """

    host: str
    port: int
    username: str
    password: str = field(repr=False)


def parse_port(text: str) -> int:
    """Parse a decimal port number and check that it is in range."""
    try:
        port = int(text.strip(), 10)
    except ValueError:
        raise ArgumentError(f"PORT must be a number between {MIN_PORT} and {MAX_PORT}") from None

    if port < MIN_PORT or port > MAX_PORT:
        raise ArgumentError(f"PORT must be a number between {MIN_PORT} and {MAX_PORT}")
    return port


def parse_args(args: Sequence[str]) -> ChatterboxOptions:
    """
    Build ChatterboxOptions from exactly four positional arguments.

    Args:
        args (Sequence[str]): HOST, PORT, USERNAME, PASSWORD

    Returns:
        ChatterboxOptions: The validated options

    Raises:
        ArgumentError: If the argument count is not four or PORT is invalid
    """
    if len(args) != 4:
        raise ArgumentError("Expected 4 arguments: HOST PORT USERNAME PASSWORD")

    host, port_text, username, password = args
    return ChatterboxOptions(
        host=host,
        port=parse_port(port_text),
        username=username,
        password=password,
    )
