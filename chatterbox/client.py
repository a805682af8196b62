# client.py

import argparse
import logging
import sys
import threading
from typing import List, Optional, TextIO

from chatterbox.connection import ServerConnection
from chatterbox.errors import (
    ArgumentError,
    AuthenticationError,
    ServerConnectionError,
    StreamDisconnect,
)
from chatterbox.options import USAGE, ChatterboxOptions, parse_args

WELCOME_PREFIX = "Welcome"
DISCONNECT_NOTICE = "Server disconnected"
CONNECTION_LOST_NOTICE = "Connection disconnected"

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"


class ChatterboxClient:
    """
    A command-line client for a line-based chat server.

    The client runs in three phases:
    - connect(): open the TCP connection
    - authenticate(): one-shot "username password" handshake
    - stream_chat(): relay lines server -> user and user -> server
      concurrently until either direction ends

    User I/O is never read from or written to sys.stdin/sys.stdout
    directly; the hosting process passes in the streams to use.

    Attributes:
        options (ChatterboxOptions): Validated connection parameters
        user_input (TextIO): Source of lines typed by the user
        user_output (TextIO): Sink for server lines and notices
        connection (Optional[ServerConnection]): Set by connect()
        authenticated (bool): True after a successful handshake
        session_done (threading.Event): Set once either relay has ended
        output_lock (threading.Lock): Serializes writes to user_output
    """

    def __init__(
        self,
        options: ChatterboxOptions,
        user_input: TextIO,
        user_output: TextIO,
        connect_timeout: Optional[float] = None,
        shutdown_timeout: float = 1.0,
    ) -> None:
        self.options: ChatterboxOptions = options
        self.user_input: TextIO = user_input
        self.user_output: TextIO = user_output
        self.connect_timeout: Optional[float] = connect_timeout
        self.shutdown_timeout: float = shutdown_timeout

        self.connection: Optional[ServerConnection] = None
        self.authenticated: bool = False

        self.session_done = threading.Event()
        self.output_lock = threading.Lock()
        self.inbound_thread: Optional[threading.Thread] = None
        self.outbound_thread: Optional[threading.Thread] = None

    def connect(self) -> None:
        """
        Open the connection to the server.

        Raises:
            ServerConnectionError: If the server cannot be reached
        """
        self.connection = ServerConnection.open(
            self.options.host, self.options.port, timeout=self.connect_timeout
        )

    def _require_connection(self) -> ServerConnection:
        if self.connection is None:
            raise RuntimeError("Not connected; call connect() first")
        return self.connection

    def _write_user_line(self, text: str) -> None:
        with self.output_lock:
            self.user_output.write(text + "\n")
            self.user_output.flush()

    def _notify(self, notice: str) -> None:
        try:
            self._write_user_line(notice)
        except (OSError, ValueError) as e:
            logging.warning(f"Could not show '{notice}' to the user: {e}")

    def authenticate(self) -> None:
        """
        Perform the credential handshake.

        Reads the optional greeting and forwards it to the user, sends
        "username password", then reads the server's verdict. A verdict
        starting with "Welcome" is forwarded to the user; anything else is
        a rejection.

        Raises:
            AuthenticationError: If the server rejected the credentials
            StreamDisconnect: If the server closed before answering
            OSError: If the connection failed mid-handshake
        """
        conn = self._require_connection()

        greeting = conn.read_line()
        if greeting:
            self._write_user_line(greeting)
        else:
            logging.debug("Server sent no greeting")

        conn.write_line(f"{self.options.username} {self.options.password}")
        logging.info(f"Sent credentials for user {self.options.username}")

        response = conn.read_line()
        if response is None:
            raise StreamDisconnect("Server closed the connection before answering the login")

        if not response.startswith(WELCOME_PREFIX):
            logging.info(f"Server rejected user {self.options.username}")
            raise AuthenticationError(response)

        self._write_user_line(response)
        self.authenticated = True

    def stream_chat(self) -> None:
        """
        Relay chat lines in both directions until the session ends.

        Starts the inbound relay (server -> user) and the outbound relay
        (user -> server) on their own threads and waits until either one
        finishes. The connection is then closed, which unblocks the
        inbound relay, and both threads are joined. The outbound relay is
        a daemon thread: if it is still blocked on user input after
        shutdown_timeout it is left to die with the process.

        Raises:
            RuntimeError: If called before a successful authenticate()
        """
        if not self.authenticated:
            raise RuntimeError("stream_chat() requires a successful authenticate()")

        self.session_done.clear()
        self.inbound_thread = threading.Thread(
            target=self.print_incoming_chats, name="inbound-relay"
        )
        self.outbound_thread = threading.Thread(
            target=self.send_outgoing_chats, name="outbound-relay", daemon=True
        )
        self.inbound_thread.start()
        self.outbound_thread.start()

        self.session_done.wait()
        logging.info("Chat session ended; shutting down relays")
        self.close()

        self.inbound_thread.join()
        self.outbound_thread.join(timeout=self.shutdown_timeout)
        if self.outbound_thread.is_alive():
            logging.info("Outbound relay still blocked on user input; leaving it to the process")

    def print_incoming_chats(self) -> None:
        """Forward every server line to the user until the server goes away."""
        conn = self._require_connection()
        try:
            while not self.session_done.is_set():
                line = conn.read_line()
                if line is None or self.session_done.is_set():
                    break
                logging.debug(f"Received line of {len(line)} characters")
                self._write_user_line(line)
        except (OSError, ValueError) as e:
            logging.warning(f"Inbound relay stopped: {e}")
        finally:
            # A locally initiated shutdown is not a server disconnect.
            if not self.session_done.is_set():
                self._notify(DISCONNECT_NOTICE)
            self.session_done.set()

    def send_outgoing_chats(self) -> None:
        """
        Send every line the user types to the server.

        End of user input ends the relay without a notice and, through
        session_done, the whole session.
        """
        conn = self._require_connection()
        try:
            while not self.session_done.is_set():
                try:
                    line = self.user_input.readline()
                except (OSError, ValueError) as e:
                    logging.warning(f"Could not read user input: {e}")
                    return
                if not line:
                    logging.info("User input reached end of stream")
                    return
                if self.session_done.is_set():
                    return

                try:
                    conn.write_line(line.rstrip("\r\n"))
                except (OSError, ValueError) as e:
                    logging.warning(f"Outbound relay stopped: {e}")
                    if not self.session_done.is_set():
                        self._notify(CONNECTION_LOST_NOTICE)
                    return
                logging.debug(f"Sent line of {len(line)} characters")
        finally:
            self.session_done.set()

    def close(self) -> None:
        """
        End the session and close the server connection.

        Safe to call more than once.
        """
        self.session_done.set()
        if self.connection is not None:
            self.connection.close()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="chatterbox", description="Command-line client for a Chatterbox chat server."
    )
    parser.add_argument(
        "args",
        nargs="*",
        metavar="HOST PORT USERNAME PASSWORD",
        help="Server address and credentials",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="WARNING",
        help="Logging verbosity (default: WARNING)",
    )
    parser.add_argument(
        "--log-file",
        type=str,
        default=None,
        help="Write log records to this file instead of stderr",
    )
    parser.add_argument(
        "--connect-timeout",
        type=float,
        default=None,
        help="Seconds to wait for the TCP connection (default: no timeout)",
    )
    return parser


def configure_logging(level: str, log_file: Optional[str] = None) -> None:
    logging.basicConfig(filename=log_file, level=getattr(logging, level), format=LOG_FORMAT)


def main(
    argv: Optional[List[str]] = None,
    user_input: Optional[TextIO] = None,
    user_output: Optional[TextIO] = None,
) -> int:
    """
    Run the client and return the process exit code.

    Returns:
        int: 0 after a normal chat session, 1 on argument, connection or
        authentication failure, 130 when interrupted
    """
    cli = build_parser().parse_args(argv)
    configure_logging(cli.log_level, cli.log_file)

    logging.info("Parsing options...")
    try:
        options = parse_args(cli.args)
    except ArgumentError as e:
        print("Error parsing arguments", file=sys.stderr)
        print(e, file=sys.stderr)
        print(USAGE, file=sys.stderr)
        return 1
    logging.info(f"Read options: {options}")

    client = ChatterboxClient(
        options,
        user_input if user_input is not None else sys.stdin,
        user_output if user_output is not None else sys.stdout,
        connect_timeout=cli.connect_timeout,
    )

    try:
        logging.info("Connecting to server...")
        try:
            client.connect()
        except ServerConnectionError as e:
            print("Failed to connect to server", file=sys.stderr)
            print(e, file=sys.stderr)
            return 1
        logging.info("Connected to server")

        logging.info("Authenticating...")
        try:
            client.authenticate()
        except AuthenticationError as e:
            print("Failed authentication", file=sys.stderr)
            print(e, file=sys.stderr)
            return 1
        except OSError as e:
            print("Error while attempting to authenticate", file=sys.stderr)
            print(e, file=sys.stderr)
            return 1
        logging.info("Finished authentication")

        logging.info("Beginning chat streaming")
        client.stream_chat()
    except KeyboardInterrupt:
        logging.info("Client interrupted (Ctrl+C)")
        return 130
    finally:
        client.close()

    return 0


if __name__ == "__main__":
    sys.exit(main())
