import logging
import socket
import threading
from typing import Optional

from chatterbox.errors import ServerConnectionError

ENCODING = "utf-8"


class ServerConnection:
    """
    A line-oriented TCP connection to the chat server.

    The connection owns one socket and two file objects made from it: a
    text reader and a text writer. Reading and writing are independent,
    so one thread may block in read_line() while another calls
    write_line(). close() may be called from any thread. It wakes a
    reader blocked in read_line().

    Attributes:
        host (str): Server hostname the connection was opened to
        port (int): Server port the connection was opened to
        socket (socket.socket): The connected TCP socket
    """

    def __init__(self, sock: socket.socket, host: str = "", port: int = 0) -> None:
        self.host: str = host
        self.port: int = port
        self.socket: socket.socket = sock
        # newline="" keeps "\r\n" intact so read_line() can strip it itself
        self._reader = sock.makefile("r", encoding=ENCODING, errors="replace", newline="")
        self._writer = sock.makefile("w", encoding=ENCODING, newline="\n")
        self._close_lock = threading.Lock()
        self._closed = False

    @classmethod
    def open(cls, host: str, port: int, timeout: Optional[float] = None) -> "ServerConnection":
        """
        Connect to host:port.

        Args:
            host (str): Server hostname or IP address
            port (int): Server port
            timeout (Optional[float]): Seconds to wait for the TCP connect.
                None blocks until the OS gives up.

        Returns:
            ServerConnection: An open connection

        Raises:
            ServerConnectionError: If the host cannot be resolved or reached
        """
        logging.info(f"Opening connection to {host}:{port}")
        try:
            sock = socket.create_connection((host, port), timeout=timeout)
        except OSError as e:
            raise ServerConnectionError(f"Could not connect to {host}:{port}: {e}") from e

        # Reads block indefinitely once connected.
        sock.settimeout(None)
        return cls(sock, host, port)

    @property
    def closed(self) -> bool:
        return self._closed

    def read_line(self) -> Optional[str]:
        """
        Read the next line sent by the server.

        Returns:
            Optional[str]: The line without its line terminator, or None
            once the server has closed the stream

        Raises:
            OSError: If the socket fails mid-read
            ValueError: If the connection was closed locally
        """
        line = self._reader.readline()
        if not line:
            return None
        return line.rstrip("\r\n")

    def write_line(self, text: str) -> None:
        """
        Send one newline-terminated line and flush it to the socket.

        Raises:
            OSError: If the server side is gone
            ValueError: If the connection was closed locally
        """
        self._writer.write(text + "\n")
        self._writer.flush()

    def close(self) -> None:
        """
        Shut down and close the connection.

        Safe to call more than once and from any thread.
        """
        with self._close_lock:
            if self._closed:
                return
            self._closed = True

        try:
            self.socket.shutdown(socket.SHUT_RDWR)
        except OSError as e:
            # Already disconnected by the peer.
            logging.debug(f"Socket shutdown for {self.host}:{self.port} failed: {e}")

        for stream in (self._writer, self._reader):
            try:
                stream.close()
            except OSError as e:
                logging.debug(f"Discarding unsent data for {self.host}:{self.port}: {e}")
        self.socket.close()
        logging.info(f"Connection to {self.host}:{self.port} closed")

    def __enter__(self) -> "ServerConnection":
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.close()
