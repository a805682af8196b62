import queue
import socket
import threading
import time
from typing import Callable, Generator, List, Optional

import pytest


def wait_for(check: Callable[[], bool], timeout: float = 5.0, interval: float = 0.01) -> bool:
    """Poll check() until it returns True or timeout seconds pass."""
    deadline = time.time() + timeout
    while time.time() < deadline:
        if check():
            return True
        time.sleep(interval)
    return False


class Peer:
    """The server side of one accepted test connection."""

    def __init__(self, conn: socket.socket) -> None:
        self.conn = conn
        self.reader = conn.makefile("r", encoding="utf-8", newline="")
        self.writer = conn.makefile("w", encoding="utf-8", newline="\n")
        self.received: List[str] = []

    def send_line(self, text: str) -> None:
        self.writer.write(text + "\n")
        self.writer.flush()

    def read_line(self) -> Optional[str]:
        """Read one line from the client and record it; None at EOF."""
        try:
            line = self.reader.readline()
        except OSError:
            return None
        if not line:
            return None
        line = line.rstrip("\r\n")
        self.received.append(line)
        return line

    def drain(self) -> None:
        """Record everything the client sends until it disconnects."""
        while self.read_line() is not None:
            pass

    def close(self) -> None:
        try:
            self.conn.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass
        for stream in (self.writer, self.reader):
            try:
                stream.close()
            except OSError:
                pass
        self.conn.close()


class FakeServer:
    """
    A one-connection loopback chat server driven by a handler function.

    The handler receives the Peer for the accepted connection; the
    connection is closed when the handler returns.
    """

    def __init__(self, handler: Callable[[Peer], None]) -> None:
        self.handler = handler
        self.socket = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self.socket.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        self.socket.bind(("127.0.0.1", 0))
        self.socket.listen(1)
        self.host, self.port = self.socket.getsockname()
        self.peer: Optional[Peer] = None
        self.error: Optional[BaseException] = None
        self.thread = threading.Thread(target=self._serve, daemon=True)

    @property
    def received(self) -> List[str]:
        return self.peer.received if self.peer else []

    def start(self) -> "FakeServer":
        self.thread.start()
        return self

    def _serve(self) -> None:
        try:
            conn, _ = self.socket.accept()
        except OSError:
            return
        self.peer = Peer(conn)
        try:
            self.handler(self.peer)
        except Exception as e:
            self.error = e
        finally:
            self.peer.close()

    def join(self, timeout: float = 5.0) -> None:
        self.thread.join(timeout=timeout)

    def close(self) -> None:
        try:
            # Wakes a thread still blocked in accept().
            self.socket.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass
        self.socket.close()
        self.join(timeout=1.0)


class BlockingInput:
    """
    A user-input stand-in whose readline() blocks until a line is fed.

    finish() makes the next readline() report end of input.
    """

    def __init__(self, *lines: str) -> None:
        self._lines: "queue.Queue[str]" = queue.Queue()
        for line in lines:
            self.feed(line)

    def feed(self, line: str) -> None:
        self._lines.put(line + "\n")

    def finish(self) -> None:
        self._lines.put("")

    def readline(self) -> str:
        return self._lines.get()


def login(peer: Peer, greeting: str = "", verdict: str = "Welcome back!") -> None:
    """Server half of a handshake: greeting (blank means none), read creds, answer."""
    # The client always waits for a first line before sending credentials.
    peer.send_line(greeting)
    peer.read_line()
    peer.send_line(verdict)


@pytest.fixture
def fake_server() -> Generator[Callable[[Callable[[Peer], None]], FakeServer], None, None]:
    servers: List[FakeServer] = []

    def start(handler: Callable[[Peer], None]) -> FakeServer:
        server = FakeServer(handler).start()
        servers.append(server)
        return server

    yield start

    for server in servers:
        server.close()


@pytest.fixture
def user_input() -> Generator[BlockingInput, None, None]:
    source = BlockingInput()
    yield source
    # Release an outbound relay still parked in readline().
    source.finish()
