"""
Clipboard relay server:
- Listens on a unix socket or a TCP port
- Every connection carries exactly one payload and is served by its own thread
- The payload is written to the system clipboard

Protocol:
    client connects and writes arbitrary bytes, then half-closes or goes idle
    -> end-of-stream or the read deadline marks the payload as complete
    -> server sends nothing on success
    -> server sends one line of error text if the clipboard write failed

Usage:
    cliprelay opener --config ~/.config/cliprelay/config.yaml
"""

from __future__ import annotations

import json
import logging
import os
import signal
import socket
import threading
import time
from typing import Callable, Iterable, Optional, Tuple

from cliprelay.core.clipboard import copy_to_clipboard
from cliprelay.core.config import delete_path, validate_config
from cliprelay.core.exceptions import EndpointError
from cliprelay.core.models import (
    NETWORK_UNIX,
    BuildInfo,
    EndpointConfig,
    ReadEnd,
    ReadResult,
    ShutdownPolicy,
)

logger = logging.getLogger(__name__)

READ_BUF = 4096
LISTEN_BACKLOG = 16
# accept() polls so the listener can notice a stop request
ACCEPT_POLL_INTERVAL = 0.5
DEFAULT_SIGNALS = (signal.SIGINT, signal.SIGTERM)

Sink = Callable[[str], None]


class SessionTracker:
    """Count in-flight sessions so shutdown can wait for them."""

    def __init__(self):
        self._active = 0
        self._cond = threading.Condition()

    @property
    def active(self) -> int:
        with self._cond:
            return self._active

    def enter(self) -> None:
        with self._cond:
            self._active += 1

    def exit(self) -> None:
        with self._cond:
            self._active -= 1
            if self._active <= 0:
                self._cond.notify_all()

    def wait_idle(self, timeout: Optional[float] = None) -> bool:
        """Block until no session is in flight. Returns False on timeout."""
        with self._cond:
            return self._cond.wait_for(lambda: self._active <= 0, timeout=timeout)


def quote_payload(data: bytes) -> str:
    """Render a payload as a double-quoted, escaped string for the log."""
    return json.dumps(data.decode("utf-8", errors="backslashreplace"), ensure_ascii=False)


def read_payload(conn, timeout_ms: int) -> ReadResult:
    """
    Read from conn until end-of-stream or until an absolute deadline of
    ``timeout_ms`` milliseconds from now passes.

    Hitting the deadline is a normal end of the read. Only a transport error
    other than a timeout yields ReadEnd.ERROR. The bytes collected so far are
    returned in every case.
    """
    deadline = time.monotonic() + timeout_ms / 1000.0
    chunks = []
    while True:
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            return ReadResult(b"".join(chunks), ReadEnd.TIMEOUT)
        try:
            conn.settimeout(remaining)
            chunk = conn.recv(READ_BUF)
        except socket.timeout:
            return ReadResult(b"".join(chunks), ReadEnd.TIMEOUT)
        except OSError as e:
            return ReadResult(b"".join(chunks), ReadEnd.ERROR, e)
        if not chunk:
            return ReadResult(b"".join(chunks), ReadEnd.EOF)
        chunks.append(chunk)


def handle_connection(conn, addr, timeout_ms: int, sink: Sink = copy_to_clipboard) -> None:
    """Handle a single client connection."""
    peer = addr or "local client"
    logger.debug("Connection from %s", peer)
    try:
        result = read_payload(conn, timeout_ms)
        if not result.ok:
            logger.error("failed to read from socket: %s", result.error)
            return
        if result.ended_by is ReadEnd.TIMEOUT:
            logger.debug("read deadline reached for %s after %d bytes", peer, len(result.data))

        logger.info("received %s", quote_payload(result.data))

        try:
            sink(result.data.decode("utf-8", errors="replace"))
        except Exception as e:
            logger.error("failed to save to clipboard: %s", e)
            try:
                conn.settimeout(None)
                conn.sendall(f"{e}\n".encode("utf-8", errors="replace"))
            except OSError as send_err:
                logger.error("failed to send error to client: %s", send_err)
    finally:
        conn.close()
        logger.debug("Disconnected %s", peer)


def _run_session(conn, addr, timeout_ms, sink, tracker):
    try:
        handle_connection(conn, addr, timeout_ms, sink)
    finally:
        if tracker is not None:
            tracker.exit()


def accept_loop(
    listener,
    timeout_ms: int,
    sink: Sink = copy_to_clipboard,
    stop_event: Optional[threading.Event] = None,
    tracker: Optional[SessionTracker] = None,
) -> None:
    """
    Accept connections until the listener fails or stop_event is set.

    Each connection is handed to a daemon thread and never waited on.
    An accept failure is logged and ends the loop; it is not raised.
    """
    if stop_event is None:
        stop_event = threading.Event()

    listener.settimeout(ACCEPT_POLL_INTERVAL)
    while not stop_event.is_set():
        try:
            conn, addr = listener.accept()
        except socket.timeout:
            continue
        except OSError as e:
            # closing the listener during shutdown also lands here
            if not stop_event.is_set():
                logger.error("accept failed: %s", e)
            break

        if tracker is not None:
            tracker.enter()
        t = threading.Thread(
            target=_run_session,
            args=(conn, addr, timeout_ms, sink, tracker),
            daemon=True,
        )
        t.start()

    logger.info("listener stopped")


def split_host_port(address: str) -> Tuple[str, int]:
    """Split ``host:port`` (or ``[v6]:port``, or ``:port``) for binding."""
    host, sep, port = address.rpartition(":")
    if not sep:
        raise EndpointError(f"missing port in address {address!r}")
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    try:
        port_number = int(port)
    except ValueError:
        try:
            port_number = socket.getservbyname(port, "tcp")
        except OSError as e:
            raise EndpointError(f"invalid port in address {address!r}") from e
    if not 0 <= port_number <= 65535:
        raise EndpointError(f"port out of range in address {address!r}")
    return host, port_number


def bind_endpoint(config: EndpointConfig) -> socket.socket:
    """Create the listening socket described by config.

    Unix sockets are bound under a 0o077 umask so only the owner can connect.
    """
    if config.network == NETWORK_UNIX:
        s = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        old_umask = os.umask(0o077)
        try:
            s.bind(config.address)
        except OSError as e:
            s.close()
            raise EndpointError(f"could not bind {config.address}: {e}") from e
        finally:
            os.umask(old_umask)
    else:
        host, port = split_host_port(config.address)
        family = socket.AF_INET6 if ":" in host else socket.AF_INET
        s = socket.socket(family, socket.SOCK_STREAM)
        s.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        try:
            s.bind((host, port))
        except OSError as e:
            s.close()
            raise EndpointError(f"could not bind {config.address}: {e}") from e

    try:
        s.listen(LISTEN_BACKLOG)
    except OSError as e:
        s.close()
        raise EndpointError(f"could not listen on {config.address}: {e}") from e
    return s


def wait_for_signal(
    event: threading.Event, signals: Iterable[int] = DEFAULT_SIGNALS
) -> Optional[int]:
    """
    Block until one of signals arrives or event is set by someone else.

    Returns the signal number, or None when event was set directly. Signal
    handlers can only be installed from the main thread, pass ``signals=()``
    elsewhere.
    """
    received = []

    def _handler(signum, _frame):
        # no logging here, the handler may interrupt a logging call
        received.append(signum)
        event.set()

    previous = {}
    for sig in signals:
        previous[sig] = signal.signal(sig, _handler)
    try:
        while not event.wait(ACCEPT_POLL_INTERVAL):
            pass
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)
    return received[0] if received else None


class RelayServer:
    """Owns the bound endpoint and the listener thread."""

    def __init__(
        self,
        config: EndpointConfig,
        sink: Sink = copy_to_clipboard,
        build: Optional[BuildInfo] = None,
    ):
        self.config = config
        self.sink = sink
        self.build = build or BuildInfo.current()
        self.tracker = SessionTracker()
        self.listener: Optional[socket.socket] = None
        self._listener_thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self._shutdown_requested = threading.Event()
        self._lock = threading.Lock()

    @property
    def bound_address(self):
        return self.listener.getsockname() if self.listener else None

    def start(self) -> None:
        """Bind the endpoint and start accepting in the background."""
        with self._lock:
            if self.listener is not None:
                raise RuntimeError("server already started")
            logger.info(self.build.banner())
            logger.info("starting a server at %s", self.config.address)
            self.listener = bind_endpoint(self.config)
            self._stop_event.clear()
            self._shutdown_requested.clear()
            self._listener_thread = threading.Thread(
                target=accept_loop,
                args=(self.listener, self.config.timeout, self.sink, self._stop_event, self.tracker),
                name="cliprelay-listener",
                daemon=True,
            )
            self._listener_thread.start()

    def request_shutdown(self) -> None:
        """Unblock run() without a signal."""
        self._shutdown_requested.set()

    def stop(self) -> None:
        """Stop accepting, apply the shutdown policy and release the endpoint."""
        with self._lock:
            listener, self.listener = self.listener, None
        if listener is None:
            return

        self._stop_event.set()
        if self._listener_thread is not None:
            self._listener_thread.join(ACCEPT_POLL_INTERVAL * 2)
            self._listener_thread = None

        if self.config.shutdown_policy is ShutdownPolicy.DRAIN:
            if not self.tracker.wait_idle(self.config.grace_seconds):
                logger.warning(
                    "grace period over, abandoning %d in-flight session(s)",
                    self.tracker.active,
                )
        elif self.tracker.active:
            logger.info("hard shutdown, abandoning %d in-flight session(s)", self.tracker.active)

        try:
            listener.close()
        except OSError as e:
            logger.error("Error closing server socket: %s", e)
        if self.config.network == NETWORK_UNIX:
            delete_path(self.config.address)

    def run(self, signals: Iterable[int] = DEFAULT_SIGNALS) -> None:
        """Serve until a termination signal (or request_shutdown) arrives."""
        self.start()
        try:
            signum = wait_for_signal(self._shutdown_requested, signals)
            if signum is not None:
                logger.info("got signal %s", signal.Signals(signum).name)
        finally:
            self.stop()


def serve(
    config: EndpointConfig,
    build: Optional[BuildInfo] = None,
    sink: Sink = copy_to_clipboard,
) -> None:
    """Validate config, then serve until SIGINT or SIGTERM."""
    config = validate_config(config)
    RelayServer(config, sink=sink, build=build).run()
