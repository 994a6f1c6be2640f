"""Unit tests covering the relay client helper."""

from __future__ import annotations

import io
import socket
from typing import Iterable, Literal, Optional, Tuple

import pytest

from cliprelay.core.models import EndpointConfig
from cliprelay.network import client


class FakeSocket:
    """A lightweight socket stand-in used to script send/receive behavior."""

    def __init__(self, recv_chunks: Iterable[bytes]):
        self.recv_chunks: list = list(recv_chunks)
        self.sent_data: bytes = b""
        self.shutdown_how: Optional[int] = None
        self.closed = False

    def sendall(self, data: bytes) -> None:
        self.sent_data += data

    def shutdown(self, how: int) -> None:
        self.shutdown_how = how

    def recv(self, bufsize: int) -> bytes:
        if self.recv_chunks:
            chunk = self.recv_chunks.pop(0)
            if isinstance(chunk, BaseException):
                raise chunk
            return chunk
        return b""

    def close(self) -> None:
        self.closed = True

    def __enter__(self) -> "FakeSocket":
        return self

    def __exit__(self, exc_type, exc, tb) -> Literal[False]:
        self.close()
        return False


@pytest.fixture
def fake_tcp(monkeypatch):
    """Patch create_connection and return the list of created sockets."""
    created = []

    def install(chunks):
        def fake_create_connection(
            address: Tuple[str, int], timeout: Optional[float] = None
        ) -> FakeSocket:
            sock = FakeSocket(chunks)
            sock.address = address
            created.append(sock)
            return sock

        monkeypatch.setattr("cliprelay.network.client.socket.create_connection", fake_create_connection)
        return created

    return install


def test_send_payload_success_returns_empty_reply(fake_tcp):
    created = fake_tcp([b""])

    reply = client.send_payload("tcp", ":8377", b"hello")

    sock = created[0]
    assert reply == ""
    assert sock.address == ("localhost", 8377)
    assert sock.sent_data == b"hello"
    assert sock.shutdown_how == socket.SHUT_WR
    assert sock.closed


def test_send_payload_returns_error_text(fake_tcp):
    fake_tcp([b"clipboard ", b"unavailable\n", b""])

    reply = client.send_payload("tcp", "127.0.0.1:8377", b"hello")

    assert reply == "clipboard unavailable\n"


def test_send_payload_timeout_ends_reply(fake_tcp):
    fake_tcp([b"partial", socket.timeout("timed out")])

    assert client.send_payload("tcp", "127.0.0.1:8377", b"x") == "partial"


def test_main_sends_stdin(monkeypatch, capsys):
    sent = {}

    def fake_send(network, address, data, timeout):
        sent.update(network=network, address=address, data=data)
        return ""

    monkeypatch.setattr(client, "load_config", lambda path: EndpointConfig(network="tcp", address=":1"))
    monkeypatch.setattr(client, "send_payload", fake_send)
    monkeypatch.setattr("sys.stdin", io.TextIOWrapper(io.BytesIO(b"from stdin")))

    assert client.main([]) == 0
    assert sent == {"network": "tcp", "address": ":1", "data": b"from stdin"}


def test_main_reports_relay_error(monkeypatch, capsys):
    monkeypatch.setattr(client, "load_config", lambda path: EndpointConfig(network="tcp", address=":1"))
    monkeypatch.setattr(client, "send_payload", lambda *a: "clipboard unavailable\n")
    monkeypatch.setattr("sys.stdin", io.TextIOWrapper(io.BytesIO(b"x")))

    assert client.main([]) == 1
    assert "clipboard unavailable" in capsys.readouterr().err


def test_main_reports_connection_error(monkeypatch, capsys):
    def refuse(*_args):
        raise ConnectionRefusedError("connection refused")

    monkeypatch.setattr(client, "load_config", lambda path: EndpointConfig(network="tcp", address=":1"))
    monkeypatch.setattr(client, "send_payload", refuse)
    monkeypatch.setattr("sys.stdin", io.TextIOWrapper(io.BytesIO(b"x")))

    assert client.main([]) == 1
    assert "connection refused" in capsys.readouterr().err
