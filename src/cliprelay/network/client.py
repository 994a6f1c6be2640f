"""
Send a payload to a running relay so it lands on the relay host's clipboard.

Usage:
  echo hello | python -m cliprelay.network.client [--config PATH]

The payload is read from stdin. Any error text the relay sends back is printed
and the exit code is 1.
"""

from __future__ import annotations

import argparse
import socket
import sys
from typing import Optional

from cliprelay.core.config import expand_address, load_config
from cliprelay.core.exceptions import ClipRelayError
from cliprelay.core.models import NETWORK_UNIX
from cliprelay.network.server import split_host_port

READ_BUF = 4096


def _connect(network: str, address: str, timeout: float) -> socket.socket:
    if network == NETWORK_UNIX:
        s = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        s.settimeout(timeout)
        try:
            s.connect(expand_address(address))
        except OSError:
            s.close()
            raise
        return s
    host, port = split_host_port(address)
    return socket.create_connection((host or "localhost", port), timeout=timeout)


def send_payload(network: str, address: str, data: bytes, timeout: float = 5.0) -> str:
    """
    Write data to the relay, half-close, and return whatever the relay answers.

    An empty string means the clipboard write went through.
    """
    with _connect(network, address, timeout) as s:
        s.sendall(data)
        s.shutdown(socket.SHUT_WR)

        parts = []
        while True:
            try:
                chunk = s.recv(READ_BUF)
            except socket.timeout:
                # treat timeout as end of response
                break
            if not chunk:
                break
            parts.append(chunk)
    return b"".join(parts).decode("utf-8", errors="replace")


def main(argv: Optional[list] = None) -> int:
    parser = argparse.ArgumentParser(description="Copy stdin to a cliprelay clipboard")
    parser.add_argument("--config", default=None, help="Path to the relay config file")
    parser.add_argument("--timeout", type=float, default=5.0)
    args = parser.parse_args(argv)

    try:
        config = load_config(args.config)
        reply = send_payload(config.network, config.address, sys.stdin.buffer.read(), args.timeout)
    except (ClipRelayError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if reply:
        print(reply.strip(), file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
