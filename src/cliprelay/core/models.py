"""
Base data models for the relay: endpoint settings, read outcomes and build info
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from enum import Enum
from importlib import metadata
from typing import Optional

import cliprelay

NETWORK_UNIX = "unix"
NETWORK_TCP = "tcp"
SUPPORTED_NETWORKS = (NETWORK_UNIX, NETWORK_TCP)


class ReadEnd(Enum):
    # How the read phase of a session finished
    EOF = "eof"
    TIMEOUT = "timeout"
    ERROR = "error"


class ShutdownPolicy(Enum):
    # What happens to in-flight sessions when the server stops
    HARD = "hard"
    DRAIN = "drain"


@dataclass(frozen=True)
class EndpointConfig:
    """Where the relay listens and how long it waits for each client.

    ``timeout`` and ``grace`` are in milliseconds. A ``grace`` of zero means
    outstanding sessions are abandoned at shutdown.
    """

    network: str = NETWORK_UNIX
    address: str = "~/.cliprelay.sock"
    timeout: int = 10
    grace: int = 0

    @property
    def timeout_seconds(self) -> float:
        return self.timeout / 1000.0

    @property
    def grace_seconds(self) -> float:
        return self.grace / 1000.0

    @property
    def shutdown_policy(self) -> ShutdownPolicy:
        return ShutdownPolicy.DRAIN if self.grace > 0 else ShutdownPolicy.HARD


@dataclass(frozen=True)
class ReadResult:
    """Bytes read from a session together with what ended the read."""

    data: bytes
    ended_by: ReadEnd
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        # a timeout is a normal end of the read, only ERROR is a failure
        return self.ended_by is not ReadEnd.ERROR


@dataclass(frozen=True)
class BuildInfo:
    version: str = "unknown"
    commit: str = "unknown"
    date: str = "unknown"

    @classmethod
    def current(cls) -> "BuildInfo":
        """Collect build metadata from the installed distribution and env."""
        try:
            version = metadata.version("cliprelay")
        except metadata.PackageNotFoundError:
            version = cliprelay.__version__
        return cls(
            version=version,
            commit=os.environ.get("CLIPRELAY_COMMIT", "unknown"),
            date=os.environ.get("CLIPRELAY_BUILD_DATE", "unknown"),
        )

    def banner(self) -> str:
        return f"version: {self.version}, commit: {self.commit}, date: {self.date}"
