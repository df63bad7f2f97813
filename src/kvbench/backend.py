"""The backend service under test.

Workloads talk to the backend through their own client objects; kvbench
itself only needs the backend to identify itself and to report how many
bytes it has moved, so each measurement window can be charged with its
network traffic.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import redis


# ---------------------------------------------------------------------------
# Connection settings
# ---------------------------------------------------------------------------


@dataclass
class RedisSettings:
    """Where the Redis server lives and how to authenticate.

    A port of 0 means ``host`` is the path of a unix socket.
    """

    host: str = "127.0.0.1"
    port: int = 6379
    password: str | None = None
    timeout: float = 0.5

    @property
    def address(self) -> str:
        """Human-readable address, e.g. ``tcp://127.0.0.1:6379``."""
        if self.port:
            return f"tcp://{self.host}:{self.port}"
        return f"unix:{self.host}"

    def client_kwargs(self) -> dict[str, Any]:
        """Keyword arguments for :class:`redis.Redis`."""
        kwargs: dict[str, Any] = {
            "password": self.password or None,
            "socket_timeout": self.timeout,
            "socket_connect_timeout": self.timeout,
        }
        if self.port:
            kwargs["host"] = self.host
            kwargs["port"] = self.port
        else:
            kwargs["unix_socket_path"] = self.host
        return kwargs

    def connect(self, **overrides: Any) -> redis.Redis:
        """Open a new client.  *overrides* are passed to :class:`redis.Redis`."""
        kwargs = self.client_kwargs()
        kwargs.update(overrides)
        return redis.Redis(**kwargs)

    def to_dict(self) -> dict[str, Any]:
        """Serialize without the password."""
        return {"host": self.host, "port": self.port, "timeout": self.timeout}


# ---------------------------------------------------------------------------
# Network accounting
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class NetworkSample:
    """Cumulative bytes the server has received and sent.

    Only the difference between two samples is meaningful.
    """

    bytes_in: int = 0
    bytes_out: int = 0

    def __sub__(self, other: NetworkSample) -> NetworkSample:
        return NetworkSample(
            bytes_in=self.bytes_in - other.bytes_in,
            bytes_out=self.bytes_out - other.bytes_out,
        )


class RedisBackend:
    """A Redis server reached through redis-py."""

    def __init__(self, settings: RedisSettings, client: redis.Redis | None = None) -> None:
        self.settings = settings
        self.client = client if client is not None else settings.connect(decode_responses=True)

    def server_version(self) -> str:
        """The ``redis_version`` reported by ``INFO server``."""
        info = self.client.info("server")
        return str(info.get("redis_version", "unknown"))

    def network_sample(self) -> NetworkSample:
        """Read the server's cumulative network counters from ``INFO stats``."""
        info = self.client.info("stats")
        return NetworkSample(
            bytes_in=int(info.get("total_net_input_bytes", 0)),
            bytes_out=int(info.get("total_net_output_bytes", 0)),
        )

    def close(self) -> None:
        self.client.close()
