"""Cross-process coordination store.

Worker processes share no memory.  Everything they agree on (the start
barrier, the shared start instant, and their published results) lives
in an external key-value store that every process reaches over its own
connection.  Five primitives are enough:

- ``incr``           atomic counter increment
- ``get``            read a counter or value
- ``set_if_absent``  write-once value
- ``add_to_set``     publish an opaque blob
- ``read_set``       read every published blob

Every key is namespaced by a :class:`RunContext`, which carries the run
identifier explicitly instead of keeping it in global state.  Keys get
an expiry so abandoned runs do not accumulate.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Protocol

import redis

from kvbench.backend import RedisSettings

DEFAULT_KEY_TTL = 3600


# ---------------------------------------------------------------------------
# Run context
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RunContext:
    """Identity of one benchmark invocation.

    Minted once per :class:`~kvbench.runner.Runner`; every external key
    written during the run is derived from it.
    """

    run_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    namespace: str = "kvbench"
    key_ttl: int = DEFAULT_KEY_TTL

    def key(self, *parts: str) -> str:
        """Build ``namespace:run_id:part:part...``."""
        return ":".join((self.namespace, self.run_id, *parts))

    def barrier_key(self, workload: str, client: str) -> str:
        return self.key(workload, client, "barrier")

    def start_key(self, workload: str, client: str) -> str:
        return self.key(workload, client, "start")

    def results_key(self, workload: str, client: str) -> str:
        return self.key(workload, client, "results")


# ---------------------------------------------------------------------------
# Store interface
# ---------------------------------------------------------------------------


class CoordinationStore(Protocol):
    """The primitives kvbench needs from a shared store.

    Implementations must be safe to call concurrently from many
    processes; each process opens its own store.
    """

    def incr(self, key: str) -> int: ...

    def get(self, key: str) -> str | None: ...

    def set_if_absent(self, key: str, value: str) -> bool: ...

    def add_to_set(self, key: str, blob: str) -> None: ...

    def read_set(self, key: str) -> list[str]: ...

    def close(self) -> None: ...


class RedisStore:
    """:class:`CoordinationStore` backed by Redis."""

    def __init__(self, client: redis.Redis, *, ttl: int = DEFAULT_KEY_TTL) -> None:
        self.client = client
        self.ttl = ttl

    @classmethod
    def from_settings(cls, settings: RedisSettings, *, ttl: int = DEFAULT_KEY_TTL) -> RedisStore:
        """Open a fresh connection.  Call this inside each worker process."""
        return cls(settings.connect(decode_responses=True), ttl=ttl)

    def incr(self, key: str) -> int:
        value = int(self.client.incr(key))
        if value == 1:
            # First writer owns the expiry.
            self.client.expire(key, self.ttl)
        return value

    def get(self, key: str) -> str | None:
        value = self.client.get(key)
        if value is None:
            return None
        return value if isinstance(value, str) else value.decode()

    def set_if_absent(self, key: str, value: str) -> bool:
        return bool(self.client.set(key, value, nx=True, ex=self.ttl))

    def add_to_set(self, key: str, blob: str) -> None:
        pipe = self.client.pipeline()
        pipe.sadd(key, blob)
        pipe.expire(key, self.ttl)
        pipe.execute()

    def read_set(self, key: str) -> list[str]:
        members = self.client.smembers(key)
        return sorted(m if isinstance(m, str) else m.decode() for m in members)

    def close(self) -> None:
        self.client.close()
