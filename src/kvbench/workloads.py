"""Built-in workloads.

Each workload seeds a fixed set of synthetic records.  ``get`` and
``mget`` compare the same read pattern across redis-py configurations:

- ``redis``           RESP2, one round trip per command
- ``redis_resp3``     RESP3, one round trip per command
- ``redis_pipeline``  RESP2, one pipelined round trip per call (``get`` only)

``get_serialized`` stores batches of records encoded three ways and
compares reading them back: ``redis_json``, ``redis_pickle`` and
``redis_pickle_zlib`` (pickle compressed with zlib).
"""

from __future__ import annotations

import json
import logging
import pickle
import random
import zlib
from typing import Any, Callable

import redis

from kvbench.backend import RedisSettings
from kvbench.store import DEFAULT_KEY_TTL
from kvbench.workload import Workload, WorkloadRegistry

log = logging.getLogger("kvbench")

BUILTIN = WorkloadRegistry()

KEY_COUNT = 1000
KEY_PREFIX = "kvbench:data"


def dataset_keys(count: int = KEY_COUNT) -> list[str]:
    return [f"{KEY_PREFIX}:{i}" for i in range(count)]


def _record(i: int) -> str:
    return json.dumps(
        {
            "id": i,
            "name": f"record-{i:04d}",
            "class": ("L5", "H6", "LL6", "CM2")[i % 4],
            "mass": round(10.0 + (i * 7919) % 100_000 / 3.0, 2),
            "year": 1900 + i % 120,
            "geo": [round((i * 31) % 180 - 90.0, 4), round((i * 17) % 360 - 180.0, 4)],
        }
    )


def seed(client: redis.Redis, keys: list[str]) -> None:
    """Write the synthetic records.  Idempotent; never flushes the database."""
    pipe = client.pipeline(transaction=False)
    for i, key in enumerate(keys):
        pipe.set(key, _record(i), ex=DEFAULT_KEY_TTL)
    pipe.execute()
    log.debug("Seeded %d keys under %s", len(keys), KEY_PREFIX)


def chunked(items: list[str], chunks: int) -> list[list[str]]:
    """Split *items* into *chunks* contiguous slices of near-equal size."""
    size, extra = divmod(len(items), chunks)
    result: list[list[str]] = []
    start = 0
    for i in range(chunks):
        end = start + size + (1 if i < extra else 0)
        result.append(items[start:end])
        start = end
    return result


def _closer(*clients: redis.Redis):
    def close() -> None:
        for client in clients:
            client.close()

    return close


@BUILTIN.workload("get", description="GET 1,000 keys one command at a time")
def get_workload(settings: RedisSettings, *, populate: bool = True) -> Workload:
    keys = dataset_keys()
    resp2 = settings.connect()
    resp3 = settings.connect(protocol=3)
    if populate:
        seed(resp2, keys)

    def plain(client: redis.Redis):
        def run() -> int:
            for key in keys:
                client.get(key)
            return len(keys)

        return run

    def pipelined() -> int:
        pipe = resp2.pipeline(transaction=False)
        for key in keys:
            pipe.get(key)
        pipe.execute()
        return len(keys)

    return Workload(
        name="GET",
        clients={
            "redis": plain(resp2),
            "redis_resp3": plain(resp3),
            "redis_pipeline": pipelined,
        },
        operations=len(keys),
        iterations=5,
        revolutions=50,
        warmup=0,
        teardown=_closer(resp2, resp3),
    )


@BUILTIN.workload("mget", description="MGET 1,000 keys in 100 chunks")
def mget_workload(settings: RedisSettings, *, populate: bool = True) -> Workload:
    chunks = chunked(dataset_keys(), 100)
    resp2 = settings.connect()
    resp3 = settings.connect(protocol=3)
    if populate:
        seed(resp2, [key for chunk in chunks for key in chunk])

    def plain(client: redis.Redis):
        def run() -> int:
            for chunk in chunks:
                client.mget(chunk)
            return len(chunks)

        return run

    return Workload(
        name="MGET",
        clients={
            "redis": plain(resp2),
            "redis_resp3": plain(resp3),
        },
        operations=len(chunks),
        iterations=5,
        revolutions=500,
        warmup=1,
        teardown=_closer(resp2, resp3),
    )


# ---------------------------------------------------------------------------
# Serialized payloads
# ---------------------------------------------------------------------------

SERIALIZED_KEY_COUNT = 1000
BATCH_SIZE = 10  # records stored under each key


def _json_codec() -> tuple[Callable[[Any], bytes], Callable[[bytes], Any]]:
    return (lambda value: json.dumps(value).encode()), json.loads


def _pickle_codec() -> tuple[Callable[[Any], bytes], Callable[[bytes], Any]]:
    return (lambda value: pickle.dumps(value, protocol=pickle.HIGHEST_PROTOCOL)), pickle.loads


def _pickle_zlib_codec() -> tuple[Callable[[Any], bytes], Callable[[bytes], Any]]:
    def encode(value: Any) -> bytes:
        return zlib.compress(pickle.dumps(value, protocol=pickle.HIGHEST_PROTOCOL))

    def decode(blob: bytes) -> Any:
        return pickle.loads(zlib.decompress(blob))

    return encode, decode


CODECS = {
    "redis_json": _json_codec,
    "redis_pickle": _pickle_codec,
    "redis_pickle_zlib": _pickle_zlib_codec,
}


def record_batch(index: int, size: int = BATCH_SIZE) -> list[dict[str, Any]]:
    """A deterministic pseudo-random pick of *size* records for key *index*."""
    rng = random.Random(index)
    return [json.loads(_record(i)) for i in rng.sample(range(KEY_COUNT), size)]


def serialized_keys(client: str, count: int = SERIALIZED_KEY_COUNT) -> list[str]:
    return [f"{KEY_PREFIX}:{client}:{i}" for i in range(count)]


def seed_serialized(rclient: redis.Redis, client: str, encode: Callable[[Any], bytes]) -> None:
    """Store one encoded record batch per key under *client*'s prefix."""
    pipe = rclient.pipeline(transaction=False)
    for i, key in enumerate(serialized_keys(client)):
        pipe.set(key, encode(record_batch(i)), ex=DEFAULT_KEY_TTL)
    pipe.execute()
    log.debug("Seeded %d %s payloads", SERIALIZED_KEY_COUNT, client)


@BUILTIN.workload(
    "get_serialized",
    description="GET 1,000 serialized record batches and decode them",
)
def get_serialized_workload(settings: RedisSettings, *, populate: bool = True) -> Workload:
    conn = settings.connect()

    def reader(client: str, decode: Callable[[bytes], Any]):
        keys = serialized_keys(client)

        def run() -> int:
            for key in keys:
                decode(conn.get(key))
            return len(keys)

        return run

    clients = {}
    for client, codec in CODECS.items():
        encode, decode = codec()
        if populate:
            seed_serialized(conn, client, encode)
        clients[client] = reader(client, decode)

    return Workload(
        name="GET (Serialized)",
        clients=clients,
        operations=SERIALIZED_KEY_COUNT,
        iterations=5,
        revolutions=25,
        warmup=1,
        teardown=_closer(conn),
    )
