"""Workload definitions and the registry that selects them.

A workload is one operation (``GET`` a batch of keys, ``MGET`` chunks...)
implemented once per competing client.  Each client's implementation is
a closure returning the number of backend operations it performed.

Workloads are produced by factories so that every worker process can
build its own instance with its own connections.  Only the parent
builds with ``populate=True``; worker instances reuse the data it wrote.
Factories are looked up by identifier once, at setup time, never per call.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from typing import Callable, Iterator

from kvbench.backend import RedisSettings
from kvbench.errors import ConfigError

Operation = Callable[[], int]


@dataclass
class Workload:
    """One operation, implemented by several clients."""

    name: str
    clients: dict[str, Operation] = field(default_factory=dict)
    operations: int = 1  # backend operations per call
    iterations: int = 5  # measured rounds (fixed-revolution mode)
    revolutions: int = 50  # calls per round
    warmup: int = 0  # unmeasured rounds before measuring
    teardown: Callable[[], None] | None = None

    @property
    def ops_total(self) -> int:
        """Backend operations in one measured round."""
        return self.operations * self.revolutions

    @property
    def warmup_calls(self) -> int:
        """Unmeasured calls executed before measuring."""
        return self.warmup * self.revolutions

    def operation(self, client: str) -> Operation:
        """Return *client*'s implementation of the operation."""
        try:
            return self.clients[client]
        except KeyError:
            raise ConfigError(
                f"Workload '{self.name}' has no client '{client}'. "
                f"Available: {', '.join(self.clients)}"
            ) from None

    def with_overrides(
        self,
        *,
        iterations: int | None = None,
        revolutions: int | None = None,
        warmup: int | None = None,
    ) -> Workload:
        """Return a copy with the given parameters replaced."""
        changes = {
            k: v
            for k, v in (
                ("iterations", iterations),
                ("revolutions", revolutions),
                ("warmup", warmup),
            )
            if v is not None
        }
        return dataclasses.replace(self, **changes) if changes else self

    def close(self) -> None:
        """Release the workload's connections."""
        if self.teardown is not None:
            self.teardown()


# factory(settings, *, populate=True) -> Workload
WorkloadFactory = Callable[..., Workload]


@dataclass
class WorkloadSpec:
    """A registered workload factory."""

    key: str
    factory: WorkloadFactory
    description: str = ""

    def build(self, settings: RedisSettings, *, populate: bool = True) -> Workload:
        """Instantiate the workload.  *populate* writes its dataset first."""
        return self.factory(settings, populate=populate)


class WorkloadRegistry:
    """Maps workload identifiers to factories.

    Usage::

        registry = WorkloadRegistry()

        @registry.workload("get", description="GET keys one by one")
        def get_workload(settings: RedisSettings, *, populate: bool = True) -> Workload:
            ...
    """

    def __init__(self) -> None:
        self._specs: dict[str, WorkloadSpec] = {}

    def register(self, key: str, factory: WorkloadFactory, *, description: str = "") -> None:
        if key in self._specs:
            raise ValueError(f"Workload '{key}' is already registered")
        self._specs[key] = WorkloadSpec(key=key, factory=factory, description=description)

    def workload(
        self, key: str, *, description: str = ""
    ) -> Callable[[WorkloadFactory], WorkloadFactory]:
        """Decorator form of :meth:`register`."""

        def decorator(factory: WorkloadFactory) -> WorkloadFactory:
            self.register(key, factory, description=description)
            return factory

        return decorator

    def get(self, key: str) -> WorkloadSpec:
        try:
            return self._specs[key]
        except KeyError:
            raise ConfigError(
                f"Unknown workload '{key}'. Available: {', '.join(sorted(self._specs))}"
            ) from None

    def select(self, keys: list[str] | None = None) -> list[WorkloadSpec]:
        """Resolve a workload filter.  ``None`` or empty selects everything,
        in registration order."""
        if not keys:
            return list(self._specs.values())
        return [self.get(k) for k in keys]

    def __contains__(self, key: object) -> bool:
        return key in self._specs

    def __iter__(self) -> Iterator[WorkloadSpec]:
        return iter(self._specs.values())

    def __len__(self) -> int:
        return len(self._specs)
