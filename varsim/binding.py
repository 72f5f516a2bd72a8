# varsim/binding.py
"""Keeps the OPC UA address space in step with the variable catalogue.

A rebuild is a full replace: every source installed by the previous rebuild
is removed, then one fresh source per definition is installed. Rebuilds are
serialized; reads racing a rebuild see either the old or the new source.
"""
import asyncio
import logging
import time
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Awaitable, Callable, Dict, Iterable, Mapping, Optional, Protocol

from prometheus_client import Counter, Gauge, Histogram

from varsim.errors import BindError
from varsim.schemas import Variable
from varsim.waveforms import sample, sample_boolean

log = logging.getLogger("binding")

REBUILDS_TOTAL = Counter("variable_rebuilds_total", "Address space rebuilds", ["outcome"])
REBUILD_SECONDS = Histogram(
    "variable_rebuild_seconds",
    "Address space rebuild duration (s)",
    buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1, 2, 5),
)
BOUND_VARIABLES = Gauge("bound_variables", "Variables currently exposed by the OPC UA server")

ReadCallback = Callable[[], Any]


class AddressSpace(Protocol):
    """What the manager needs from the protocol server."""

    async def install_value_source(self, node_id: str, browse_name: str, data_type: str,
                                   sampling_interval: int, read: ReadCallback) -> Any: ...

    async def remove_value_source(self, handle: Any) -> None: ...


def coerce(data_type: str, value):
    """Convert a generated number into the Python type used for ``data_type``."""
    if data_type == "Boolean":
        return bool(value)
    if data_type in ("Double", "Float"):
        return float(value)
    if data_type == "String":
        return f"{value:g}" if isinstance(value, float) else str(value)
    return int(round(value))


@dataclass(frozen=True)
class ValueSource:
    """A definition snapshot paired with the clock its reads sample against."""
    definition: Variable
    clock: Callable[[], float] = field(default=time.time, compare=False)

    def read(self):
        d = self.definition
        if d.dataType == "Boolean":
            return sample_boolean()
        return coerce(d.dataType, sample(d.valueType, d.minimum, d.maximum, self.clock()))


class BindingManager:
    def __init__(self, timeout: float = 5.0, clock: Callable[[], float] = time.time) -> None:
        self.timeout = timeout
        self.clock = clock
        self._lock = asyncio.Lock()
        self._handles: Dict[str, Any] = {}
        self._sources: Mapping[str, ValueSource] = MappingProxyType({})

    @property
    def sources(self) -> Mapping[str, ValueSource]:
        """Read-only snapshot of the sources installed by the last rebuild."""
        return self._sources

    def source_for(self, variable_id: str) -> Optional[ValueSource]:
        return self._sources.get(variable_id)

    async def rebuild(self, address_space: AddressSpace, definitions: Iterable[Variable]) -> None:
        """Replace the installed sources with one per definition.

        The removal and install passes share one budget of ``timeout``
        seconds. A rollback after a failed install gets a budget of its own.
        """
        definitions = list(definitions)
        async with self._lock:
            start = time.perf_counter()
            deadline = self._deadline()
            try:
                await self._remove_all(address_space, deadline)
                await self._install_all(address_space, definitions, deadline)
            except BindError:
                REBUILDS_TOTAL.labels(outcome="failed").inc()
                raise
            finally:
                REBUILD_SECONDS.observe(time.perf_counter() - start)
                BOUND_VARIABLES.set(len(self._handles))
            REBUILDS_TOTAL.labels(outcome="ok").inc()
            log.info("rebuild ok variables=%d in %.3fs", len(definitions), time.perf_counter() - start)

    def _deadline(self) -> float:
        return asyncio.get_running_loop().time() + self.timeout

    async def _call(self, aw: Awaitable, action: str, deadline: float,
                    node_id: Optional[str] = None):
        remaining = deadline - asyncio.get_running_loop().time()
        try:
            if remaining <= 0:
                if asyncio.iscoroutine(aw):
                    aw.close()
                raise asyncio.TimeoutError()
            return await asyncio.wait_for(aw, remaining)
        except BindError:
            raise
        except asyncio.TimeoutError as e:
            raise BindError(f"{action} timed out: budget of {self.timeout}s exhausted",
                            node_id=node_id, cause=e) from e
        except Exception as e:
            raise BindError(f"{action} failed: {e}", node_id=node_id, cause=e) from e

    async def _remove_all(self, address_space: AddressSpace, deadline: float) -> None:
        handles, self._handles = self._handles, {}
        self._sources = MappingProxyType({})
        for variable_id, handle in handles.items():
            try:
                await self._call(address_space.remove_value_source(handle), "remove", deadline)
            except BindError as e:
                # no way to ask whether the node is still there; forget it and go on
                log.warning("remove failed id=%s: %s", variable_id, e)

    async def _install_all(self, address_space: AddressSpace, definitions, deadline: float) -> None:
        handles: Dict[str, Any] = {}
        sources: Dict[str, ValueSource] = {}
        for d in definitions:
            if d.id in handles:
                await self._rollback(address_space, handles)
                raise BindError(f"duplicate variable id {d.id}", node_id=d.nodeId)
            source = ValueSource(d, self.clock)
            try:
                handle = await self._call(
                    address_space.install_value_source(
                        d.nodeId, d.browseName, d.dataType, d.minimumSamplingInterval, source.read
                    ),
                    "install",
                    deadline,
                    node_id=d.nodeId,
                )
            except BindError as e:
                log.error("install failed node=%s browseName=%s: %s; aborting rebuild",
                          d.nodeId, d.browseName, e)
                await self._rollback(address_space, handles)
                raise
            handles[d.id] = handle
            sources[d.id] = source
        self._handles = handles
        self._sources = MappingProxyType(sources)

    async def _rollback(self, address_space: AddressSpace, handles: Dict[str, Any]) -> None:
        deadline = self._deadline()
        for variable_id, handle in handles.items():
            try:
                await self._call(address_space.remove_value_source(handle), "rollback", deadline)
            except BindError as e:
                log.warning("rollback remove failed id=%s: %s", variable_id, e)
