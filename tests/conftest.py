"""Shared fixtures: an in-memory stand-in for the OPC UA address space."""
import asyncio
from dataclasses import dataclass
from typing import Any, Callable, Dict, List

import pytest
from asyncua import ua

from varsim.errors import BindError
from varsim.schemas import Variable, derive_node_id


@dataclass
class FakeNode:
    node_id: str
    browse_name: str
    data_type: str
    sampling_interval: int
    read: Callable[[], Any]


class FakeAddressSpace:
    """Accepts installs like the real server: parseable, unique node ids and unique browse names."""

    def __init__(self, running: bool = True) -> None:
        self.running = running
        self.nodes: Dict[str, FakeNode] = {}
        self.installs: List[str] = []
        self.removals: List[str] = []
        self.fail_remove = False
        self.delay = 0.0

    async def install_value_source(self, node_id, browse_name, data_type, sampling_interval, read):
        if self.delay:
            await asyncio.sleep(self.delay)
        if not self.running:
            raise BindError("address space not initialized", node_id=node_id)
        ua.NodeId.from_string(node_id)
        if node_id in self.nodes:
            raise RuntimeError(f"BadNodeIdExists {node_id}")
        if any(n.browse_name == browse_name for n in self.nodes.values()):
            raise RuntimeError(f"BadBrowseNameDuplicated {browse_name}")
        self.nodes[node_id] = FakeNode(node_id, browse_name, data_type, sampling_interval, read)
        self.installs.append(node_id)
        return node_id

    async def remove_value_source(self, handle):
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail_remove:
            raise RuntimeError("BadNodeIdUnknown")
        del self.nodes[handle]
        self.removals.append(handle)


def make_variable(name: str, **overrides) -> Variable:
    fields = dict(
        browseName=name,
        nodeId=derive_node_id(name),
        dataType="Double",
        minimumSamplingInterval=100,
        minimum=0,
        maximum=100,
        valueType="Sinusoid",
    )
    fields.update(overrides)
    return Variable(**fields)


@pytest.fixture
def address_space() -> FakeAddressSpace:
    return FakeAddressSpace()
