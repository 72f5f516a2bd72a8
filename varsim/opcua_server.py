# varsim/opcua_server.py
import logging
from typing import Dict, Optional

from asyncua import Node, Server, ua

from varsim.binding import ReadCallback
from varsim.errors import BindError

log = logging.getLogger("opcua")

SIMULATION_FOLDER_ID = "ns=1;s=Simulation"


class SimulationServer:
    """asyncua server exposing simulated variables under Objects/MyDevice/Simulation.

    Variables are read-only; every read calls the installed callback, so the
    stored Value attribute is never refreshed.
    """

    def __init__(self, endpoint: str, server_name: str = "opcua-varsim",
                 namespace_uri: str = "urn:opcua-varsim:simulation") -> None:
        self.endpoint = endpoint
        self.server_name = server_name
        self.namespace_uri = namespace_uri
        self._server: Optional[Server] = None
        self._folder: Optional[Node] = None
        self._browse_names: Dict[ua.NodeId, str] = {}

    @property
    def running(self) -> bool:
        return self._folder is not None

    async def start(self) -> None:
        server = Server()
        await server.init()
        server.set_endpoint(self.endpoint)
        server.set_server_name(self.server_name)
        server.set_security_policy([ua.SecurityPolicyType.NoSecurity])
        idx = await server.register_namespace(self.namespace_uri)
        device = await server.nodes.objects.add_folder(idx, "MyDevice")
        folder = await device.add_folder(ua.NodeId.from_string(SIMULATION_FOLDER_ID),
                                        ua.QualifiedName("Simulation", 1))
        await server.start()
        self._server, self._folder = server, folder
        log.info("opcua server listening endpoint=%s", self.endpoint)

    async def stop(self) -> None:
        if self._server is None:
            return
        server, self._server, self._folder = self._server, None, None
        self._browse_names.clear()
        await server.stop()
        log.info("opcua server stopped")

    async def install_value_source(self, node_id: str, browse_name: str, data_type: str,
                                   sampling_interval: int, read: ReadCallback) -> Node:
        if self._folder is None:
            raise BindError("address space not initialized", node_id=node_id)
        if browse_name in self._browse_names.values():
            raise BindError(f"browseName {browse_name!r} already installed", node_id=node_id)

        nodeid = ua.NodeId.from_string(node_id)
        vtype = getattr(ua.VariantType, data_type)
        qname = ua.QualifiedName(browse_name, nodeid.NamespaceIndex)
        try:
            var = await self._folder.add_variable(nodeid, qname, ua.Variant(read(), vtype))
        except ua.UaStatusCodeError as e:
            raise BindError(f"cannot add {node_id}: {e}", node_id=node_id, cause=e) from e

        def _on_read(nodeid, attr):
            return ua.DataValue(ua.Variant(read(), vtype))

        try:
            await var.write_attribute(
                ua.AttributeIds.MinimumSamplingInterval,
                ua.DataValue(ua.Variant(float(sampling_interval), ua.VariantType.Double)),
            )
            self._server.iserver.set_attribute_value_callback(var.nodeid, _on_read)
        except Exception:
            await self._server.delete_nodes([var])
            raise
        self._browse_names[var.nodeid] = browse_name
        log.debug("installed node=%s browseName=%s type=%s", node_id, browse_name, data_type)
        return var

    async def remove_value_source(self, handle: Node) -> None:
        if self._server is None:
            raise BindError("address space not initialized")
        self._browse_names.pop(handle.nodeid, None)
        await self._server.delete_nodes([handle])
        log.debug("removed node=%s", handle.nodeid.to_string())
