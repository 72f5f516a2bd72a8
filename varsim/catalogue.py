# varsim/catalogue.py
import asyncio
import logging
from datetime import datetime, timezone
from typing import Callable, List, Tuple, TypeVar

from varsim.binding import AddressSpace, BindingManager
from varsim.errors import BindError, CatalogueSyncError, NotFoundError
from varsim.schemas import (
    Variable, VariableCreate, VariableUpdate, validate_definition, validate_node_id,
)
from varsim.store import VariableStore

log = logging.getLogger("catalogue")

T = TypeVar("T")


class Catalogue:
    """CRUD over the variable store; every mutation is followed by a rebuild.

    The store write and the rebuild run under one lock, so the rebuild that
    finishes last always saw the newest catalogue.
    """

    def __init__(self, store: VariableStore, manager: BindingManager,
                 address_space: AddressSpace) -> None:
        self.store = store
        self.manager = manager
        self.address_space = address_space
        self._lock = asyncio.Lock()

    async def _commit(self, action: str, write: Callable[[], T]) -> T:
        async with self._lock:
            result = write()
            try:
                await self.manager.rebuild(self.address_space, self.store.list_all())
            except BindError as e:
                log.error("%s committed but rebuild failed: %s", action, e)
                raise CatalogueSyncError(action, e) from e
            return result

    # ---------- reads ----------
    def list_all(self) -> List[Variable]:
        return self.store.list_all()

    def get(self, variable_id: str) -> Variable:
        return self.store.get(variable_id)

    def current_value(self, variable_id: str):
        variable = self.store.get(variable_id)
        source = self.manager.source_for(variable_id)
        if source is None:
            raise NotFoundError(variable_id)
        return variable, source.read()

    def export(self) -> Tuple[str, List[Variable]]:
        stamp = datetime.now(timezone.utc).isoformat().replace(":", "-").replace(".", "-")
        return f"backup-{stamp}.json", self.store.list_all()

    # ---------- mutations ----------
    async def create(self, body: VariableCreate) -> Variable:
        variable = Variable.from_create(body)
        return await self._commit("create", lambda: self.store.insert(variable))

    async def update(self, variable_id: str, body: VariableUpdate) -> Variable:
        def write() -> Variable:
            current = self.store.get(variable_id)
            changes = body.model_dump(exclude_unset=True, exclude_none=True)
            merged = current.model_copy(update=changes)
            # model_copy skips validators
            validate_node_id(merged.nodeId)
            validate_definition(merged.dataType, merged.minimum, merged.maximum)
            return self.store.update(merged)

        return await self._commit("update", write)

    async def delete(self, variable_id: str) -> None:
        await self._commit("delete", lambda: self.store.delete(variable_id))

    async def import_(self, variables: List[Variable]) -> List[Variable]:
        return await self._commit("import", lambda: self.store.replace_all(variables))

    async def clear(self) -> None:
        await self._commit("clear", self.store.clear)

    async def resync(self) -> int:
        """Rebuild from the stored catalogue without changing it."""
        async with self._lock:
            variables = self.store.list_all()
            await self.manager.rebuild(self.address_space, variables)
            return len(variables)
