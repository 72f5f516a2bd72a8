# varsim/errors.py
"""Exceptions raised by the catalogue and the binding manager."""
from typing import Optional


class VarsimError(Exception):
    """Base exception for opcua-varsim."""


class DefinitionError(VarsimError, ValueError):
    """A variable definition is malformed (bad range, unsupported type, ...)."""


class ConflictError(VarsimError):
    """browseName or nodeId already used by another definition."""

    def __init__(self, field: str, value: str) -> None:
        self.field = field
        self.value = value
        super().__init__(f'Variable with {field} "{value}" already exists')


class NotFoundError(VarsimError):
    def __init__(self, variable_id: str) -> None:
        self.variable_id = variable_id
        super().__init__(f"Variable with ID {variable_id} not found")


class BindError(VarsimError):
    """The address space rejected an install/remove, was unavailable, or timed out."""

    def __init__(self, message: str, *, node_id: Optional[str] = None,
                 cause: Optional[BaseException] = None) -> None:
        self.node_id = node_id
        self.cause = cause
        super().__init__(message)


class CatalogueSyncError(VarsimError):
    """The catalogue write committed but the following rebuild failed."""

    def __init__(self, action: str, cause: BindError) -> None:
        self.action = action
        self.cause = cause
        super().__init__(f"{action} committed but address space rebuild failed: {cause}")
