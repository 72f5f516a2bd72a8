# varsim/schemas.py
from __future__ import annotations
import math
from asyncua import ua
from asyncua.ua.uaerrors import UaStringParsingError
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from typing import Literal, Optional
from uuid import uuid4

from varsim.errors import DefinitionError
from varsim.waveforms import ValueType

# OPC UA built-in types a simulated variable may be exposed as
DataType = Literal[
    "Boolean", "Double", "Float",
    "Int16", "Int32", "Int64",
    "UInt16", "UInt32", "String",
]

INTEGER_LIMITS = {
    "Int16": (-2**15, 2**15 - 1),
    "Int32": (-2**31, 2**31 - 1),
    "Int64": (-2**63, 2**63 - 1),
    "UInt16": (0, 2**16 - 1),
    "UInt32": (0, 2**32 - 1),
}

FLOAT32_MAX = 3.4028234663852886e38

DEFAULT_NAMESPACE = 1


def derive_node_id(browse_name: str) -> str:
    return f"ns={DEFAULT_NAMESPACE};s={browse_name}"


def validate_node_id(node_id: str) -> str:
    """Raise DefinitionError unless asyncua can parse ``node_id``."""
    try:
        ua.NodeId.from_string(node_id)
    except UaStringParsingError as e:
        raise DefinitionError(f"invalid nodeId {node_id!r}: expected e.g. 'ns=1;s=Name'") from e
    return node_id


def validate_definition(data_type: str, minimum: float, maximum: float) -> None:
    """Raise DefinitionError unless the range can drive the waveform engine."""
    if not (math.isfinite(minimum) and math.isfinite(maximum)):
        raise DefinitionError("minimum and maximum must be finite numbers")
    if minimum > maximum:
        raise DefinitionError(f"minimum ({minimum}) must not exceed maximum ({maximum})")
    if data_type in INTEGER_LIMITS:
        low, high = INTEGER_LIMITS[data_type]
        if minimum < low or maximum > high:
            raise DefinitionError(f"range [{minimum}, {maximum}] does not fit {data_type}")
    elif data_type == "Float":
        if minimum < -FLOAT32_MAX or maximum > FLOAT32_MAX:
            raise DefinitionError(f"range [{minimum}, {maximum}] does not fit Float")


class VariableCreate(BaseModel):
    browseName: str = Field(..., min_length=1, description="Name shown in OPC UA browsers",
                            examples=["Temperature_Sensor_01"])
    dataType: DataType = Field(..., examples=["Double"])
    nodeId: Optional[str] = Field(None, min_length=1,
                                  description="OPC UA node id; derived from browseName when omitted",
                                  examples=["ns=1;s=Temperature_Sensor_01"])
    minimumSamplingInterval: int = Field(..., ge=0, description="Milliseconds", examples=[100])
    minimum: float = Field(..., allow_inf_nan=False, examples=[-50])
    maximum: float = Field(..., allow_inf_nan=False, examples=[150])
    valueType: ValueType = Field(..., examples=[ValueType.RANDOM])

    @field_validator("nodeId")
    @classmethod
    def check_node_id(cls, v: Optional[str]) -> Optional[str]:
        return v if v is None else validate_node_id(v)

    @model_validator(mode="after")
    def check_range(self) -> "VariableCreate":
        validate_definition(self.dataType, self.minimum, self.maximum)
        return self


class VariableUpdate(BaseModel):
    """Partial update; omitted fields keep their stored value."""
    browseName: Optional[str] = Field(None, min_length=1)
    dataType: Optional[DataType] = None
    nodeId: Optional[str] = Field(None, min_length=1)
    minimumSamplingInterval: Optional[int] = Field(None, ge=0)
    minimum: Optional[float] = Field(None, allow_inf_nan=False)
    maximum: Optional[float] = Field(None, allow_inf_nan=False)
    valueType: Optional[ValueType] = None

    @field_validator("nodeId")
    @classmethod
    def check_node_id(cls, v: Optional[str]) -> Optional[str]:
        return v if v is None else validate_node_id(v)


class Variable(BaseModel):
    """A stored variable definition. Instances are immutable snapshots."""
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid4()))
    browseName: str = Field(..., min_length=1)
    dataType: DataType
    nodeId: str = Field(..., min_length=1)
    minimumSamplingInterval: int = Field(..., ge=0)
    minimum: float = Field(..., allow_inf_nan=False)
    maximum: float = Field(..., allow_inf_nan=False)
    valueType: ValueType

    @field_validator("nodeId")
    @classmethod
    def check_node_id(cls, v: str) -> str:
        return validate_node_id(v)

    @model_validator(mode="before")
    @classmethod
    def fill_node_id(cls, data):
        if isinstance(data, dict) and not data.get("nodeId") and data.get("browseName"):
            data = {**data, "nodeId": derive_node_id(data["browseName"])}
        return data

    @model_validator(mode="after")
    def check_range(self) -> "Variable":
        validate_definition(self.dataType, self.minimum, self.maximum)
        return self

    @classmethod
    def from_create(cls, body: VariableCreate) -> "Variable":
        return cls(**body.model_dump(exclude_none=True))


class VariableValue(BaseModel):
    id: str
    nodeId: str
    dataType: DataType
    value: bool | int | float | str
