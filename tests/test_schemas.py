"""Tests for request/record validation."""
import pytest
from pydantic import ValidationError

from varsim.errors import DefinitionError
from varsim.schemas import (
    Variable, VariableCreate, VariableUpdate, derive_node_id, validate_definition, validate_node_id,
)
from varsim.waveforms import ValueType

BODY = {
    "browseName": "Boiler",
    "dataType": "Double",
    "minimumSamplingInterval": 100,
    "minimum": -50,
    "maximum": 150,
    "valueType": "Random",
}


def test_node_id_derived_from_browse_name() -> None:
    v = Variable.from_create(VariableCreate(**BODY))
    assert v.nodeId == "ns=1;s=Boiler"
    assert v.nodeId == derive_node_id("Boiler")
    assert v.valueType is ValueType.RANDOM
    assert len(v.id) == 36


def test_explicit_node_id_kept() -> None:
    v = Variable.from_create(VariableCreate(**BODY, nodeId="ns=1;s=Custom"))
    assert v.nodeId == "ns=1;s=Custom"


def test_ids_are_unique() -> None:
    body = VariableCreate(**BODY)
    assert Variable.from_create(body).id != Variable.from_create(body).id


@pytest.mark.parametrize("override", [
    {"minimum": 200},
    {"maximum": float("inf")},
    {"minimum": float("nan")},
    {"minimumSamplingInterval": -1},
    {"valueType": "Pulse"},
    {"dataType": "DateTime"},
    {"browseName": ""},
    {"dataType": "UInt16", "minimum": -1, "maximum": 10},
    {"dataType": "Int16", "minimum": 0, "maximum": 40000},
    {"dataType": "Float", "minimum": 0, "maximum": 1e300},
    {"dataType": "Float", "minimum": -1e39, "maximum": 0},
    {"nodeId": "foo"},
    {"nodeId": "ns=x;s=Boiler"},
    {"nodeId": "ns=1;i=abc"},
])
def test_invalid_bodies_rejected(override) -> None:
    with pytest.raises(ValidationError):
        VariableCreate(**{**BODY, **override})


def test_variables_are_frozen() -> None:
    v = Variable.from_create(VariableCreate(**BODY))
    with pytest.raises(ValidationError):
        v.minimum = 0


def test_validate_definition_raises_definition_error() -> None:
    with pytest.raises(DefinitionError):
        validate_definition("Double", 5, 1)
    validate_definition("Double", 1, 1)


def test_float_range_within_single_precision_accepted() -> None:
    v = VariableCreate(**{**BODY, "dataType": "Float", "minimum": -3.4e38, "maximum": 3.4e38})
    assert v.maximum == 3.4e38
    validate_definition("Double", 0, 1e300)


@pytest.mark.parametrize("node_id", ["ns=1;s=Boiler", "ns=2;i=1001", "i=85", "ns=1;s=a;b=c"])
def test_parseable_node_ids_accepted(node_id: str) -> None:
    assert validate_node_id(node_id) == node_id
    assert VariableCreate(**BODY, nodeId=node_id).nodeId == node_id


def test_unparseable_node_id_rejected_everywhere() -> None:
    with pytest.raises(DefinitionError, match="invalid nodeId 'foo'"):
        validate_node_id("foo")
    with pytest.raises(ValidationError, match="invalid nodeId"):
        VariableUpdate(nodeId="foo")
    with pytest.raises(ValidationError, match="invalid nodeId"):
        Variable(**BODY, nodeId="foo")
    assert VariableUpdate(maximum=10).nodeId is None
