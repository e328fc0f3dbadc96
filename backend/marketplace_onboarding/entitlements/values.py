"""
Typed entitlement values.

An entitlement value is exactly one of boolean, double, integer or string.
The marketplace API models this as four optional fields; here it is a
single immutable object with a required tag so that the "nothing set"
state can only exist as an :class:`InvalidValue` error.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Mapping, Union

from marketplace_onboarding.entitlements.errors import InvalidValue
from marketplace_onboarding.models.enums import ValueType

Payload = Union[bool, float, int, str]

INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1

# Resolution order when a raw value carries more than one field.
_RAW_KEYS: tuple[tuple[ValueType, tuple[str, ...]], ...] = (
    (ValueType.BOOLEAN, ("BooleanValue", "booleanValue", "boolean_value")),
    (ValueType.DOUBLE, ("DoubleValue", "doubleValue", "double_value")),
    (ValueType.INTEGER, ("IntegerValue", "integerValue", "integer_value")),
    (ValueType.STRING, ("StringValue", "stringValue", "string_value")),
)

_COLUMNS = {
    ValueType.BOOLEAN: "boolean_value",
    ValueType.DOUBLE: "double_value",
    ValueType.INTEGER: "integer_value",
    ValueType.STRING: "string_value",
}


def _check_payload(value_type: ValueType, payload: Any) -> Payload:
    if value_type is ValueType.BOOLEAN:
        if not isinstance(payload, bool):
            raise InvalidValue(f"boolean entitlement value expected, got {type(payload).__name__}")
        return payload
    if value_type is ValueType.DOUBLE:
        if isinstance(payload, bool) or not isinstance(payload, (int, float)):
            raise InvalidValue(f"double entitlement value expected, got {type(payload).__name__}")
        payload = float(payload)
        if not math.isfinite(payload):
            raise InvalidValue("double entitlement value must be finite")
        return payload
    if value_type is ValueType.INTEGER:
        if isinstance(payload, bool) or not isinstance(payload, int):
            raise InvalidValue(f"integer entitlement value expected, got {type(payload).__name__}")
        if not INT64_MIN <= payload <= INT64_MAX:
            raise InvalidValue("integer entitlement value does not fit in 64 bits")
        return payload
    if value_type is ValueType.STRING:
        if not isinstance(payload, str):
            raise InvalidValue(f"string entitlement value expected, got {type(payload).__name__}")
        return payload
    raise InvalidValue(f"unsupported entitlement value type: {value_type!r}")


@dataclass(frozen=True, eq=False)
class EntitlementValue:
    value_type: ValueType
    payload: Payload

    def __post_init__(self) -> None:
        value_type = ValueType(self.value_type)
        object.__setattr__(self, "value_type", value_type)
        object.__setattr__(self, "payload", _check_payload(value_type, self.payload))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, EntitlementValue):
            return NotImplemented
        return values_equal(self, other)

    def __hash__(self) -> int:
        return hash((self.value_type, self.payload))

    @classmethod
    def boolean(cls, payload: bool) -> "EntitlementValue":
        return cls(ValueType.BOOLEAN, payload)

    @classmethod
    def double(cls, payload: float) -> "EntitlementValue":
        return cls(ValueType.DOUBLE, payload)

    @classmethod
    def integer(cls, payload: int) -> "EntitlementValue":
        return cls(ValueType.INTEGER, payload)

    @classmethod
    def string(cls, payload: str) -> "EntitlementValue":
        return cls(ValueType.STRING, payload)

    def to_columns(self) -> dict[str, Any]:
        columns: dict[str, Any] = {column: None for column in _COLUMNS.values()}
        columns[_COLUMNS[self.value_type]] = self.payload
        columns["value_type"] = self.value_type
        return columns

    @classmethod
    def from_columns(cls, record: Any) -> "EntitlementValue":
        """Rebuild from a row exposing value_type plus the four typed columns."""
        value_type = ValueType(record.value_type)
        payload = getattr(record, _COLUMNS[value_type])
        if payload is None:
            raise InvalidValue(f"stored {value_type.value} value is empty")
        return cls(value_type, payload)

    def to_payload(self) -> dict[str, Any]:
        return {"type": self.value_type.value, "value": self.payload}


def resolve_value(raw: EntitlementValue | Mapping[str, Any] | None) -> EntitlementValue:
    if isinstance(raw, EntitlementValue):
        return raw
    if raw is None:
        raise InvalidValue("entitlement value is missing")
    if not isinstance(raw, Mapping):
        raise InvalidValue(f"unrecognised entitlement value: {type(raw).__name__}")
    for value_type, keys in _RAW_KEYS:
        for key in keys:
            payload = raw.get(key)
            if payload is not None:
                return EntitlementValue(value_type, payload)
    raise InvalidValue("entitlement value has no boolean, double, integer or string variant")


def values_equal(left: EntitlementValue, right: EntitlementValue) -> bool:
    if left.value_type is not right.value_type:
        return False
    if left.value_type is ValueType.BOOLEAN:
        return left.payload is right.payload
    if left.value_type is ValueType.DOUBLE:
        return left.payload == right.payload
    if left.value_type is ValueType.INTEGER:
        return left.payload == right.payload
    if left.value_type is ValueType.STRING:
        return left.payload == right.payload
    return False
