import enum


class ValueType(str, enum.Enum):
    BOOLEAN = "boolean"
    DOUBLE = "double"
    INTEGER = "integer"
    STRING = "string"
