"""Predeclared Go types and well-known library types."""

from __future__ import annotations

from typing import Dict, Optional, Tuple

from .schema import SchemaNode

_PRIMITIVES: Dict[str, Tuple[str, Optional[str]]] = {
    "bool": ("boolean", None),
    "string": ("string", None),
    "int": ("integer", "int64"),
    "int8": ("integer", "int8"),
    "int16": ("integer", "int16"),
    "int32": ("integer", "int32"),
    "int64": ("integer", "int64"),
    "rune": ("integer", "int32"),
    "uint": ("integer", "uint64"),
    "uint8": ("integer", "uint8"),
    "uint16": ("integer", "uint16"),
    "uint32": ("integer", "uint32"),
    "uint64": ("integer", "uint64"),
    "uintptr": ("integer", "uint64"),
    "byte": ("integer", "uint8"),
    "float32": ("number", "float"),
    "float64": ("number", "double"),
}

UNSUPPORTED_PREDECLARED = frozenset({"complex64", "complex128"})
BYTE_NAMES = frozenset({"byte", "uint8"})

_WELL_KNOWN: Dict[Tuple[str, str], Tuple[str, Optional[str]]] = {
    ("time", "Time"): ("string", "date-time"),
    ("time", "Duration"): ("integer", "int64"),
    ("encoding/json", "RawMessage"): ("object", None),
    ("net/url", "URL"): ("string", "uri"),
    ("net", "IP"): ("string", "ipv4"),
    ("github.com/google/uuid", "UUID"): ("string", "uuid"),
    ("github.com/gofrs/uuid", "UUID"): ("string", "uuid"),
}

STRFMT_PACKAGE = "github.com/go-openapi/strfmt"

_STRFMT_FORMATS: Dict[str, str] = {
    "Base64": "byte",
    "CIDR": "cidr",
    "CreditCard": "creditcard",
    "Date": "date",
    "DateTime": "date-time",
    "Duration": "duration",
    "Email": "email",
    "HexColor": "hexcolor",
    "Hostname": "hostname",
    "IPv4": "ipv4",
    "IPv6": "ipv6",
    "ISBN": "isbn",
    "ISBN10": "isbn10",
    "ISBN13": "isbn13",
    "MAC": "mac",
    "ObjectId": "bsonobjectid",
    "Password": "password",
    "RGBColor": "rgbcolor",
    "SSN": "ssn",
    "URI": "uri",
    "UUID": "uuid",
    "UUID3": "uuid3",
    "UUID4": "uuid4",
    "UUID5": "uuid5",
}


def primitive(name: str) -> Optional[SchemaNode]:
    """Schema for a predeclared Go type name, or None."""
    if name == "any":
        return SchemaNode(type="object")
    found = _PRIMITIVES.get(name)
    if found is None:
        return None
    return SchemaNode.primitive(*found)


def well_known(import_path: str, name: str) -> Optional[SchemaNode]:
    """Schema for a library type with a fixed JSON representation."""
    found = _WELL_KNOWN.get((import_path, name))
    if found is not None:
        return SchemaNode.primitive(*found)
    if import_path == STRFMT_PACKAGE and name in _STRFMT_FORMATS:
        return SchemaNode.primitive("string", _STRFMT_FORMATS[name])
    return None


__all__ = [
    "BYTE_NAMES",
    "STRFMT_PACKAGE",
    "UNSUPPORTED_PREDECLARED",
    "primitive",
    "well_known",
]
