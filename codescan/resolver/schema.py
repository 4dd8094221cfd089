"""Schema nodes produced by the resolver."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional

REF_PREFIX = "#/definitions/"


@dataclass
class SchemaNode:
    """Resolved schema for a Go type expression.

    ``ref`` holds a bare definition name; serialization adds the
    ``#/definitions/`` prefix. ``properties`` keeps insertion order, which is
    source declaration order for structs.
    """

    type: Optional[str] = None
    format: Optional[str] = None
    ref: Optional[str] = None
    description: Optional[str] = None
    items: Optional["SchemaNode"] = None
    properties: Dict[str, "SchemaNode"] = field(default_factory=dict)
    required: List[str] = field(default_factory=list)
    additional_properties: Optional["SchemaNode"] = None
    all_of: List["SchemaNode"] = field(default_factory=list)
    enum: Optional[List[Any]] = None
    default: Any = None
    example: Any = None
    minimum: Optional[float] = None
    maximum: Optional[float] = None
    min_length: Optional[int] = None
    max_length: Optional[int] = None
    pattern: Optional[str] = None
    min_items: Optional[int] = None
    max_items: Optional[int] = None
    unique_items: bool = False
    read_only: bool = False
    discriminator: Optional[str] = None
    x_nullable: bool = False

    @classmethod
    def primitive(cls, type_name: str, fmt: Optional[str] = None) -> "SchemaNode":
        return cls(type=type_name, format=fmt)

    @classmethod
    def reference(cls, name: str) -> "SchemaNode":
        return cls(ref=name)

    @classmethod
    def array(cls, items: "SchemaNode") -> "SchemaNode":
        return cls(type="array", items=items)

    @property
    def is_primitive(self) -> bool:
        return self.ref is None and self.type in {"string", "integer", "number", "boolean"}

    def copy(self) -> "SchemaNode":
        return replace(
            self,
            properties=dict(self.properties),
            required=list(self.required),
            all_of=list(self.all_of),
            enum=list(self.enum) if self.enum is not None else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {}
        if self.description:
            data["description"] = self.description
        if self.type is not None:
            data["type"] = self.type
        if self.format is not None:
            data["format"] = self.format
        if self.ref is not None:
            data["$ref"] = REF_PREFIX + self.ref
        if self.items is not None:
            data["items"] = self.items.to_dict()
        if self.enum is not None:
            data["enum"] = list(self.enum)
        if self.default is not None:
            data["default"] = self.default
        if self.example is not None:
            data["example"] = self.example
        if self.minimum is not None:
            data["minimum"] = self.minimum
        if self.maximum is not None:
            data["maximum"] = self.maximum
        if self.min_length is not None:
            data["minLength"] = self.min_length
        if self.max_length is not None:
            data["maxLength"] = self.max_length
        if self.pattern is not None:
            data["pattern"] = self.pattern
        if self.min_items is not None:
            data["minItems"] = self.min_items
        if self.max_items is not None:
            data["maxItems"] = self.max_items
        if self.unique_items:
            data["uniqueItems"] = True
        if self.read_only:
            data["readOnly"] = True
        if self.discriminator is not None:
            data["discriminator"] = self.discriminator
        if self.required:
            data["required"] = list(self.required)
        if self.all_of:
            data["allOf"] = [node.to_dict() for node in self.all_of]
        if self.properties:
            data["properties"] = {name: node.to_dict() for name, node in self.properties.items()}
        if self.additional_properties is not None:
            data["additionalProperties"] = self.additional_properties.to_dict()
        if self.x_nullable:
            data["x-nullable"] = True
        return data


__all__ = ["REF_PREFIX", "SchemaNode"]
