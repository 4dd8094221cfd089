"""Type resolution from Go declarations to Swagger schemas."""

from .resolver import TypeResolver
from .schema import REF_PREFIX, SchemaNode
from .tags import JSONTag, json_tag, parse_struct_tag

__all__ = [
    "JSONTag",
    "REF_PREFIX",
    "SchemaNode",
    "TypeResolver",
    "json_tag",
    "parse_struct_tag",
]
