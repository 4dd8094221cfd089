"""Resolution of Go type expressions into schema nodes."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Dict, Iterator, List, Optional, Set, Tuple

from ..annotations.directives import (
    AnnotationSet,
    DiscriminatorDirective,
    EnumDirective,
    IgnoreDirective,
    StrfmtDirective,
    TypeOverrideDirective,
)
from ..annotations.grammar import FieldDoc, coerce_metadata, description_text, parse_field_doc
from ..errors import AnnotationError, ConflictError, ResolutionError
from ..loader.universe import Universe
from ..logging import get_logger
from ..models import (
    ArrayType,
    Field,
    InterfaceType,
    MapType,
    NamedType,
    Package,
    PointerType,
    Position,
    SliceType,
    SourceFile,
    StructType,
    TypeDecl,
    TypeExpr,
    TypeKey,
    UnsupportedType,
)
from ..options import Options
from .builtins import BYTE_NAMES, UNSUPPORTED_PREDECLARED, primitive, well_known
from .schema import SchemaNode
from .tags import JSONTag, json_tag

_LOCATIONS = {
    "query": "query",
    "path": "path",
    "header": "header",
    "body": "body",
    "formdata": "formData",
    "form": "formData",
}

_SCHEMA_METADATA = {
    "min_length",
    "max_length",
    "minimum",
    "maximum",
    "pattern",
    "example",
    "default",
    "enum",
    "min_items",
    "max_items",
    "unique",
    "read_only",
}
_NODE_ATTRS = {"unique": "unique_items"}
_PARAMETER_KEYS = (
    "type",
    "format",
    "items",
    "enum",
    "default",
    "minimum",
    "maximum",
    "minLength",
    "maxLength",
    "pattern",
    "minItems",
    "maxItems",
    "uniqueItems",
)
_HEADER_KEYS = ("type", "format", "items", "enum", "default", "minimum", "maximum", "pattern")


@dataclass(frozen=True)
class _Scope:
    """Package and file a type expression was written in."""

    package: Package
    source: Optional[SourceFile]
    decl: str
    position: Optional[Position] = None

    def at(self, position: Optional[Position]) -> "_Scope":
        return replace(self, position=position or self.position)


@dataclass(frozen=True)
class _FlatField:
    field: Field
    go_name: str
    name: str
    doc: FieldDoc
    tag: JSONTag
    scope: _Scope


class TypeResolver:
    """Resolves types against one universe, caching every Definition by type key.

    A named composite type is resolved at most once: the first encounter
    reserves its Definition name before the body is built, so every later
    encounter (including one reached from inside that body) becomes a
    ``$ref`` to it.
    """

    def __init__(self, universe: Universe, annotations: AnnotationSet, options: Options) -> None:
        self.universe = universe
        self.annotations = annotations
        self.options = options
        self.definitions: Dict[str, SchemaNode] = {}
        self._owners: Dict[str, TypeKey] = {}
        self._names: Dict[TypeKey, str] = {}
        self._in_progress: Set[TypeKey] = set()
        self._promoting: Set[TypeKey] = set()
        self.logger = get_logger("resolver")

    # ------------------------------------------------------------------
    # Entry points

    def resolve(self, expr: TypeExpr, scope: _Scope) -> SchemaNode:
        if isinstance(expr, NamedType):
            return self._named(expr, scope)
        if isinstance(expr, PointerType):
            node = self.resolve(expr.elem, scope)
            if self.options.set_x_nullable_for_pointers:
                node = node.copy()
                node.x_nullable = True
            return node
        if isinstance(expr, (SliceType, ArrayType)):
            elem = expr.elem
            if (
                isinstance(expr, SliceType)
                and isinstance(elem, NamedType)
                and elem.package is None
                and elem.name in BYTE_NAMES
                and self.universe.lookup_type(scope.package.import_path, elem.name) is None
            ):
                return SchemaNode.primitive("string", "byte")
            return SchemaNode.array(self.resolve(elem, scope))
        if isinstance(expr, MapType):
            key_node = self.resolve(expr.key, scope)
            if not self._is_string(key_node):
                raise self._error(scope, f"map key type {expr.key} is not a string")
            return SchemaNode(type="object", additional_properties=self.resolve(expr.value, scope))
        if isinstance(expr, StructType):
            return self._struct(expr, scope)
        if isinstance(expr, InterfaceType):
            if expr.has_methods:
                raise self._error(scope, "interfaces with methods cannot be described")
            return SchemaNode(type="object")
        if isinstance(expr, UnsupportedType):
            raise self._error(scope, f"unsupported {expr.kind} type {expr.text}")
        raise self._error(scope, f"unsupported type {expr}")

    def resolve_type_name(
        self, spec: str, package_path: str, file: str, position: Optional[Position] = None
    ) -> SchemaNode:
        """Resolve a type written as ``Name`` or ``pkg.Name`` in a route comment."""
        pkg = self.universe.package(package_path)
        if pkg is None:
            raise ResolutionError(f"package {package_path} is not loaded", position)
        source = next((s for s in pkg.files if s.path == file), None)
        scope = _Scope(pkg, source, spec, position)
        qualifier, _, name = spec.rpartition(".")
        if (
            not qualifier
            and pkg.type_decl(name) is None
            and primitive(name) is None
            and name not in UNSUPPORTED_PREDECLARED
        ):
            candidates = self.universe.find_type_by_name(name)
            if len(candidates) > 1:
                where = ", ".join(found.import_path for found, _ in candidates)
                raise AnnotationError(f"type {name} is ambiguous: declared in {where}", position)
            if candidates:
                return self._resolve_decl(*candidates[0], scope)
        return self.resolve(NamedType(name=name, package=qualifier or None), scope)

    def resolve_model(self, key: TypeKey) -> SchemaNode:
        pkg, decl = self._lookup(key)
        return self._resolve_decl(pkg, decl, self._decl_scope(pkg, decl))

    def is_ignored(self, key: TypeKey) -> bool:
        return self.annotations.find(key, IgnoreDirective) is not None

    # ------------------------------------------------------------------
    # Named types

    def _named(self, expr: NamedType, scope: _Scope) -> SchemaNode:
        found, fixed = self._locate(expr, scope)
        if found is not None:
            return self._resolve_decl(found[0], found[1], scope)
        if fixed is None:
            raise self._error(scope, f"undefined type {expr.name}")
        return fixed

    def _locate(
        self, expr: NamedType, scope: _Scope
    ) -> Tuple[Optional[Tuple[Package, TypeDecl]], Optional[SchemaNode]]:
        """Find the declaration behind ``expr``, or a fixed schema when it has none."""
        if expr.package is None:
            local = self.universe.lookup_type(scope.package.import_path, expr.name)
            if local is not None:
                return local, None
            if expr.name == "error":
                raise self._error(scope, "the error interface has methods and cannot be described")
            if expr.name in UNSUPPORTED_PREDECLARED:
                raise self._error(scope, f"complex number type {expr.name} is not supported")
            node = primitive(expr.name)
            if node is not None:
                return None, node
            for spec in scope.source.imports if scope.source is not None else ():
                if spec.name == ".":
                    found = self.universe.lookup_type(spec.path, expr.name)
                    if found is not None:
                        return found, None
            raise self._error(scope, f"undefined type {expr.name}")

        path = None
        if scope.source is not None:
            path = self.universe.import_path_for(scope.source, expr.package)
        if path is None:
            raise self._error(scope, f"unknown package qualifier {expr.package!r} in {expr}")
        node = well_known(path, expr.name)
        if node is not None:
            return None, node
        found = self.universe.lookup_type(path, expr.name)
        if found is not None:
            return found, None
        if self.universe.is_opaque(path):
            self.logger.debug("Treating %s.%s from unloaded package as object", path, expr.name)
            return None, SchemaNode(type="object")
        if self.universe.package(path) is None and self.universe.is_standard_library(path):
            raise self._error(scope, f"unsupported standard library type {path}.{expr.name}")
        raise self._error(scope, f"type {expr.name} not found in package {path}")

    def _resolve_decl(self, pkg: Package, decl: TypeDecl, scope: _Scope) -> SchemaNode:
        key = (pkg.import_path, decl.name)
        if self.is_ignored(key):
            raise self._error(scope, f"{decl.name} is marked swagger:ignore and cannot be referenced")
        if decl.generic:
            raise self._error(scope, f"generic type {decl.name} is not supported")
        strfmt = self.annotations.find(key, StrfmtDirective)
        if strfmt is not None:
            return SchemaNode.primitive("string", strfmt.format)
        override = self.annotations.find(key, TypeOverrideDirective)
        if override is not None:
            return SchemaNode.primitive(override.type_name, override.format)
        if self._wants_definition(pkg, decl):
            return self._definition(pkg, decl)
        node = self.resolve(decl.type, self._decl_scope(pkg, decl))
        if node.ref is None:
            node = node.copy()
            self._apply_enum(node, pkg, decl)
        return node

    def _wants_definition(self, pkg: Package, decl: TypeDecl) -> bool:
        if decl.is_alias or self._is_primitive_like(pkg, decl, set()):
            if self.options.transparent_aliases:
                return False
            return self.options.ref_aliases or self.annotations.is_model((pkg.import_path, decl.name))
        return True

    def _is_primitive_like(self, pkg: Package, decl: TypeDecl, seen: Set[TypeKey]) -> bool:
        key = (pkg.import_path, decl.name)
        if key in seen:
            return False
        seen.add(key)
        if self.annotations.find(key, StrfmtDirective) or self.annotations.find(key, TypeOverrideDirective):
            return True
        expr = decl.type
        while isinstance(expr, PointerType):
            expr = expr.elem
        if not isinstance(expr, NamedType):
            return False
        if expr.package is None:
            local = self.universe.lookup_type(pkg.import_path, expr.name)
            if local is not None:
                return self._is_primitive_like(local[0], local[1], seen)
            return expr.name != "any" and primitive(expr.name) is not None
        source = pkg.file_of(decl)
        path = self.universe.import_path_for(source, expr.package) if source is not None else None
        if path is None:
            return False
        known = well_known(path, expr.name)
        if known is not None:
            return known.type != "object"
        found = self.universe.lookup_type(path, expr.name)
        return found is not None and self._is_primitive_like(found[0], found[1], seen)

    def _definition(self, pkg: Package, decl: TypeDecl) -> SchemaNode:
        key = (pkg.import_path, decl.name)
        name = self._names.get(key)
        if name is not None:
            if key in self._in_progress:
                self.logger.debug("Cycle through %s; emitting reference", name)
            return SchemaNode.reference(name)
        name = self.annotations.model_name(key) or decl.name
        self._names[key] = name
        self._in_progress.add(key)
        try:
            node = self._definition_body(pkg, decl)
        finally:
            self._in_progress.discard(key)
        self._register(name, key, node, decl.position)
        return SchemaNode.reference(name)

    def _definition_body(self, pkg: Package, decl: TypeDecl) -> SchemaNode:
        key = (pkg.import_path, decl.name)
        scope = self._decl_scope(pkg, decl)
        if isinstance(decl.type, StructType):
            node = self._struct(decl.type, scope)
        else:
            node = self.resolve(decl.type, scope).copy()
        self._apply_enum(node, pkg, decl)
        description = description_text(decl.doc)
        if description and (node.ref is None or self.options.desc_with_ref):
            node.description = description
        discriminator = self.annotations.find(key, DiscriminatorDirective)
        if discriminator is not None:
            node.discriminator = discriminator.property
            if discriminator.property not in node.required:
                node.required.append(discriminator.property)
        return node

    def _register(self, name: str, key: TypeKey, node: SchemaNode, position: Position) -> None:
        owner = self._owners.get(name)
        if owner is not None and owner != key:
            if self.definitions[name].to_dict() != node.to_dict():
                raise ConflictError(
                    f"definition {name} is declared by {owner[0]}.{owner[1]} and "
                    f"{key[0]}.{key[1]} with different shapes",
                    position,
                )
            self.logger.debug("Definition %s declared twice with an identical shape", name)
            return
        self.definitions[name] = node
        self._owners[name] = key
        self.logger.debug("Resolved definition %s from %s", name, key[0])

    def _apply_enum(self, node: SchemaNode, pkg: Package, decl: TypeDecl) -> None:
        if self.annotations.find((pkg.import_path, decl.name), EnumDirective) is None:
            return
        values: List[Any] = []
        for const in self.universe.consts_of(pkg.import_path, decl.name):
            if const.value is not None and const.value not in values:
                values.append(const.value)
        if values:
            node.enum = values

    # ------------------------------------------------------------------
    # Structs

    def _struct(self, struct: StructType, scope: _Scope) -> SchemaNode:
        node = SchemaNode(type="object")
        composed: List[SchemaNode] = []
        for fld in struct.fields:
            field_scope = scope.at(fld.position)
            doc = parse_field_doc(fld.doc)
            if doc.ignored:
                continue
            tag = json_tag(fld.tag)
            if tag.skip:
                continue
            if fld.embedded and tag.name is None:
                self._embed(fld, field_scope, node, composed)
                continue
            for go_name in fld.names or (_embedded_name(fld.type),):
                if not go_name[:1].isupper():
                    continue
                prop_name = tag.name or go_name
                prop = self._property(fld, doc, tag, field_scope)
                _set_property(node, prop_name, prop, self._flag(doc, "required"))
                if self._flag(doc, "discriminator"):
                    node.discriminator = prop_name
                    if prop_name not in node.required:
                        node.required.append(prop_name)
        if not composed:
            return node
        if node.properties:
            composed.append(node)
        return SchemaNode(all_of=composed)

    def _embed(self, fld: Field, scope: _Scope, node: SchemaNode, composed: List[SchemaNode]) -> None:
        target = fld.type
        while isinstance(target, PointerType):
            target = target.elem
        if not isinstance(target, NamedType):
            raise self._error(scope, f"unsupported embedded type {fld.type}")
        found, fixed = self._locate(target, scope)
        if found is None:
            if target.name[:1].isupper() and fixed is not None:
                node.properties.setdefault(target.name, fixed)
            return
        pkg, decl = found
        key = (pkg.import_path, decl.name)
        if self.is_ignored(key):
            return
        if self.annotations.is_model(key) and self._wants_definition(pkg, decl):
            composed.append(self._resolve_decl(pkg, decl, scope))
            return
        if not isinstance(decl.type, StructType):
            if decl.name[:1].isupper():
                node.properties.setdefault(decl.name, self._resolve_decl(pkg, decl, scope))
            return
        if key in self._promoting:
            raise self._error(scope, f"recursive embedding of {decl.name}")
        self._promoting.add(key)
        try:
            promoted = self._struct(decl.type, self._decl_scope(pkg, decl))
        finally:
            self._promoting.discard(key)
        if promoted.all_of:
            composed.extend(part for part in promoted.all_of if part.ref is not None)
            inline = [part for part in promoted.all_of if part.ref is None]
            promoted = inline[0] if inline else SchemaNode(type="object")
        for name, prop in promoted.properties.items():
            if name in node.properties:
                continue
            node.properties[name] = prop
            if name in promoted.required:
                node.required.append(name)
        if promoted.discriminator and node.discriminator is None:
            node.discriminator = promoted.discriminator

    def _property(
        self, fld: Field, doc: FieldDoc, tag: JSONTag, scope: _Scope, describe: bool = True
    ) -> SchemaNode:
        node = self.resolve(fld.type, scope)
        if doc.format:
            node = SchemaNode(type="string", format=doc.format, x_nullable=node.x_nullable)
        if tag.as_string and node.type in {"integer", "number", "boolean"}:
            node = SchemaNode(type="string", x_nullable=node.x_nullable)
        documented = bool(describe and doc.description) or any(
            key in _SCHEMA_METADATA for key in doc.metadata
        )
        if not documented:
            return node
        if node.ref is not None and not self.options.desc_with_ref:
            node = self._inline_reference(node)
            if node.ref is not None:
                return node
        node = node.copy()
        if describe and doc.description:
            node.description = doc.description
        self._apply_metadata(node, doc)
        return node

    def _inline_reference(self, node: SchemaNode) -> SchemaNode:
        """Swap a reference for a copy of its Definition so a description can sit on it."""
        name = node.ref
        target = self.definitions.get(name) if name is not None else None
        owner = self._owners.get(name) if name is not None else None
        if target is None or owner in self._in_progress:
            self.logger.debug("Keeping reference to %s without its field description", name)
            return node
        inlined = target.copy()
        inlined.x_nullable = inlined.x_nullable or node.x_nullable
        return inlined

    def _apply_metadata(self, node: SchemaNode, doc: FieldDoc) -> None:
        for key, (raw, position) in doc.metadata.items():
            if key not in _SCHEMA_METADATA:
                continue
            if key == "enum" and node.type == "array" and node.items is not None:
                node.items = node.items.copy()
                node.items.enum = coerce_metadata(key, raw, node.items.type, position)
                continue
            value = coerce_metadata(key, raw, node.type, position)
            setattr(node, _NODE_ATTRS.get(key, key), value)

    def _flag(self, doc: FieldDoc, key: str) -> bool:
        if key not in doc.metadata:
            return False
        raw, position = doc.metadata[key]
        return bool(coerce_metadata(key, raw, None, position))

    # ------------------------------------------------------------------
    # Parameters and responses

    def resolve_parameters(self, key: TypeKey) -> List[Dict[str, Any]]:
        """Swagger parameter objects for every field of a parameters struct."""
        pkg, decl = self._lookup(key)
        if not isinstance(decl.type, StructType):
            raise ResolutionError(f"swagger:parameters type {decl.name} must be a struct", decl.position)
        scope = self._decl_scope(pkg, decl)
        return [self._parameter(flat) for flat in self._flat_fields(decl.type, scope)]

    def _parameter(self, flat: _FlatField) -> Dict[str, Any]:
        doc = flat.doc
        location = "query"
        if "in" in doc.metadata:
            raw, position = doc.metadata["in"]
            location = _LOCATIONS.get(raw.strip().lower(), "")
            if not location:
                raise AnnotationError(f"invalid parameter location {raw.strip()!r}", position)
        param: Dict[str, Any] = {"name": flat.name, "in": location}
        if doc.description:
            param["description"] = doc.description
        required = self._flag(doc, "required") or location == "path"
        if required:
            param["required"] = True
        if location == "body":
            schema = self._property(flat.field, doc, flat.tag, flat.scope, describe=False)
            param["schema"] = schema.to_dict()
            return param
        node = self._simple(self._property(flat.field, doc, flat.tag, flat.scope, describe=False), flat)
        data = node.to_dict()
        for name in _PARAMETER_KEYS:
            if name in data:
                param[name] = data[name]
        if node.type == "array" and "collection_format" in doc.metadata:
            param["collectionFormat"] = doc.metadata["collection_format"][0].strip()
        return param

    def resolve_response(self, key: TypeKey, name: str) -> Dict[str, Any]:
        """A Swagger response object: the body field's schema plus headers."""
        pkg, decl = self._lookup(key)
        if not isinstance(decl.type, StructType):
            raise ResolutionError(f"swagger:response type {decl.name} must be a struct", decl.position)
        scope = self._decl_scope(pkg, decl)
        response: Dict[str, Any] = {"description": description_text(decl.doc) or name}
        headers: Dict[str, Any] = {}
        for flat in self._flat_fields(decl.type, scope):
            location = flat.doc.metadata.get("in", ("", None))[0].strip().lower()
            if location == "body" or (not location and flat.go_name == "Body"):
                schema = self._property(flat.field, flat.doc, flat.tag, flat.scope, describe=False)
                response["schema"] = schema.to_dict()
                continue
            node = self._simple(
                self._property(flat.field, flat.doc, flat.tag, flat.scope, describe=False), flat
            )
            data = node.to_dict()
            header: Dict[str, Any] = {}
            if flat.doc.description:
                header["description"] = flat.doc.description
            header.update((k, data[k]) for k in _HEADER_KEYS if k in data)
            headers[flat.name] = header
        if headers:
            response["headers"] = headers
        return response

    def _simple(self, node: SchemaNode, flat: _FlatField) -> SchemaNode:
        """Reduce ``node`` to a primitive or an array of primitives."""
        node = self._dereference(node)
        if node.type == "array" and node.items is not None:
            items = self._dereference(node.items)
            if not items.is_primitive:
                raise self._error(flat.scope, f"{flat.name} must be an array of primitives")
            node = node.copy()
            node.items = items
            return node
        if not node.is_primitive and node.type != "file":
            raise self._error(flat.scope, f"{flat.name} must be a primitive or an array of primitives")
        return node

    def _dereference(self, node: SchemaNode) -> SchemaNode:
        if node.ref is None:
            return node
        target = self.definitions.get(node.ref)
        if target is None:
            return node
        inlined = target.copy()
        inlined.description = None
        return inlined

    def _flat_fields(self, struct: StructType, scope: _Scope) -> Iterator[_FlatField]:
        for fld in struct.fields:
            field_scope = scope.at(fld.position)
            doc = parse_field_doc(fld.doc)
            tag = json_tag(fld.tag)
            if doc.ignored or tag.skip:
                continue
            if fld.embedded and tag.name is None:
                yield from self._flat_embedded(fld, field_scope)
                continue
            for go_name in fld.names or (_embedded_name(fld.type),):
                if go_name[:1].isupper():
                    yield _FlatField(fld, go_name, tag.name or go_name, doc, tag, field_scope)

    def _flat_embedded(self, fld: Field, scope: _Scope) -> Iterator[_FlatField]:
        target = fld.type
        while isinstance(target, PointerType):
            target = target.elem
        if not isinstance(target, NamedType):
            raise self._error(scope, f"unsupported embedded type {fld.type}")
        found, _ = self._locate(target, scope)
        if found is None or not isinstance(found[1].type, StructType):
            raise self._error(scope, f"embedded {target} is not a struct")
        pkg, decl = found
        key = (pkg.import_path, decl.name)
        if key in self._promoting:
            raise self._error(scope, f"recursive embedding of {decl.name}")
        self._promoting.add(key)
        try:
            yield from self._flat_fields(decl.type, self._decl_scope(pkg, decl))
        finally:
            self._promoting.discard(key)

    # ------------------------------------------------------------------
    # Helpers

    def _lookup(self, key: TypeKey) -> Tuple[Package, TypeDecl]:
        found = self.universe.lookup_type(*key)
        if found is None:
            raise ResolutionError(f"type {key[1]} not found in package {key[0]}")
        return found

    def _decl_scope(self, pkg: Package, decl: TypeDecl) -> _Scope:
        return _Scope(pkg, pkg.file_of(decl), decl.name, decl.position)

    def _is_string(self, node: SchemaNode) -> bool:
        if node.ref is not None:
            target = self.definitions.get(node.ref)
            return target is not None and target.type == "string"
        return node.type == "string"

    def _error(self, scope: _Scope, message: str) -> ResolutionError:
        return ResolutionError(f"{scope.decl}: {message}", scope.position)


def _embedded_name(expr: TypeExpr) -> str:
    while isinstance(expr, PointerType):
        expr = expr.elem
    return expr.name if isinstance(expr, NamedType) else ""


def _set_property(node: SchemaNode, name: str, prop: SchemaNode, required: bool) -> None:
    node.properties[name] = prop
    if name in node.required:
        node.required.remove(name)
    if required:
        node.required.append(name)


__all__ = ["TypeResolver"]
