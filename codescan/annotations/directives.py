"""Typed payloads for the `swagger:<kind>` directive vocabulary."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, FrozenSet, List, Mapping, Optional, Tuple, Type, TypeVar

from ..errors import AnnotationError
from ..models import Position, TypeKey

D = TypeVar("D", bound="Directive")


@dataclass(frozen=True, kw_only=True)
class Directive:
    """A parsed directive with its source position and optional target type."""

    kind: ClassVar[str] = ""

    position: Position
    package: str
    target: Optional[TypeKey] = None

    @property
    def type_key(self) -> TypeKey:
        """The documented type; raises when the directive sits outside a type doc."""
        if self.target is None:
            raise AnnotationError(f"swagger:{self.kind} must document a type declaration", self.position)
        return self.target


@dataclass(frozen=True, kw_only=True)
class MetaDirective(Directive):
    """Package-wide API metadata.

    ``info`` holds Swagger ``info`` fields, ``top_level`` holds host, basePath,
    schemes, consumes and produces. ``supplied`` names every field the block
    set explicitly, as ``info.<field>`` or the top-level key.
    """

    kind: ClassVar[str] = "meta"

    info: Mapping[str, Any] = field(default_factory=dict)
    top_level: Mapping[str, Any] = field(default_factory=dict)
    supplied: FrozenSet[str] = frozenset()


@dataclass(frozen=True)
class ResponseRef:
    """One ``<code>: ...`` line of a route's Responses section."""

    code: str
    position: Position
    response: Optional[str] = None
    body: Optional[str] = None
    array_depth: int = 0
    description: Optional[str] = None


@dataclass(frozen=True, kw_only=True)
class RouteDirective(Directive):
    kind: ClassVar[str] = "route"

    method: str
    path: str
    tags: Tuple[str, ...] = ()
    operation_id: Optional[str] = None
    summary: str = ""
    description: str = ""
    responses: Tuple[ResponseRef, ...] = ()
    parameters: Tuple[str, ...] = ()
    consumes: Tuple[str, ...] = ()
    produces: Tuple[str, ...] = ()
    schemes: Tuple[str, ...] = ()
    deprecated: bool = False


@dataclass(frozen=True, kw_only=True)
class ModelDirective(Directive):
    kind: ClassVar[str] = "model"

    name: Optional[str] = None


@dataclass(frozen=True, kw_only=True)
class ParametersDirective(Directive):
    kind: ClassVar[str] = "parameters"

    operation_ids: Tuple[str, ...] = ()


@dataclass(frozen=True, kw_only=True)
class ResponseDirective(Directive):
    kind: ClassVar[str] = "response"

    name: Optional[str] = None


@dataclass(frozen=True, kw_only=True)
class StrfmtDirective(Directive):
    kind: ClassVar[str] = "strfmt"

    format: str


@dataclass(frozen=True, kw_only=True)
class EnumDirective(Directive):
    kind: ClassVar[str] = "enum"


@dataclass(frozen=True, kw_only=True)
class DiscriminatorDirective(Directive):
    kind: ClassVar[str] = "discriminator"

    property: str


@dataclass(frozen=True, kw_only=True)
class TypeOverrideDirective(Directive):
    kind: ClassVar[str] = "type"

    type_name: str
    format: Optional[str] = None


@dataclass(frozen=True, kw_only=True)
class IgnoreDirective(Directive):
    kind: ClassVar[str] = "ignore"


@dataclass
class AnnotationSet:
    """Every directive found in one run, grouped for the later stages."""

    meta: List[MetaDirective] = field(default_factory=list)
    routes: List[RouteDirective] = field(default_factory=list)
    models: Dict[TypeKey, ModelDirective] = field(default_factory=dict)
    parameters: List[ParametersDirective] = field(default_factory=list)
    responses: List[ResponseDirective] = field(default_factory=list)
    type_directives: Dict[TypeKey, List[Directive]] = field(default_factory=dict)

    def add(self, directive: Directive) -> None:
        if isinstance(directive, MetaDirective):
            self.meta.append(directive)
        elif isinstance(directive, RouteDirective):
            self.routes.append(directive)
        elif isinstance(directive, ModelDirective) and directive.target is not None:
            self.models[directive.target] = directive
        elif isinstance(directive, ParametersDirective):
            self.parameters.append(directive)
        elif isinstance(directive, ResponseDirective):
            self.responses.append(directive)
        elif directive.target is not None:
            self.type_directives.setdefault(directive.target, []).append(directive)

    def model_name(self, key: TypeKey) -> Optional[str]:
        model = self.models.get(key)
        return model.name if model is not None else None

    def is_model(self, key: TypeKey) -> bool:
        return key in self.models

    def find(self, key: TypeKey, directive_type: Type[D]) -> Optional[D]:
        for directive in self.type_directives.get(key, []):
            if isinstance(directive, directive_type):
                return directive
        return None


__all__ = [
    "AnnotationSet",
    "Directive",
    "DiscriminatorDirective",
    "EnumDirective",
    "IgnoreDirective",
    "MetaDirective",
    "ModelDirective",
    "ParametersDirective",
    "ResponseDirective",
    "ResponseRef",
    "RouteDirective",
    "StrfmtDirective",
    "TypeOverrideDirective",
]
