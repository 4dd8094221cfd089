"""Directive extraction over every comment group of the loaded universe."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, List, Mapping, Optional, Tuple

from ..errors import AnnotationError
from ..logging import get_logger
from ..models import CommentGroup, Package, PackageDecl, TypeKey
from ..loader.universe import Universe
from .directives import (
    AnnotationSet,
    Directive,
    DiscriminatorDirective,
    EnumDirective,
    IgnoreDirective,
    MetaDirective,
    ModelDirective,
    ParametersDirective,
    ResponseDirective,
    RouteDirective,
    StrfmtDirective,
    TypeOverrideDirective,
)
from .grammar import (
    DirectiveBlock,
    meta_supplied,
    parse_meta,
    parse_route_args,
    parse_route_body,
    split_blocks,
    split_list,
)

OVERRIDE_TYPES = ("string", "integer", "number", "boolean", "object", "file")


@dataclass(frozen=True)
class Site:
    """Where a comment group was found."""

    package: Package
    target: Optional[TypeKey] = None


Handler = Callable[[DirectiveBlock, Site], Optional[Directive]]


def _require_target(block: DirectiveBlock, site: Site) -> TypeKey:
    if site.target is None:
        raise AnnotationError(f"swagger:{block.kind} must document a type declaration", block.position)
    return site.target


def _first_arg(block: DirectiveBlock) -> Optional[str]:
    parts = block.args.split()
    return parts[0] if parts else None


def _meta(block: DirectiveBlock, site: Site) -> MetaDirective:
    info, top_level = parse_meta(list(block.leading) + list(block.body))
    return MetaDirective(
        position=block.position,
        package=site.package.import_path,
        info=info,
        top_level=top_level,
        supplied=meta_supplied(info, top_level),
    )


def _route(block: DirectiveBlock, site: Site) -> RouteDirective:
    method, path, tags, operation_id = parse_route_args(block.args, block.position)
    body = parse_route_body(block.body, block.body_positions)
    return RouteDirective(
        position=block.position,
        package=site.package.import_path,
        method=method,
        path=path,
        tags=tuple(tags),
        operation_id=operation_id,
        summary=body.summary,
        description=body.description,
        responses=tuple(body.responses),
        parameters=tuple(body.parameters),
        consumes=tuple(body.consumes),
        produces=tuple(body.produces),
        schemes=tuple(body.schemes),
        deprecated=body.deprecated,
    )


def _model(block: DirectiveBlock, site: Site) -> ModelDirective:
    return ModelDirective(
        position=block.position,
        package=site.package.import_path,
        target=_require_target(block, site),
        name=_first_arg(block),
    )


def _parameters(block: DirectiveBlock, site: Site) -> ParametersDirective:
    return ParametersDirective(
        position=block.position,
        package=site.package.import_path,
        target=_require_target(block, site),
        operation_ids=tuple(split_list(block.args)),
    )


def _response(block: DirectiveBlock, site: Site) -> ResponseDirective:
    return ResponseDirective(
        position=block.position,
        package=site.package.import_path,
        target=_require_target(block, site),
        name=_first_arg(block),
    )


def _strfmt(block: DirectiveBlock, site: Site) -> StrfmtDirective:
    target = _require_target(block, site)
    fmt = _first_arg(block)
    if fmt is None:
        raise AnnotationError("swagger:strfmt requires a format name", block.position)
    return StrfmtDirective(
        position=block.position, package=site.package.import_path, target=target, format=fmt
    )


def _enum(block: DirectiveBlock, site: Site) -> EnumDirective:
    target = site.target
    name = _first_arg(block)
    if target is None:
        if name is None:
            raise AnnotationError("swagger:enum outside a type declaration needs a type name", block.position)
        target = (site.package.import_path, name)
    return EnumDirective(position=block.position, package=site.package.import_path, target=target)


def _discriminator(block: DirectiveBlock, site: Site) -> DiscriminatorDirective:
    target = _require_target(block, site)
    prop = _first_arg(block)
    if prop is None:
        raise AnnotationError("swagger:discriminator requires a property name", block.position)
    return DiscriminatorDirective(
        position=block.position, package=site.package.import_path, target=target, property=prop
    )


def _type(block: DirectiveBlock, site: Site) -> TypeOverrideDirective:
    target = _require_target(block, site)
    parts = block.args.split()
    if not parts:
        raise AnnotationError("swagger:type requires a type name", block.position)
    if parts[0] not in OVERRIDE_TYPES:
        raise AnnotationError(f"swagger:type has unsupported type {parts[0]!r}", block.position)
    return TypeOverrideDirective(
        position=block.position,
        package=site.package.import_path,
        target=target,
        type_name=parts[0],
        format=parts[1] if len(parts) > 1 else None,
    )


def _ignore(block: DirectiveBlock, site: Site) -> IgnoreDirective:
    return IgnoreDirective(
        position=block.position, package=site.package.import_path, target=_require_target(block, site)
    )


_BUILTIN_HANDLERS: Dict[str, Handler] = {
    "meta": _meta,
    "route": _route,
    "model": _model,
    "parameters": _parameters,
    "response": _response,
    "strfmt": _strfmt,
    "enum": _enum,
    "discriminator": _discriminator,
    "type": _type,
    "ignore": _ignore,
}

# Kinds describing the API surface only count in packages matched by a pattern.
_SCANNED_ONLY = {"meta", "route", "parameters", "response"}


class AnnotationExtractor:
    """Dispatches every ``swagger:<kind>`` block to its registered handler."""

    def __init__(self, handlers: Optional[Mapping[str, Handler]] = None) -> None:
        self.handlers: Dict[str, Handler] = dict(_BUILTIN_HANDLERS)
        if handlers:
            self.handlers.update(handlers)
        self.logger = get_logger("annotations")

    def extract(self, universe: Universe) -> AnnotationSet:
        annotations = AnnotationSet()
        for pkg in universe.packages.values():
            for group, target in _comment_sites(pkg):
                for directive in self.extract_group(group, Site(pkg, target)):
                    annotations.add(directive)
        self.logger.info(
            "Found %d routes, %d models, %d parameter sets, %d responses",
            len(annotations.routes),
            len(annotations.models),
            len(annotations.parameters),
            len(annotations.responses),
        )
        return annotations

    def extract_group(self, group: CommentGroup, site: Site) -> List[Directive]:
        directives: List[Directive] = []
        for block in split_blocks(group):
            handler = self.handlers.get(block.kind)
            if handler is None:
                self.logger.warning(
                    "Unknown directive swagger:%s at %s; skipping", block.kind, block.position
                )
                continue
            if block.kind in _SCANNED_ONLY and not site.package.scanned:
                self.logger.debug(
                    "Ignoring swagger:%s in dependency %s", block.kind, site.package.import_path
                )
                continue
            directive = handler(block, site)
            if directive is not None:
                self.logger.debug("swagger:%s at %s", block.kind, block.position)
                directives.append(directive)
        return directives


def package_decl(pkg: Package) -> PackageDecl:
    """The synthetic declaration holding package docs and free comment groups."""
    comments: List[CommentGroup] = []
    for source in pkg.files:
        if source.package_doc is not None:
            comments.append(source.package_doc)
        comments.extend(source.free_comments)
    return PackageDecl(package=pkg.import_path, comments=tuple(comments))


def _comment_sites(pkg: Package) -> List[Tuple[CommentGroup, Optional[TypeKey]]]:
    sites: List[Tuple[CommentGroup, Optional[TypeKey]]] = []
    synthetic = package_decl(pkg)
    for source in pkg.files:
        found: List[Tuple[CommentGroup, Optional[TypeKey]]] = []
        found.extend((group, None) for group in synthetic.comments if group.position.file == source.path)
        found.extend((decl.doc, (pkg.import_path, decl.name)) for decl in source.types if decl.doc)
        found.extend((decl.doc, None) for decl in source.funcs if decl.doc)
        found.extend((decl.doc, None) for decl in source.consts if decl.doc)
        found.sort(key=lambda item: item[0].position.line)
        seen = set()
        for group, target in found:
            # const groups share one doc between their specs
            if (group, target) in seen:
                continue
            seen.add((group, target))
            sites.append((group, target))
    return sites


__all__ = ["AnnotationExtractor", "Handler", "OVERRIDE_TYPES", "Site", "package_decl"]
