"""Comment grammar for directive blocks and field metadata."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from ..errors import AnnotationError
from ..models import CommentGroup, Position
from .directives import ResponseRef

HTTP_METHODS = ("GET", "PUT", "POST", "DELETE", "OPTIONS", "HEAD", "PATCH")

_INTRODUCER = re.compile(r"^\s*swagger:([A-Za-z][\w-]*)(?:\s+(.*?))?\s*$")
_KEY_LINE = re.compile(r"^\s*(?:-\s*)?([A-Za-z][A-Za-z .\-_]*?)\s*:\s*(.*?)\s*$")
_LIST_ITEM = re.compile(r"^\s*(?:-\s*)?(\S.*?)\s*$")
_PACKAGE_PHRASE = re.compile(r"^\s*Package\s+\S+\s*")
_RESPONSE_LINE = re.compile(r"^\s*(?:-\s*)?(\d{3}|default)\s*:\s*(.*?)\s*$", re.IGNORECASE)
_RESPONSE_DESCRIPTION = re.compile(r"(?:^|\s)description:\s*(.*)$")
_CONTACT = re.compile(r"^(?P<name>[^<]*?)\s*(?:<(?P<email>[^>]+)>)?\s*(?P<url>\S+://\S+)?$")
_URL = re.compile(r"\S+://\S+")

_META_KEYS = {
    "schemes": "schemes",
    "host": "host",
    "basepath": "basePath",
    "version": "version",
    "consumes": "consumes",
    "produces": "produces",
    "title": "title",
    "termsofservice": "termsOfService",
    "contact": "contact",
    "license": "license",
}
_META_LIST_KEYS = {"schemes", "consumes", "produces"}
_INFO_KEYS = {"title", "version", "termsOfService", "contact", "license", "description"}

_ROUTE_SECTIONS = {"responses", "parameters", "consumes", "produces", "schemes", "deprecated"}

_FIELD_KEYS = {
    "required": "required",
    "minlength": "min_length",
    "maxlength": "max_length",
    "minimum": "minimum",
    "maximum": "maximum",
    "pattern": "pattern",
    "example": "example",
    "default": "default",
    "enum": "enum",
    "minitems": "min_items",
    "maxitems": "max_items",
    "unique": "unique",
    "readonly": "read_only",
    "in": "in",
    "collectionformat": "collection_format",
    "discriminator": "discriminator",
}
_INT_KEYS = {"min_length", "max_length", "min_items", "max_items"}
_BOOL_KEYS = {"required", "unique", "read_only", "discriminator"}
_TYPED_KEYS = {"minimum", "maximum", "example", "default", "enum"}

_TRUE = {"true", "yes", "1"}
_FALSE = {"false", "no", "0"}


@dataclass(frozen=True)
class DirectiveBlock:
    """One introducer line and the comment lines that belong to it.

    ``leading`` holds the lines above the first introducer of a comment group
    and is only set on that first block.
    """

    kind: str
    args: str
    position: Position
    body: Tuple[str, ...] = ()
    body_positions: Tuple[Position, ...] = ()
    leading: Tuple[str, ...] = ()


@dataclass(frozen=True)
class FieldDoc:
    """Description and raw metadata values found in a struct field's doc."""

    description: str = ""
    metadata: Mapping[str, Tuple[str, Position]] = field(default_factory=dict)
    ignored: bool = False
    format: Optional[str] = None


def normalize_key(value: str) -> str:
    return re.sub(r"[\s._\-]", "", value).lower()


def split_list(value: str) -> List[str]:
    """Split an inline list written with commas and/or spaces."""
    return [item for item in re.split(r"[,\s]+", value.strip()) if item]


def parse_bool(value: str) -> Optional[bool]:
    lowered = value.strip().lower()
    if lowered in _TRUE:
        return True
    if lowered in _FALSE:
        return False
    return None


def normalize_path(path: str) -> str:
    """Return a canonical representation for route path templates."""
    result = path.strip()
    if not result:
        return "/"
    result = re.sub(r"\{([A-Za-z_][A-Za-z0-9_]*)\s*:\s*[^}]+\}", r"{\1}", result)
    result = re.sub(r"/{2,}", "/", result)
    if len(result) > 1 and result.endswith("/"):
        result = result[:-1]
    return result


def method_upper(value: str) -> str:
    return (value or "").strip().upper()


# ---------------------------------------------------------------------------
# Blocks
# ---------------------------------------------------------------------------


def split_blocks(group: CommentGroup) -> List[DirectiveBlock]:
    """Cut a comment group at every ``swagger:<kind>`` introducer line."""
    starts: List[Tuple[int, str, str]] = []
    for index, line in enumerate(group.lines):
        match = _INTRODUCER.match(line)
        if match:
            starts.append((index, match.group(1), match.group(2) or ""))
    blocks: List[DirectiveBlock] = []
    for number, (index, kind, args) in enumerate(starts):
        end = starts[number + 1][0] if number + 1 < len(starts) else len(group.lines)
        body_range = range(index + 1, end)
        blocks.append(
            DirectiveBlock(
                kind=kind,
                args=args,
                position=group.line_position(index),
                body=tuple(group.lines[i] for i in body_range),
                body_positions=tuple(group.line_position(i) for i in body_range),
                leading=tuple(group.lines[:index]) if number == 0 else (),
            )
        )
    return blocks


def description_lines(group: Optional[CommentGroup]) -> List[str]:
    """Doc text of a declaration with every introducer line removed."""
    if group is None:
        return []
    lines = [line for line in group.lines if not _INTRODUCER.match(line)]
    return _trim(lines)


def description_text(group: Optional[CommentGroup]) -> str:
    return "\n".join(description_lines(group)).strip()


def _trim(lines: Sequence[str]) -> List[str]:
    result = list(lines)
    while result and not result[0].strip():
        result.pop(0)
    while result and not result[-1].strip():
        result.pop()
    return result


def _paragraphs(lines: Sequence[str]) -> List[List[str]]:
    paragraphs: List[List[str]] = []
    current: List[str] = []
    for line in lines:
        if line.strip():
            current.append(line.strip())
        elif current:
            paragraphs.append(current)
            current = []
    if current:
        paragraphs.append(current)
    return paragraphs


# ---------------------------------------------------------------------------
# meta
# ---------------------------------------------------------------------------


def parse_meta(lines: Sequence[str]) -> Tuple[Dict[str, Any], Dict[str, Any]]:
    """Parse a meta block into ``(info, top_level)`` mappings.

    Free text before the first key gives the title and description. Keys
    are matched case-insensitively with spaces ignored; list keys take inline
    values and continuation lines until a blank line or the next key.
    """
    info: Dict[str, Any] = {}
    top_level: Dict[str, Any] = {}
    free_text: List[str] = []
    current: Optional[str] = None
    seen_key = False

    for line in lines:
        stripped = line.strip()
        if not stripped:
            current = None
            if not seen_key:
                free_text.append("")
            continue
        match = _KEY_LINE.match(line)
        key = _META_KEYS.get(normalize_key(match.group(1))) if match else None
        if key is not None:
            seen_key = True
            value = match.group(2)
            if key in _META_LIST_KEYS:
                top_level[key] = split_list(value)
                current = key
            else:
                _assign_meta(key, value, info, top_level)
                current = None
            continue
        if current is not None:
            item = _LIST_ITEM.match(line)
            if item:
                top_level[current].extend(split_list(item.group(1)))
            continue
        if not seen_key:
            free_text.append(stripped)

    paragraphs = _paragraphs(free_text)
    if paragraphs:
        paragraphs[0][0] = _PACKAGE_PHRASE.sub("", paragraphs[0][0], count=1)
        title = " ".join(part for part in paragraphs[0] if part).strip()
        if title and "title" not in info:
            info["title"] = title
        description = "\n\n".join("\n".join(p) for p in paragraphs[1:]).strip()
        if description:
            info["description"] = description
    for key in [k for k, v in top_level.items() if v == []]:
        del top_level[key]
    return info, top_level


def _assign_meta(key: str, value: str, info: Dict[str, Any], top_level: Dict[str, Any]) -> None:
    value = value.strip()
    if not value:
        return
    if key == "contact":
        info["contact"] = parse_contact(value)
    elif key == "license":
        info["license"] = parse_license(value)
    elif key in _INFO_KEYS:
        info[key] = value
    elif key == "basePath":
        top_level[key] = normalize_path(value if value.startswith("/") else "/" + value)
    else:
        top_level[key] = value


def parse_contact(value: str) -> Dict[str, str]:
    match = _CONTACT.match(value.strip())
    if match is None:
        return {"name": value.strip()}
    contact: Dict[str, str] = {}
    if match.group("name"):
        contact["name"] = match.group("name")
    if match.group("email"):
        contact["email"] = match.group("email").strip()
    if match.group("url"):
        contact["url"] = match.group("url")
    return contact


def parse_license(value: str) -> Dict[str, str]:
    match = _URL.search(value)
    if match is None:
        return {"name": value.strip()}
    name = (value[: match.start()] + value[match.end():]).strip()
    license_info = {"name": name} if name else {}
    license_info["url"] = match.group(0)
    return license_info


def meta_supplied(info: Mapping[str, Any], top_level: Mapping[str, Any]) -> frozenset:
    return frozenset([f"info.{key}" for key in info] + list(top_level))


# ---------------------------------------------------------------------------
# route
# ---------------------------------------------------------------------------


@dataclass
class RouteBody:
    summary: str = ""
    description: str = ""
    responses: List[ResponseRef] = field(default_factory=list)
    parameters: List[str] = field(default_factory=list)
    consumes: List[str] = field(default_factory=list)
    produces: List[str] = field(default_factory=list)
    schemes: List[str] = field(default_factory=list)
    deprecated: bool = False


def parse_route_args(args: str, position: Position) -> Tuple[str, str, List[str], Optional[str]]:
    """Split ``METHOD /path [tag ...] [operationId]``."""
    parts = args.split()
    if len(parts) < 2:
        raise AnnotationError("swagger:route requires an HTTP method and a path", position)
    method = method_upper(parts[0])
    if method not in HTTP_METHODS:
        raise AnnotationError(f"swagger:route has unknown HTTP method {parts[0]!r}", position)
    if not parts[1].startswith("/"):
        raise AnnotationError(f"swagger:route path {parts[1]!r} must start with '/'", position)
    words = [word for part in parts[2:] for word in part.split(",") if word]
    operation_id = words[-1] if words else None
    return method, normalize_path(parts[1]), words[:-1], operation_id


def parse_route_body(lines: Sequence[str], positions: Sequence[Position]) -> RouteBody:
    body = RouteBody()
    text_lines: List[str] = []
    section: Optional[str] = None
    seen_section = False

    for line, position in zip(lines, positions):
        stripped = line.strip()
        if not stripped:
            section = None
            if not seen_section:
                text_lines.append("")
            continue
        match = _KEY_LINE.match(line)
        name = normalize_key(match.group(1)) if match else ""
        if name in _ROUTE_SECTIONS:
            section = name
            seen_section = True
            value = match.group(2)
            if name == "deprecated":
                body.deprecated = bool(parse_bool(value))
                section = None
            elif value:
                _route_section_line(body, name, value, position)
            continue
        if section is not None:
            _route_section_line(body, section, stripped, position)
        elif not seen_section:
            text_lines.append(stripped)

    text_lines = _trim(text_lines)
    if text_lines:
        body.summary = text_lines[0]
        body.description = "\n".join(_trim(text_lines[1:]))
    return body


def _route_section_line(body: RouteBody, section: str, text: str, position: Position) -> None:
    if section == "responses":
        body.responses.append(parse_response_line(text, position))
        return
    item = _LIST_ITEM.match(text)
    values = split_list(item.group(1)) if item else []
    getattr(body, section).extend(values)


def parse_response_line(text: str, position: Position) -> ResponseRef:
    match = _RESPONSE_LINE.match(text)
    if match is None:
        raise AnnotationError(f"malformed response line {text.strip()!r}", position)
    code = match.group(1).lower()
    if code != "default" and not 100 <= int(code) <= 599:
        raise AnnotationError(f"invalid response status code {code}", position)
    value = match.group(2)
    description: Optional[str] = None
    desc_match = _RESPONSE_DESCRIPTION.search(value)
    if desc_match is not None:
        description = desc_match.group(1).strip() or None
        value = value[: desc_match.start()].strip()

    if value.startswith("body:"):
        spec = value[len("body:"):].strip()
        depth = 0
        while spec.startswith("[]"):
            depth += 1
            spec = spec[2:]
        spec = spec.lstrip("*")
        if not spec or any(ch.isspace() for ch in spec):
            raise AnnotationError(f"malformed response body type in {text.strip()!r}", position)
        return ResponseRef(code, position, body=spec, array_depth=depth, description=description)
    if not value:
        if description is None:
            raise AnnotationError(f"response {code} names no response or body", position)
        return ResponseRef(code, position, description=description)
    if any(ch.isspace() for ch in value):
        raise AnnotationError(f"malformed response line {text.strip()!r}", position)
    return ResponseRef(code, position, response=value, description=description)


# ---------------------------------------------------------------------------
# Field metadata
# ---------------------------------------------------------------------------


def parse_field_doc(group: Optional[CommentGroup]) -> FieldDoc:
    if group is None:
        return FieldDoc()
    description: List[str] = []
    metadata: Dict[str, Tuple[str, Position]] = {}
    ignored = False
    fmt: Optional[str] = None
    for index, line in enumerate(group.lines):
        introducer = _INTRODUCER.match(line)
        if introducer:
            kind = introducer.group(1)
            if kind == "ignore":
                ignored = True
            elif kind == "strfmt" and introducer.group(2):
                fmt = introducer.group(2).split()[0]
            continue
        match = _KEY_LINE.match(line)
        key = _FIELD_KEYS.get(normalize_key(match.group(1))) if match else None
        if key is not None:
            metadata[key] = (match.group(2), group.line_position(index))
            continue
        description.append(line)
    text = "\n".join(_trim(description)).strip()
    return FieldDoc(description=text, metadata=metadata, ignored=ignored, format=fmt)


def coerce_metadata(key: str, raw: str, value_type: Optional[str], position: Position) -> Any:
    """Convert a raw field metadata value to the property's primitive type."""
    text = raw.strip()
    if key in _INT_KEYS:
        return _coerce(text, "integer", key, position)
    if key in _BOOL_KEYS:
        return _coerce(text, "boolean", key, position)
    if key == "enum":
        return [_coerce(item.strip(), value_type, key, position) for item in text.split(",") if item.strip()]
    if key in _TYPED_KEYS:
        if key in {"minimum", "maximum"} and value_type not in {"integer", "number"}:
            return _coerce(text, "number", key, position)
        return _coerce(text, value_type, key, position)
    return text


def _coerce(text: str, value_type: Optional[str], key: str, position: Position) -> Any:
    if value_type == "integer":
        try:
            return int(text)
        except ValueError:
            pass
    elif value_type == "number":
        try:
            return int(text)
        except ValueError:
            try:
                return float(text)
            except ValueError:
                pass
    elif value_type == "boolean":
        value = parse_bool(text)
        if value is not None:
            return value
    else:
        return _unquote(text)
    raise AnnotationError(f"invalid {key.replace('_', ' ')} value {text!r} for {value_type}", position)


def _unquote(text: str) -> str:
    if len(text) >= 2 and text[0] == text[-1] and text[0] in {'"', "'"}:
        return text[1:-1]
    return text


__all__ = [
    "DirectiveBlock",
    "FieldDoc",
    "HTTP_METHODS",
    "RouteBody",
    "coerce_metadata",
    "description_lines",
    "description_text",
    "meta_supplied",
    "method_upper",
    "normalize_key",
    "normalize_path",
    "parse_bool",
    "parse_contact",
    "parse_field_doc",
    "parse_license",
    "parse_meta",
    "parse_response_line",
    "parse_route_args",
    "parse_route_body",
    "split_blocks",
    "split_list",
]
