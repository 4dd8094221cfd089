"""Tree-sitter powered Go declaration parser."""

from __future__ import annotations

import re
import threading
from typing import Any, Iterator, List, Optional, Tuple

import tree_sitter_go
from tree_sitter import Language, Node, Parser

from ..errors import LoadError
from ..models import (
    ArrayType,
    CommentGroup,
    ConstDecl,
    Field,
    FuncDecl,
    ImportSpec,
    InterfaceType,
    MapType,
    NamedType,
    PointerType,
    Position,
    SliceType,
    SourceFile,
    StructType,
    TypeDecl,
    TypeExpr,
    UnsupportedType,
)

GO_LANGUAGE = Language(tree_sitter_go.language())

# Compiler and tool directives never belong to documentation text.
_TOOL_DIRECTIVE = re.compile(r"^//(go|line|export|extern|nolint|lint)[:\s]|^//\s*\+build(\s|$)")
_OCTAL = re.compile(r"^0[0-7]+$")
_ESCAPES = {"n": "\n", "t": "\t", "r": "\r", '"': '"', "\\": "\\", "'": "'"}


class GoSourceParser:
    """Parses Go source into declarations; one tree-sitter parser per thread."""

    def __init__(self) -> None:
        self._local = threading.local()

    def parse(self, source: str, rel_path: str) -> SourceFile:
        source_bytes = source.encode("utf-8")
        tree = self._get_parser().parse(source_bytes)
        root = tree.root_node
        if root.has_error:
            error = _first_error(root)
            line = error.start_point[0] + 1 if error is not None else 1
            raise LoadError("syntax error in Go source", Position(rel_path, line))
        return _FileBuilder(rel_path, source_bytes).build(root)

    def _get_parser(self) -> Parser:
        parser = getattr(self._local, "parser", None)
        if parser is None:
            parser = Parser(GO_LANGUAGE)
            self._local.parser = parser
        return parser


def _first_error(node: Node) -> Optional[Node]:
    stack = [node]
    while stack:
        current = stack.pop()
        if current.type == "ERROR" or current.is_missing:
            return current
        stack.extend(reversed(current.children))
    return None


class _FileBuilder:
    """Walks one syntax tree and collects declarations with their docs."""

    def __init__(self, rel_path: str, source_bytes: bytes) -> None:
        self._path = rel_path
        self._source = source_bytes
        self._free: List[CommentGroup] = []

    def build(self, root: Node) -> SourceFile:
        package_name = ""
        package_doc: Optional[CommentGroup] = None
        imports: List[ImportSpec] = []
        types: List[TypeDecl] = []
        funcs: List[FuncDecl] = []
        consts: List[ConstDecl] = []

        for child, doc in self._with_docs(root):
            kind = child.type
            if kind == "package_clause":
                name_node = _first_named(child, "package_identifier")
                package_name = self._text(name_node) if name_node is not None else ""
                package_doc = doc
            elif kind == "import_declaration":
                imports.extend(self._imports(child))
                self._keep_free(doc)
            elif kind == "type_declaration":
                types.extend(self._type_decls(child, doc))
            elif kind in ("function_declaration", "method_declaration"):
                name_node = child.child_by_field_name("name")
                funcs.append(FuncDecl(name=self._text(name_node), position=self._pos(child), doc=doc))
            elif kind == "const_declaration":
                consts.extend(self._consts(child, doc))
            else:
                self._keep_free(doc)

        return SourceFile(
            path=self._path,
            package_name=package_name,
            imports=tuple(imports),
            types=tuple(types),
            funcs=tuple(funcs),
            consts=tuple(consts),
            package_doc=package_doc,
            free_comments=tuple(self._free),
        )

    # ------------------------------------------------------------------
    # Comment grouping

    def _with_docs(
        self, node: Node, *, collect: bool = True
    ) -> Iterator[Tuple[Node, Optional[CommentGroup]]]:
        """Yield named children paired with the comment group directly above them.

        Groups that document nothing are kept as free-floating comments when
        ``collect`` is set.
        """
        group: List[Node] = []
        last_code_row = -1
        for child in node.children:
            if child.type == "comment":
                row = child.start_point[0]
                if row == last_code_row:
                    continue
                if group and row == group[-1].end_point[0] + 1:
                    group.append(child)
                else:
                    if collect:
                        self._flush(group)
                    group = [child]
                continue
            if not child.is_named:
                last_code_row = child.start_point[0]
                continue
            doc: Optional[CommentGroup] = None
            if group:
                if group[-1].end_point[0] == child.start_point[0] - 1:
                    doc = self._comment_group(group)
                elif collect:
                    self._flush(group)
                group = []
            last_code_row = child.end_point[0]
            yield child, doc
        if collect:
            self._flush(group)

    def _flush(self, group: List[Node]) -> None:
        if group:
            self._keep_free(self._comment_group(group))

    def _keep_free(self, doc: Optional[CommentGroup]) -> None:
        if doc is not None and doc.lines:
            self._free.append(doc)

    def _comment_group(self, nodes: List[Node]) -> CommentGroup:
        lines: List[str] = []
        numbers: List[int] = []
        for node in nodes:
            raw = self._text(node)
            row = node.start_point[0] + 1
            if raw.startswith("//"):
                if _TOOL_DIRECTIVE.match(raw):
                    continue
                body = raw[2:]
                lines.append(body[1:] if body.startswith(" ") else body)
                numbers.append(row)
                continue
            body = raw[2:-2] if raw.endswith("*/") else raw[2:]
            for offset, line in enumerate(body.split("\n")):
                stripped = line.strip()
                if stripped.startswith("* "):
                    stripped = stripped[2:]
                elif stripped == "*":
                    stripped = ""
                lines.append(stripped)
                numbers.append(row + offset)
        while lines and not lines[0].strip():
            lines.pop(0)
            numbers.pop(0)
        while lines and not lines[-1].strip():
            lines.pop()
            numbers.pop()
        start = numbers[0] if numbers else nodes[0].start_point[0] + 1
        return CommentGroup(
            lines=tuple(lines),
            position=Position(self._path, start),
            line_numbers=tuple(numbers),
        )

    # ------------------------------------------------------------------
    # Declarations

    def _imports(self, node: Node) -> List[ImportSpec]:
        specs: List[ImportSpec] = []
        stack = list(node.named_children)
        while stack:
            current = stack.pop(0)
            if current.type == "import_spec_list":
                stack = list(current.named_children) + stack
                continue
            if current.type != "import_spec":
                continue
            path_node = current.child_by_field_name("path")
            name_node = current.child_by_field_name("name")
            specs.append(
                ImportSpec(
                    path=_go_unquote(self._text(path_node)),
                    position=self._pos(current),
                    name=self._text(name_node) if name_node is not None else None,
                )
            )
        return specs

    def _type_decls(self, node: Node, doc: Optional[CommentGroup]) -> List[TypeDecl]:
        specs = [
            (child, spec_doc)
            for child, spec_doc in self._with_docs(node)
            if child.type in {"type_spec", "type_alias"}
        ]
        decls: List[TypeDecl] = []
        for spec, spec_doc in specs:
            if spec_doc is None and len(specs) == 1:
                spec_doc = doc
            name_node = spec.child_by_field_name("name")
            type_node = spec.child_by_field_name("type")
            decls.append(
                TypeDecl(
                    name=self._text(name_node),
                    type=self._type_expr(type_node),
                    position=self._pos(spec),
                    doc=spec_doc,
                    is_alias=spec.type == "type_alias",
                    generic=spec.child_by_field_name("type_parameters") is not None,
                )
            )
        if len(specs) != 1:
            self._keep_free(doc)
        return decls

    def _consts(self, node: Node, doc: Optional[CommentGroup]) -> List[ConstDecl]:
        specs = [(child, spec_doc) for child, spec_doc in self._with_docs(node) if child.type == "const_spec"]
        consts: List[ConstDecl] = []
        last_type: Optional[str] = None
        last_values: List[Node] = []
        for iota, (spec, spec_doc) in enumerate(specs):
            if spec_doc is None and len(specs) == 1:
                spec_doc = doc
            names = [
                self._text(child)
                for child in spec.children_by_field_name("name")
                if child.type == "identifier"
            ]
            value_node = spec.child_by_field_name("value")
            if value_node is None:
                type_name, values = last_type, last_values
            else:
                type_node = spec.child_by_field_name("type")
                type_name = self._text(type_node) if type_node is not None else None
                values = [child for child in value_node.named_children if child.type != "comment"]
                last_type, last_values = type_name, values
            for index, name in enumerate(names):
                expr = values[index] if index < len(values) else None
                consts.append(
                    ConstDecl(
                        name=name,
                        position=self._pos(spec),
                        type_name=type_name,
                        value=self._const_value(expr, iota) if expr is not None else None,
                        doc=spec_doc,
                    )
                )
        if len(specs) != 1:
            self._keep_free(doc)
        return consts

    def _const_value(self, node: Node, iota: int) -> Any:
        kind = node.type
        text = self._text(node)
        if kind == "int_literal":
            return _parse_int(text)
        if kind == "float_literal":
            return float(text.replace("_", ""))
        if kind in {"interpreted_string_literal", "raw_string_literal"}:
            return _go_unquote(text)
        if kind == "true":
            return True
        if kind == "false":
            return False
        if kind == "iota":
            return iota
        if kind == "parenthesized_expression":
            inner = _first_named(node)
            return self._const_value(inner, iota) if inner is not None else None
        if kind == "unary_expression":
            operator = node.child_by_field_name("operator")
            operand = node.child_by_field_name("operand")
            value = self._const_value(operand, iota) if operand is not None else None
            if isinstance(value, (int, float)) and operator is not None:
                op = self._text(operator)
                if op == "-":
                    return -value
                if op == "+":
                    return value
            return None
        if kind == "binary_expression":
            left = node.child_by_field_name("left")
            right = node.child_by_field_name("right")
            operator = node.child_by_field_name("operator")
            if left is None or right is None or operator is None:
                return None
            return _binary(
                self._text(operator),
                self._const_value(left, iota),
                self._const_value(right, iota),
            )
        return None

    # ------------------------------------------------------------------
    # Type expressions

    def _type_expr(self, node: Optional[Node]) -> TypeExpr:
        if node is None:
            return UnsupportedType(kind="missing", text="")
        kind = node.type
        if kind == "type_identifier":
            return NamedType(name=self._text(node))
        if kind == "qualified_type":
            return NamedType(
                name=self._text(node.child_by_field_name("name")),
                package=self._text(node.child_by_field_name("package")),
            )
        if kind == "pointer_type":
            return PointerType(elem=self._type_expr(_first_named(node)))
        if kind == "slice_type":
            return SliceType(elem=self._type_expr(node.child_by_field_name("element")))
        if kind == "array_type":
            length_node = node.child_by_field_name("length")
            length = None
            if length_node is not None and length_node.type == "int_literal":
                length = _parse_int(self._text(length_node))
            return ArrayType(elem=self._type_expr(node.child_by_field_name("element")), length=length)
        if kind == "implicit_length_array_type":
            return ArrayType(elem=self._type_expr(node.child_by_field_name("element")))
        if kind == "map_type":
            return MapType(
                key=self._type_expr(node.child_by_field_name("key")),
                value=self._type_expr(node.child_by_field_name("value")),
            )
        if kind == "struct_type":
            return StructType(fields=tuple(self._fields(node)))
        if kind == "interface_type":
            elements = [child for child in node.named_children if child.type != "comment"]
            return InterfaceType(has_methods=bool(elements))
        if kind == "parenthesized_type":
            return self._type_expr(_first_named(node))
        if kind == "generic_type":
            return UnsupportedType(kind="generic", text=self._text(node))
        if kind == "channel_type":
            return UnsupportedType(kind="channel", text=self._text(node))
        if kind == "function_type":
            return UnsupportedType(kind="function", text=self._text(node))
        return UnsupportedType(kind=kind, text=self._text(node))

    def _fields(self, struct_node: Node) -> List[Field]:
        body = _first_named(struct_node, "field_declaration_list")
        if body is None:
            return []
        fields: List[Field] = []
        for child, doc in self._with_docs(body, collect=False):
            if child.type != "field_declaration":
                continue
            names = tuple(
                self._text(name)
                for name in child.children_by_field_name("name")
                if name.type == "field_identifier"
            )
            type_expr = self._type_expr(child.child_by_field_name("type"))
            if not names and any(token.type == "*" for token in child.children):
                type_expr = PointerType(elem=type_expr)
            tag_node = child.child_by_field_name("tag")
            fields.append(
                Field(
                    names=names,
                    type=type_expr,
                    tag=_go_unquote(self._text(tag_node)) if tag_node is not None else "",
                    doc=doc,
                    position=self._pos(child),
                )
            )
        return fields

    # ------------------------------------------------------------------

    def _text(self, node: Optional[Node]) -> str:
        if node is None:
            return ""
        return self._source[node.start_byte : node.end_byte].decode("utf-8", errors="replace")

    def _pos(self, node: Node) -> Position:
        return Position(self._path, node.start_point[0] + 1)


def _first_named(node: Optional[Node], kind: Optional[str] = None) -> Optional[Node]:
    if node is None:
        return None
    for child in node.named_children:
        if child.type == "comment":
            continue
        if kind is None or child.type == kind:
            return child
    return None


def _parse_int(text: str) -> Optional[int]:
    cleaned = text.replace("_", "")
    try:
        if _OCTAL.match(cleaned):
            return int(cleaned, 8)
        return int(cleaned, 0)
    except ValueError:
        return None


def _binary(operator: str, left: Any, right: Any) -> Any:
    if isinstance(left, bool) or isinstance(right, bool):
        return None
    if isinstance(left, str) and isinstance(right, str) and operator == "+":
        return left + right
    if not isinstance(left, (int, float)) or not isinstance(right, (int, float)):
        return None
    if operator == "+":
        return left + right
    if operator == "-":
        return left - right
    if operator == "*":
        return left * right
    if isinstance(left, int) and isinstance(right, int):
        if operator == "<<":
            return left << right
        if operator == ">>":
            return left >> right
        if operator == "/" and right:
            return left // right
    return None


def _go_unquote(text: str) -> str:
    if len(text) >= 2 and text[0] == "`" and text[-1] == "`":
        return text[1:-1]
    if len(text) >= 2 and text[0] == '"' and text[-1] == '"':
        return re.sub(r"\\(.)", lambda m: _ESCAPES.get(m.group(1), m.group(0)), text[1:-1])
    return text


__all__ = ["GO_LANGUAGE", "GoSourceParser"]
