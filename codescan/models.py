"""Core data models shared across codescan components."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, FrozenSet, Optional, Tuple, Union


@dataclass(frozen=True, order=True)
class Position:
    """Location of a declaration or comment inside the scanned tree."""

    file: str
    line: int

    def __str__(self) -> str:
        return f"{self.file}:{self.line}"


@dataclass(frozen=True)
class CommentGroup:
    """Consecutive comment lines with the comment markers stripped."""

    lines: Tuple[str, ...]
    position: Position
    line_numbers: Tuple[int, ...] = ()

    @property
    def text(self) -> str:
        return "\n".join(self.lines)

    def line_position(self, index: int) -> Position:
        if index < len(self.line_numbers):
            return Position(self.position.file, self.line_numbers[index])
        return Position(self.position.file, self.position.line + index)


# ---------------------------------------------------------------------------
# Type references as written in source
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class NamedType:
    """A type identifier, optionally qualified by an import alias."""

    name: str
    package: Optional[str] = None

    def __str__(self) -> str:
        return f"{self.package}.{self.name}" if self.package else self.name


@dataclass(frozen=True)
class PointerType:
    elem: "TypeExpr"

    def __str__(self) -> str:
        return f"*{self.elem}"


@dataclass(frozen=True)
class SliceType:
    elem: "TypeExpr"

    def __str__(self) -> str:
        return f"[]{self.elem}"


@dataclass(frozen=True)
class ArrayType:
    elem: "TypeExpr"
    length: Optional[int] = None

    def __str__(self) -> str:
        size = "" if self.length is None else str(self.length)
        return f"[{size}]{self.elem}"


@dataclass(frozen=True)
class MapType:
    key: "TypeExpr"
    value: "TypeExpr"

    def __str__(self) -> str:
        return f"map[{self.key}]{self.value}"


@dataclass(frozen=True)
class InterfaceType:
    """An interface literal; only the empty interface has a schema."""

    has_methods: bool = False

    def __str__(self) -> str:
        return "interface{...}" if self.has_methods else "interface{}"


@dataclass(frozen=True)
class UnsupportedType:
    """Channels, function types, generic instantiations and other shapes."""

    kind: str
    text: str

    def __str__(self) -> str:
        return self.text


@dataclass(frozen=True)
class Field:
    """A struct field; embedded fields have no names."""

    names: Tuple[str, ...]
    type: "TypeExpr"
    tag: str = ""
    doc: Optional[CommentGroup] = None
    position: Optional[Position] = None

    @property
    def embedded(self) -> bool:
        return not self.names


@dataclass(frozen=True)
class StructType:
    fields: Tuple[Field, ...] = ()

    def __str__(self) -> str:
        return "struct{...}"


TypeExpr = Union[
    NamedType,
    PointerType,
    SliceType,
    ArrayType,
    MapType,
    StructType,
    InterfaceType,
    UnsupportedType,
]


# ---------------------------------------------------------------------------
# Declarations
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TypeDecl:
    """`type Name T` or `type Name = T`."""

    name: str
    type: TypeExpr
    position: Position
    doc: Optional[CommentGroup] = None
    is_alias: bool = False
    generic: bool = False


@dataclass(frozen=True)
class FuncDecl:
    name: str
    position: Position
    doc: Optional[CommentGroup] = None


@dataclass(frozen=True)
class ConstDecl:
    """A constant with its evaluated literal value (None when not a literal)."""

    name: str
    position: Position
    type_name: Optional[str] = None
    value: Any = None
    doc: Optional[CommentGroup] = None


@dataclass(frozen=True)
class ImportSpec:
    path: str
    position: Position
    name: Optional[str] = None


@dataclass(frozen=True)
class SourceFile:
    """A parsed Go file that passed its build constraints."""

    path: str
    package_name: str
    imports: Tuple[ImportSpec, ...] = ()
    types: Tuple[TypeDecl, ...] = ()
    funcs: Tuple[FuncDecl, ...] = ()
    consts: Tuple[ConstDecl, ...] = ()
    package_doc: Optional[CommentGroup] = None
    free_comments: Tuple[CommentGroup, ...] = ()


@dataclass(frozen=True)
class Package:
    """A loaded Go package."""

    import_path: str
    name: str
    dir: str
    files: Tuple[SourceFile, ...]
    tags: FrozenSet[str] = frozenset()
    scanned: bool = False

    def type_decl(self, name: str) -> Optional[TypeDecl]:
        for source in self.files:
            for decl in source.types:
                if decl.name == name:
                    return decl
        return None

    def file_of(self, decl: Union[TypeDecl, FuncDecl, ConstDecl]) -> Optional[SourceFile]:
        for source in self.files:
            if decl in source.types or decl in source.funcs or decl in source.consts:
                return source
        return None


@dataclass(frozen=True)
class PackageDecl:
    """Synthetic declaration carrying package docs and free-floating comments."""

    package: str
    comments: Tuple[CommentGroup, ...] = field(default_factory=tuple)


TypeKey = Tuple[str, str]


__all__ = [
    "ArrayType",
    "CommentGroup",
    "ConstDecl",
    "Field",
    "FuncDecl",
    "ImportSpec",
    "InterfaceType",
    "MapType",
    "NamedType",
    "Package",
    "PackageDecl",
    "PointerType",
    "Position",
    "SliceType",
    "SourceFile",
    "StructType",
    "TypeDecl",
    "TypeExpr",
    "TypeKey",
    "UnsupportedType",
]
