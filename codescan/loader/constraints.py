"""Build constraint evaluation for Go source files."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, FrozenSet, Iterable, List, Optional, Sequence

from ..errors import LoadError
from ..models import Position

KNOWN_OS = frozenset(
    {
        "aix",
        "android",
        "darwin",
        "dragonfly",
        "freebsd",
        "hurd",
        "illumos",
        "ios",
        "js",
        "linux",
        "nacl",
        "netbsd",
        "openbsd",
        "plan9",
        "solaris",
        "wasip1",
        "windows",
        "zos",
    }
)

KNOWN_ARCH = frozenset(
    {
        "386",
        "amd64",
        "arm",
        "arm64",
        "loong64",
        "mips",
        "mips64",
        "mips64le",
        "mipsle",
        "ppc64",
        "ppc64le",
        "riscv64",
        "s390x",
        "wasm",
    }
)

_UNIX_OS = frozenset(
    {"aix", "android", "darwin", "dragonfly", "freebsd", "hurd", "illumos", "ios", "linux", "netbsd", "openbsd", "solaris"}
)

_RELEASE_TAG = re.compile(r"^go1\.\d+$")
_TOKEN = re.compile(r"\s*(\(|\)|!|&&|\|\||[A-Za-z0-9_.]+)")

Predicate = Callable[[str], bool]


@dataclass(frozen=True)
class BuildContext:
    """Active tag set used to decide which files enter the universe."""

    tags: FrozenSet[str] = frozenset()
    goos: str = "linux"
    goarch: str = "amd64"

    @classmethod
    def from_tag_string(cls, tags: str | Sequence[str] | None, *, goos: str, goarch: str) -> "BuildContext":
        return cls(tags=frozenset(split_tags(tags)), goos=goos, goarch=goarch)

    @property
    def active(self) -> FrozenSet[str]:
        return self.tags | {self.goos, self.goarch, "gc"}

    def satisfies(self, tag: str) -> bool:
        if tag in self.active:
            return True
        if tag == "unix":
            return self.goos in _UNIX_OS
        return bool(_RELEASE_TAG.match(tag))

    def matches_file(self, filename: str, source: str, *, rel_path: str = "") -> bool:
        """Return True when ``filename`` with contents ``source`` is part of the build."""
        if not self._matches_filename(filename):
            return False
        expression = constraint_expression(source, rel_path or filename)
        if expression is None:
            return True
        return expression(self.satisfies)

    def _matches_filename(self, filename: str) -> bool:
        stem = filename[:-3] if filename.endswith(".go") else filename
        parts = stem.split("_")
        if len(parts) < 2:
            return True
        last = parts[-1]
        if len(parts) >= 3 and parts[-2] in KNOWN_OS and last in KNOWN_ARCH:
            return self.satisfies(parts[-2]) and self.satisfies(last)
        if last in KNOWN_OS or last in KNOWN_ARCH:
            return self.satisfies(last)
        return True


def split_tags(tags: str | Sequence[str] | None) -> List[str]:
    if not tags:
        return []
    if isinstance(tags, str):
        raw: Iterable[str] = re.split(r"[,\s]+", tags)
    else:
        raw = (part for item in tags for part in re.split(r"[,\s]+", item))
    return [tag for tag in raw if tag]


def constraint_expression(source: str, rel_path: str) -> Optional[Callable[[Predicate], bool]]:
    """Return the file's constraint as a callable, or None when unconstrained.

    Only the header above the package clause is considered. ``//go:build``
    wins over legacy ``// +build`` lines.
    """
    go_build: Optional[tuple[str, int]] = None
    plus_build: List[tuple[str, int]] = []
    in_block_comment = False
    for index, raw in enumerate(source.splitlines(), start=1):
        line = raw.strip()
        if in_block_comment:
            if "*/" in line:
                in_block_comment = False
            continue
        if not line:
            continue
        if line.startswith("/*"):
            in_block_comment = "*/" not in line
            continue
        if not line.startswith("//"):
            break
        if line.startswith("//go:build"):
            if go_build is not None:
                raise LoadError("multiple //go:build lines", Position(rel_path, index))
            go_build = (line[len("//go:build") :].strip(), index)
        elif re.match(r"//\s*\+build(\s|$)", line):
            plus_build.append((re.sub(r"^//\s*\+build", "", line).strip(), index))

    if go_build is not None:
        text, line_no = go_build
        return _ExpressionParser(text, Position(rel_path, line_no)).parse()
    if plus_build:
        return _plus_build_expression(plus_build)
    return None


def _plus_build_expression(lines: Sequence[tuple[str, int]]) -> Callable[[Predicate], bool]:
    # Lines are ANDed, space separated options ORed, comma separated terms ANDed.
    clauses = [[option.split(",") for option in text.split()] for text, _ in lines]

    def _term(term: str, has: Predicate) -> bool:
        if term.startswith("!"):
            return not has(term[1:])
        return has(term)

    def evaluate(has: Predicate) -> bool:
        for options in clauses:
            if not options:
                continue
            if not any(all(_term(term, has) for term in option if term) for option in options):
                return False
        return True

    return evaluate


class _ExpressionParser:
    """Recursive-descent parser for ``//go:build`` expressions."""

    def __init__(self, text: str, position: Position) -> None:
        self._position = position
        self._tokens = self._tokenize(text)
        self._index = 0

    def _tokenize(self, text: str) -> List[str]:
        tokens: List[str] = []
        index = 0
        while index < len(text):
            if text[index].isspace():
                index += 1
                continue
            match = _TOKEN.match(text, index)
            if match is None:
                raise LoadError(f"invalid build constraint: {text!r}", self._position)
            tokens.append(match.group(1))
            index = match.end()
        if not tokens:
            raise LoadError("empty //go:build constraint", self._position)
        return tokens

    def parse(self) -> Callable[[Predicate], bool]:
        expression = self._or()
        if self._index != len(self._tokens):
            raise LoadError(
                f"unexpected token {self._tokens[self._index]!r} in build constraint",
                self._position,
            )
        return expression

    def _peek(self) -> Optional[str]:
        return self._tokens[self._index] if self._index < len(self._tokens) else None

    def _take(self) -> str:
        token = self._peek()
        if token is None:
            raise LoadError("unexpected end of build constraint", self._position)
        self._index += 1
        return token

    def _or(self) -> Callable[[Predicate], bool]:
        left = self._and()
        while self._peek() == "||":
            self._take()
            right = self._and()
            left = (lambda a, b: lambda has: a(has) or b(has))(left, right)
        return left

    def _and(self) -> Callable[[Predicate], bool]:
        left = self._not()
        while self._peek() == "&&":
            self._take()
            right = self._not()
            left = (lambda a, b: lambda has: a(has) and b(has))(left, right)
        return left

    def _not(self) -> Callable[[Predicate], bool]:
        if self._peek() == "!":
            self._take()
            inner = self._not()
            return lambda has: not inner(has)
        return self._atom()

    def _atom(self) -> Callable[[Predicate], bool]:
        token = self._take()
        if token == "(":
            inner = self._or()
            if self._take() != ")":
                raise LoadError("missing ')' in build constraint", self._position)
            return inner
        if token in {")", "&&", "||"}:
            raise LoadError(f"unexpected token {token!r} in build constraint", self._position)
        return lambda has: has(token)


__all__ = ["BuildContext", "constraint_expression", "split_tags"]
