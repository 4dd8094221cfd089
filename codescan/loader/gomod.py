"""go.mod parsing and import path to directory lookup."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from ..errors import LoadError
from ..logging import get_logger
from ..models import Position

logger = get_logger("gomod")

_GO_MOD = "go.mod"


@dataclass(frozen=True)
class Replacement:
    """A ``replace old [v] => new [v]`` directive."""

    old: str
    new: str
    old_version: Optional[str] = None
    new_version: Optional[str] = None

    @property
    def is_local(self) -> bool:
        return self.new.startswith(("./", "../", "/")) or self.new in {".", ".."}


@dataclass(frozen=True)
class GoModule:
    """The primary module a run is scoped to."""

    path: str
    dir: Path
    go_version: Optional[str] = None
    requires: Dict[str, str] = field(default_factory=dict)
    replaces: Tuple[Replacement, ...] = ()

    def contains(self, import_path: str) -> bool:
        return import_path == self.path or import_path.startswith(self.path + "/")

    def dir_for(self, import_path: str) -> Path:
        if import_path == self.path:
            return self.dir
        return self.dir / import_path[len(self.path) + 1 :]

    def import_path_for(self, directory: Path) -> str:
        rel = directory.resolve().relative_to(self.dir).as_posix()
        return self.path if rel in {"", "."} else f"{self.path}/{rel}"


def find_module(work_dir: Path) -> GoModule:
    """Locate and parse the nearest go.mod at or above ``work_dir``."""
    start = work_dir.expanduser().resolve()
    if not start.is_dir():
        raise LoadError(f"working directory not found: {work_dir}")
    for candidate in (start, *start.parents):
        mod_file = candidate / _GO_MOD
        if mod_file.is_file():
            logger.debug("Using module file %s", mod_file)
            return parse_go_mod(mod_file)
    raise LoadError(f"no go.mod found at or above {start}")


def parse_go_mod(path: Path) -> GoModule:
    text = path.read_text(encoding="utf-8")
    rel_name = path.name
    module_path: Optional[str] = None
    go_version: Optional[str] = None
    requires: Dict[str, str] = {}
    replaces: List[Replacement] = []
    block: Optional[str] = None

    for index, raw in enumerate(text.splitlines(), start=1):
        line = _strip_comment(raw).strip()
        if not line:
            continue
        if block is not None:
            if line == ")":
                block = None
                continue
            _apply_directive(block, line, requires, replaces, Position(rel_name, index))
            continue
        verb, _, rest = line.partition(" ")
        rest = rest.strip()
        if rest == "(":
            block = verb
            continue
        if verb == "module":
            module_path = _unquote(rest)
        elif verb == "go":
            go_version = rest
        else:
            _apply_directive(verb, rest, requires, replaces, Position(rel_name, index))

    if block is not None:
        raise LoadError(f"unterminated {block} block in go.mod", Position(rel_name, 1))
    if not module_path:
        raise LoadError("go.mod has no module directive", Position(rel_name, 1))
    return GoModule(
        path=module_path,
        dir=path.parent.resolve(),
        go_version=go_version,
        requires=requires,
        replaces=tuple(replaces),
    )


def _apply_directive(
    verb: str,
    rest: str,
    requires: Dict[str, str],
    replaces: List[Replacement],
    position: Position,
) -> None:
    if verb == "require":
        parts = rest.split()
        if len(parts) < 2:
            raise LoadError(f"malformed require directive: {rest!r}", position)
        requires[_unquote(parts[0])] = parts[1]
    elif verb == "replace":
        if "=>" not in rest:
            raise LoadError(f"malformed replace directive: {rest!r}", position)
        left, right = (part.split() for part in rest.split("=>", 1))
        if not left or not right:
            raise LoadError(f"malformed replace directive: {rest!r}", position)
        replaces.append(
            Replacement(
                old=_unquote(left[0]),
                old_version=left[1] if len(left) > 1 else None,
                new=_unquote(right[0]),
                new_version=right[1] if len(right) > 1 else None,
            )
        )
    # exclude, retract, toolchain and godebug do not affect package lookup.


def _strip_comment(line: str) -> str:
    index = line.find("//")
    return line if index < 0 else line[:index]


def _unquote(value: str) -> str:
    value = value.strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in {'"', "`"}:
        return value[1:-1]
    return value


def escape_module_path(path: str) -> str:
    """Apply the module cache's case encoding (``A`` becomes ``!a``)."""
    return re.sub(r"[A-Z]", lambda m: "!" + m.group(0).lower(), path)


def module_cache_dir() -> Path:
    cache = os.environ.get("GOMODCACHE")
    if cache:
        return Path(cache)
    gopath = os.environ.get("GOPATH")
    if gopath:
        return Path(gopath.split(os.pathsep)[0]) / "pkg" / "mod"
    return Path.home() / "go" / "pkg" / "mod"


def locate_dependency(module: GoModule, import_path: str) -> Optional[Path]:
    """Return the directory holding ``import_path`` outside the primary module."""
    for replacement in sorted(module.replaces, key=lambda r: len(r.old), reverse=True):
        if import_path == replacement.old or import_path.startswith(replacement.old + "/"):
            suffix = import_path[len(replacement.old) :].lstrip("/")
            if replacement.is_local:
                base = (module.dir / replacement.new).resolve()
                return _existing(base / suffix if suffix else base)
            version = replacement.new_version or module.requires.get(replacement.old)
            if version is None:
                return None
            return _from_cache(replacement.new, version, suffix)

    vendored = module.dir / "vendor" / import_path
    if vendored.is_dir():
        return vendored

    owner = _requiring_module(module, import_path)
    if owner is None:
        return None
    suffix = import_path[len(owner) :].lstrip("/")
    return _from_cache(owner, module.requires[owner], suffix)


def _requiring_module(module: GoModule, import_path: str) -> Optional[str]:
    candidates = [
        path for path in module.requires if import_path == path or import_path.startswith(path + "/")
    ]
    if not candidates:
        return None
    return max(candidates, key=len)


def _from_cache(module_path: str, version: str, suffix: str) -> Optional[Path]:
    root = module_cache_dir() / f"{escape_module_path(module_path)}@{escape_module_path(version)}"
    return _existing(root / suffix if suffix else root)


def _existing(path: Path) -> Optional[Path]:
    return path if path.is_dir() else None


def is_standard_library(import_path: str) -> bool:
    first = import_path.split("/", 1)[0]
    return "." not in first


__all__ = [
    "GoModule",
    "Replacement",
    "escape_module_path",
    "find_module",
    "is_standard_library",
    "locate_dependency",
    "module_cache_dir",
    "parse_go_mod",
]
