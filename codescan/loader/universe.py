"""The loaded package universe handed from the loader to later stages."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, FrozenSet, List, Mapping, Optional, Tuple

from ..models import ConstDecl, Package, SourceFile, TypeDecl
from .gomod import GoModule, is_standard_library

_MAJOR_VERSION = re.compile(r"^v\d+$")


@dataclass(frozen=True)
class Universe:
    """Every package of one run, keyed by import path in sorted order."""

    module: GoModule
    packages: Mapping[str, Package]
    unloaded: FrozenSet[str] = frozenset()

    def package(self, import_path: str) -> Optional[Package]:
        return self.packages.get(import_path)

    def scanned_packages(self) -> List[Package]:
        return [pkg for pkg in self.packages.values() if pkg.scanned]

    def lookup_type(self, import_path: str, name: str) -> Optional[Tuple[Package, TypeDecl]]:
        pkg = self.packages.get(import_path)
        if pkg is None:
            return None
        decl = pkg.type_decl(name)
        if decl is None:
            return None
        return pkg, decl

    def find_type_by_name(self, name: str) -> List[Tuple[Package, TypeDecl]]:
        """Return every declaration of ``name`` across scanned packages."""
        found: List[Tuple[Package, TypeDecl]] = []
        for pkg in self.scanned_packages():
            decl = pkg.type_decl(name)
            if decl is not None:
                found.append((pkg, decl))
        return found

    def consts_of(self, import_path: str, type_name: str) -> List[ConstDecl]:
        pkg = self.packages.get(import_path)
        if pkg is None:
            return []
        return [
            const
            for source in pkg.files
            for const in source.consts
            if const.type_name == type_name
        ]

    def import_path_for(self, source: SourceFile, alias: str) -> Optional[str]:
        """Map a package qualifier used in ``source`` to its import path."""
        for spec in source.imports:
            if spec.name in {".", "_"}:
                continue
            if spec.name is not None:
                if spec.name == alias:
                    return spec.path
                continue
            if self.package_name(spec.path) == alias:
                return spec.path
        return None

    def package_name(self, import_path: str) -> str:
        pkg = self.packages.get(import_path)
        if pkg is not None:
            return pkg.name
        return guess_package_name(import_path)

    def is_opaque(self, import_path: str) -> bool:
        """True for packages deliberately left unloaded."""
        return import_path in self.unloaded

    def is_standard_library(self, import_path: str) -> bool:
        return not self.module.contains(import_path) and is_standard_library(import_path)

    def stats(self) -> Dict[str, int]:
        return {
            "packages": len(self.packages),
            "scanned": len(self.scanned_packages()),
            "files": sum(len(pkg.files) for pkg in self.packages.values()),
        }


def guess_package_name(import_path: str) -> str:
    """Best-effort package name for an import path that was never parsed."""
    parts = import_path.split("/")
    last = parts[-1]
    if _MAJOR_VERSION.match(last) and len(parts) > 1:
        last = parts[-2]
    last = re.sub(r"\.v\d+$", "", last)
    if last.startswith("go-"):
        last = last[3:]
    if last.endswith("-go"):
        last = last[:-3]
    return last.replace("-", "_").replace(".", "_")


__all__ = ["Universe", "guess_package_name"]
