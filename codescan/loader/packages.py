"""Package pattern resolution and loading."""

from __future__ import annotations

import os
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from fnmatch import fnmatchcase
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Sequence, Set, Tuple

from ..errors import LoadError
from ..logging import get_logger
from ..models import ImportSpec, Package, SourceFile
from ..options import Options
from .constraints import BuildContext
from .gomod import GoModule, find_module, is_standard_library, locate_dependency
from .parser import GoSourceParser
from .universe import Universe

_EXCLUDED_DIRS = {"vendor", "testdata", "node_modules"}


@dataclass(frozen=True)
class PathFilter:
    """Include/exclude patterns applied to packages and files before parsing.

    Patterns ending in ``.go`` match files (module-relative path or base
    name); every other pattern matches packages by import path or
    module-relative directory, as a glob, exact value or path prefix.
    """

    include: Tuple[str, ...] = ()
    exclude: Tuple[str, ...] = ()

    def allows_package(self, import_path: str, rel_dir: str, *, root: bool) -> bool:
        candidates = (import_path, rel_dir)
        if root:
            includes = [p for p in self.include if not p.endswith(".go")]
            if includes and not any(_matches(candidates, p) for p in includes):
                return False
        excludes = [p for p in self.exclude if not p.endswith(".go")]
        return not any(_matches(candidates, p) for p in excludes)

    def allows_file(self, rel_path: str) -> bool:
        candidates = (rel_path, rel_path.rsplit("/", 1)[-1])
        includes = [p for p in self.include if p.endswith(".go")]
        if includes and not any(_matches(candidates, p) for p in includes):
            return False
        excludes = [p for p in self.exclude if p.endswith(".go")]
        return not any(_matches(candidates, p) for p in excludes)


def _matches(candidates: Sequence[str], pattern: str) -> bool:
    pattern = pattern[2:] if pattern.startswith("./") else pattern
    prefix = pattern.rstrip("/")
    for candidate in candidates:
        if not candidate:
            continue
        if fnmatchcase(candidate, pattern) or candidate == prefix or candidate.startswith(prefix + "/"):
            return True
    return False


@dataclass(frozen=True)
class _PackageRef:
    import_path: str
    dir: Path
    explicit: bool
    scanned: bool
    origin: Optional[ImportSpec] = None


class PackageLoader:
    """Resolves package patterns into a fully loaded universe."""

    def __init__(self, parser: GoSourceParser | None = None) -> None:
        self.parser = parser or GoSourceParser()
        self.logger = get_logger("loader")

    def load(self, options: Options) -> Universe:
        work_dir = Path(options.work_dir or ".").expanduser().resolve()
        module = find_module(work_dir)
        context = BuildContext.from_tag_string(
            options.build_tags, goos=options.goos, goarch=options.goarch
        )
        path_filter = PathFilter(include=options.include, exclude=options.exclude)
        self.logger.info("Loading %s from module %s", ", ".join(options.packages), module.path)

        roots = self._expand_patterns(options.packages, work_dir, module, path_filter, options)
        packages: Dict[str, Package] = {}
        unloaded: Set[str] = set()

        with ThreadPoolExecutor(max_workers=options.max_workers) as executor:
            batch = roots
            while batch:
                loaded = self._load_batch(batch, module, context, path_filter, executor)
                for pkg in loaded:
                    packages[pkg.import_path] = pkg
                pending: Dict[str, _PackageRef] = {}
                for pkg in loaded:
                    for spec in _imports_of(pkg):
                        if spec.path in packages or spec.path in pending or spec.path in unloaded:
                            continue
                        ref = self._dependency_ref(spec, module, path_filter, options)
                        if ref is None:
                            if not is_standard_library(spec.path) or module.contains(spec.path):
                                unloaded.add(spec.path)
                            continue
                        pending[spec.path] = ref
                batch = [pending[key] for key in sorted(pending)]

        if not any(pkg.scanned for pkg in packages.values()):
            raise LoadError(f"no packages matched {', '.join(options.packages)}")

        ordered = {key: packages[key] for key in sorted(packages)}
        universe = Universe(
            module=module,
            packages=ordered,
            unloaded=frozenset(unloaded),
        )
        stats = universe.stats()
        self.logger.info(
            "Loaded %d packages (%d scanned, %d files)",
            stats["packages"],
            stats["scanned"],
            stats["files"],
        )
        return universe

    # ------------------------------------------------------------------
    # Pattern expansion

    def _expand_patterns(
        self,
        patterns: Sequence[str],
        work_dir: Path,
        module: GoModule,
        path_filter: PathFilter,
        options: Options,
    ) -> List[_PackageRef]:
        refs: Dict[str, _PackageRef] = {}
        for pattern in patterns:
            matched = 0
            for ref in self._expand_pattern(pattern, work_dir, module, options):
                matched += 1
                rel_dir = _rel_dir(module, ref.dir)
                if not path_filter.allows_package(ref.import_path, rel_dir, root=True):
                    self.logger.debug("Package %s filtered out", ref.import_path)
                    continue
                existing = refs.get(ref.import_path)
                if existing is None or (ref.explicit and not existing.explicit):
                    refs[ref.import_path] = ref
            if matched == 0:
                raise LoadError(f"pattern {pattern!r} matched no packages")
        return [refs[key] for key in sorted(refs)]

    def _expand_pattern(
        self, pattern: str, work_dir: Path, module: GoModule, options: Options
    ) -> Iterator[_PackageRef]:
        recursive = pattern == "..." or pattern.endswith("/...")
        base = pattern[: -len("/...")] if pattern.endswith("/...") else pattern
        if pattern == "...":
            base = "."

        if base.startswith((".", "/")) or Path(base).is_absolute():
            directory = (work_dir / base).resolve()
            try:
                import_path = module.import_path_for(directory)
            except ValueError as exc:
                raise LoadError(f"pattern {pattern!r} is outside module {module.path}") from exc
        elif module.contains(base):
            directory = module.dir_for(base)
            import_path = base
        elif options.exclude_deps:
            raise LoadError(f"pattern {pattern!r} is outside module {module.path}")
        else:
            located = locate_dependency(module, base)
            if located is None:
                raise LoadError(f"cannot find module providing package {base}")
            directory, import_path = located, base

        if not directory.is_dir():
            raise LoadError(f"directory not found for pattern {pattern!r}: {directory}")

        if not recursive:
            yield _PackageRef(import_path=import_path, dir=directory, explicit=True, scanned=True)
            return

        for sub_dir in _walk_package_dirs(directory):
            rel = sub_dir.relative_to(directory).as_posix()
            sub_path = import_path if rel == "." else f"{import_path}/{rel}"
            yield _PackageRef(import_path=sub_path, dir=sub_dir, explicit=False, scanned=True)

    def _dependency_ref(
        self,
        spec: ImportSpec,
        module: GoModule,
        path_filter: PathFilter,
        options: Options,
    ) -> Optional[_PackageRef]:
        path = spec.path
        if module.contains(path):
            directory = module.dir_for(path)
            if not path_filter.allows_package(path, _rel_dir(module, directory), root=False):
                self.logger.debug("Not loading excluded package %s", path)
                return None
            if not directory.is_dir():
                raise LoadError(f"package {path} is not in module {module.path}", spec.position)
            return _PackageRef(path, directory, explicit=True, scanned=False, origin=spec)
        if is_standard_library(path):
            return None
        if options.exclude_deps:
            self.logger.debug("Not loading dependency %s (exclude-deps)", path)
            return None
        if not path_filter.allows_package(path, "", root=False):
            self.logger.debug("Not loading excluded dependency %s", path)
            return None
        located = locate_dependency(module, path)
        if located is None:
            raise LoadError(f"cannot find module providing package {path}", spec.position)
        return _PackageRef(path, located, explicit=True, scanned=False, origin=spec)

    # ------------------------------------------------------------------
    # Loading

    def _load_batch(
        self,
        refs: Sequence[_PackageRef],
        module: GoModule,
        context: BuildContext,
        path_filter: PathFilter,
        executor: ThreadPoolExecutor,
    ) -> List[Package]:
        jobs: List[Tuple[_PackageRef, str, str]] = []
        selected: Dict[str, List[str]] = {}
        for ref in refs:
            selected[ref.import_path] = []
            for path in sorted(ref.dir.iterdir()):
                name = path.name
                if not path.is_file() or not _is_go_source(name):
                    continue
                rel_path = _rel_file(module, ref, path)
                if not path_filter.allows_file(rel_path):
                    self.logger.debug("File %s filtered out", rel_path)
                    continue
                try:
                    source = path.read_text(encoding="utf-8")
                except (OSError, UnicodeDecodeError) as exc:
                    raise LoadError(f"cannot read {rel_path}: {exc}") from exc
                if not context.matches_file(name, source, rel_path=rel_path):
                    self.logger.debug("File %s excluded by build constraints", rel_path)
                    continue
                jobs.append((ref, source, rel_path))
                selected[ref.import_path].append(rel_path)

        parsed = list(executor.map(lambda job: self.parser.parse(job[1], job[2]), jobs))
        by_package: Dict[str, List[SourceFile]] = {ref.import_path: [] for ref in refs}
        for (ref, _, _), source_file in zip(jobs, parsed):
            by_package[ref.import_path].append(source_file)

        packages: List[Package] = []
        for ref in refs:
            files = by_package[ref.import_path]
            if not files:
                if ref.explicit:
                    raise LoadError(
                        f"no buildable Go source files in {ref.import_path}",
                        ref.origin.position if ref.origin is not None else None,
                    )
                self.logger.debug("Skipping %s: no buildable files", ref.import_path)
                continue
            names = sorted({source.package_name for source in files})
            if len(names) > 1:
                raise LoadError(
                    f"found packages {' and '.join(names)} in {ref.import_path}",
                    ref.origin.position if ref.origin is not None else None,
                )
            packages.append(
                Package(
                    import_path=ref.import_path,
                    name=names[0],
                    dir=str(ref.dir),
                    files=tuple(files),
                    tags=context.active,
                    scanned=ref.scanned,
                )
            )
            self.logger.debug("Loaded %s (%d files)", ref.import_path, len(files))
        return packages


def _imports_of(pkg: Package) -> Iterator[ImportSpec]:
    for source in pkg.files:
        yield from source.imports


def _is_go_source(name: str) -> bool:
    return name.endswith(".go") and not name.endswith("_test.go") and not name.startswith((".", "_"))


def _walk_package_dirs(root: Path) -> Iterator[Path]:
    for dirpath, dirnames, filenames in os.walk(root):
        current = Path(dirpath)
        dirnames[:] = sorted(
            name
            for name in dirnames
            if name not in _EXCLUDED_DIRS
            and not name.startswith((".", "_"))
            and not (current / name / "go.mod").is_file()
        )
        if any(_is_go_source(name) for name in filenames):
            yield current


def _rel_dir(module: GoModule, directory: Path) -> str:
    try:
        rel = directory.resolve().relative_to(module.dir).as_posix()
    except ValueError:
        return ""
    return "" if rel == "." else rel


def _rel_file(module: GoModule, ref: _PackageRef, path: Path) -> str:
    try:
        return path.resolve().relative_to(module.dir).as_posix()
    except ValueError:
        return f"{ref.import_path}/{path.name}"


__all__ = ["PackageLoader", "PathFilter"]
