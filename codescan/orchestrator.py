"""Pipeline orchestration: load, extract, resolve, assemble and merge."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .annotations.extractor import AnnotationExtractor
from .errors import MergeError
from .loader.packages import PackageLoader
from .logging import get_logger
from .options import Options
from .resolver.resolver import TypeResolver
from .spec.assembler import SpecAssembler
from .spec.document import Document
from .spec.merge import merge_documents


class Orchestrator:
    """Runs one scan as a single pass over an immutable set of options."""

    def __init__(
        self,
        loader: PackageLoader | None = None,
        extractor: AnnotationExtractor | None = None,
    ) -> None:
        self.loader = loader or PackageLoader()
        self.extractor = extractor or AnnotationExtractor()
        self.logger = get_logger("orchestrator")

    def run(self, options: Options) -> Document:
        self.logger.info("Starting scan in %s", Path(options.work_dir or ".").resolve())
        universe = self.loader.load(options)
        annotations = self.extractor.extract(universe)
        resolver = TypeResolver(universe, annotations, options)
        document = SpecAssembler(universe, annotations, options, resolver).assemble()
        if options.input_spec is not None:
            self.logger.info("Merging with base document")
            document = merge_documents(document, options.input_spec)
        return document


def run(options: Optional[Options] = None) -> Document:
    """Scan Go sources and return the Swagger document."""
    return Orchestrator().run(options or Options())


def read_base_document(path: Path) -> Dict[str, Any]:
    """Read a base document from disk, trying JSON first and YAML second."""
    try:
        text = Path(path).expanduser().read_text(encoding="utf-8")
    except OSError as exc:
        raise MergeError(f"cannot read base document {path}: {exc}") from exc
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise MergeError(f"base document {path} is neither JSON nor YAML: {exc}") from exc
    if not isinstance(data, dict):
        raise MergeError(f"base document {path} must contain a mapping")
    return data


__all__ = ["Orchestrator", "read_base_document", "run"]
