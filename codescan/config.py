"""Configuration loading for codescan (.codescan.yml)."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import yaml

from .errors import CodescanError
from .options import DEFAULT_PACKAGES, Options

CONFIG_FILENAME = ".codescan.yml"
OUTPUT_FORMATS = ("json", "yaml", "yml")


class ConfigError(CodescanError):
    """Raised when the configuration file cannot be parsed."""


@dataclass
class SchemaConfig:
    """Schema shaping switches."""

    x_nullable_pointers: bool = False
    ref_aliases: bool = False
    transparent_aliases: bool = False
    desc_with_ref: bool = False


@dataclass
class OutputConfig:
    """Where and how the document is written."""

    file: Optional[Path] = None
    format: Optional[str] = None
    compact: bool = False


@dataclass
class CodescanConfig:
    """Represents the settings defined in .codescan.yml."""

    root: Path
    packages: List[str] = field(default_factory=lambda: list(DEFAULT_PACKAGES))
    work_dir: Optional[Path] = None
    build_tags: str = ""
    scan_models: bool = False
    exclude_deps: bool = False
    include: List[str] = field(default_factory=list)
    exclude: List[str] = field(default_factory=list)
    include_tags: List[str] = field(default_factory=list)
    exclude_tags: List[str] = field(default_factory=list)
    input: Optional[Path] = None
    schema: SchemaConfig = field(default_factory=SchemaConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    max_workers: Optional[int] = None

    def to_options(self, **overrides: Any) -> Options:
        """Build scan options, letting non-None ``overrides`` win over the file."""
        values: Dict[str, Any] = {
            "packages": tuple(self.packages),
            "work_dir": str(self.work_dir or self.root),
            "build_tags": self.build_tags,
            "scan_models": self.scan_models,
            "exclude_deps": self.exclude_deps,
            "include": tuple(self.include),
            "exclude": tuple(self.exclude),
            "include_tags": tuple(self.include_tags),
            "exclude_tags": tuple(self.exclude_tags),
            "set_x_nullable_for_pointers": self.schema.x_nullable_pointers,
            "ref_aliases": self.schema.ref_aliases,
            "transparent_aliases": self.schema.transparent_aliases,
            "desc_with_ref": self.schema.desc_with_ref,
            "max_workers": self.max_workers,
        }
        values.update({key: value for key, value in overrides.items() if value is not None})
        return Options(**values)


def load_config(config_path: Path) -> CodescanConfig:
    """Load configuration from disk."""
    config_file = _resolve_config_path(config_path)
    root = config_file.parent.resolve()

    if not config_file.exists():
        return CodescanConfig(root=root)

    data = _read_config(config_file)
    if not isinstance(data, dict):
        raise ConfigError(f"{CONFIG_FILENAME} must contain a mapping at the root")

    schema_data = _as_dict(data.get("schema"))
    schema = SchemaConfig(
        x_nullable_pointers=_as_bool(schema_data.get("x_nullable_pointers")) or False,
        ref_aliases=_as_bool(schema_data.get("ref_aliases")) or False,
        transparent_aliases=_as_bool(schema_data.get("transparent_aliases")) or False,
        desc_with_ref=_as_bool(schema_data.get("desc_with_ref")) or False,
    )

    output_data = _as_dict(data.get("output"))
    output_format = _as_str(output_data.get("format"))
    if output_format is not None and output_format.lower() not in OUTPUT_FORMATS:
        raise ConfigError(f"output.format must be one of {', '.join(OUTPUT_FORMATS)}")
    output_file = _as_str(output_data.get("file"))
    output = OutputConfig(
        file=root / output_file if output_file else None,
        format=normalize_format(output_format),
        compact=_as_bool(output_data.get("compact")) or False,
    )

    work_dir = _as_str(data.get("work_dir"))
    input_path = _as_str(data.get("input"))
    build_tags = data.get("build_tags")
    if isinstance(build_tags, list):
        build_tags = ",".join(_as_str_list(build_tags))

    return CodescanConfig(
        root=root,
        packages=_as_str_list(data.get("packages")) or list(DEFAULT_PACKAGES),
        work_dir=(root / work_dir).resolve() if work_dir else None,
        build_tags=_as_str(build_tags) or "",
        scan_models=_as_bool(data.get("scan_models")) or False,
        exclude_deps=_as_bool(data.get("exclude_deps")) or False,
        include=_as_str_list(data.get("include")),
        exclude=_as_str_list(data.get("exclude")),
        include_tags=_as_str_list(data.get("include_tags")),
        exclude_tags=_as_str_list(data.get("exclude_tags")),
        input=root / input_path if input_path else None,
        schema=schema,
        output=output,
        max_workers=_as_int(data.get("max_workers")),
    )


def normalize_format(value: Optional[str]) -> Optional[str]:
    """Canonical output format name; `yml` is read as `yaml`."""
    if not value:
        return None
    lowered = value.lower()
    return "yaml" if lowered == "yml" else lowered


def _resolve_config_path(config_path: Path) -> Path:
    config_path = config_path.expanduser()
    if config_path.is_dir():
        return (config_path / CONFIG_FILENAME).resolve()
    return config_path.resolve()


def _read_config(path: Path) -> Any:
    text = path.read_text(encoding="utf-8")
    if not text.strip():
        return {}
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc
    return {} if loaded is None else loaded


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_str(value: Any) -> Optional[str]:
    return str(value) if isinstance(value, (str, int, float, bool)) else None


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            return None
    return None


def _as_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"true", "yes", "1"}:
            return True
        if lowered in {"false", "no", "0"}:
            return False
    return None


def _as_str_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [part.strip() for part in value.split(",") if part.strip()]
    if isinstance(value, Sequence):
        return [str(item) for item in value if isinstance(item, (str, int, float, bool))]
    return []


__all__ = [
    "CONFIG_FILENAME",
    "CodescanConfig",
    "ConfigError",
    "OutputConfig",
    "SchemaConfig",
    "load_config",
    "normalize_format",
]
