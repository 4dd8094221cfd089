"""Immutable options for one scan."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Mapping, Optional, Sequence, Tuple, Union

if TYPE_CHECKING:  # pragma: no cover - typing aid
    from .spec.document import Document

DEFAULT_PACKAGES: Tuple[str, ...] = ("./...",)


@dataclass(frozen=True)
class Options:
    """Configuration constructed once by the caller and passed through the pipeline."""

    packages: Tuple[str, ...] = DEFAULT_PACKAGES
    work_dir: Optional[str] = None
    build_tags: str = ""
    scan_models: bool = False
    exclude_deps: bool = False
    include: Tuple[str, ...] = ()
    exclude: Tuple[str, ...] = ()
    include_tags: Tuple[str, ...] = ()
    exclude_tags: Tuple[str, ...] = ()
    input_spec: Optional[Union["Document", Mapping[str, Any]]] = field(default=None, compare=False)
    set_x_nullable_for_pointers: bool = False
    ref_aliases: bool = False
    transparent_aliases: bool = False
    desc_with_ref: bool = False
    goos: str = "linux"
    goarch: str = "amd64"
    max_workers: Optional[int] = None

    def __post_init__(self) -> None:
        # Accept any sequence from callers while keeping the value hashable.
        for name in ("packages", "include", "exclude", "include_tags", "exclude_tags"):
            value = getattr(self, name)
            if isinstance(value, str):
                value = (value,)
            object.__setattr__(self, name, tuple(_clean(value)))
        if not self.packages:
            object.__setattr__(self, "packages", DEFAULT_PACKAGES)


def _clean(values: Sequence[str]) -> Tuple[str, ...]:
    return tuple(value.strip() for value in values if value and value.strip())


__all__ = ["DEFAULT_PACKAGES", "Options"]
