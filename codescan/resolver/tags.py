"""Go struct tag parsing."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, Optional

_TAG_PAIR = re.compile(r'([^\s:"]+):"((?:[^"\\]|\\.)*)"')


@dataclass(frozen=True)
class JSONTag:
    """The parts of a `json:"..."` tag that shape a schema property."""

    name: Optional[str] = None
    skip: bool = False
    as_string: bool = False


def parse_struct_tag(tag: str) -> Dict[str, str]:
    """Split a struct tag into its ``key:"value"`` pairs; the first key wins."""
    pairs: Dict[str, str] = {}
    for match in _TAG_PAIR.finditer(tag or ""):
        key, value = match.group(1), match.group(2)
        pairs.setdefault(key, re.sub(r"\\(.)", r"\1", value))
    return pairs


def lookup(tag: str, key: str) -> Optional[str]:
    return parse_struct_tag(tag).get(key)


def json_tag(tag: str) -> JSONTag:
    value = lookup(tag, "json")
    if value is None:
        return JSONTag()
    if value == "-":
        return JSONTag(skip=True)
    name, _, options = value.partition(",")
    flags = {flag.strip() for flag in options.split(",") if flag.strip()}
    return JSONTag(
        name=name or None,
        as_string="string" in flags,
    )


__all__ = ["JSONTag", "json_tag", "lookup", "parse_struct_tag"]
