"""Source loading: go.mod discovery, build constraints, parsing and package closure."""

from .constraints import BuildContext, constraint_expression, split_tags
from .gomod import GoModule, find_module, locate_dependency, parse_go_mod
from .packages import PackageLoader, PathFilter
from .parser import GoSourceParser
from .universe import Universe

__all__ = [
    "BuildContext",
    "GoModule",
    "GoSourceParser",
    "PackageLoader",
    "PathFilter",
    "Universe",
    "constraint_expression",
    "find_module",
    "locate_dependency",
    "parse_go_mod",
    "split_tags",
]
