"""codescan: Swagger 2.0 documents from swagger: annotations in Go sources."""

__version__ = "0.1.0"

from .errors import (  # noqa: E402
    AnnotationError,
    CodescanError,
    ConflictError,
    LoadError,
    MergeError,
    ResolutionError,
)
from .options import Options  # noqa: E402
from .orchestrator import Orchestrator, run  # noqa: E402
from .spec.document import Document  # noqa: E402
from .spec.merge import merge_documents  # noqa: E402

__all__ = [
    "AnnotationError",
    "CodescanError",
    "ConflictError",
    "Document",
    "LoadError",
    "MergeError",
    "Options",
    "Orchestrator",
    "ResolutionError",
    "__version__",
    "merge_documents",
    "run",
]
