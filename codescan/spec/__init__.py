"""Document assembly, serialization and merging."""

from .assembler import SpecAssembler, status_description
from .document import Document, Operation
from .merge import merge_documents

__all__ = ["Document", "Operation", "SpecAssembler", "merge_documents", "status_description"]
