"""
Routine loader: keeps stored routines in the database in sync with their sources.

Provides source discovery with wrapper name conflict detection, the per-routine
loader, the persistent metadata cache, and the synchronizer that drives them.
"""

from sproc_sync.loader.docblock import DocBlock, parse_doc_block
from sproc_sync.loader.metadata_store import MetadataStore
from sproc_sync.loader.routine_loader import RoutineLoader
from sproc_sync.loader.sources import NameConflict, SourceFinder, detect_conflicts
from sproc_sync.loader.synchronizer import LoaderContext, Synchronizer, SyncResult

__all__ = [
    "DocBlock",
    "parse_doc_block",
    "MetadataStore",
    "RoutineLoader",
    "NameConflict",
    "SourceFinder",
    "detect_conflicts",
    "LoaderContext",
    "Synchronizer",
    "SyncResult",
]
