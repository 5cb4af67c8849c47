"""
Synchronization of routine sources with the live database.

The synchronizer reconciles the routine sources on disk, the metadata cache of
the previous run and the routines currently present in the database:

1. Discover sources and exclude sources with conflicting wrapper names
2. Build the run context (placeholders, canonical SQL mode, live routines)
3. Load every source whose routine changed
4. Drop routines that no longer have a source
5. Drop cache entries of routines that no longer have a source
6. Persist the metadata cache

Errors for individual sources are collected and reported at the end; they
never stop the remaining sources from being processed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Union

from sproc_sync.catalog.placeholders import PlaceholderResolver
from sproc_sync.config import LoaderSettings
from sproc_sync.loader.metadata_store import MetadataStore
from sproc_sync.loader.routine_loader import RoutineLoader
from sproc_sync.loader.sources import NameConflict, SourceFinder, detect_conflicts
from sproc_sync.models import RdbmsRoutineDescriptor, RoutineMetadata, RoutineSource
from sproc_sync.naming import NameMangler

logger = logging.getLogger(__name__)


@dataclass
class LoaderContext:
    """Everything a routine load needs besides the source itself."""
    catalog: object
    sql_mode: str
    character_set: str
    collate: str
    replace_pairs: Dict[str, str] = field(default_factory=dict)


@dataclass
class SyncResult:
    """Outcome of a synchronization run."""
    metadata: Dict[str, RoutineMetadata] = field(default_factory=dict)
    errors: List[Path] = field(default_factory=list)
    conflicts: List[NameConflict] = field(default_factory=list)
    dropped: List[str] = field(default_factory=list)
    metadata_written: bool = False

    @property
    def failed(self) -> bool:
        """A run with any source in error is a failed run."""
        return bool(self.errors)


class Synchronizer:
    """
    Keeps the stored routines of a database in sync with their sources.

    Usage:
        with MySqlCatalog(settings.database.to_connect_kwargs()) as catalog:
            sync = Synchronizer(settings.loader(), catalog, base_dir=settings.base_dir)
            result = sync.run()
    """

    def __init__(
        self,
        settings: LoaderSettings,
        catalog,
        loader=None,
        base_dir: Union[str, Path] = ".",
        mangler: Optional[NameMangler] = None,
    ):
        """
        Args:
            settings: Loader settings
            catalog: Live catalog (MySqlCatalog or compatible)
            loader: Routine loader collaborator; defaults to RoutineLoader over the catalog
            base_dir: Directory the source pattern is relative to
            mangler: Naming strategy for wrapper method names, used for conflict detection
        """
        self.settings = settings
        self.catalog = catalog
        self.loader = loader if loader is not None else RoutineLoader(catalog)
        self.finder = SourceFinder(base_dir, mangler)
        self.store = MetadataStore(settings.metadata)

        self.errors: List[Path] = []
        self.conflicts: List[NameConflict] = []

    def discover(self, file_names: Optional[Sequence[Union[str, Path]]] = None) -> List[RoutineSource]:
        """Find sources by pattern, or check the existence of explicitly named files."""
        if file_names:
            return self.finder.sources_from_list(file_names, self.errors)
        return self.finder.find_sources(self.settings.sources)

    def detect_conflicts(self, sources: List[RoutineSource]) -> List[RoutineSource]:
        """Remove sources with conflicting wrapper names and record them as errors."""
        valid, conflicts = detect_conflicts(sources)
        self.conflicts.extend(conflicts)
        for conflict in conflicts:
            self.errors.extend(conflict.paths)
        return valid

    def build_context(self) -> LoaderContext:
        """Resolve placeholders and the canonical SQL mode for this run."""
        resolver = PlaceholderResolver()
        resolver.add_column_types(self.catalog.get_all_table_columns())
        resolver.add_constants(self.settings.constants)

        sql_mode = self.catalog.get_correct_sql_mode(self.settings.sql_mode)

        return LoaderContext(
            catalog=self.catalog,
            sql_mode=sql_mode,
            character_set=self.settings.character_set,
            collate=self.settings.collate,
            replace_pairs=resolver.get_replace_pairs(),
        )

    def read_live_routines(self) -> Dict[str, RdbmsRoutineDescriptor]:
        """Snapshot the routines currently present in the database, by name."""
        return {r.routine_name: r for r in self.catalog.get_routines()}

    def load_all(
        self,
        sources: Iterable[RoutineSource],
        metadata: Dict[str, RoutineMetadata],
        live: Dict[str, RdbmsRoutineDescriptor],
        context: LoaderContext,
    ) -> Dict[str, RoutineMetadata]:
        """
        Load all sources, in order of routine name.

        The metadata cache is updated in place: a successful load replaces the
        routine's entry, a failed load removes it and records the source.
        """
        for source in sorted(sources, key=lambda s: s.routine_name):
            name = source.routine_name
            result = self.loader.load(
                source.path,
                metadata.get(name),
                context.replace_pairs,
                live.get(name),
                context.sql_mode,
                context.character_set,
                context.collate,
            )
            if result is None:
                self.errors.append(source.path)
                metadata.pop(name, None)
            else:
                metadata[name] = result

        return metadata

    def reconcile_catalog(
        self,
        sources: Iterable[RoutineSource],
        live: Dict[str, RdbmsRoutineDescriptor],
    ) -> List[str]:
        """
        Drop routines that exist in the database but have no source.

        Routines are dropped without regard to dependencies between them.
        """
        names = {s.routine_name for s in sources}
        dropped = []
        for routine in live.values():
            if routine.routine_name not in names:
                logger.info(f"Dropping {routine.routine_type.value} {routine.routine_name}")
                self.catalog.drop_routine(routine.routine_type, routine.routine_name)
                dropped.append(routine.routine_name)

        return dropped

    def prune_stale_metadata(
        self,
        sources: Iterable[RoutineSource],
        metadata: Dict[str, RoutineMetadata],
    ) -> Dict[str, RoutineMetadata]:
        """Keep only cache entries of routines that still have a source."""
        return {
            s.routine_name: metadata[s.routine_name]
            for s in sources
            if s.routine_name in metadata
        }

    def run(self, file_names: Optional[Sequence[Union[str, Path]]] = None) -> SyncResult:
        """
        Synchronize the database with the routine sources.

        Without file names all sources matching the configured pattern are
        loaded, obsolete routines are dropped and the cache is pruned. With
        file names only those sources are loaded and nothing is dropped.
        """
        sources = self.discover(file_names)
        sources = self.detect_conflicts(sources)

        context = self.build_context()
        metadata = self.store.load()
        live = self.read_live_routines()

        metadata = self.load_all(sources, metadata, live, context)

        dropped: List[str] = []
        if not file_names:
            dropped = self.reconcile_catalog(sources, live)
            metadata = self.prune_stale_metadata(sources, metadata)

        written = self.store.save(metadata)

        if self.errors:
            logger.warning(f"Routines in {len(self.errors)} file(s) are not loaded")

        return SyncResult(
            metadata=metadata,
            errors=list(self.errors),
            conflicts=list(self.conflicts),
            dropped=dropped,
            metadata_written=written,
        )
