"""
Routine source discovery and wrapper name conflict detection.
"""

from __future__ import annotations

import glob
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple, Union

from sproc_sync.models import RoutineSource
from sproc_sync.naming import NameMangler

logger = logging.getLogger(__name__)


@dataclass
class NameConflict:
    """Two or more sources that would produce wrapper methods with equal names."""
    method_name: str
    paths: List[Path] = field(default_factory=list)


class SourceFinder:
    """Finds routine source files and derives routine and method names."""

    def __init__(self, base_dir: Union[str, Path], mangler: Optional[NameMangler] = None):
        """
        Args:
            base_dir: Directory that relative patterns and file names are resolved against
            mangler: Naming strategy for wrapper methods (optional)
        """
        self.base_dir = Path(base_dir)
        self.mangler = mangler

    def make_source(self, path: Path) -> RoutineSource:
        routine_name = path.stem
        method_name = self.mangler.method_name(routine_name) if self.mangler else None
        return RoutineSource(path=path, routine_name=routine_name, method_name=method_name)

    def find_sources(self, pattern: str) -> List[RoutineSource]:
        """Search recursively for all files matching a glob pattern."""
        full_pattern = str(self.base_dir / pattern)
        paths = sorted(Path(p) for p in glob.glob(full_pattern, recursive=True) if Path(p).is_file())

        logger.info(f"Found {len(paths)} source files matching {pattern}")
        return [self.make_source(p) for p in paths]

    def sources_from_list(
        self,
        file_names: Iterable[Union[str, Path]],
        errors: List[Path],
    ) -> List[RoutineSource]:
        """
        Turn an explicit list of file names into sources.

        Files that do not exist are logged and appended to errors; they never
        abort the run.
        """
        sources = []
        for name in file_names:
            path = Path(name)
            if not path.is_absolute() and not path.exists():
                path = self.base_dir / path
            if not path.is_file():
                logger.error(f"File not exists: '{name}'")
                errors.append(Path(name))
                continue
            sources.append(self.make_source(path))

        return sources


def detect_conflicts(
    sources: List[RoutineSource],
) -> Tuple[List[RoutineSource], List[NameConflict]]:
    """
    Exclude all sources that share a wrapper method name with another source.

    Every member of a colliding group is excluded, not only the second and
    later ones. Sources without a method name never conflict.

    Returns:
        Tuple of (sources without conflicts, one conflict per colliding method name)
    """
    by_method: Dict[str, List[RoutineSource]] = defaultdict(list)
    for source in sources:
        if source.method_name is not None:
            by_method[source.method_name].append(source)

    conflicts = [
        NameConflict(method_name=name, paths=[s.path for s in group])
        for name, group in by_method.items()
        if len(group) > 1
    ]
    conflicting = {path for c in conflicts for path in c.paths}

    for conflict in conflicts:
        logger.error(
            f"The following source files would result in wrapper methods with equal name "
            f"'{conflict.method_name}': {', '.join(str(p) for p in conflict.paths)}"
        )

    valid = [s for s in sources if s.path not in conflicting]
    return valid, conflicts
