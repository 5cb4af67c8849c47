"""
Persistent cache of routine metadata.

The cache is a JSON document mapping routine names to routine metadata. It is
the contract between the loader and the wrapper generator and is meant to be
kept under version control, so it is written with sorted keys and indentation.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Dict, Union

from sproc_sync.errors import MetadataError
from sproc_sync.models import RoutineMetadata
from sproc_sync.utils.files import write_if_changed

logger = logging.getLogger(__name__)


class MetadataStore:
    """Loads and saves the routine metadata cache."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def load(self) -> Dict[str, RoutineMetadata]:
        """
        Read the metadata of all routines.

        A missing file means there is no prior state and gives an empty cache.

        Raises:
            MetadataError: the file exists but is not a valid metadata document
        """
        if not self.path.exists():
            logger.info(f"No metadata file at {self.path}, starting without prior state")
            return {}

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise MetadataError(f"Error decoding metadata file '{self.path}': {e}") from e

        if not isinstance(data, dict):
            raise MetadataError(f"Metadata file '{self.path}' must contain a JSON object")

        metadata = {}
        for name, entry in data.items():
            if not isinstance(entry, dict):
                raise MetadataError(f"Metadata of routine '{name}' must be a JSON object")
            metadata[name] = RoutineMetadata.from_dict(entry)

        logger.info(f"Read metadata of {len(metadata)} routines from {self.path}")
        return metadata

    def dumps(self, metadata: Dict[str, RoutineMetadata]) -> str:
        data = {name: metadata[name].to_dict() for name in sorted(metadata)}
        return json.dumps(data, indent=2, sort_keys=True) + "\n"

    def save(self, metadata: Dict[str, RoutineMetadata]) -> bool:
        """
        Write the metadata of all routines atomically.

        Returns:
            True if the file was written, False if its content did not change
        """
        return write_if_changed(self.path, self.dumps(metadata))
