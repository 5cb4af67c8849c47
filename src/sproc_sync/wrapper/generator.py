"""
Generator of the wrapper module.

Reads the routine metadata written by the loader and emits one Python module
holding a class with one typed method per stored routine.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from sproc_sync.config import WrapperSettings
from sproc_sync.errors import ConfigError, WrapperError
from sproc_sync.loader.metadata_store import MetadataStore
from sproc_sync.models import RoutineMetadata
from sproc_sync.naming import NameMangler, SnakeCaseMangler, load_mangler
from sproc_sync.utils.files import write_if_changed
from sproc_sync.wrapper.code_store import PythonCodeStore
from sproc_sync.wrapper.routine_wrapper import RoutineWrapper

logger = logging.getLogger(__name__)


def split_class_reference(reference: str) -> Tuple[str, str]:
    """Split a `module:ClassName` reference."""
    module_name, _, class_name = reference.partition(":")
    if not module_name or not class_name:
        raise ConfigError(f"Class must be given as 'module:ClassName', got {reference!r}")
    return module_name, class_name


@dataclass
class GenerationResult:
    """Outcome of a wrapper generation run."""
    path: Path
    methods: List[str] = field(default_factory=list)
    hidden: List[str] = field(default_factory=list)
    written: bool = False


class WrapperGenerator:
    """
    Generates the wrapper module from the routine metadata.

    Usage:
        generator = WrapperGenerator(settings.wrapper())
        result = generator.run()
    """

    def __init__(self, settings: WrapperSettings, mangler: Optional[NameMangler] = None):
        self.settings = settings
        self.mangler = mangler or load_mangler(settings.mangler) or SnakeCaseMangler()
        self.parent_module, self.parent_class = split_class_reference(settings.parent_class)

    def _parent_alias(self) -> str:
        if self.parent_class == self.settings.wrapper_class:
            return f"_Base{self.parent_class}"
        return self.parent_class

    def write_header(self, code: PythonCodeStore) -> None:
        alias = self._parent_alias()
        parent_import = f"from {self.parent_module} import {self.parent_class}"
        if alias != self.parent_class:
            parent_import += f" as {alias}"

        code.append_lines([
            '"""',
            "Wrapper methods for calling stored routines.",
            "",
            f"Generated from {self.settings.metadata.name}; do not edit.",
            '"""',
            "",
            "from decimal import Decimal",
            "from typing import Any, Dict, List, Optional",
            "",
            "from sproc_sync.runtime import BulkHandler, ResultException",
            parent_import,
            "",
            "",
            f"class {self.settings.wrapper_class}({alias}):",
        ])
        code.indent()
        code.append('"""Typed wrapper methods for the stored routines of the database."""')
        code.dedent()

    def write_footer(self, code: PythonCodeStore) -> None:
        code.append()
        code.indent()
        code.append_separator()
        code.dedent()

    def generate(self, metadata: Dict[str, RoutineMetadata]) -> Tuple[str, GenerationResult]:
        """
        Generate the wrapper module source.

        Routines are emitted in order of routine name; hidden routines are
        skipped. Two routines mapping to the same method name raise a
        WrapperError.

        Returns:
            The module source and the generation summary
        """
        result = GenerationResult(path=self.settings.wrapper_file)
        code = PythonCodeStore()
        self.write_header(code)

        owners: Dict[str, str] = {}
        code.indent()
        for name in sorted(metadata):
            routine = metadata[name]
            if routine.hidden:
                logger.debug(f"Skipping hidden routine {name}")
                result.hidden.append(name)
                continue

            wrapper = RoutineWrapper(routine, code, self.mangler, self.settings.lob_as_string)
            method_name = wrapper.method_name
            if method_name in owners:
                raise WrapperError(
                    f"Routines {owners[method_name]} and {name} both map to method {method_name}"
                )
            owners[method_name] = name

            code.append()
            wrapper.write_method()
            result.methods.append(method_name)
        code.dedent()

        self.write_footer(code)
        return code.get_code(), result

    def run(self) -> GenerationResult:
        """Generate the wrapper module and write it if its content changed."""
        metadata = MetadataStore(self.settings.metadata).load()
        source, result = self.generate(metadata)

        result.written = write_if_changed(self.settings.wrapper_file, source)
        if result.written:
            logger.info(f"Wrote {self.settings.wrapper_file} ({len(result.methods)} methods)")
        else:
            logger.info(f"File {self.settings.wrapper_file} is up to date")

        return result
