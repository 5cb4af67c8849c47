"""
Name mangling strategies.

A mangler turns routine and parameter names into Python identifiers for the
generated wrapper module. The loader uses the configured mangler to detect
sources that would produce wrapper methods with equal names.
"""

from __future__ import annotations

import importlib
import keyword
import logging
import re
from typing import Optional

from sproc_sync.errors import ConfigError

logger = logging.getLogger(__name__)


class NameMangler:
    """Interface of a name mangling strategy."""

    def method_name(self, routine_name: str) -> str:
        raise NotImplementedError

    def parameter_name(self, parameter_name: str) -> str:
        raise NotImplementedError


def _identifier(name: str) -> str:
    name = re.sub(r"\W", "_", name)
    if name and name[0].isdigit():
        name = "_" + name
    if keyword.iskeyword(name):
        name += "_"
    return name


class SnakeCaseMangler(NameMangler):
    """
    Keeps routine and parameter names, lower-cased.

    Routines `tst_Foo` and `tst_foo` map onto the same method name and are
    therefore reported as conflicting.
    """

    def method_name(self, routine_name: str) -> str:
        return _identifier(routine_name.lower())

    def parameter_name(self, parameter_name: str) -> str:
        return _identifier(parameter_name.lower())


class PrefixStrippingMangler(SnakeCaseMangler):
    """Like SnakeCaseMangler, but drops the `p_` prefix of parameter names."""

    def parameter_name(self, parameter_name: str) -> str:
        name = parameter_name.lower()
        if name.startswith("p_") and len(name) > 2:
            name = name[2:]
        return _identifier(name)


def load_mangler(spec: Optional[str]) -> Optional[NameMangler]:
    """
    Instantiate a mangler from a `module:ClassName` reference.

    Args:
        spec: Reference to the mangler class, or None

    Returns:
        The mangler, or None when no mangler is configured
    """
    if not spec:
        return None

    module_name, _, class_name = spec.partition(":")
    if not class_name:
        raise ConfigError(f"Mangler must be given as 'module:ClassName', got {spec!r}")

    try:
        module = importlib.import_module(module_name)
        mangler_class = getattr(module, class_name)
    except (ImportError, AttributeError) as e:
        raise ConfigError(f"Unable to load mangler {spec!r}: {e}") from e

    logger.debug(f"Using name mangler {spec}")
    return mangler_class()
