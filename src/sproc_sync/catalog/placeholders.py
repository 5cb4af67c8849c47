"""
Placeholder resolution for routine sources.

Routine sources may refer to column types and to named constants through
placeholders, e.g. `@usr.usr_name%type@` or `@C_MAX_NAME_LENGTH@`. The resolver
builds the map from placeholder to literal substitution text once per run.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

from sproc_sync.models import TableColumn

logger = logging.getLogger(__name__)

PLACEHOLDER_PATTERN = re.compile(r"@[A-Za-z0-9_.]+(?:%type)?@", re.IGNORECASE)


def column_type_key(table_name: str, column_name: str) -> str:
    """Return the placeholder key for the type of a table column."""
    return f"@{table_name}.{column_name}%type@".upper()


def constant_key(name: str) -> str:
    """Return the placeholder key for a named constant."""
    return f"@{name}@".upper()


def constant_literal(value: Any) -> str:
    """Render a constant as SQL literal text; numbers verbatim, all else quoted."""
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, (int, float)):
        return str(value)
    text = str(value)
    if re.fullmatch(r"[+-]?\d+(\.\d+)?", text):
        return text
    return "'" + text.replace("'", "''") + "'"


class PlaceholderResolver:
    """
    Builds and applies the map of placeholders to substitution text.

    Sources (later ones shadow earlier ones on equal keys):
    1. Column types of all tables in the schema
    2. Named constants from the configuration
    """

    def __init__(self):
        self.replace_pairs: Dict[str, str] = {}

    def add_column_types(self, columns: Iterable[TableColumn]) -> int:
        """Register a placeholder for the type of each column."""
        count = 0
        for col in columns:
            value = col.column_type
            if col.character_set_name:
                value += f" character set {col.character_set_name}"
            self.replace_pairs[column_type_key(col.table_name, col.column_name)] = value
            count += 1

        logger.info(f"Selected {count} column types for substitution")
        return count

    def add_constants(self, constants: Dict[str, Any]) -> int:
        """Register a placeholder for each named constant."""
        for name, value in constants.items():
            key = constant_key(name)
            if key in self.replace_pairs:
                logger.debug(f"Constant {name} shadows placeholder {key}")
            self.replace_pairs[key] = constant_literal(value)

        logger.info(f"Read {len(constants)} constants for substitution")
        return len(constants)

    def get_replace_pairs(self) -> Dict[str, str]:
        """Return the resolved placeholder map."""
        return self.replace_pairs


def find_placeholders(text: str) -> Set[str]:
    """Return the (upper-cased) placeholders used in a text."""
    return {m.group(0).upper() for m in PLACEHOLDER_PATTERN.finditer(text)}


def substitute(
    text: str,
    replace_pairs: Dict[str, str],
) -> Tuple[str, Dict[str, str], List[str]]:
    """
    Replace all known placeholders in a text.

    Returns:
        Tuple of (substituted text, placeholders used with their values, unknown placeholders)
    """
    used: Dict[str, str] = {}
    unknown: List[str] = []

    def replace(match: re.Match) -> str:
        key = match.group(0).upper()
        value: Optional[str] = replace_pairs.get(key)
        if value is None:
            if key not in unknown:
                unknown.append(key)
            return match.group(0)
        used[key] = value
        return value

    return PLACEHOLDER_PATTERN.sub(replace, text), used, unknown
