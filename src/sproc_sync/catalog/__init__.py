"""
Live database catalog access and placeholder resolution.

Provides the catalog reader used by the loader to enumerate stored routines,
column types and routine parameters, and the resolver that turns column types
and named constants into placeholder substitutions.
"""

from sproc_sync.catalog.mysql import MySqlCatalog
from sproc_sync.catalog.placeholders import PlaceholderResolver, find_placeholders, substitute

__all__ = [
    "MySqlCatalog",
    "PlaceholderResolver",
    "find_placeholders",
    "substitute",
]
