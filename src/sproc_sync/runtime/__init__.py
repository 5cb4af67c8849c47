"""
Runtime support imported by generated wrapper modules.

The MySQL data layer lives in `sproc_sync.runtime.mysql` so the driver is only
imported by projects that use it.
"""

from sproc_sync.errors import QueryError, ResultException
from sproc_sync.runtime.data_layer import BulkHandler, DataLayer, PreparedStatement

__all__ = [
    "BulkHandler",
    "DataLayer",
    "PreparedStatement",
    "QueryError",
    "ResultException",
]
