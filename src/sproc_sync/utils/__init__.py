"""Small helpers shared by the loader and the wrapper generator."""

from sproc_sync.utils.files import write_if_changed

__all__ = ["write_if_changed"]
