"""Physical storage of attachment files."""

from .files import FileStore, LocalFileStore

__all__ = ["FileStore", "LocalFileStore"]
