"""Directory client for Microsoft Graph."""

from .client import DirectoryError, GraphDirectoryClient

__all__ = ["DirectoryError", "GraphDirectoryClient"]
