"""
Directory lookups (mail folders, user addresses) for the Connector service.
"""

from .service import DirectoryService

__all__ = ["DirectoryService"]
