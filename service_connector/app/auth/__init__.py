"""
Credential storage and token lifecycle for the Connector service.
"""

from .credential_store import CredentialRecord, CredentialStore, InMemoryCredentialStore
from .token_manager import TokenLifecycleManager

__all__ = [
    "CredentialRecord",
    "CredentialStore",
    "InMemoryCredentialStore",
    "TokenLifecycleManager",
]
