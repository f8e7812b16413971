"""
Credential records and the store interface consumed by the token manager.
"""

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from shared.logging import get_logger


@dataclass(frozen=True)
class CredentialRecord:
    """Durable per-identity access/refresh token pair."""
    identity_id: str
    access_token: str
    refresh_token: str
    expires_at: datetime
    last_used_at: Optional[datetime] = None
    revoked: bool = False
    token_type: str = "Bearer"
    scope: Optional[str] = None

    def seconds_until_expiry(self, now: datetime) -> float:
        """Seconds remaining before the access token expires (negative once expired)."""
        expires_at = self.expires_at
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        return (expires_at - now).total_seconds()


class CredentialStore(ABC):
    """Persistent store of credential records, keyed by identity id."""

    @abstractmethod
    async def load(self, identity_id: str) -> Optional[CredentialRecord]:
        """Return the record for ``identity_id`` or ``None``."""

    @abstractmethod
    async def save(self, identity_id: str, **fields: Any) -> None:
        """Persist the given fields of an existing record (last write wins)."""

    @abstractmethod
    async def touch_last_used(self, identity_id: str) -> None:
        """Record that the identity's access token was just used."""


class InMemoryCredentialStore(CredentialStore):
    """Process-local store, used by tests and local development."""

    def __init__(self, records: Optional[Dict[str, CredentialRecord]] = None):
        self._records: Dict[str, CredentialRecord] = dict(records or {})
        self._lock = asyncio.Lock()
        self.logger = get_logger("connector.credential_store")

    def add(self, record: CredentialRecord) -> None:
        """Register a record, as the authorization-code flow would on first login."""
        self._records[record.identity_id] = record

    async def load(self, identity_id: str) -> Optional[CredentialRecord]:
        return self._records.get(identity_id)

    async def save(self, identity_id: str, **fields: Any) -> None:
        async with self._lock:
            record = self._records.get(identity_id)
            if record is None:
                raise KeyError(identity_id)
            self._records[identity_id] = replace(record, **fields)
        self.logger.debug("Credential record updated", fields=sorted(fields))

    async def touch_last_used(self, identity_id: str) -> None:
        async with self._lock:
            record = self._records.get(identity_id)
            if record is not None:
                self._records[identity_id] = replace(record, last_used_at=datetime.now(timezone.utc))
