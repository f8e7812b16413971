"""
Per-identity access token lifecycle with refresh coalescing.

At most one refresh per identity is in flight at a time. Callers that need a
token while a refresh is running wait on the same task, so a burst of requests
for an expiring identity results in exactly one call to the token endpoint and
every caller sees the same outcome.
"""

import asyncio
import time
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional, Set, TYPE_CHECKING

from shared.errors import (
    CredentialNotFoundError,
    ErrorKind,
    ReauthRequiredError,
    TransientRefreshError,
)
from shared.error_classifier import ErrorClassifier
from shared.logging import get_logger, mask_identifier

from .credential_store import CredentialRecord, CredentialStore

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector
    from ..adapters.token_client import TokenEndpointClient


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _consume_result(task: asyncio.Task) -> None:
    # Every waiter may have been cancelled; keep asyncio from warning about it
    if not task.cancelled():
        task.exception()


class TokenLifecycleManager:
    """Hands out valid access tokens, refreshing them shortly before expiry."""

    def __init__(self,
                 store: CredentialStore,
                 token_client: "TokenEndpointClient",
                 *,
                 safety_margin: float = 120.0,
                 classifier: Optional[ErrorClassifier] = None,
                 metrics: Optional["MetricsCollector"] = None,
                 clock: Optional[Callable[[], datetime]] = None):
        self.store = store
        self.token_client = token_client
        self.safety_margin = safety_margin
        self.classifier = classifier or ErrorClassifier()
        self.metrics = metrics
        self._clock = clock or _utcnow
        self._in_flight: Dict[str, asyncio.Task] = {}
        self._background: Set[asyncio.Task] = set()
        self.logger = get_logger("connector.token_manager")

    async def get_valid_token(self, identity_id: str, force_refresh: bool = False) -> str:
        """Return an access token for ``identity_id`` that is not about to expire.

        Raises ``CredentialNotFoundError`` when nothing is stored for the identity,
        ``ReauthRequiredError`` when the refresh token is dead, and
        ``TransientRefreshError`` when the token endpoint failed for another reason.
        """
        pending = self._in_flight.get(identity_id)
        if pending is not None:
            return await self._join(identity_id, pending)

        record = await self.store.load(identity_id)
        if record is None:
            raise CredentialNotFoundError()
        if record.revoked:
            self.logger.warning("Credential revoked", identity=mask_identifier(identity_id))
            raise ReauthRequiredError("Credential revoked; re-authentication required")

        if not force_refresh and record.seconds_until_expiry(self._clock()) > self.safety_margin:
            self._schedule_touch(identity_id)
            return record.access_token

        # Another caller may have started a refresh while the record was loading
        pending = self._in_flight.get(identity_id)
        if pending is not None:
            return await self._join(identity_id, pending)

        task = asyncio.get_running_loop().create_task(self._refresh(record, force_refresh))
        self._in_flight[identity_id] = task
        task.add_done_callback(_consume_result)

        self.logger.info(
            "Refreshing access token",
            identity=mask_identifier(identity_id),
            forced=force_refresh,
        )
        return await asyncio.shield(task)

    async def _join(self, identity_id: str, task: asyncio.Task) -> str:
        self.logger.debug("Joining in-flight token refresh", identity=mask_identifier(identity_id))
        if self.metrics:
            self.metrics.record_refresh_coalesced()
        return await asyncio.shield(task)

    async def _refresh(self, snapshot: CredentialRecord, force_refresh: bool = False) -> str:
        identity_id = snapshot.identity_id
        current = asyncio.current_task()
        started = time.monotonic()
        try:
            # The snapshot may predate a refresh that finished while it was loading
            record = await self.store.load(identity_id)
            if record is None:
                raise CredentialNotFoundError()
            if record.revoked:
                raise ReauthRequiredError("Credential revoked; re-authentication required")
            if record.refresh_token != snapshot.refresh_token or (
                    not force_refresh
                    and record.seconds_until_expiry(self._clock()) > self.safety_margin):
                self.logger.debug(
                    "Credential already refreshed, skipping token endpoint",
                    identity=mask_identifier(identity_id),
                )
                return record.access_token

            try:
                response = await self.token_client.refresh(record.refresh_token)
            except Exception as exc:
                classification = self.classifier.classify(exc)
                if classification.kind == ErrorKind.REAUTH_REQUIRED:
                    self.logger.warning(
                        "Refresh token rejected, re-authentication required",
                        identity=mask_identifier(identity_id),
                        provider_code=classification.code,
                        request_id=classification.request_id,
                    )
                    self._record_refresh("reauth_required", started)
                    raise ReauthRequiredError(
                        request_id=classification.request_id,
                        code=classification.code,
                    ) from exc

                self.logger.error(
                    "Token refresh failed",
                    identity=mask_identifier(identity_id),
                    kind=classification.kind.value,
                    status_code=classification.status_code,
                    provider_code=classification.code,
                    error=classification.message,
                )
                self._record_refresh("failed", started)
                raise TransientRefreshError(classification) from exc

            now = self._clock()
            expires_at = now + timedelta(seconds=response.expires_in)
            await self.store.save(
                identity_id,
                access_token=response.access_token,
                refresh_token=response.refresh_token or record.refresh_token,
                expires_at=expires_at,
                last_used_at=now,
            )
            self._record_refresh("success", started)

            self.logger.info(
                "Access token refreshed",
                identity=mask_identifier(identity_id),
                expires_at=expires_at.isoformat(),
                rotated=bool(response.refresh_token),
            )
            return response.access_token
        finally:
            if self._in_flight.get(identity_id) is current:
                del self._in_flight[identity_id]

    def _record_refresh(self, outcome: str, started: float) -> None:
        if self.metrics:
            self.metrics.record_token_refresh(outcome, time.monotonic() - started)

    def _schedule_touch(self, identity_id: str) -> None:
        task = asyncio.get_running_loop().create_task(self._touch(identity_id))
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _touch(self, identity_id: str) -> None:
        try:
            await self.store.touch_last_used(identity_id)
        except Exception as exc:
            self.logger.debug(
                "Failed to update last-used timestamp",
                identity=mask_identifier(identity_id),
                error=str(exc),
            )

    def is_refreshing(self, identity_id: str) -> bool:
        return identity_id in self._in_flight

    def diagnostics(self) -> Dict[str, Any]:
        """In-flight refreshes, with identities masked."""
        return {
            "count": len(self._in_flight),
            "identities": [mask_identifier(identity_id) for identity_id in self._in_flight],
        }

    async def aclose(self) -> None:
        """Wait for in-flight refreshes and pending last-used updates."""
        pending = list(self._in_flight.values()) + list(self._background)
        if not pending:
            return
        self.logger.info("Draining token manager", tasks=len(pending))
        await asyncio.gather(*pending, return_exceptions=True)
