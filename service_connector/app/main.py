"""
Graph connector service for the access layer.

Exposes the credential and resilience core over HTTP for operators: token
status per identity, in-flight refresh and cache diagnostics, and cache flushes.
"""

from datetime import datetime, timezone
from typing import List, Optional

import httpx
from pydantic import BaseModel

from shared.base_service import BaseService
from shared.error_classifier import ErrorClassifier
from shared.logging import mask_identifier, set_identity_context
from shared.retry import MetricsRetryObserver, RetryConfig, RetryExecutor

from .adapters.authenticated_call import AuthenticatedCall
from .adapters.graph_client import GraphClient
from .adapters.token_client import TokenEndpointClient
from .auth.credential_store import CredentialStore, InMemoryCredentialStore
from .auth.token_manager import TokenLifecycleManager
from .directory.service import DirectoryService


class CacheFlushRequest(BaseModel):
    targets: List[str] = []


class ConnectorService(BaseService):
    """Graph connector service implementation."""

    def __init__(self,
                 store: Optional[CredentialStore] = None,
                 *,
                 token_transport: Optional[httpx.AsyncBaseTransport] = None,
                 graph_transport: Optional[httpx.AsyncBaseTransport] = None):
        super().__init__("connector", 8010)

        self.classifier = ErrorClassifier()
        self.retry_config = RetryConfig.from_settings(self.config)
        self.retry_executor = RetryExecutor(
            self.classifier,
            observer=MetricsRetryObserver(self.metrics),
        )

        # Deployments inject a durable store; the in-memory one serves local runs
        self.credential_store = store or InMemoryCredentialStore()
        self.token_client = TokenEndpointClient(
            self.config.token_endpoint,
            self.config.client_id,
            self.config.client_secret,
            self.config.oauth_scopes,
            timeout=self.config.request_timeout_seconds,
            transport=token_transport,
        )
        self.token_manager = TokenLifecycleManager(
            self.credential_store,
            self.token_client,
            safety_margin=self.config.token_refresh_safety_margin_seconds,
            classifier=self.classifier,
            metrics=self.metrics,
        )
        self.graph_client = GraphClient(
            self.config.graph_base_url,
            timeout=self.config.request_timeout_seconds,
            transport=graph_transport,
            retry_executor=self.retry_executor,
            retry_config=self.retry_config,
        )
        self.authenticated_call = AuthenticatedCall(
            self.token_manager,
            retry_executor=self.retry_executor,
            retry_config=self.retry_config,
            classifier=self.classifier,
        )
        self.directory = DirectoryService(
            self.authenticated_call,
            self.graph_client,
            folder_ttl=self.config.folder_cache_ttl_seconds,
            address_ttl=self.config.address_cache_ttl_seconds,
            metrics=self.metrics,
        )

        @self.app.on_event("shutdown")
        async def _shutdown():
            await self.token_manager.aclose()

        self._setup_connector_routes()

    def _setup_connector_routes(self):
        """Set up connector routes."""

        @self.app.get("/auth/status/{identity_id}")
        async def auth_status(identity_id: str):
            """Whether the identity holds a usable credential. Never returns token material."""
            set_identity_context(identity_id)
            await self.token_manager.get_valid_token(identity_id)
            record = await self.credential_store.load(identity_id)

            return {
                "identity": mask_identifier(identity_id),
                "authenticated": True,
                "expires_at": record.expires_at.isoformat() if record else None,
                "expires_in_seconds": (
                    round(record.seconds_until_expiry(datetime.now(timezone.utc)), 1) if record else None
                ),
                "refreshing": self.token_manager.is_refreshing(identity_id),
            }

        @self.app.get("/debug/diagnostics")
        async def diagnostics():
            """In-flight refreshes and cache contents, identities masked."""
            return {
                "service": self.service_name,
                "in_flight_refreshes": self.token_manager.diagnostics(),
                "caches": self.directory.diagnostics(),
            }

        @self.app.post("/debug/caches/flush")
        async def flush_caches(request: CacheFlushRequest):
            """Flush directory caches."""
            cleared = self.directory.flush_caches(request.targets)
            return {"cleared": cleared}

    async def _check_dependencies(self):
        """Configured upstream hosts; no network probe."""
        return {
            "identity_platform": httpx.URL(self.config.token_endpoint).host or "unconfigured",
            "graph": httpx.URL(self.config.graph_base_url).host or "unconfigured",
        }


def create_app(store: Optional[CredentialStore] = None, **kwargs):
    """Create FastAPI application."""
    service = ConnectorService(store, **kwargs)
    return service.app


if __name__ == "__main__":
    service = ConnectorService()
    service.run()
