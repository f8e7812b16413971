"""
Microsoft Graph client for bearer-authenticated JSON calls.
"""

from typing import Any, Dict, Optional

import httpx

from shared.errors import ProviderHTTPError
from shared.logging import get_logger
from shared.retry import RetryConfig, RetryExecutor


class GraphApiError(ProviderHTTPError):
    """Non-2xx response from Graph."""

    @classmethod
    def from_response(cls, response: httpx.Response) -> "GraphApiError":
        try:
            body = response.json()
        except ValueError:
            body = response.text or None

        code = None
        message = f"Graph request failed with HTTP {response.status_code}"
        if isinstance(body, dict) and isinstance(body.get("error"), dict):
            code = body["error"].get("code")
            message = body["error"].get("message") or message

        return cls(
            response.status_code,
            message,
            code=code,
            headers=response.headers,
            body=body,
        )


class GraphClient:
    """Thin Graph wrapper.

    ``request`` and the verb helpers retry transient failures; ``send`` is a single
    attempt, for callers that already run inside a retry executor.
    """

    def __init__(self,
                 base_url: str = "https://graph.microsoft.com/v1.0",
                 *,
                 timeout: float = 10.0,
                 transport: Optional[httpx.AsyncBaseTransport] = None,
                 retry_executor: Optional[RetryExecutor] = None,
                 retry_config: Optional[RetryConfig] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport
        self.retry_executor = retry_executor or RetryExecutor()
        self.retry_config = retry_config or RetryConfig()
        self.logger = get_logger("connector.graph_client")

    async def request(self,
                      method: str,
                      path: str,
                      access_token: str,
                      *,
                      params: Optional[Dict[str, Any]] = None,
                      json: Any = None,
                      timeout: Optional[float] = None,
                      retry_config: Optional[RetryConfig] = None) -> Any:
        """Send a request with retries; returns the decoded JSON body (``None`` for 204)."""

        async def _send():
            return await self.send(method, path, access_token, params=params, json=json, timeout=timeout)

        return await self.retry_executor.execute(_send, retry_config or self.retry_config)

    async def send(self, method: str, path: str, access_token: str, *,
                   params: Optional[Dict[str, Any]] = None, json: Any = None,
                   timeout: Optional[float] = None) -> Any:
        """Send a single request without retries."""
        url = f"{self.base_url}/{path.lstrip('/')}"
        headers = {
            "Authorization": f"Bearer {access_token}",
            "Accept": "application/json",
        }

        async with httpx.AsyncClient(timeout=timeout or self.timeout, transport=self._transport) as client:
            response = await client.request(method, url, headers=headers, params=params, json=json)

        if response.status_code >= 400:
            error = GraphApiError.from_response(response)
            self.logger.debug(
                "Graph request failed",
                method=method,
                path=path,
                status_code=response.status_code,
                provider_code=error.code,
            )
            raise error

        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    async def get(self, path: str, access_token: str, **kwargs) -> Any:
        return await self.request("GET", path, access_token, **kwargs)

    async def post(self, path: str, access_token: str, **kwargs) -> Any:
        return await self.request("POST", path, access_token, **kwargs)

    async def patch(self, path: str, access_token: str, **kwargs) -> Any:
        return await self.request("PATCH", path, access_token, **kwargs)

    async def put(self, path: str, access_token: str, **kwargs) -> Any:
        return await self.request("PUT", path, access_token, **kwargs)

    async def delete(self, path: str, access_token: str, **kwargs) -> Any:
        return await self.request("DELETE", path, access_token, **kwargs)
