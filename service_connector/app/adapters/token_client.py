"""
Identity platform token endpoint client (refresh grant).
"""

from dataclasses import dataclass
from typing import Optional, Sequence, Union

import httpx

from shared.errors import ProviderHTTPError
from shared.logging import get_logger


class TokenEndpointError(ProviderHTTPError):
    """Raised when the token endpoint rejects a grant or answers malformed."""

    @classmethod
    def from_response(cls, response: httpx.Response) -> "TokenEndpointError":
        try:
            body = response.json()
        except ValueError:
            body = {"error_description": response.text}
        if not isinstance(body, dict):
            body = {"error_description": str(body)}
        error = body.get("error")
        description = body.get("error_description") or error or f"HTTP {response.status_code}"
        return cls(
            response.status_code,
            f"Token refresh failed: {description}",
            code=error if isinstance(error, str) else None,
            headers=response.headers,
            body=body,
        )


@dataclass(frozen=True)
class TokenResponse:
    """Successful refresh grant payload."""
    access_token: str
    expires_in: int
    refresh_token: Optional[str] = None
    token_type: str = "Bearer"
    scope: Optional[str] = None


class TokenEndpointClient:
    """Client for the OAuth 2.0 token endpoint."""

    def __init__(self,
                 token_endpoint: str,
                 client_id: str,
                 client_secret: str,
                 scopes: Union[str, Sequence[str]],
                 *,
                 timeout: float = 10.0,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.token_endpoint = token_endpoint
        self.client_id = client_id
        self.client_secret = client_secret
        self.scopes = scopes if isinstance(scopes, str) else " ".join(scopes)
        self.timeout = timeout
        self._transport = transport
        self.logger = get_logger("connector.token_client")

    async def refresh(self, refresh_token: str) -> TokenResponse:
        """Exchange a refresh token for a new access token.

        The identity platform rotates refresh tokens; a response without one means
        the previous refresh token stays valid, so ``refresh_token`` is ``None``
        and the caller keeps its stored value.
        """
        payload = {
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "grant_type": "refresh_token",
            "refresh_token": refresh_token,
            "scope": self.scopes,
        }

        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            response = await client.post(self.token_endpoint, data=payload)

        if response.status_code != 200:
            error = TokenEndpointError.from_response(response)
            self.logger.warning(
                "Token endpoint rejected refresh grant",
                status_code=response.status_code,
                error=error.code,
            )
            raise error

        data = response.json()
        access_token = data.get("access_token")
        expires_in = data.get("expires_in")
        if not access_token or not expires_in:
            raise TokenEndpointError(
                response.status_code,
                "Incomplete refresh payload returned from token endpoint",
                headers=response.headers,
                body=data,
            )

        if not data.get("refresh_token"):
            self.logger.info("No refresh token in response, keeping the stored one")

        return TokenResponse(
            access_token=access_token,
            expires_in=int(expires_in),
            refresh_token=data.get("refresh_token") or None,
            token_type=data.get("token_type", "Bearer"),
            scope=data.get("scope"),
        )
