"""
Mock identity platform and Graph server for integration tests.

Serves the refresh grant on ``/{tenant}/oauth2/v2.0/token`` and a small slice of
Graph under ``/v1.0`` (``/me``, ``/me/mailFolders``). Failures can be queued per
route to exercise throttling, outages and token rejection.
"""

import itertools
from collections import defaultdict, deque
from typing import Any, Deque, Dict, List, Optional

from fastapi import FastAPI, Form, Header, Request
from fastapi.responses import JSONResponse

from shared.logging import get_logger


class MockIdentityServer:
    """Mock identity platform + Graph implementation."""

    def __init__(self, *, expires_in: int = 3600, rotate_refresh_tokens: bool = True):
        self.logger = get_logger("mock.identity")
        self.app = FastAPI(title="Mock Identity Platform", version="1.0.0")
        self.expires_in = expires_in
        self.rotate_refresh_tokens = rotate_refresh_tokens

        self._counter = itertools.count(1)
        self.refresh_tokens: Dict[str, str] = {}
        self.access_tokens: Dict[str, str] = {}
        self.users: Dict[str, Dict[str, Any]] = {}
        self.folders: Dict[str, List[Dict[str, Any]]] = {}
        self.request_counts: Dict[str, int] = defaultdict(int)
        self._failures: Dict[str, Deque[Dict[str, Any]]] = defaultdict(deque)

        self._setup_routes()

    def add_user(self, identity_id: str, refresh_token: str, *,
                 mail: Optional[str] = None,
                 proxy_addresses: Optional[List[str]] = None) -> None:
        """Register a user holding ``refresh_token``."""
        mail = mail or f"{identity_id}@contoso.example"
        self.refresh_tokens[refresh_token] = identity_id
        self.users[identity_id] = {
            "id": identity_id,
            "mail": mail,
            "userPrincipalName": mail,
            "proxyAddresses": proxy_addresses or [f"SMTP:{mail}"],
        }
        self.folders[identity_id] = [
            {"id": f"AAMk{identity_id}-{name}", "displayName": display, "totalItemCount": 0, "unreadItemCount": 0}
            for name, display in (
                ("inbox", "Inbox"),
                ("sent", "Sent Items"),
                ("drafts", "Drafts"),
                ("junk", "Junk Email"),
                ("deleted", "Deleted Items"),
                ("archive", "Archive"),
            )
        ]

    def revoke(self, refresh_token: str) -> None:
        self.refresh_tokens.pop(refresh_token, None)

    def expire_access_tokens(self, identity_id: str) -> None:
        """Make Graph reject every access token issued to the identity."""
        for token, owner in list(self.access_tokens.items()):
            if owner == identity_id:
                del self.access_tokens[token]

    def fail_next(self, route: str, status_code: int, code: str, *,
                  headers: Optional[Dict[str, str]] = None, times: int = 1) -> None:
        """Queue ``times`` failures for ``route`` ("token", "me", "mailFolders")."""
        for _ in range(times):
            self._failures[route].append({"status_code": status_code, "code": code, "headers": headers or {}})

    def _queued_failure(self, route: str) -> Optional[JSONResponse]:
        self.request_counts[route] += 1
        if not self._failures[route]:
            return None
        failure = self._failures[route].popleft()
        if route == "token":
            content = {"error": failure["code"], "error_description": f"Injected {failure['code']}"}
        else:
            content = {"error": {"code": failure["code"], "message": f"Injected {failure['code']}"}}
        return JSONResponse(status_code=failure["status_code"], content=content, headers=failure["headers"])

    def _identity_for(self, authorization: Optional[str]) -> Optional[str]:
        if not authorization or not authorization.startswith("Bearer "):
            return None
        return self.access_tokens.get(authorization[len("Bearer "):])

    @staticmethod
    def _invalid_token() -> JSONResponse:
        return JSONResponse(
            status_code=401,
            content={"error": {"code": "InvalidAuthenticationToken", "message": "Access token has expired."}},
        )

    def _setup_routes(self):
        """Set up mock routes."""

        @self.app.post("/{tenant}/oauth2/v2.0/token")
        async def token_endpoint(
            tenant: str,
            grant_type: str = Form(...),
            client_id: Optional[str] = Form(None),
            refresh_token: Optional[str] = Form(None),
            client_secret: Optional[str] = Form(None),
            scope: Optional[str] = Form(None),
        ):
            """Refresh grant."""
            failure = self._queued_failure("token")
            if failure is not None:
                return failure

            if grant_type != "refresh_token":
                return JSONResponse(
                    status_code=400,
                    content={"error": "unsupported_grant_type", "error_description": "Only refresh_token is supported"},
                )

            identity_id = self.refresh_tokens.get(refresh_token or "")
            if identity_id is None:
                return JSONResponse(
                    status_code=400,
                    content={
                        "error": "invalid_grant",
                        "error_description": "AADSTS70008: The refresh token has expired or was revoked.",
                        "correlation_id": f"corr-{next(self._counter)}",
                    },
                )

            access_token = f"at-{identity_id}-{next(self._counter)}"
            self.access_tokens[access_token] = identity_id
            payload = {
                "token_type": "Bearer",
                "scope": scope or "",
                "expires_in": self.expires_in,
                "access_token": access_token,
            }

            if self.rotate_refresh_tokens:
                new_refresh_token = f"rt-{identity_id}-{next(self._counter)}"
                del self.refresh_tokens[refresh_token]
                self.refresh_tokens[new_refresh_token] = identity_id
                payload["refresh_token"] = new_refresh_token

            self.logger.info("Issued access token", tenant=tenant, rotated=self.rotate_refresh_tokens)
            return payload

        @self.app.get("/v1.0/me")
        async def me(authorization: Optional[str] = Header(None)):
            """Signed-in user profile."""
            failure = self._queued_failure("me")
            if failure is not None:
                return failure

            identity_id = self._identity_for(authorization)
            if identity_id is None:
                return self._invalid_token()
            return self.users[identity_id]

        @self.app.get("/v1.0/me/mailFolders")
        async def list_mail_folders(authorization: Optional[str] = Header(None)):
            """Mail folders of the signed-in user."""
            failure = self._queued_failure("mailFolders")
            if failure is not None:
                return failure

            identity_id = self._identity_for(authorization)
            if identity_id is None:
                return self._invalid_token()
            return {"value": list(self.folders[identity_id])}

        @self.app.post("/v1.0/me/mailFolders")
        async def create_mail_folder(request: Request, authorization: Optional[str] = Header(None)):
            """Create a mail folder."""
            failure = self._queued_failure("mailFolders")
            if failure is not None:
                return failure

            identity_id = self._identity_for(authorization)
            if identity_id is None:
                return self._invalid_token()

            body = await request.json()
            folder = {
                "id": f"AAMk{identity_id}-{next(self._counter)}",
                "displayName": body["displayName"],
                "totalItemCount": 0,
                "unreadItemCount": 0,
            }
            self.folders[identity_id].append(folder)
            return JSONResponse(status_code=201, content=folder)


def create_app(**kwargs) -> FastAPI:
    """Create the mock server application."""
    return MockIdentityServer(**kwargs).app


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(create_app(), host="0.0.0.0", port=8090)
