"""
Cached mail folder directory and user address lookups.
"""

from typing import Any, Dict, Iterable, List, Optional, TYPE_CHECKING

from shared.logging import get_logger, mask_identifier

from ..caching.resource_cache import ResourceCache
from ..translation.folders import to_canonical_folder

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector
    from ..adapters.authenticated_call import AuthenticatedCall
    from ..adapters.graph_client import GraphClient


DEFAULT_FOLDER_TTL = 300.0
DEFAULT_ADDRESS_TTL = 300.0

FOLDER_FIELDS = "id,displayName,totalItemCount,unreadItemCount"
ADDRESS_FIELDS = "mail,userPrincipalName,proxyAddresses"

CACHE_TARGETS = ("folders", "addresses")


def _canonical_label(folder: Dict[str, Any]) -> Optional[str]:
    label = to_canonical_folder(folder.get("id") or "")
    if label is None and folder.get("displayName"):
        # "Sent Items" -> "sentitems"
        label = to_canonical_folder(folder["displayName"].replace(" ", ""))
    return label


class DirectoryService:
    """Per-identity folder and address lookups with short-lived caching."""

    def __init__(self,
                 authenticated_call: "AuthenticatedCall",
                 graph_client: "GraphClient",
                 *,
                 folder_ttl: float = DEFAULT_FOLDER_TTL,
                 address_ttl: float = DEFAULT_ADDRESS_TTL,
                 metrics: Optional["MetricsCollector"] = None):
        self.authenticated_call = authenticated_call
        self.graph = graph_client
        self.logger = get_logger("connector.directory")
        self.folder_cache = ResourceCache(
            "folders",
            folder_ttl,
            metrics=metrics,
            value_summary=lambda folders: {"count": len(folders)},
        )
        self.address_cache = ResourceCache(
            "addresses",
            address_ttl,
            metrics=metrics,
            value_summary=lambda addresses: {"count": len(addresses)},
        )

    async def list_folders(self, identity_id: str) -> List[Dict[str, Any]]:
        """List the identity's mail folders, each annotated with its system label."""
        cached = self.folder_cache.get(identity_id)
        if cached is not None:
            return cached

        async def list_mail_folders(access_token: str):
            return await self.graph.send(
                "GET", "/me/mailFolders", access_token,
                params={"$select": FOLDER_FIELDS},
            )

        response = await self.authenticated_call(identity_id, list_mail_folders)

        folders = [
            {
                "id": folder.get("id"),
                "name": folder.get("displayName"),
                "type": "user",
                "messages_total": folder.get("totalItemCount"),
                "messages_unread": folder.get("unreadItemCount"),
                "canonical_label": _canonical_label(folder),
            }
            for folder in (response or {}).get("value", [])
        ]

        self.folder_cache.set(identity_id, folders)
        self.logger.info("Listed mail folders", identity=mask_identifier(identity_id), count=len(folders))
        return folders

    async def create_folder(self, identity_id: str, name: str) -> Dict[str, Any]:
        """Create a mail folder; the identity's cached folder list is dropped first."""

        async def create_mail_folder(access_token: str):
            return await self.graph.send(
                "POST", "/me/mailFolders", access_token,
                json={"displayName": name},
            )

        folder = await self.authenticated_call(identity_id, create_mail_folder)
        self.folder_cache.invalidate(identity_id)

        self.logger.info("Created mail folder", identity=mask_identifier(identity_id), name=name)
        return {
            "id": folder.get("id"),
            "name": folder.get("displayName"),
            "type": "user",
        }

    async def get_user_addresses(self, identity_id: str) -> List[str]:
        """Primary mail, UPN and SMTP proxy addresses of the identity."""
        cached = self.address_cache.get(identity_id)
        if cached is not None:
            return cached

        async def get_profile(access_token: str):
            return await self.graph.send(
                "GET", "/me", access_token,
                params={"$select": ADDRESS_FIELDS},
            )

        user = await self.authenticated_call(identity_id, get_profile) or {}

        addresses: List[str] = []
        candidates = [user.get("mail"), user.get("userPrincipalName")]
        candidates.extend(
            proxy[len("SMTP:"):]
            for proxy in user.get("proxyAddresses") or []
            if proxy.startswith("SMTP:")
        )
        for address in candidates:
            if address and address not in addresses:
                addresses.append(address)

        self.address_cache.set(identity_id, addresses)
        return addresses

    def diagnostics(self) -> Dict[str, Any]:
        return {
            "folders": self.folder_cache.describe(),
            "addresses": self.address_cache.describe(),
        }

    def flush_caches(self, targets: Optional[Iterable[str]] = None) -> Dict[str, int]:
        """Clear the named caches; no (or only unknown) targets clears both."""
        selected = [target for target in (targets or []) if target in CACHE_TARGETS]
        if not selected:
            selected = list(CACHE_TARGETS)

        caches = {"folders": self.folder_cache, "addresses": self.address_cache}
        cleared = {target: caches[target].invalidate_all() for target in selected}
        self.logger.info("Directory caches flushed", cleared=cleared)
        return cleared
