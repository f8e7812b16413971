"""
Unit tests for the Connector directory service.
"""

from unittest.mock import AsyncMock

import pytest

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from service_connector.app.directory.service import DirectoryService


IDENTITY = "ms-user-0001"


class FakeAuthenticatedCall:
    """Runs operations with a fixed token and counts them."""

    def __init__(self):
        self.calls = 0

    async def __call__(self, identity_id, operation, retry_config=None):
        self.calls += 1
        return await operation("at-test")


class TestDirectoryService:
    """Test cases for DirectoryService."""

    @pytest.fixture
    def mock_folders(self):
        """Graph mail folder listing."""
        return {
            "value": [
                {"id": "AAMk-inbox", "displayName": "Inbox", "totalItemCount": 10, "unreadItemCount": 2},
                {"id": "AAMk-sent", "displayName": "Sent Items", "totalItemCount": 4, "unreadItemCount": 0},
                {"id": "drafts", "displayName": "Brouillons", "totalItemCount": 1, "unreadItemCount": 0},
                {"id": "AAMk-receipts", "displayName": "Receipts", "totalItemCount": 3, "unreadItemCount": 1},
            ]
        }

    @pytest.fixture
    def graph(self, mock_folders):
        """Graph client mock."""
        graph = AsyncMock()
        graph.send.return_value = mock_folders
        return graph

    @pytest.fixture
    def authenticated_call(self):
        """Authenticated call stand-in."""
        return FakeAuthenticatedCall()

    @pytest.fixture
    def directory(self, authenticated_call, graph):
        """Create DirectoryService instance."""
        return DirectoryService(authenticated_call, graph, folder_ttl=300.0, address_ttl=300.0)

    @pytest.mark.asyncio
    async def test_list_folders_annotates_labels(self, directory, graph):
        folders = await directory.list_folders(IDENTITY)

        graph.send.assert_awaited_once_with(
            "GET", "/me/mailFolders", "at-test",
            params={"$select": "id,displayName,totalItemCount,unreadItemCount"},
        )
        assert [folder["canonical_label"] for folder in folders] == ["INBOX", "SENT", "DRAFT", None]
        assert folders[0] == {
            "id": "AAMk-inbox",
            "name": "Inbox",
            "type": "user",
            "messages_total": 10,
            "messages_unread": 2,
            "canonical_label": "INBOX",
        }

    @pytest.mark.asyncio
    async def test_list_folders_is_cached(self, directory, authenticated_call):
        first = await directory.list_folders(IDENTITY)
        second = await directory.list_folders(IDENTITY)

        assert first == second
        assert authenticated_call.calls == 1

    @pytest.mark.asyncio
    async def test_create_folder_invalidates_cache(self, directory, graph, authenticated_call):
        await directory.list_folders(IDENTITY)
        graph.send.return_value = {"id": "AAMk-new", "displayName": "Invoices"}

        created = await directory.create_folder(IDENTITY, "Invoices")

        assert created == {"id": "AAMk-new", "name": "Invoices", "type": "user"}
        assert directory.folder_cache.get(IDENTITY) is None
        graph.send.assert_awaited_with("POST", "/me/mailFolders", "at-test", json={"displayName": "Invoices"})

    @pytest.mark.asyncio
    async def test_failed_create_keeps_cache(self, directory, graph):
        await directory.list_folders(IDENTITY)
        graph.send.side_effect = RuntimeError("boom")

        with pytest.raises(RuntimeError):
            await directory.create_folder(IDENTITY, "Invoices")

        assert directory.folder_cache.get(IDENTITY) is not None

    @pytest.mark.asyncio
    async def test_user_addresses(self, directory, graph, authenticated_call):
        graph.send.return_value = {
            "mail": "john.doe@contoso.example",
            "userPrincipalName": "jdoe@contoso.example",
            "proxyAddresses": [
                "SMTP:john.doe@contoso.example",
                "smtp:jd@contoso.example",
                "SMTP:john@contoso.example",
                "X500:/o=Contoso",
            ],
        }

        addresses = await directory.get_user_addresses(IDENTITY)
        await directory.get_user_addresses(IDENTITY)

        assert addresses == ["john.doe@contoso.example", "jdoe@contoso.example", "john@contoso.example"]
        assert authenticated_call.calls == 1

    @pytest.mark.asyncio
    async def test_user_addresses_without_mail(self, directory, graph):
        graph.send.return_value = {"mail": None, "userPrincipalName": "jdoe@contoso.example"}

        assert await directory.get_user_addresses(IDENTITY) == ["jdoe@contoso.example"]

    @pytest.mark.asyncio
    async def test_diagnostics_are_masked(self, directory):
        await directory.list_folders(IDENTITY)

        diagnostics = directory.diagnostics()

        assert diagnostics["folders"]["entries"][0]["key"] == "ms-…01"
        assert diagnostics["folders"]["entries"][0]["summary"] == {"count": 4}
        assert diagnostics["addresses"]["size"] == 0
        assert IDENTITY not in str(diagnostics)

    @pytest.mark.asyncio
    async def test_flush_selected_cache(self, directory, graph):
        await directory.list_folders(IDENTITY)
        graph.send.return_value = {"mail": "a@contoso.example"}
        await directory.get_user_addresses(IDENTITY)

        assert directory.flush_caches(["folders"]) == {"folders": 1}
        assert len(directory.address_cache) == 1

    @pytest.mark.parametrize("targets", [None, [], ["bogus"]])
    def test_flush_defaults_to_all_caches(self, directory, targets):
        directory.folder_cache.set(IDENTITY, [])
        directory.address_cache.set(IDENTITY, [])

        assert directory.flush_caches(targets) == {"folders": 1, "addresses": 1}
