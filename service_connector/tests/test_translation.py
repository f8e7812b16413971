"""
Unit tests for timezone and folder translation tables.
"""

import pytest

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from service_connector.app.translation import (
    is_supported_canonical_timezone,
    is_supported_provider_timezone,
    supported_canonical_timezones,
    supported_labels,
    supported_provider_timezones,
    to_canonical_datetime,
    to_canonical_folder,
    to_canonical_timezone,
    to_provider_datetime,
    to_provider_folder,
    to_provider_folders,
    to_provider_timezone,
)


class TestTimezoneTranslation:
    """Test cases for timezone translation."""

    @pytest.mark.parametrize("iana, windows", [
        ("Europe/Prague", "Central Europe Standard Time"),
        ("America/New_York", "Eastern Standard Time"),
        ("Asia/Kolkata", "India Standard Time"),
        ("Australia/Sydney", "AUS Eastern Standard Time"),
        ("Etc/UTC", "UTC"),
    ])
    def test_to_provider(self, iana, windows):
        assert to_provider_timezone(iana) == windows

    def test_to_canonical_picks_first_listed_name(self):
        assert to_canonical_timezone("W. Europe Standard Time") == "Europe/Berlin"
        assert to_canonical_timezone("China Standard Time") == "Asia/Shanghai"
        assert to_canonical_timezone("UTC") == "UTC"

    @pytest.mark.parametrize("value", ["", None, "Mars/Olympus_Mons"])
    def test_unknown_canonical_falls_back_to_utc(self, value):
        assert to_provider_timezone(value) == "UTC"

    @pytest.mark.parametrize("value", ["", None, "Martian Standard Time"])
    def test_unknown_provider_falls_back_to_utc(self, value):
        assert to_canonical_timezone(value) == "UTC"

    def test_round_trip_is_stable_on_second_pass(self):
        for name in supported_canonical_timezones():
            once = to_canonical_timezone(to_provider_timezone(name))
            twice = to_canonical_timezone(to_provider_timezone(once))
            assert once == twice

    def test_round_trip_collapses_to_primary_name(self):
        assert to_canonical_timezone(to_provider_timezone("Europe/Rome")) == "Europe/Berlin"

    def test_supported_lists(self):
        canonical = supported_canonical_timezones()
        provider = supported_provider_timezones()

        assert "Europe/Prague" in canonical
        assert len(provider) == len(set(provider))
        assert is_supported_canonical_timezone("Pacific/Auckland")
        assert not is_supported_canonical_timezone("Pacific/Nowhere")
        assert is_supported_provider_timezone("New Zealand Standard Time")
        assert not is_supported_provider_timezone("Europe/Prague")

    def test_datetime_pairs(self):
        provider = to_provider_datetime({"dateTime": "2025-11-20T10:00:00", "timeZone": "Europe/Prague"})

        assert provider == {"dateTime": "2025-11-20T10:00:00", "timeZone": "Central Europe Standard Time"}
        assert to_canonical_datetime(provider) == {"dateTime": "2025-11-20T10:00:00", "timeZone": "Europe/Prague"}

    def test_datetime_pair_with_unknown_zone(self):
        assert to_provider_datetime({"dateTime": "2025-11-20T10:00:00", "timeZone": "Nowhere"})["timeZone"] == "UTC"


class TestFolderTranslation:
    """Test cases for folder taxonomy translation."""

    @pytest.mark.parametrize("label, folder", [
        ("INBOX", "inbox"),
        ("SENT", "sentitems"),
        ("DRAFT", "drafts"),
        ("SPAM", "junkemail"),
        ("TRASH", "deleteditems"),
    ])
    def test_round_trip(self, label, folder):
        assert to_provider_folder(label) == folder
        assert to_canonical_folder(folder) == label

    def test_case_insensitive(self):
        assert to_provider_folder("inbox") == "inbox"
        assert to_canonical_folder("SentItems") == "SENT"

    @pytest.mark.parametrize("label", ["UNREAD", "STARRED", "IMPORTANT", "Label_42", ""])
    def test_labels_without_folder(self, label):
        assert to_provider_folder(label) is None

    def test_unknown_folder(self):
        assert to_canonical_folder("AAMkADk0-archive") is None
        assert to_canonical_folder("") is None

    def test_to_provider_folders_drops_unmapped(self):
        assert to_provider_folders(["INBOX", "UNREAD", "STARRED", "TRASH"]) == ["inbox", "deleteditems"]

    def test_supported_labels(self):
        assert supported_labels() == ["INBOX", "SENT", "DRAFT", "SPAM", "TRASH"]
