"""
Translation between the platform's canonical dialect and Microsoft Graph's.

Stateless lookup tables for timezone names and mail folder taxonomies. Unknown
timezones fall back to UTC with a warning; labels without an Outlook folder map
to ``None`` and are dropped by callers.
"""

from .folders import (
    supported_labels,
    to_canonical_folder,
    to_provider_folder,
    to_provider_folders,
)
from .timezones import (
    DEFAULT_TIMEZONE,
    is_supported_canonical_timezone,
    is_supported_provider_timezone,
    supported_canonical_timezones,
    supported_provider_timezones,
    to_canonical_datetime,
    to_canonical_timezone,
    to_provider_datetime,
    to_provider_timezone,
)

__all__ = [
    "DEFAULT_TIMEZONE",
    "is_supported_canonical_timezone",
    "is_supported_provider_timezone",
    "supported_canonical_timezones",
    "supported_labels",
    "supported_provider_timezones",
    "to_canonical_datetime",
    "to_canonical_folder",
    "to_canonical_timezone",
    "to_provider_datetime",
    "to_provider_folder",
    "to_provider_folders",
    "to_provider_timezone",
]
