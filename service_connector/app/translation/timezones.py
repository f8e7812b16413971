"""
IANA <-> Windows timezone name translation.

Graph calendar payloads carry Windows zone names while the rest of the platform
uses IANA names. The table is a subset of the CLDR ``windowsZones`` mapping.
Several IANA zones share one Windows zone, so the reverse lookup picks the first
IANA name listed for it; translating there and back a second time is stable.
"""

from typing import Dict, List, Mapping

from shared.logging import get_logger

logger = get_logger("connector.translation")

DEFAULT_TIMEZONE = "UTC"

_IANA_TO_WINDOWS: Dict[str, str] = {
    # Europe
    "Europe/Prague": "Central Europe Standard Time",
    "Europe/Berlin": "W. Europe Standard Time",
    "Europe/Paris": "Romance Standard Time",
    "Europe/Rome": "W. Europe Standard Time",
    "Europe/London": "GMT Standard Time",
    "Europe/Amsterdam": "W. Europe Standard Time",
    "Europe/Brussels": "Romance Standard Time",
    "Europe/Vienna": "W. Europe Standard Time",
    "Europe/Warsaw": "Central European Standard Time",
    "Europe/Budapest": "Central Europe Standard Time",
    "Europe/Athens": "GTB Standard Time",
    "Europe/Istanbul": "Turkey Standard Time",
    "Europe/Moscow": "Russian Standard Time",
    "Europe/Kiev": "FLE Standard Time",
    "Europe/Bucharest": "GTB Standard Time",
    "Europe/Sofia": "FLE Standard Time",
    "Europe/Helsinki": "FLE Standard Time",
    "Europe/Stockholm": "W. Europe Standard Time",
    "Europe/Copenhagen": "Romance Standard Time",
    "Europe/Oslo": "W. Europe Standard Time",
    "Europe/Lisbon": "GMT Standard Time",
    "Europe/Madrid": "Romance Standard Time",
    "Europe/Zurich": "W. Europe Standard Time",
    "Europe/Dublin": "GMT Standard Time",

    # North America
    "America/New_York": "Eastern Standard Time",
    "America/Chicago": "Central Standard Time",
    "America/Denver": "Mountain Standard Time",
    "America/Los_Angeles": "Pacific Standard Time",
    "America/Phoenix": "US Mountain Standard Time",
    "America/Anchorage": "Alaskan Standard Time",
    "America/Honolulu": "Hawaiian Standard Time",
    "America/Toronto": "Eastern Standard Time",
    "America/Vancouver": "Pacific Standard Time",
    "America/Edmonton": "Mountain Standard Time",
    "America/Winnipeg": "Central Standard Time",
    "America/Halifax": "Atlantic Standard Time",
    "America/St_Johns": "Newfoundland Standard Time",

    # Mexico, Central America, Caribbean
    "America/Mexico_City": "Central Standard Time (Mexico)",
    "America/Cancun": "Eastern Standard Time (Mexico)",
    "America/Tijuana": "Pacific Standard Time (Mexico)",
    "America/Guatemala": "Central America Standard Time",
    "America/San_Jose": "Central America Standard Time",
    "America/Panama": "SA Pacific Standard Time",
    "America/Havana": "Cuba Standard Time",
    "America/Port-au-Prince": "Haiti Standard Time",
    "America/Santo_Domingo": "SA Western Standard Time",

    # South America
    "America/Sao_Paulo": "E. South America Standard Time",
    "America/Buenos_Aires": "Argentina Standard Time",
    "America/Bogota": "SA Pacific Standard Time",
    "America/Lima": "SA Pacific Standard Time",
    "America/Santiago": "Pacific SA Standard Time",
    "America/Caracas": "Venezuela Standard Time",
    "America/La_Paz": "SA Western Standard Time",
    "America/Montevideo": "Montevideo Standard Time",

    # East and Southeast Asia
    "Asia/Tokyo": "Tokyo Standard Time",
    "Asia/Seoul": "Korea Standard Time",
    "Asia/Shanghai": "China Standard Time",
    "Asia/Hong_Kong": "China Standard Time",
    "Asia/Taipei": "Taipei Standard Time",
    "Asia/Beijing": "China Standard Time",
    "Asia/Singapore": "Singapore Standard Time",
    "Asia/Bangkok": "SE Asia Standard Time",
    "Asia/Jakarta": "SE Asia Standard Time",
    "Asia/Manila": "Singapore Standard Time",
    "Asia/Ho_Chi_Minh": "SE Asia Standard Time",
    "Asia/Kuala_Lumpur": "Singapore Standard Time",

    # South and Central Asia
    "Asia/Kolkata": "India Standard Time",
    "Asia/Mumbai": "India Standard Time",
    "Asia/Dhaka": "Bangladesh Standard Time",
    "Asia/Karachi": "Pakistan Standard Time",
    "Asia/Colombo": "Sri Lanka Standard Time",
    "Asia/Kathmandu": "Nepal Standard Time",
    "Asia/Almaty": "Central Asia Standard Time",
    "Asia/Tashkent": "West Asia Standard Time",
    "Asia/Yekaterinburg": "Ekaterinburg Standard Time",

    # Middle East
    "Asia/Dubai": "Arabian Standard Time",
    "Asia/Riyadh": "Arab Standard Time",
    "Asia/Kuwait": "Arab Standard Time",
    "Asia/Doha": "Arab Standard Time",
    "Asia/Muscat": "Arabian Standard Time",
    "Asia/Bahrain": "Arab Standard Time",
    "Asia/Tehran": "Iran Standard Time",
    "Asia/Baghdad": "Arabic Standard Time",
    "Asia/Jerusalem": "Israel Standard Time",
    "Asia/Beirut": "Middle East Standard Time",
    "Asia/Damascus": "Syria Standard Time",
    "Asia/Amman": "Jordan Standard Time",

    # Australia and Pacific
    "Australia/Sydney": "AUS Eastern Standard Time",
    "Australia/Melbourne": "AUS Eastern Standard Time",
    "Australia/Brisbane": "E. Australia Standard Time",
    "Australia/Perth": "W. Australia Standard Time",
    "Australia/Adelaide": "Cen. Australia Standard Time",
    "Australia/Darwin": "AUS Central Standard Time",
    "Australia/Hobart": "Tasmania Standard Time",
    "Pacific/Auckland": "New Zealand Standard Time",
    "Pacific/Fiji": "Fiji Standard Time",
    "Pacific/Honolulu": "Hawaiian Standard Time",
    "Pacific/Guam": "West Pacific Standard Time",
    "Pacific/Port_Moresby": "West Pacific Standard Time",
    "Pacific/Tongatapu": "Tonga Standard Time",

    # Africa and Atlantic
    "Africa/Cairo": "Egypt Standard Time",
    "Africa/Johannesburg": "South Africa Standard Time",
    "Africa/Nairobi": "E. Africa Standard Time",
    "Africa/Lagos": "W. Central Africa Standard Time",
    "Africa/Casablanca": "Morocco Standard Time",
    "Atlantic/Reykjavik": "Greenwich Standard Time",
    "Atlantic/Azores": "Azores Standard Time",
    "Atlantic/Cape_Verde": "Cape Verde Standard Time",

    # UTC
    "UTC": "UTC",
    "Etc/UTC": "UTC",
    "Etc/GMT": "UTC",
    "GMT": "UTC",
}

_WINDOWS_TO_IANA: Dict[str, str] = {}
for _iana, _windows in _IANA_TO_WINDOWS.items():
    _WINDOWS_TO_IANA.setdefault(_windows, _iana)
del _iana, _windows


def to_provider_timezone(name: str) -> str:
    """IANA name to Windows name; empty or unknown input falls back to UTC."""
    if not name:
        logger.warning("Empty timezone, using UTC", direction="to_provider")
        return DEFAULT_TIMEZONE

    windows = _IANA_TO_WINDOWS.get(name)
    if windows is None:
        logger.warning("Unknown IANA timezone, using UTC", timezone=name)
        return DEFAULT_TIMEZONE
    return windows


def to_canonical_timezone(name: str) -> str:
    """Windows name to the primary IANA name; empty or unknown input falls back to UTC."""
    if not name:
        logger.warning("Empty timezone, using UTC", direction="to_canonical")
        return DEFAULT_TIMEZONE

    iana = _WINDOWS_TO_IANA.get(name)
    if iana is None:
        logger.warning("Unknown Windows timezone, using UTC", timezone=name)
        return DEFAULT_TIMEZONE
    return iana


def is_supported_canonical_timezone(name: str) -> bool:
    return name in _IANA_TO_WINDOWS


def is_supported_provider_timezone(name: str) -> bool:
    return name in _WINDOWS_TO_IANA


def supported_canonical_timezones() -> List[str]:
    return list(_IANA_TO_WINDOWS)


def supported_provider_timezones() -> List[str]:
    return list(_WINDOWS_TO_IANA)


def to_provider_datetime(value: Mapping[str, str]) -> Dict[str, str]:
    """Translate a ``{"dateTime", "timeZone"}`` pair into Graph's dialect."""
    return {
        "dateTime": value.get("dateTime"),
        "timeZone": to_provider_timezone(value.get("timeZone")),
    }


def to_canonical_datetime(value: Mapping[str, str]) -> Dict[str, str]:
    """Translate a Graph ``{"dateTime", "timeZone"}`` pair into IANA form."""
    return {
        "dateTime": value.get("dateTime"),
        "timeZone": to_canonical_timezone(value.get("timeZone")),
    }
