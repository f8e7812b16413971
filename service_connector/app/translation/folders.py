"""
Gmail-style system labels <-> Outlook well-known mail folders.
"""

from typing import Dict, Iterable, List, Optional


# Labels without an Outlook folder are expressed through message properties
# (isRead, flag) or have no equivalent at all.
_LABEL_TO_FOLDER: Dict[str, Optional[str]] = {
    "INBOX": "inbox",
    "SENT": "sentitems",
    "DRAFT": "drafts",
    "SPAM": "junkemail",
    "TRASH": "deleteditems",
    "UNREAD": None,
    "STARRED": None,
    "IMPORTANT": None,
}

_FOLDER_TO_LABEL: Dict[str, str] = {}
for _label, _folder in _LABEL_TO_FOLDER.items():
    if _folder is not None:
        _FOLDER_TO_LABEL.setdefault(_folder, _label)
del _label, _folder


def to_provider_folder(label: str) -> Optional[str]:
    """Well-known folder id for a system label, or ``None`` if there is none."""
    if not label:
        return None
    return _LABEL_TO_FOLDER.get(label.upper())


def to_canonical_folder(folder_id: str) -> Optional[str]:
    """System label for a well-known folder id, or ``None``."""
    if not folder_id:
        return None
    return _FOLDER_TO_LABEL.get(folder_id.lower())


def to_provider_folders(labels: Iterable[str]) -> List[str]:
    """Translate labels, dropping the ones Outlook has no folder for."""
    folders = []
    for label in labels:
        folder = to_provider_folder(label)
        if folder is not None and folder not in folders:
            folders.append(folder)
    return folders


def supported_labels() -> List[str]:
    return [label for label, folder in _LABEL_TO_FOLDER.items() if folder is not None]
