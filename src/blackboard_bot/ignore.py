"""
Per-client ignore lists.

Users can hide content (currently whole courses) from summaries; the store
keeps one list of ids per category tag.
"""

from typing import Dict, List, Optional

from blackboard_bot.signals import Signal


class IgnoreStore:
    """
    Set-membership store keyed by category.

    Every successful mutation is announced on ``persist``; no-op calls are
    not.
    """

    def __init__(self, persist: Signal, entries: Optional[Dict[str, List[str]]] = None):
        self.persist = persist
        self._entries: Dict[str, List[str]] = {}
        if entries:
            self.load(entries)

    def ignored(self, type: str, identifier: str) -> bool:
        """Whether ``identifier`` is ignored within ``type``."""
        return identifier in self._entries.get(type, ())

    def ignore(self, type: str, identifier: str) -> bool:
        """
        Start ignoring an id.

        Returns:
            bool: True if it was added, False if it was already ignored
        """
        members = self._entries.setdefault(type, [])
        if identifier in members:
            return False
        members.append(identifier)
        self.persist.emit()
        return True

    def unignore(self, type: str, identifier: str) -> bool:
        """
        Stop ignoring an id. Empty categories are dropped.

        Returns:
            bool: True if it was removed, False if it was not ignored
        """
        members = self._entries.get(type)
        if not members or identifier not in members:
            return False
        members.remove(identifier)
        if not members:
            del self._entries[type]
        self.persist.emit()
        return True

    def load(self, entries: Dict[str, List[str]]) -> None:
        """Replace every list with persisted ones."""
        self._entries = {}
        for type, identifiers in entries.items():
            unique = list(dict.fromkeys(identifiers))
            if unique:
                self._entries[type] = unique

    def export(self) -> Dict[str, List[str]]:
        return {type: list(identifiers) for type, identifiers in self._entries.items()}
