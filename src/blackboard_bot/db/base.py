"""
Persistence bridge for session snapshots.

Stores are deliberately synchronous; the registry runs them in a worker
thread so blocking I/O never stalls the event loop.
"""

from typing import Dict, Protocol

from blackboard_bot.models import SessionSnapshot


class SessionStore(Protocol):
    """Durable storage of one snapshot per caller identity."""

    def load_all(self) -> Dict[str, SessionSnapshot]:
        """Return every stored snapshot keyed by identity."""
        ...

    def save(self, identity: str, snapshot: SessionSnapshot) -> None:
        """Insert or replace the snapshot of ``identity``."""
        ...

    def delete(self, identity: str) -> None:
        """Forget ``identity``."""
        ...
