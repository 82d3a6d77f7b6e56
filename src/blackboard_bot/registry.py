"""
Client registry.

Owns one BlackboardClient per caller identity (``guild:user``), wires each
client's signals to the session store and to registry-level signals the
delivery bridge listens on, and recovers every stored session at start-up.
"""

import asyncio
import logging
from typing import Callable, Dict, Optional, Tuple, Union

from blackboard_bot.auth.login import perform_login
from blackboard_bot.client import BlackboardClient
from blackboard_bot.config import Settings, get_settings
from blackboard_bot.db import SessionStore, create_store
from blackboard_bot.models import SessionSnapshot
from blackboard_bot.signals import Signal
from blackboard_bot.utils import MAX_IN_FLIGHT, gather_batched

logger = logging.getLogger(__name__)


def make_identity(guild_id: Union[str, int], user_id: Union[str, int]) -> str:
    """Composite key of a caller: ``guild:user``."""
    return f"{guild_id}:{user_id}"


def split_identity(identity: str) -> Tuple[str, str]:
    """
    Inverse of ``make_identity``.

    Raises:
        ValueError: If ``identity`` is not a ``guild:user`` key
    """
    guild_id, sep, user_id = identity.partition(":")
    if not sep or not guild_id or not user_id:
        raise ValueError(f"Invalid identity: {identity!r}")
    return guild_id, user_id


class ClientRegistry:
    """
    Registry of live clients keyed by identity.

    Signals:
        expired(identity): a client's session expired
        dispatch(identity, guild, channel, text, summary): an alert fired
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        store: Optional[SessionStore] = None,
        client_factory: Optional[Callable[[], BlackboardClient]] = None,
    ):
        """
        Initialize the registry.

        Args:
            settings: Optional settings instance, will use default if not provided
            store: Optional session store, built from settings if not provided
            client_factory: Builds new clients, defaults to BlackboardClient(settings)
        """
        self.settings = settings or get_settings()
        self.store = store if store is not None else create_store(self.settings)
        self._factory = client_factory or (lambda: BlackboardClient(self.settings))

        self.expired = Signal("expired")
        self.dispatch = Signal("dispatch")

        self._clients: Dict[str, BlackboardClient] = {}
        self._save_lock = asyncio.Lock()

    def get(self, identity: str) -> Optional[BlackboardClient]:
        return self._clients.get(identity)

    def __contains__(self, identity: str) -> bool:
        return identity in self._clients

    def __len__(self) -> int:
        return len(self._clients)

    def _create(self, identity: str) -> BlackboardClient:
        """Build a client with its signals wired to this registry."""
        client = self._factory()

        client.persist.connect(lambda: self.save(identity, client))
        client.expired.connect(lambda: self._on_expired(identity, client))
        client.dispatch.connect(
            lambda guild, channel, text, summary: self.dispatch.emit(
                identity, guild, channel, text, summary
            )
        )
        return client

    def _on_expired(self, identity: str, client: BlackboardClient):
        logger.info(f"Session expired for {identity}")
        self.expired.emit(identity)
        return self.save(identity, client)

    @staticmethod
    def _unwire(client: BlackboardClient) -> None:
        client.persist.clear()
        client.expired.clear()
        client.dispatch.clear()

    async def register(
        self,
        identity: str,
        credential: Union[str, SessionSnapshot],
    ) -> Optional[BlackboardClient]:
        """
        Validate a credential and make it the identity's active session.

        The candidate client is seeded with the previous client's ignore
        lists, alerts and cache; the previous client is only replaced once the
        new credential has been accepted.

        Args:
            identity: Caller identity
            credential: Cookie string, token, or full snapshot

        Returns:
            Optional[BlackboardClient]: The new client, or None if rejected
        """
        previous = self._clients.get(identity)

        if isinstance(credential, SessionSnapshot):
            snapshot = credential
        elif previous is not None:
            snapshot = previous.export().model_copy(update={"credential": credential})
        else:
            snapshot = SessionSnapshot(credential=credential)

        candidate = self._create(identity)
        if not await candidate.import_session(snapshot):
            logger.info(f"Rejected credential for {identity}")
            self._unwire(candidate)
            await candidate.close()
            return None

        self._clients[identity] = candidate
        if previous is not None:
            self._unwire(previous)
            await previous.close()

        await self.save(identity, candidate)
        logger.info(f"Registered {identity} as {candidate.name}")
        return candidate

    async def login(self, identity: str, username: str, password: str) -> Optional[BlackboardClient]:
        """
        Log in with a username and password, then register the token.

        Raises:
            AuthenticationError: If Blackboard rejects the credentials
            RemoteError: If the login endpoint cannot be reached
        """
        token = await perform_login(username, password, settings=self.settings)
        return await self.register(identity, token)

    async def save(self, identity: str, client: Optional[BlackboardClient] = None) -> None:
        """Persist a client's snapshot. Store failures are logged, not raised."""
        client = client or self._clients.get(identity)
        if client is None:
            return

        snapshot = client.export()
        async with self._save_lock:
            try:
                await asyncio.to_thread(self.store.save, identity, snapshot)
            except Exception:
                logger.exception(f"Failed to save session for {identity}")

    async def recover(self, safe: bool = True) -> int:
        """
        Rebuild every stored client and re-validate its session.

        Clients whose credential is no longer valid stay registered (their
        ignore lists and alerts are kept) and ``expired`` is emitted for them.

        Args:
            safe: Log and skip clients whose recovery raises instead of propagating

        Returns:
            int: Number of sessions that are still valid
        """
        snapshots = await asyncio.to_thread(self.store.load_all)
        logger.info(f"Recovering {len(snapshots)} stored session(s)")

        async def restore(item) -> bool:
            identity, snapshot = item
            client = self._create(identity)
            self._clients[identity] = client
            try:
                valid = await client.import_session(snapshot)
            except Exception:
                if not safe:
                    raise
                logger.exception(f"Failed to recover session for {identity}")
                return False

            if not valid:
                logger.info(f"Stored session for {identity} is no longer valid")
                self.expired.emit(identity)
                await self.save(identity, client)
            return valid

        results = await gather_batched(list(snapshots.items()), MAX_IN_FLIGHT, restore)
        recovered = sum(1 for valid in results if valid)
        logger.info(f"Recovered {recovered}/{len(snapshots)} session(s)")
        return recovered

    async def remove(self, identity: str) -> bool:
        """Close a client and delete its stored snapshot."""
        client = self._clients.pop(identity, None)
        if client is not None:
            self._unwire(client)
            await client.close()
        async with self._save_lock:
            await asyncio.to_thread(self.store.delete, identity)
        return client is not None

    async def shutdown(self) -> None:
        """Close every client. The registry is empty afterwards."""
        clients, self._clients = self._clients, {}
        for identity, client in clients.items():
            self._unwire(client)
            try:
                await client.close()
            except Exception:
                logger.exception(f"Failed to close client {identity}")
        logger.info(f"Closed {len(clients)} client(s)")
