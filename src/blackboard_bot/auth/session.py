"""
Blackboard session management.

Owns the authentication state of one user: importing a credential,
validating it against Blackboard, keeping it alive in the background and
detecting when it has expired.
"""

import asyncio
import logging
from enum import Enum
from typing import Optional

from blackboard_bot.backends.base import BlackboardBackend
from blackboard_bot.errors import BlackboardError, NoClientError
from blackboard_bot.signals import Signal
from blackboard_bot.utils import with_retries

logger = logging.getLogger(__name__)

# Consecutive failed keep-alive ticks before a session is considered expired
MAX_KEEP_ALIVE_FAILURES = 5


class SessionState(str, Enum):
    UNAUTHENTICATED = "UNAUTHENTICATED"
    VALIDATING = "VALIDATING"
    AUTHENTICATED = "AUTHENTICATED"
    EXPIRING = "EXPIRING"


class SessionManager:
    """
    Manages the authenticated session of one user.

    Handles:
    - Credential import and validation (with bounded retries)
    - Periodic keep-alive in a background task
    - Expiry after repeated keep-alive failures

    The manager never notifies anyone directly: expiry is announced on the
    ``expired`` signal, exactly once per expiry.
    """

    def __init__(
        self,
        backend: BlackboardBackend,
        keep_alive_interval: float = 300,
        retries: int = 5,
        delay: float = 1.0,
    ):
        """
        Initialize the session manager.

        Args:
            backend: Remote contract holding the credential
            keep_alive_interval: Seconds between keep-alive ticks
            retries: Attempts per validation
            delay: Seconds between validation attempts
        """
        self.backend = backend
        self.keep_alive_interval = keep_alive_interval
        self.retries = retries
        self.delay = delay
        self.expired = Signal("expired")

        self._name: Optional[str] = None
        self._credential: Optional[str] = None
        self._state = SessionState.UNAUTHENTICATED
        self._keep_alive: Optional[asyncio.Task] = None
        self._failures = 0
        self._expired_emitted = False

    @property
    def name(self) -> Optional[str]:
        """Display name of the authenticated user."""
        return self._name

    @property
    def credential(self) -> Optional[str]:
        """Current credential, including anything the backend refreshed."""
        if self._credential is None:
            return None
        return self.backend.current_credential() or self._credential

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_authenticated(self) -> bool:
        return self._credential is not None and self._state in (
            SessionState.AUTHENTICATED,
            SessionState.EXPIRING,
        )

    @property
    def keep_alive_failures(self) -> int:
        return self._failures

    @property
    def keep_alive_running(self) -> bool:
        return self._keep_alive is not None and not self._keep_alive.done()

    def ensure_authenticated(self) -> None:
        """
        Fail fast when there is no credential.

        Raises:
            NoClientError: If the session holds no credential
        """
        if self._credential is None:
            raise NoClientError()

    async def import_session(
        self,
        credential: Optional[str],
        ping: bool = False,
        retries: Optional[int] = None,
        delay: Optional[float] = None,
    ) -> bool:
        """
        Validate a credential against Blackboard.

        A regular import replaces the stored credential and name on success
        and (re)starts the keep-alive task; on failure the credential is
        cleared. A ping only re-validates (or refreshes) what is already
        stored.

        Args:
            credential: Cookie string or token to import (ignored for pings)
            ping: Re-validate the stored credential without replacing it
            retries: Attempts for the validation, defaults to the manager's
            delay: Seconds between attempts, defaults to the manager's

        Returns:
            bool: True if Blackboard accepted the credential
        """
        retries = self.retries if retries is None else retries
        delay = self.delay if delay is None else delay

        try:
            if ping:
                alive = await with_retries(retries, delay, self.backend.keep_alive)
                name = self._name if alive else ""
            else:
                self._state = SessionState.VALIDATING
                self.backend.clear_credential()
                self.backend.load_credential(credential or "")
                name = await with_retries(retries, delay, self.backend.validate)
        except asyncio.CancelledError:
            raise
        except BlackboardError as e:
            logger.warning(f"Session validation failed: {e}")
            name = ""
        except Exception:
            logger.exception("Session validation raised unexpectedly")
            name = ""

        logged_in = bool(name)

        if ping:
            if logged_in and self._credential is not None:
                self._credential = self.backend.current_credential() or self._credential
            return logged_in

        if logged_in:
            self._name = name
            self._credential = self.backend.current_credential() or credential
            self._state = SessionState.AUTHENTICATED
            self._expired_emitted = False
            self._start_keep_alive()
            logger.info(f"Blackboard session validated for: {name}")
        else:
            self._stop_keep_alive()
            self._clear_credential()
            logger.info("Blackboard session rejected; credential cleared")

        return logged_in

    async def ping(self) -> bool:
        """Re-validate the stored credential."""
        return await self.import_session(None, ping=True)

    def destroy(self) -> None:
        """Stop background work. The session cannot be used afterwards."""
        self._stop_keep_alive()
        self._clear_credential()

    def _start_keep_alive(self) -> None:
        self._stop_keep_alive()
        self._failures = 0
        self._keep_alive = asyncio.create_task(self._keep_alive_loop())

    def _stop_keep_alive(self) -> None:
        task, self._keep_alive = self._keep_alive, None
        if task is not None and task is not asyncio.current_task() and not task.done():
            task.cancel()

    async def _keep_alive_loop(self) -> None:
        while True:
            await asyncio.sleep(self.keep_alive_interval)

            try:
                alive = await self.ping()
            except Exception:
                logger.exception("Keep-alive tick raised")
                alive = False

            if alive:
                self._failures = 0
                self._state = SessionState.AUTHENTICATED
                continue

            self._failures += 1
            self._state = SessionState.EXPIRING
            logger.warning(
                f"Keep-alive failed ({self._failures}/{MAX_KEEP_ALIVE_FAILURES}) for {self._name}"
            )

            if self._failures >= MAX_KEEP_ALIVE_FAILURES:
                self._expire()
                return

    def _expire(self) -> None:
        self._keep_alive = None
        self._clear_credential()
        logger.info(f"Blackboard session expired for: {self._name}")
        if not self._expired_emitted:
            self._expired_emitted = True
            self.expired.emit()

    def _clear_credential(self) -> None:
        self.backend.clear_credential()
        self._credential = None
        self._state = SessionState.UNAUTHENTICATED
