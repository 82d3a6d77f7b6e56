"""Remote Blackboard contracts."""

from typing import Optional

import httpx

from blackboard_bot.backends.api import ApiBackend
from blackboard_bot.backends.base import BlackboardBackend
from blackboard_bot.backends.markup import MarkupBackend
from blackboard_bot.config import Settings

BACKENDS = {
    "markup": MarkupBackend,
    "api": ApiBackend,
}


def create_backend(settings: Settings, http: Optional[httpx.AsyncClient] = None) -> BlackboardBackend:
    """Instantiate the backend selected by ``settings.backend``."""
    return BACKENDS[settings.backend](settings, http)


__all__ = [
    "ApiBackend",
    "BACKENDS",
    "BlackboardBackend",
    "MarkupBackend",
    "create_backend",
]
