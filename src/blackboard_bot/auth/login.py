"""
Username/password login for the Blackboard JSON API.

Exchanges credentials for a bearer token that can then be imported into a
session like any other credential.
"""

import logging
from typing import Optional

import httpx

from blackboard_bot.config import Settings, get_settings
from blackboard_bot.errors import AuthenticationError, RemoteError

logger = logging.getLogger(__name__)


async def perform_login(
    username: str,
    password: str,
    settings: Optional[Settings] = None,
    http: Optional[httpx.AsyncClient] = None,
) -> str:
    """
    Log in to the Blackboard API.

    Args:
        username: Blackboard username
        password: Blackboard password
        settings: Optional settings instance, will use default if not provided
        http: Optional HTTP client, a temporary one is used if not provided

    Returns:
        str: Bearer token

    Raises:
        AuthenticationError: If the credentials are rejected or no token is returned
        RemoteError: If the API cannot be reached
    """
    settings = settings or get_settings()
    if not settings.blackboard_api_base:
        raise ValueError("BLACKBOARD_API_BASE must be set to log in with a password")

    owns_client = http is None
    http = http or httpx.AsyncClient()
    try:
        response = await http.post(
            f"{settings.blackboard_api_base}/login",
            json={"username": username, "password": password},
            headers={"User-Agent": settings.user_agent},
        )
    except httpx.HTTPError as e:
        raise RemoteError(f"Login request failed: {e}") from e
    finally:
        if owns_client:
            await http.aclose()

    try:
        token = response.json().get("token")
    except (ValueError, AttributeError):
        token = None

    if not isinstance(token, str) or not token:
        logger.info(f"Blackboard API login rejected for {username} ({response.status_code})")
        raise AuthenticationError("INVALID_CREDENTIALS")

    logger.info(f"Blackboard API login successful for {username}")
    return token
