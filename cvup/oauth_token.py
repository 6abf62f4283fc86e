import logging
import time
from typing import Optional, Tuple

import aiohttp
from jose import JWTError, jwt

from .config import get_settings
from .exceptions import ZoomAuthError

logger = logging.getLogger(__name__)

# Refresh this long before the token actually expires
TOKEN_REFRESH_BUFFER = 5 * 60
JWT_LIFETIME = 55 * 60

# Module-level cache. No lock: concurrent cold callers may each refresh.
_access_token: Optional[str] = None
_expires_at: float = 0.0


def reset_token_cache() -> None:
    global _access_token, _expires_at
    _access_token = None
    _expires_at = 0.0


async def _request_s2s_token() -> Tuple[str, int]:
    """
    Fetches an OAuth token using Zoom account-level credentials.
    Returns (access_token, expires_in seconds).
    """
    settings = get_settings()
    params = {
        "grant_type": "account_credentials",
        "account_id": settings.zoom_account_id,
    }
    auth = aiohttp.BasicAuth(login=settings.zoom_client_id, password=settings.zoom_client_secret)

    async with aiohttp.ClientSession() as session:
        async with session.post(settings.zoom_oauth_url, params=params, auth=auth) as resp:
            text = await resp.text()
            if resp.status != 200:
                raise ZoomAuthError(f"Zoom S2S OAuth Error {resp.status}: {text}")
            data = await resp.json(content_type=None)

    if not data.get("access_token") or not data.get("expires_in"):
        raise ZoomAuthError("Zoom S2S OAuth response missing access_token or expires_in")
    return data["access_token"], int(data["expires_in"])


def _sign_jwt_token(issued_at: float) -> Tuple[str, float]:
    settings = get_settings()
    expiration = int(issued_at) + JWT_LIFETIME
    token = jwt.encode(
        {"iss": settings.zoom_api_key, "exp": expiration},
        settings.zoom_api_secret,
        algorithm="HS256",
    )
    return token, float(expiration)


async def get_zoom_oauth_token() -> str:
    """
    Returns a bearer token for the Zoom API, reusing the cached one while it
    is valid for at least another five minutes.
    """
    global _access_token, _expires_at

    current = time.time()
    if _access_token and _expires_at > current + TOKEN_REFRESH_BUFFER:
        return _access_token

    logger.info("No valid Zoom token cached, fetching a new one")
    settings = get_settings()

    if settings.has_s2s_credentials:
        try:
            token, expires_in = await _request_s2s_token()
            _access_token = token
            _expires_at = current + expires_in
            logger.info("Obtained Zoom Server-to-Server OAuth token")
            return _access_token
        except (ZoomAuthError, aiohttp.ClientError) as e:
            # fall through to JWT if it is configured
            logger.error("Error getting Zoom Server-to-Server OAuth token: %s", e)

    if settings.has_jwt_credentials:
        logger.warning("Using deprecated Zoom JWT authentication; migrate to Server-to-Server OAuth")
        try:
            _access_token, _expires_at = _sign_jwt_token(current)
            logger.info("Signed Zoom JWT token")
            return _access_token
        except JWTError as e:
            logger.error("Error generating Zoom JWT: %s", e)

    logger.error("Zoom API credentials (Server-to-Server OAuth or JWT) are missing or invalid")
    raise ZoomAuthError("Failed to authenticate with Zoom API: Credentials missing or invalid.")
