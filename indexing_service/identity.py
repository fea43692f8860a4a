"""
Caller verification against the external identity service.
The caller's bearer token is forwarded as-is; the service answers with the user object or an error.
"""
import logging
from typing import Protocol

import httpx

from indexing_service.config import HTTP_TIMEOUT_SECONDS, IDENTITY_API_KEY, IDENTITY_USER_URL
from indexing_service.errors import AuthError

logger = logging.getLogger(__name__)

NO_AUTH_HEADER_MESSAGE = "No authorization header"
INVALID_TOKEN_MESSAGE = "Invalid token"


class IdentityVerifier(Protocol):
    def verify(self, bearer_token: str) -> str | AuthError:
        """Return the verified principal (user id) or AuthError."""
        ...


def bearer_from_header(header_value: str) -> str:
    """'Bearer <token>' -> '<token>'. A bare token is passed through."""
    parts = header_value.split(None, 1)
    if parts and parts[0].lower() == "bearer":
        return parts[1].strip() if len(parts) > 1 else ""
    return header_value.strip()


class HttpIdentityVerifier:
    def __init__(
        self,
        http: httpx.Client,
        *,
        user_url: str = IDENTITY_USER_URL,
        api_key: str = IDENTITY_API_KEY,
        timeout: float = HTTP_TIMEOUT_SECONDS,
    ):
        self._http = http
        self.user_url = user_url
        self.api_key = api_key
        self.timeout = timeout

    def verify(self, bearer_token: str) -> str | AuthError:
        if not bearer_token:
            return AuthError(INVALID_TOKEN_MESSAGE)
        headers = {"Authorization": f"Bearer {bearer_token}"}
        if self.api_key:
            headers["apikey"] = self.api_key
        try:
            r = self._http.get(self.user_url, headers=headers, timeout=self.timeout)
        except httpx.HTTPError as e:
            logger.warning("Identity service unreachable: %s", type(e).__name__)
            return AuthError(INVALID_TOKEN_MESSAGE)
        if not r.is_success:
            logger.info("Identity service rejected caller token (status %s)", r.status_code)
            return AuthError(INVALID_TOKEN_MESSAGE)
        try:
            user = r.json()
        except ValueError:
            user = None
        user_id = user.get("id") if isinstance(user, dict) else None
        if not user_id:
            return AuthError(INVALID_TOKEN_MESSAGE)
        return str(user_id)
