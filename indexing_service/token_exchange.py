"""
Exchange a signed assertion for a Google access token (RFC 7523 jwt-bearer grant).
One POST per call; the token is returned to the caller and never stored.
"""
import logging
from dataclasses import dataclass, field

import httpx

from indexing_service.assertion import SignedAssertion
from indexing_service.config import GOOGLE_TOKEN_URI, HTTP_TIMEOUT_SECONDS, JWT_BEARER_GRANT_TYPE
from indexing_service.errors import TokenExchangeError

logger = logging.getLogger(__name__)

TOKEN_ERROR_MESSAGE = "Failed to get Google access token"


@dataclass(frozen=True)
class AccessToken:
    value: str = field(repr=False)
    # Validity window reported by the token endpoint. Logged only; tokens are never reused
    expires_in: int = 3600


def _error_detail(data: dict) -> str | None:
    """Google returns {"error": "invalid_grant", "error_description": "..."}."""
    detail = data.get("error_description") or data.get("error")
    return str(detail) if detail else None


class TokenExchanger:
    def __init__(
        self,
        http: httpx.Client,
        *,
        token_uri: str = GOOGLE_TOKEN_URI,
        timeout: float = HTTP_TIMEOUT_SECONDS,
    ):
        self._http = http
        self.token_uri = token_uri
        self.timeout = timeout

    def exchange(self, assertion: SignedAssertion) -> AccessToken | TokenExchangeError:
        try:
            r = self._http.post(
                self.token_uri,
                data={"grant_type": JWT_BEARER_GRANT_TYPE, "assertion": assertion},
                headers={"Accept": "application/json"},
                timeout=self.timeout,
            )
        except httpx.HTTPError as e:
            logger.warning("Token endpoint unreachable: %s", type(e).__name__)
            return TokenExchangeError(
                TOKEN_ERROR_MESSAGE,
                f"Token endpoint unreachable: {type(e).__name__}",
                credential_attributable=False,
            )

        try:
            data = r.json()
        except ValueError:
            data = None
        if not isinstance(data, dict):
            logger.warning("Token endpoint returned malformed body (status %s)", r.status_code)
            return TokenExchangeError(TOKEN_ERROR_MESSAGE, f"Malformed token response (HTTP {r.status_code})")

        access_token = data.get("access_token")
        if r.is_success and access_token and not data.get("error"):
            expires_in = data.get("expires_in")
            if not isinstance(expires_in, int):
                expires_in = 3600
            token = AccessToken(value=str(access_token), expires_in=expires_in)
            logger.debug("Access token issued (expires_in=%s)", token.expires_in)
            return token

        detail = _error_detail(data) or f"Token response without access_token (HTTP {r.status_code})"
        logger.error("Token error: status=%s detail=%s", r.status_code, detail)
        return TokenExchangeError(TOKEN_ERROR_MESSAGE, detail)
