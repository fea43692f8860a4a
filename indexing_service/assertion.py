"""
Self-signed JWT assertion for the service-account (jwt-bearer) grant.
Header {"alg": "RS256", "typ": "JWT"}; claims iss/scope/aud/iat/exp; signed with the credential's RSA key.
The key is decoded per call and dropped afterwards; nothing here is cached.
"""
import base64
import logging
import re
import time
from typing import Callable

import jwt
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.backends import default_backend
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey

from indexing_service.config import (
    ASSERTION_LIFETIME_SECONDS,
    GOOGLE_INDEXING_SCOPE,
    GOOGLE_TOKEN_URI,
)
from indexing_service.credentials import Credential
from indexing_service.errors import SigningError

logger = logging.getLogger(__name__)

_PEM_ARMOR = re.compile(r"-----(BEGIN|END) PRIVATE KEY-----")
_WHITESPACE = re.compile(r"\s+")

SIGNING_ERROR_MESSAGE = "Failed to sign Google service account assertion: invalid private key"

# Compact JWT string: base64url(header).base64url(claims).base64url(signature)
SignedAssertion = str


def pem_to_der(pem: str) -> bytes:
    """
    Strip PEM armor and whitespace and base64-decode to PKCS#8 DER.
    Literal "\\n" sequences (service-account JSON pasted as text) count as newlines.
    Raises ValueError on anything that is not clean base64.
    """
    body = _PEM_ARMOR.sub("", pem.replace("\\n", "\n"))
    body = _WHITESPACE.sub("", body)
    if not body:
        raise ValueError("empty key body")
    return base64.b64decode(body, validate=True)


def load_signing_key(pem: str) -> RSAPrivateKey:
    key = serialization.load_der_private_key(pem_to_der(pem), password=None, backend=default_backend())
    if not isinstance(key, RSAPrivateKey):
        raise TypeError(f"expected RSA key, got {type(key).__name__}")
    return key


class AssertionSigner:
    def __init__(
        self,
        *,
        scope: str = GOOGLE_INDEXING_SCOPE,
        audience: str = GOOGLE_TOKEN_URI,
        lifetime_seconds: int = ASSERTION_LIFETIME_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self.scope = scope
        self.audience = audience
        self.lifetime_seconds = lifetime_seconds
        self._clock = clock

    def claims_for(self, credential: Credential) -> dict:
        now = int(self._clock())
        return {
            "iss": credential.client_email,
            "scope": self.scope,
            "aud": self.audience,
            "iat": now,
            "exp": now + self.lifetime_seconds,
        }

    def sign(self, credential: Credential) -> SignedAssertion | SigningError:
        """Return the compact signed assertion, or SigningError (never a partial token)."""
        try:
            key = load_signing_key(credential.private_key)
            assertion = jwt.encode(
                self.claims_for(credential),
                key,
                algorithm="RS256",
                headers={"typ": "JWT"},
            )
        except (ValueError, TypeError, UnsupportedAlgorithm, jwt.PyJWTError) as e:
            # Exception text from the key parsers can echo input bytes; log the type only
            logger.warning(
                "Signing failed for credential %s (user %s): %s",
                credential.id,
                credential.user_id,
                type(e).__name__,
            )
            return SigningError(SIGNING_ERROR_MESSAGE)
        if isinstance(assertion, bytes):
            assertion = assertion.decode("utf-8")
        return assertion
