"""
Error taxonomy for the publish flow.
Stages return these as values; the orchestrator turns them into a 400 {"error": message}.
Messages are user-visible: never put key material, assertions or tokens in them.
"""


class IndexingError(Exception):
    """Base class. `detail` is upstream/diagnostic text stored on the credential, never the HTTP body."""

    # True when the failure says something about the stored key material itself
    credential_attributable = False

    def __init__(self, message: str, detail: str | None = None):
        super().__init__(message)
        self.message = message
        self.detail = detail

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r})"


class AuthError(IndexingError):
    pass


class CredentialNotFoundError(IndexingError):
    pass


class ValidationError(IndexingError):
    pass


class SigningError(IndexingError):
    credential_attributable = True


class TokenExchangeError(IndexingError):
    credential_attributable = True

    def __init__(self, message: str, detail: str | None = None, *, credential_attributable: bool = True):
        super().__init__(message, detail)
        self.credential_attributable = credential_attributable


class PublishError(IndexingError):
    """Transport failure talking to the Indexing API. Non-2xx responses are PublishResult values instead."""


class UnknownError(IndexingError):
    pass
