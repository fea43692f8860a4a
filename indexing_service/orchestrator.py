"""
Request orchestration for POST /google-indexing (and the batch variant).

OPTIONS short-circuits; otherwise: Authorization header present -> body valid -> caller verified
-> credential loaded -> sign -> exchange -> publish -> reconcile. Every failure becomes a 400
{"error": message}; a publish response is passed through with its own status. Body validation
happens before the identity call so malformed input never causes network traffic.
"""
import logging
from dataclasses import dataclass, field
from typing import Mapping

from fastapi.responses import JSONResponse, Response

from indexing_service.assertion import AssertionSigner
from indexing_service.config import BATCH_MAX_URLS, CORS_HEADERS
from indexing_service.credentials import Credential, CredentialStore
from indexing_service.errors import (
    AuthError,
    CredentialNotFoundError,
    IndexingError,
    UnknownError,
    ValidationError,
)
from indexing_service.identity import NO_AUTH_HEADER_MESSAGE, IdentityVerifier, bearer_from_header
from indexing_service.models import OUTCOME_FAIL, OUTCOME_SUCCESS
from indexing_service.publish import PublishClient, PublishResult
from indexing_service.reconciler import Outcome, reconcile
from indexing_service.schemas import BatchIndexingRequest, IndexingRequest, parse_body
from indexing_service.token_exchange import TokenExchanger

logger = logging.getLogger(__name__)

CREDENTIALS_NOT_FOUND_MESSAGE = "Google credentials not found"
UNKNOWN_ERROR_MESSAGE = "Unexpected error while submitting URL for indexing"


@dataclass
class InboundRequest:
    method: str
    headers: Mapping[str, str] = field(default_factory=dict)
    body: bytes = b""

    def header(self, name: str) -> str | None:
        """Case-insensitive lookup (works for plain dicts as well as Starlette Headers)."""
        wanted = name.lower()
        for key, value in self.headers.items():
            if key.lower() == wanted:
                return value
        return None


def error_response(error: IndexingError) -> JSONResponse:
    return JSONResponse({"error": error.message}, status_code=400, headers=CORS_HEADERS)


def preflight_response() -> Response:
    return Response(status_code=200, headers=CORS_HEADERS)


class RequestOrchestrator:
    def __init__(
        self,
        *,
        identity: IdentityVerifier,
        store: CredentialStore,
        signer: AssertionSigner,
        exchanger: TokenExchanger,
        publisher: PublishClient,
        batch_max_urls: int = BATCH_MAX_URLS,
    ):
        self.identity = identity
        self.store = store
        self.signer = signer
        self.exchanger = exchanger
        self.publisher = publisher
        self.batch_max_urls = batch_max_urls

    def handle(self, request: InboundRequest) -> Response:
        if request.method.upper() == "OPTIONS":
            return preflight_response()
        try:
            return self._handle_single(request)
        except Exception:
            logger.exception("Unhandled error in indexing request")
            return error_response(UnknownError(UNKNOWN_ERROR_MESSAGE))

    def handle_batch(self, request: InboundRequest) -> Response:
        if request.method.upper() == "OPTIONS":
            return preflight_response()
        try:
            return self._handle_batch(request)
        except Exception:
            logger.exception("Unhandled error in batch indexing request")
            return error_response(UnknownError(UNKNOWN_ERROR_MESSAGE))

    def _handle_single(self, request: InboundRequest) -> Response:
        auth_header = request.header("authorization")
        if not auth_header:
            return error_response(AuthError(NO_AUTH_HEADER_MESSAGE))

        indexing_request = parse_body(IndexingRequest, request.body)
        if isinstance(indexing_request, ValidationError):
            return error_response(indexing_request)

        credential = self._load_credential(auth_header)
        if isinstance(credential, IndexingError):
            return error_response(credential)

        outcome, _ = self._submit(credential, indexing_request)
        if isinstance(outcome, IndexingError):
            return error_response(outcome)
        return JSONResponse(outcome.body, status_code=outcome.status_code, headers=CORS_HEADERS)

    def _handle_batch(self, request: InboundRequest) -> Response:
        auth_header = request.header("authorization")
        if not auth_header:
            return error_response(AuthError(NO_AUTH_HEADER_MESSAGE))

        batch = parse_body(BatchIndexingRequest, request.body)
        if isinstance(batch, ValidationError):
            return error_response(batch)
        if not batch.urls:
            return error_response(ValidationError("At least one URL is required"))
        if len(batch.urls) > self.batch_max_urls:
            return error_response(ValidationError(f"At most {self.batch_max_urls} URLs per batch"))

        credential = self._load_credential(auth_header)
        if isinstance(credential, IndexingError):
            return error_response(credential)

        results = []
        fatal: IndexingError | None = None
        for indexing_request in batch.as_requests():
            if fatal is not None:
                # Key material already rejected upstream
                results.append({"url": indexing_request.url, "error": fatal.message})
                continue
            outcome, credential = self._submit(credential, indexing_request)
            if isinstance(outcome, PublishResult):
                results.append(
                    {"url": indexing_request.url, "status_code": outcome.status_code, "body": outcome.body}
                )
                continue
            results.append({"url": indexing_request.url, "error": outcome.message})
            if outcome.credential_attributable:
                fatal = outcome
        return JSONResponse({"results": results}, status_code=200, headers=CORS_HEADERS)

    def _load_credential(self, auth_header: str) -> Credential | IndexingError:
        user_id = self.identity.verify(bearer_from_header(auth_header))
        if isinstance(user_id, IndexingError):
            return user_id
        credential = self.store.get_for_user(user_id)
        if credential is None:
            logger.info("No Google credentials stored for user %s", user_id)
            return CredentialNotFoundError(CREDENTIALS_NOT_FOUND_MESSAGE)
        return credential

    def _submit(self, credential: Credential, request: IndexingRequest) -> tuple[Outcome, Credential]:
        """Run sign -> exchange -> publish once, then reconcile. Returns (outcome, stored credential)."""
        outcome = self._publish_pipeline(credential, request)
        updated = self._reconcile(credential, outcome)
        self._log_submission(credential.user_id, request, outcome)
        return outcome, updated

    def _publish_pipeline(self, credential: Credential, request: IndexingRequest) -> Outcome:
        assertion = self.signer.sign(credential)
        if isinstance(assertion, IndexingError):
            return assertion
        access_token = self.exchanger.exchange(assertion)
        if isinstance(access_token, IndexingError):
            return access_token
        return self.publisher.publish(access_token, request)

    def _reconcile(self, credential: Credential, outcome: Outcome) -> Credential:
        updated = reconcile(credential, outcome)
        if updated == credential:
            return credential
        try:
            self.store.update_status(updated)
        except Exception:
            logger.exception("Failed to update status of credential %s", credential.id)
            return credential
        logger.info(
            "Credential %s status %s -> %s",
            credential.id,
            credential.status,
            updated.status,
        )
        return updated

    def _log_submission(self, user_id: str, request: IndexingRequest, outcome: Outcome) -> None:
        if isinstance(outcome, PublishResult):
            result = OUTCOME_SUCCESS if outcome.ok else OUTCOME_FAIL
            http_status = outcome.status_code
            error_message = None if outcome.ok else outcome.error_detail
        else:
            result = OUTCOME_FAIL
            http_status = None
            error_message = outcome.message
        try:
            self.store.record_submission(
                user_id=user_id,
                url=request.url,
                notification_type=request.type.value,
                outcome=result,
                http_status=http_status,
                error_message=error_message,
            )
        except Exception:
            logger.exception("Failed to record submission log for user %s", user_id)
