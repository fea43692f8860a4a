"""
Indexing API publish call (urlNotifications:publish).
A non-2xx response is a PublishResult with ok=False, not an error: the orchestrator still
reconciles credential status from it and forwards it to the caller.
"""
import logging
from dataclasses import dataclass, field
from typing import Any

import httpx

from indexing_service.config import GOOGLE_INDEXING_PUBLISH_URL, HTTP_TIMEOUT_SECONDS
from indexing_service.errors import PublishError
from indexing_service.schemas import IndexingRequest
from indexing_service.token_exchange import AccessToken

logger = logging.getLogger(__name__)

UNKNOWN_PUBLISH_ERROR = "Unknown error occurred"


@dataclass
class PublishResult:
    ok: bool
    status_code: int
    # Decoded upstream JSON, forwarded verbatim; not necessarily an object
    body: Any = field(default_factory=dict)

    @property
    def error_detail(self) -> str | None:
        """Upstream {"error": {"message": ...}} if present."""
        if not isinstance(self.body, dict):
            return None
        error = self.body.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        return None


class PublishClient:
    def __init__(
        self,
        http: httpx.Client,
        *,
        publish_url: str = GOOGLE_INDEXING_PUBLISH_URL,
        timeout: float = HTTP_TIMEOUT_SECONDS,
    ):
        self._http = http
        self.publish_url = publish_url
        self.timeout = timeout

    def publish(self, access_token: AccessToken, request: IndexingRequest) -> PublishResult | PublishError:
        """Single POST, no retry."""
        try:
            r = self._http.post(
                self.publish_url,
                json={"url": request.url, "type": request.type.value},
                headers={"Authorization": f"Bearer {access_token.value}"},
                timeout=self.timeout,
            )
        except httpx.HTTPError as e:
            logger.warning("Indexing API unreachable: %s", type(e).__name__)
            return PublishError("Failed to reach Google Indexing API", type(e).__name__)

        try:
            body = r.json()
        except ValueError:
            body = {} if r.is_success else {"error": {"code": r.status_code, "message": UNKNOWN_PUBLISH_ERROR}}

        result = PublishResult(ok=r.is_success, status_code=r.status_code, body=body)
        if not result.ok:
            logger.error("Indexing API error: status=%s detail=%s", r.status_code, result.error_detail)
        return result
