"""
Credential store: read the caller's service-account credential, write back its health status,
and append submission logs. The store is the only place rows are touched; the publish flow sees
immutable Credential snapshots.
"""
import logging
from dataclasses import dataclass, field
from typing import Callable, Protocol

from sqlalchemy.orm import Session

from indexing_service.models import GoogleCredential, IndexingLog

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Credential:
    id: int
    user_id: str
    project_id: str
    client_email: str
    private_key: str = field(repr=False)
    status: str
    error_message: str | None = None

    @classmethod
    def from_row(cls, row: GoogleCredential) -> "Credential":
        return cls(
            id=row.id,
            user_id=row.user_id,
            project_id=row.project_id,
            client_email=row.client_email,
            private_key=row.private_key,
            status=row.status,
            error_message=row.error_message,
        )


class CredentialStore(Protocol):
    def get_for_user(self, user_id: str) -> Credential | None: ...

    def update_status(self, credential: Credential) -> None: ...

    def record_submission(
        self,
        *,
        user_id: str,
        url: str,
        notification_type: str,
        outcome: str,
        http_status: int | None = None,
        error_message: str | None = None,
    ) -> None: ...


class SqlCredentialStore:
    """CredentialStore backed by SQLAlchemy; opens a short-lived session per call."""

    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    def get_for_user(self, user_id: str) -> Credential | None:
        db = self._session_factory()
        try:
            row = db.query(GoogleCredential).filter(GoogleCredential.user_id == user_id).first()
            return Credential.from_row(row) if row else None
        finally:
            db.close()

    def update_status(self, credential: Credential) -> None:
        """Persist status and error_message only; key material is never written from here."""
        db = self._session_factory()
        try:
            row = db.query(GoogleCredential).filter(GoogleCredential.id == credential.id).first()
            if row is None:
                logger.warning("Credential %s disappeared before status update", credential.id)
                return
            row.status = credential.status
            row.error_message = credential.error_message
            db.commit()
        finally:
            db.close()

    def record_submission(
        self,
        *,
        user_id: str,
        url: str,
        notification_type: str,
        outcome: str,
        http_status: int | None = None,
        error_message: str | None = None,
    ) -> None:
        db = self._session_factory()
        try:
            db.add(
                IndexingLog(
                    user_id=user_id,
                    url=url,
                    notification_type=notification_type,
                    outcome=outcome,
                    http_status=http_status,
                    error_message=error_message,
                )
            )
            db.commit()
        finally:
            db.close()
