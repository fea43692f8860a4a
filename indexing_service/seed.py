"""
Seed a credential from a service-account JSON key file for local development. No keys in code.
Set INDEXING_SEED_USER_ID + INDEXING_SEED_SERVICE_ACCOUNT_FILE.
"""
import json
import logging
import os
from pathlib import Path

from sqlalchemy.orm import Session

from indexing_service.models import STATUS_PENDING, GoogleCredential

logger = logging.getLogger(__name__)

_REQUIRED_FIELDS = ("project_id", "client_email", "private_key")


def upsert_credential(db: Session, user_id: str, service_account: dict) -> GoogleCredential:
    """
    Create or replace the user's credential from a parsed service-account key.
    New key material always resets status to pending; only reconciliation moves it on.
    """
    missing = [f for f in _REQUIRED_FIELDS if not service_account.get(f)]
    if missing:
        raise ValueError(f"service account JSON missing fields: {', '.join(missing)}")

    row = db.query(GoogleCredential).filter(GoogleCredential.user_id == user_id).first()
    if row is None:
        row = GoogleCredential(user_id=user_id)
        db.add(row)
    row.project_id = service_account["project_id"]
    row.client_email = service_account["client_email"]
    row.private_key = service_account["private_key"]
    row.status = STATUS_PENDING
    row.error_message = None
    db.commit()
    return row


def seed_from_env(db: Session) -> None:
    """Load one credential from env if set."""
    user_id = os.environ.get("INDEXING_SEED_USER_ID")
    key_file = os.environ.get("INDEXING_SEED_SERVICE_ACCOUNT_FILE")
    if not user_id or not key_file:
        return
    try:
        service_account = json.loads(Path(key_file).read_text(encoding="utf-8"))
        row = upsert_credential(db, user_id, service_account)
    except (OSError, ValueError) as e:
        logger.warning("Could not seed credential from %s: %s", key_file, e)
        return
    logger.info("Seeded credential for user %s (client_email=%s)", user_id, row.client_email)
