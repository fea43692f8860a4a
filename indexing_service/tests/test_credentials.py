"""Tests for the SQL credential store and the dev seed."""
import json
from dataclasses import replace

import pytest
from sqlalchemy.exc import IntegrityError
from sqlalchemy.pool import StaticPool

from indexing_service.credentials import SqlCredentialStore
from indexing_service.database import SessionLocal, engine_options
from indexing_service.models import GoogleCredential, IndexingLog
from indexing_service.seed import seed_from_env, upsert_credential


@pytest.fixture
def store(db):
    return SqlCredentialStore(SessionLocal)


def test_get_for_user_returns_snapshot(store, make_credential, private_pem):
    row = make_credential("user-9", status="active")
    credential = store.get_for_user("user-9")
    assert credential.id == row.id
    assert credential.client_email == row.client_email
    assert credential.private_key == private_pem
    assert credential.status == "active"
    assert store.get_for_user("someone-else") is None


def test_one_credential_per_user(make_credential, db):
    make_credential("dup")
    with pytest.raises(IntegrityError):
        make_credential("dup")
    db.rollback()


def test_update_status_writes_only_status_fields(store, make_credential, db, private_pem):
    make_credential("user-2")
    credential = store.get_for_user("user-2")
    store.update_status(replace(credential, status="invalid", error_message="Invalid JWT Signature.", private_key="x"))
    db.expire_all()
    row = db.query(GoogleCredential).filter(GoogleCredential.user_id == "user-2").first()
    assert row.status == "invalid"
    assert row.error_message == "Invalid JWT Signature."
    assert row.private_key == private_pem


def test_record_submission(store, db):
    store.record_submission(
        user_id="user-3",
        url="https://example.com/x",
        notification_type="URL_UPDATED",
        outcome="fail",
        http_status=None,
        error_message="Failed to get Google access token",
    )
    log = db.query(IndexingLog).one()
    assert log.user_id == "user-3"
    assert log.http_status is None
    assert log.outcome == "fail"


def test_upsert_resets_status_to_pending(db, make_credential, private_pem):
    make_credential("user-4", status="invalid", error_message="Permission denied.")
    row = upsert_credential(
        db,
        "user-4",
        {"project_id": "new-project", "client_email": "new@new-project.iam.gserviceaccount.com", "private_key": private_pem},
    )
    assert row.status == "pending"
    assert row.error_message is None
    assert row.project_id == "new-project"
    assert db.query(GoogleCredential).filter(GoogleCredential.user_id == "user-4").count() == 1


def test_upsert_requires_key_fields(db):
    with pytest.raises(ValueError, match="private_key"):
        upsert_credential(db, "user-5", {"project_id": "p", "client_email": "e"})


def test_seed_from_env(db, tmp_path, monkeypatch, private_pem):
    key_file = tmp_path / "sa.json"
    key_file.write_text(
        json.dumps(
            {
                "type": "service_account",
                "project_id": "demo",
                "client_email": "sa@demo.iam.gserviceaccount.com",
                "private_key": private_pem,
            }
        )
    )
    monkeypatch.setenv("INDEXING_SEED_USER_ID", "seeded-user")
    monkeypatch.setenv("INDEXING_SEED_SERVICE_ACCOUNT_FILE", str(key_file))
    seed_from_env(db)
    row = db.query(GoogleCredential).filter(GoogleCredential.user_id == "seeded-user").one()
    assert row.client_email == "sa@demo.iam.gserviceaccount.com"
    assert row.status == "pending"


def test_seed_from_env_missing_file_is_skipped(db, monkeypatch, tmp_path):
    monkeypatch.setenv("INDEXING_SEED_USER_ID", "seeded-user")
    monkeypatch.setenv("INDEXING_SEED_SERVICE_ACCOUNT_FILE", str(tmp_path / "missing.json"))
    seed_from_env(db)
    assert db.query(GoogleCredential).count() == 0


@pytest.mark.parametrize(
    "url,expected",
    [
        ("sqlite:///:memory:", {"connect_args": {"check_same_thread": False}, "poolclass": StaticPool}),
        ("sqlite://", {"connect_args": {"check_same_thread": False}, "poolclass": StaticPool}),
        ("sqlite:///./indexing_service.db", {"connect_args": {"check_same_thread": False}}),
        ("postgresql+psycopg://u:p@db/indexing", {}),
    ],
)
def test_engine_options(url, expected):
    assert engine_options(url) == expected
