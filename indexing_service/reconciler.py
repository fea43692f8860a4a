"""
Credential health reconciliation: map the outcome of a publish attempt to the credential's
stored status. Pure; the orchestrator performs the write.

    pending --(signing/exchange failure)--> invalid
    pending --(publish success)-----------> active
    active  --(publish failure)-----------> invalid
    invalid --(publish success)-----------> active
"""
from dataclasses import replace

from indexing_service.credentials import Credential
from indexing_service.errors import IndexingError
from indexing_service.models import STATUS_ACTIVE, STATUS_INVALID
from indexing_service.publish import UNKNOWN_PUBLISH_ERROR, PublishResult

Outcome = IndexingError | PublishResult


def reconcile(credential: Credential, outcome: Outcome) -> Credential:
    """Return the credential as it should be stored after `outcome`. Unchanged input means no write."""
    if isinstance(outcome, PublishResult):
        if outcome.ok:
            return replace(credential, status=STATUS_ACTIVE, error_message=None)
        return replace(
            credential,
            status=STATUS_INVALID,
            error_message=outcome.error_detail or UNKNOWN_PUBLISH_ERROR,
        )
    if outcome.credential_attributable:
        return replace(credential, status=STATUS_INVALID, error_message=outcome.detail or outcome.message)
    return credential
