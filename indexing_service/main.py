"""
Indexing Service — publish URL notifications to the Google Indexing API on behalf of a stored
service-account credential. POST /google-indexing, POST /google-indexing/batch (plus OPTIONS for CORS).
"""
from contextlib import asynccontextmanager

import httpx
from fastapi import Depends, FastAPI, Request
from fastapi.concurrency import run_in_threadpool

from indexing_service.assertion import AssertionSigner
from indexing_service.credentials import SqlCredentialStore
from indexing_service.database import SessionLocal, init_db
from indexing_service.identity import HttpIdentityVerifier
from indexing_service.orchestrator import InboundRequest, RequestOrchestrator
from indexing_service.publish import PublishClient
from indexing_service.seed import seed_from_env
from indexing_service.token_exchange import TokenExchanger

# Shared connection pool; holds no tokens
_http_client: httpx.Client | None = None


def get_http_client() -> httpx.Client:
    global _http_client
    if _http_client is None:
        _http_client = httpx.Client()
    return _http_client


def get_orchestrator() -> RequestOrchestrator:
    """Dependency: orchestrator wired to the configured endpoints. Tests override this."""
    http = get_http_client()
    return RequestOrchestrator(
        identity=HttpIdentityVerifier(http),
        store=SqlCredentialStore(SessionLocal),
        signer=AssertionSigner(),
        exchanger=TokenExchanger(http),
        publisher=PublishClient(http),
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables and seed a credential from env on startup; close the HTTP pool on shutdown."""
    global _http_client
    init_db()
    db = SessionLocal()
    try:
        seed_from_env(db)
    finally:
        db.close()
    yield
    if _http_client is not None:
        _http_client.close()
        _http_client = None


app = FastAPI(title="Indexing Service", version="0.1.0", lifespan=lifespan)


async def _inbound(request: Request) -> InboundRequest:
    body = b"" if request.method == "OPTIONS" else await request.body()
    return InboundRequest(method=request.method, headers=request.headers, body=body)


@app.get("/health")
def health():
    """Health check endpoint."""
    return {"status": "ok", "service": "indexing_service"}


@app.api_route("/google-indexing", methods=["POST", "OPTIONS"])
async def google_indexing(request: Request, orchestrator: RequestOrchestrator = Depends(get_orchestrator)):
    """Publish one URL notification. Errors are 400 {"error": ...}; upstream responses pass through."""
    inbound = await _inbound(request)
    return await run_in_threadpool(orchestrator.handle, inbound)


@app.api_route("/google-indexing/batch", methods=["POST", "OPTIONS"])
async def google_indexing_batch(request: Request, orchestrator: RequestOrchestrator = Depends(get_orchestrator)):
    """Publish several URLs for the same caller; one fresh assertion and token per URL."""
    inbound = await _inbound(request)
    return await run_in_threadpool(orchestrator.handle_batch, inbound)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "indexing_service.main:app",
        host="127.0.0.1",
        port=8080,
        reload=True,
    )
