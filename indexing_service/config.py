"""
Indexing service configuration.
Endpoint URIs are read from env so tests and local runs can point at fakes.
No secrets in this file; service-account keys live in the credential store.
"""
import os

# Credential store (google_credentials, indexing_logs). SQLite is fine for development.
DATABASE_URL = os.environ.get("INDEXING_DATABASE_URL", "sqlite:///./indexing_service.db")

# Identity service: GET with the caller's bearer token returns the user object ({"id": ...})
IDENTITY_USER_URL = os.environ.get("IDENTITY_USER_URL", "http://127.0.0.1:54321/auth/v1/user")
IDENTITY_API_KEY = os.environ.get("IDENTITY_API_KEY", "")

# Google OAuth token endpoint; also the "aud" claim of the signed assertion
GOOGLE_TOKEN_URI = os.environ.get("GOOGLE_TOKEN_URI", "https://oauth2.googleapis.com/token")

GOOGLE_INDEXING_PUBLISH_URL = os.environ.get(
    "GOOGLE_INDEXING_PUBLISH_URL",
    "https://indexing.googleapis.com/v3/urlNotifications:publish",
)
GOOGLE_INDEXING_SCOPE = os.environ.get("GOOGLE_INDEXING_SCOPE", "https://www.googleapis.com/auth/indexing")

JWT_BEARER_GRANT_TYPE = "urn:ietf:params:oauth:grant-type:jwt-bearer"

# Bound on every outbound call (identity, token exchange, publish)
HTTP_TIMEOUT_SECONDS = float(os.environ.get("HTTP_TIMEOUT_SECONDS", "10"))

# Assertion lifetime (seconds). Google rejects assertions valid for more than one hour.
ASSERTION_LIFETIME_SECONDS = int(os.environ.get("ASSERTION_LIFETIME_SECONDS", "3600"))

# Upper bound on URLs per batch submission
BATCH_MAX_URLS = int(os.environ.get("INDEXING_BATCH_MAX_URLS", "100"))

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "authorization, x-client-info, apikey, content-type",
}
