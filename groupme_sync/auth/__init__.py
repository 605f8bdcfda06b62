"""groupme_sync.auth - Google service-account credentials."""

from groupme_sync.auth.google_auth import AuthenticationError, GoogleAuth

__all__ = ["AuthenticationError", "GoogleAuth"]
