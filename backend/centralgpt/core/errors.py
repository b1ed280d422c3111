# centralgpt/core/errors.py
"""
Error taxonomy shared by the completion gateway, the session store and the
remote store adapter. Every error carries a stable ``code`` that the HTTP
layer copies into its ``{"code": ..., "message": ...}`` error bodies.
"""
from typing import Optional


class CentralGPTError(Exception):
    """Base class for all errors raised by the core."""

    code = "INTERNAL_ERROR"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.code)
        self.message = message or self.code

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message}


# -------- authentication --------
class InvalidCredential(CentralGPTError):
    code = "INVALID_KEY"


class CredentialExpired(CentralGPTError):
    code = "KEY_EXPIRED"


class InvalidAdminCredential(InvalidCredential):
    code = "INVALID_ADMIN"


class SessionRequired(CentralGPTError):
    code = "AUTH_REQUIRED"


class InvalidSessionToken(CentralGPTError):
    code = "AUTH_INVALID_TOKEN"


# -------- completion service --------
class EmptyMessage(CentralGPTError):
    """Raised before any network call when there is neither text nor an attachment."""

    code = "EMPTY_MESSAGE"


class CredentialsExhausted(CentralGPTError):
    """Every credential was rejected for quota/authorization reasons (or there were none)."""

    code = "CREDENTIALS_EXHAUSTED"

    def __init__(self, message: Optional[str] = None, attempts: int = 0):
        super().__init__(message or "All API keys exhausted.")
        self.attempts = attempts


class EmptyResponse(CentralGPTError):
    code = "EMPTY_RESPONSE"


class ProviderError(CentralGPTError):
    """Non-retryable failure reported by the completion service."""

    code = "PROVIDER_ERROR"

    def __init__(self, message: Optional[str] = None, status_code: Optional[int] = None,
                 provider_status: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.provider_status = provider_status


class QuotaOrAuthError(ProviderError):
    """Rate limit or permission failure; the gateway moves on to the next credential."""

    code = "QUOTA_OR_AUTH"


class VideoTimeout(CentralGPTError):
    code = "VIDEO_TIMEOUT"


class VideoCancelled(CentralGPTError):
    code = "VIDEO_CANCELLED"


# -------- remote store --------
class RemoteStoreUnavailable(CentralGPTError):
    code = "REMOTE_STORE_UNAVAILABLE"


class AccessKeyTaken(CentralGPTError):
    """Another user already holds this access key"""

    code = "KEY_EXISTS"
