"""Exception hierarchy surfaced by the pipeline and mapped to HTTP responses.

Scalar text that cannot be parsed never raises (it defaults and is listed in
``missing_fields``).  Only document-level and provider-level failures do.
"""

from coverwise.config import PAYLOAD_PREVIEW_CHARS


class CoverwiseError(Exception):
    """Base error carrying the HTTP status the API layer should answer with."""

    status_code = 500

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ExtractionFormatError(CoverwiseError):
    """The LLM payload is not JSON, or lacks the top-level extraction shape."""

    status_code = 502

    def __init__(self, message: str, payload: str | None = None):
        preview = (payload or "")[:PAYLOAD_PREVIEW_CHARS]
        super().__init__(message, {"raw_response_preview": preview})
        self.payload_preview = preview


class PolicyUnreadableError(CoverwiseError):
    """The analyst model reported it could not find the key policy details."""

    status_code = 422


class AIProviderError(CoverwiseError):
    status_code = 502


class ProviderConfigError(AIProviderError):
    status_code = 500


class ProviderTimeoutError(AIProviderError):
    status_code = 408


class ProviderQuotaError(AIProviderError):
    status_code = 429


class ProviderAuthError(AIProviderError):
    status_code = 401


class UnsupportedFileError(CoverwiseError):
    status_code = 415


class EmptyDocumentError(CoverwiseError):
    status_code = 400
