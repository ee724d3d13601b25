"""Custom exceptions for the property minutes generator."""

from typing import Any, Dict, Optional


class MinutesError(Exception):
    """Base exception for the property minutes generator."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    @property
    def kind(self) -> str:
        """Error kind reported to the presentation shell."""
        return type(self).__name__

    def describe(self) -> str:
        return f"{self.kind}: {self.message}"


class ValidationError(MinutesError):
    """Input validation errors."""


class InvalidRequest(ValidationError):
    """Meeting request rejected before any network call."""


class ConfigurationError(MinutesError):
    """Configuration-related errors."""


class GenerationInProgress(MinutesError):
    """Another minutes generation is already running."""


class NoMailFound(MinutesError):
    """The mail search returned no messages for the requested window."""


class AuthenticationError(MinutesError):
    """Authentication failures."""


class NotAuthenticated(AuthenticationError):
    """No refresh token has been stored yet."""


class TokenRefreshFailed(AuthenticationError):
    """The identity provider rejected the refresh attempt."""


class IntegrationError(MinutesError):
    """External integration errors."""


class GmailIntegrationError(IntegrationError):
    """Gmail-specific integration errors."""


class MailSearchFailed(GmailIntegrationError):
    """The message search itself failed."""


class GeminiIntegrationError(IntegrationError):
    """Google Gemini AI integration errors."""


class EmptyResponse(GeminiIntegrationError):
    """The model returned blank output."""


class AuthKeyInvalid(GeminiIntegrationError):
    """The Gemini API key was rejected."""


class QuotaExceeded(GeminiIntegrationError):
    """The Gemini usage quota has been exhausted."""


class GoogleDocsIntegrationError(IntegrationError):
    """Google Docs integration errors."""


class DocumentCreationFailed(GoogleDocsIntegrationError):
    """The document could not be created or filled with text."""


class FormattingFailed(GoogleDocsIntegrationError):
    """The batched formatting edit failed; the document still exists."""

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        document: Any = None,
    ):
        super().__init__(message, details)
        self.document = document


class GoogleDriveIntegrationError(IntegrationError):
    """Google Drive integration errors."""


class FolderResolutionFailed(GoogleDriveIntegrationError):
    """A destination folder could not be found or created."""


class MoveRenameFailed(GoogleDriveIntegrationError):
    """The document could not be moved into its folder."""


class SecurityError(MinutesError):
    """Secret storage or encryption failed."""
