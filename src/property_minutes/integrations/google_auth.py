"""Google OAuth 2.0 credentials for Gmail, Docs and Drive."""

import asyncio
import json
import os
from typing import Any, Dict, Optional

from google.auth.exceptions import GoogleAuthError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import Flow

from ..core.config_manager import ConfigManager
from ..utils.exceptions import (
    AuthenticationError,
    ConfigurationError,
    NotAuthenticated,
    TokenRefreshFailed,
)
from ..utils.logging_config import get_logger, get_security_logger

GOOGLE_TOKEN_URI = "https://oauth2.googleapis.com/token"
GOOGLE_AUTH_URI = "https://accounts.google.com/o/oauth2/auth"
DEFAULT_REDIRECT_URI = "http://localhost"


class CredentialProvider:
    """Turns the stored refresh token into live Google credentials."""

    # OAuth 2.0 scopes
    SCOPES = [
        "https://www.googleapis.com/auth/gmail.readonly",
        "https://www.googleapis.com/auth/documents",
        # Files created by this app
        "https://www.googleapis.com/auth/drive.file",
        # Folder browser needs to see folders it did not create
        "https://www.googleapis.com/auth/drive",
    ]

    def __init__(self, config_manager: ConfigManager):
        self.config_manager = config_manager
        self.logger = get_logger(__name__)
        self.security_logger = get_security_logger()
        self._flow: Optional[Flow] = None

    def load_client_config(self) -> Dict[str, Any]:
        """OAuth client configuration in the ``installed`` layout."""
        client_id = os.environ.get("GOOGLE_OAUTH_CLIENT_ID")
        client_secret = os.environ.get("GOOGLE_OAUTH_CLIENT_SECRET")

        if client_id and client_secret:
            return {
                "installed": {
                    "client_id": client_id,
                    "client_secret": client_secret,
                    "auth_uri": GOOGLE_AUTH_URI,
                    "token_uri": GOOGLE_TOKEN_URI,
                    "redirect_uris": [DEFAULT_REDIRECT_URI],
                }
            }

        credentials_path = self.config_manager.get_credentials_path()
        if not credentials_path.exists():
            raise ConfigurationError(
                f"OAuth client file not found: {credentials_path}. Create an OAuth "
                "client ID in Google Cloud Console and save it there, or set "
                "GOOGLE_OAUTH_CLIENT_ID and GOOGLE_OAUTH_CLIENT_SECRET."
            )

        try:
            with open(credentials_path, "r", encoding="utf-8") as f:
                content = json.load(f)
        except (OSError, ValueError) as e:
            raise ConfigurationError(f"Failed to read OAuth client file: {e}")

        client = content.get("installed") or content.get("web")
        if not client or not client.get("client_id") or not client.get("client_secret"):
            raise ConfigurationError(
                "OAuth client file must contain an 'installed' or 'web' client"
            )

        client.setdefault("auth_uri", GOOGLE_AUTH_URI)
        client.setdefault("token_uri", GOOGLE_TOKEN_URI)
        client.setdefault("redirect_uris", [DEFAULT_REDIRECT_URI])
        return {"installed": client}

    def _build_credentials(self, refresh_token: str) -> Credentials:
        client = self.load_client_config()["installed"]
        return Credentials(
            token=None,
            refresh_token=refresh_token,
            token_uri=client["token_uri"],
            client_id=client["client_id"],
            client_secret=client["client_secret"],
            scopes=self.SCOPES,
        )

    async def get_live_credential(self) -> Credentials:
        """Refresh the stored token into a usable credential.

        Raises:
            NotAuthenticated: No refresh token is stored
            TokenRefreshFailed: Google rejected the refresh
        """
        refresh_token = self.config_manager.get_refresh_token()
        if not refresh_token:
            raise NotAuthenticated(
                "Google account is not linked. Run the Google authorization first."
            )

        credentials = self._build_credentials(refresh_token)

        try:
            loop = asyncio.get_running_loop()
            await loop.run_in_executor(None, credentials.refresh, Request())
        except GoogleAuthError as e:
            self.security_logger.log_authentication_attempt(
                service="google", success=False, error=str(e)
            )
            raise TokenRefreshFailed(
                f"Failed to refresh Google credentials, authorize again: {e}"
            )

        # Google may rotate the refresh token
        if credentials.refresh_token and credentials.refresh_token != refresh_token:
            self.config_manager.set_refresh_token(credentials.refresh_token)
            self.logger.info("Stored rotated Google refresh token")

        self.security_logger.log_authentication_attempt(service="google", success=True)
        return credentials

    async def check_status(self) -> bool:
        """Whether a usable authorization is stored. Never raises."""
        try:
            if not self.config_manager.get_refresh_token():
                return False
            await self.get_live_credential()
            return True
        except Exception as e:
            self.logger.warning(f"Authorization check failed: {e}")
            return False

    def _create_flow(self) -> Flow:
        client_config = self.load_client_config()
        redirect_uri = client_config["installed"]["redirect_uris"][0]
        return Flow.from_client_config(
            client_config, scopes=self.SCOPES, redirect_uri=redirect_uri
        )

    def generate_auth_url(self) -> str:
        """Authorization URL that always yields a refresh token."""
        self._flow = self._create_flow()
        auth_url, _ = self._flow.authorization_url(
            access_type="offline", prompt="consent", include_granted_scopes="true"
        )
        self.logger.info("Generated Google authorization URL")
        return auth_url

    async def exchange_code(self, code: str) -> None:
        """Exchange an authorization code and store the refresh token."""
        code = (code or "").strip()
        if not code:
            raise AuthenticationError("Authorization code is empty")

        flow = self._flow or self._create_flow()

        try:
            loop = asyncio.get_running_loop()
            await loop.run_in_executor(None, lambda: flow.fetch_token(code=code))
        except Exception as e:
            self.security_logger.log_authentication_attempt(
                service="google", success=False, error=str(e)
            )
            raise AuthenticationError(f"Failed to exchange authorization code: {e}")
        finally:
            self._flow = None

        refresh_token = flow.credentials.refresh_token
        if not refresh_token:
            raise AuthenticationError("Google did not return a refresh token")

        self.config_manager.set_refresh_token(refresh_token)
        self.security_logger.log_authentication_attempt(service="google", success=True)
        self.logger.info("Google authorization stored")

    def clear_authentication(self) -> None:
        self.config_manager.clear_refresh_token()
        self.logger.info("Google authorization cleared")
