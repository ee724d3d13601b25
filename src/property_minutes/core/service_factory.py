"""Factory for creating integration service clients."""

import asyncio
from typing import Any, Dict, Optional

from google.oauth2.credentials import Credentials

from ..integrations.gemini_client import GeminiClient
from ..integrations.gmail_client import GmailClient
from ..integrations.google_auth import CredentialProvider
from ..integrations.google_docs_client import GoogleDocsClient
from ..integrations.google_drive_client import GoogleDriveClient
from ..utils.exceptions import ConfigurationError
from ..utils.logging_config import get_logger
from .config_manager import ConfigManager


class ServiceFactory:
    """Creates and caches the clients used by one pipeline run.

    The Gmail, Docs and Drive clients share a single live credential, so the
    refresh token is exchanged once per factory.
    """

    def __init__(
        self,
        config_manager: ConfigManager,
        credential_provider: Optional[CredentialProvider] = None,
    ):
        self.config_manager = config_manager
        self.credential_provider = credential_provider or CredentialProvider(config_manager)
        self.logger = get_logger(__name__)
        self._clients: Dict[str, Any] = {}
        self._credentials: Optional[Credentials] = None

    async def get_credentials(self) -> Credentials:
        if self._credentials is None:
            self._credentials = await self.credential_provider.get_live_credential()
        return self._credentials

    async def create_gmail_client(self) -> GmailClient:
        if "gmail" not in self._clients:
            self._clients["gmail"] = GmailClient(credentials=await self.get_credentials())
            self.logger.info("Created Gmail client")
        return self._clients["gmail"]

    async def create_docs_client(self) -> GoogleDocsClient:
        if "docs" not in self._clients:
            self._clients["docs"] = GoogleDocsClient(credentials=await self.get_credentials())
            self.logger.info("Created Google Docs client")
        return self._clients["docs"]

    async def create_drive_client(self) -> GoogleDriveClient:
        if "drive" not in self._clients:
            self._clients["drive"] = GoogleDriveClient(credentials=await self.get_credentials())
            self.logger.info("Created Google Drive client")
        return self._clients["drive"]

    async def create_gemini_client(self) -> GeminiClient:
        """Create and configure Gemini client."""
        if "gemini" in self._clients:
            return self._clients["gemini"]

        ai_config = self.config_manager.get_config().ai
        api_key = self.config_manager.get_gemini_api_key()

        if not api_key:
            raise ConfigurationError("Gemini API key not configured")

        client = GeminiClient(
            api_key=api_key,
            model_name=ai_config.model_name,
            temperature=ai_config.temperature,
            max_tokens=ai_config.max_tokens,
            rate_limit=ai_config.rate_limit,
        )

        self._clients["gemini"] = client
        self.logger.info("Created Gemini client")
        return client

    async def close_all(self) -> None:
        """Close all active clients."""
        close_tasks = []

        for service_name, client in self._clients.items():
            self.logger.info(f"Closing {service_name} client")
            close_tasks.append(client.close())

        if close_tasks:
            await asyncio.gather(*close_tasks, return_exceptions=True)

        self._clients.clear()
        self._credentials = None
        self.logger.info("All clients closed")

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close_all()
