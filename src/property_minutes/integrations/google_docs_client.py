"""Google Docs integration client for publishing minutes documents."""

from typing import Any, Dict, List

from ..core.models import PublishedDocument
from ..utils.exceptions import (
    DocumentCreationFailed,
    FormattingFailed,
    GoogleDocsIntegrationError,
)
from .base_client import GoogleServiceClient, build_service
from .minutes_formatter import build_format_requests, compute_format_ranges

DOCUMENT_URL = "https://docs.google.com/document/d/{document_id}/edit"


def document_url(document_id: str) -> str:
    return DOCUMENT_URL.format(document_id=document_id)


class GoogleDocsClient(GoogleServiceClient):
    """Creates minutes documents and applies their formatting."""

    SERVICE_NAME = "google_docs"

    def __init__(self, credentials: Any = None, service: Any = None, rate_limit: int = 100):
        super().__init__(build_service("docs", "v1", credentials, service), rate_limit)

    async def create_document(self, title: str) -> PublishedDocument:
        """Create an empty document in the Drive root."""
        try:
            document = await self._execute(
                lambda: self.service.documents().create(body={"title": title}),
                endpoint="documents.create",
                method="POST",
            )
        except Exception as e:
            self.logger.error(f"Failed to create document: {e}")
            raise DocumentCreationFailed(f"Failed to create document: {e}", {"title": title})

        document_id = document["documentId"]
        self.logger.info(f"Document created: {document_id}")

        return PublishedDocument(
            id=document_id, url=document_url(document_id), title=title
        )

    async def insert_text(self, document_id: str, text: str, index: int = 1) -> None:
        requests = [{"insertText": {"location": {"index": index}, "text": text}}]

        try:
            await self._execute(
                lambda: self.service.documents().batchUpdate(
                    documentId=document_id, body={"requests": requests}
                ),
                endpoint="documents.batchUpdate",
                method="POST",
                document_id=document_id,
            )
        except Exception as e:
            self.logger.error(f"Failed to insert text: {e}")
            raise DocumentCreationFailed(
                f"Failed to insert minutes text: {e}", {"document_id": document_id}
            )

        self.logger.info(f"Inserted {len(text)} characters into document {document_id}")

    async def format_document(
        self, document_id: str, formatting_requests: List[Dict[str, Any]]
    ) -> None:
        """Apply all formatting requests in one batched edit.

        Raises the underlying client error; ``create_minutes`` decides how it
        is reported.
        """
        if not formatting_requests:
            return

        await self._execute(
            lambda: self.service.documents().batchUpdate(
                documentId=document_id, body={"requests": formatting_requests}
            ),
            endpoint="documents.batchUpdate",
            method="POST",
            document_id=document_id,
        )

        self.logger.info(
            f"Applied {len(formatting_requests)} formatting requests to document {document_id}"
        )

    async def create_minutes(
        self, title: str, text: str, company_name: str
    ) -> PublishedDocument:
        """Create, fill and format a minutes document.

        Raises:
            DocumentCreationFailed: Creating the document or inserting its text failed
            FormattingFailed: The document exists but could not be formatted; the
                error carries the document
        """
        document = await self.create_document(title)
        await self.insert_text(document.id, text)

        ranges = compute_format_ranges(text, company_name)
        try:
            await self.format_document(document.id, build_format_requests(ranges))
        except Exception as e:
            self.logger.error(f"Failed to format document {document.id}: {e}")
            raise FormattingFailed(
                f"Failed to format document: {e}",
                {"document_id": document.id, "url": document.url},
                document=document,
            )

        return document

    async def get_document_text(self, document_id: str) -> str:
        """Concatenated text runs of the document body."""
        try:
            document = await self._execute(
                lambda: self.service.documents().get(documentId=document_id),
                endpoint="documents.get",
                document_id=document_id,
            )
        except Exception as e:
            self.logger.error(f"Failed to read document {document_id}: {e}")
            raise GoogleDocsIntegrationError(
                f"Failed to read document: {e}", {"document_id": document_id}
            )

        text = ""
        for element in document.get("body", {}).get("content", []):
            for run in element.get("paragraph", {}).get("elements", []):
                text += run.get("textRun", {}).get("content", "")
        return text
