"""Slite document store."""

import logging
from typing import Any, Optional

import httpx

from ..config import Settings
from ..formatter import parse_front_matter
from .base import Document, DocumentResult, DocumentStore, GatewayError

logger = logging.getLogger(__name__)


class SliteDocumentStore(DocumentStore):
    """Document store backed by Slite's REST API."""

    def __init__(self, settings: Settings):
        self.api_key = settings.slite_api_key
        self.api_base = settings.slite_api_url.rstrip("/")
        self.timeout = settings.http_timeout_seconds
        self._client: Optional[httpx.AsyncClient] = None
        if not self.api_key:
            logger.warning("SLITE_API_KEY not configured")

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                headers={
                    "x-slite-api-key": self.api_key,
                    "Content-Type": "application/json",
                },
                timeout=self.timeout,
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _request(
        self, method: str, endpoint: str, json: Optional[dict] = None
    ) -> dict[str, Any]:
        """Send a request and return the decoded JSON body.

        Raises:
            GatewayError: On missing credentials, transport or decoding errors;
                an empty 2xx body decodes to ``{}``
        """
        if not self.api_key:
            raise GatewayError("Slite API key not configured")

        try:
            client = await self._get_client()
            response = await client.request(
                method, f"{self.api_base}{endpoint}", json=json
            )
            response.raise_for_status()
            if not response.content:
                return {}
            data = response.json()
        except httpx.HTTPStatusError as e:
            raise GatewayError(
                f"Slite error {e.response.status_code}: {e.response.text}"
            ) from e
        except httpx.RequestError as e:
            raise GatewayError(f"Connection error: {e}") from e
        except ValueError as e:
            raise GatewayError(f"Invalid JSON from Slite: {e}") from e

        if not isinstance(data, dict):
            raise GatewayError(f"Unexpected Slite response: {data!r:.200}")
        return data

    async def list_documents(self, collection_id: str) -> list[Document]:
        try:
            data = await self._request("GET", f"/notes/{collection_id}/children")
        except GatewayError as e:
            logger.error(
                f"list_documents failed: collection_id={collection_id} error={e}"
            )
            raise

        return [
            Document(
                id=note["id"],
                title=note.get("title") or "",
                parent_id=note.get("parentNoteId") or collection_id,
            )
            for note in data.get("notes", [])
        ]

    async def get_document(self, document_id: str) -> Optional[Document]:
        try:
            data = await self._request("GET", f"/notes/{document_id}")
        except GatewayError as e:
            logger.error(f"get_document failed: document_id={document_id} error={e}")
            raise

        if not data:
            return None
        content = data.get("content") or data.get("markdown") or ""
        return Document(
            id=data.get("id", document_id),
            title=data.get("title") or "",
            content=content,
            parent_id=data.get("parentNoteId"),
            metadata=parse_front_matter(content).as_dict(),
        )

    async def find_document_by_title(
        self, title: str, collection_id: str
    ) -> Optional[Document]:
        documents = await self.list_documents(collection_id)
        match = next(
            (doc for doc in documents if doc.title.lower() == title.lower()), None
        )
        if match is None:
            return None

        document = await self.get_document(match.id)
        if document is not None and not document.title:
            document.title = match.title
        return document

    async def create_document(
        self, title: str, markdown: str, collection_id: str
    ) -> DocumentResult:
        """Create a note under a collection."""
        try:
            data = await self._request(
                "POST",
                "/notes",
                json={
                    "title": title,
                    "markdown": markdown,
                    "parentNoteId": collection_id,
                },
            )
        except GatewayError as e:
            logger.error(
                f"create_document failed: title={title!r} "
                f"collection_id={collection_id} error={e}"
            )
            return DocumentResult(success=False, message=str(e))

        return DocumentResult(
            success=True,
            message="Document created in Slite",
            document_id=data.get("id"),
        )

    async def update_document(self, document_id: str, markdown: str) -> DocumentResult:
        """Replace a note's body."""
        try:
            data = await self._request(
                "PUT", f"/notes/{document_id}", json={"markdown": markdown}
            )
        except GatewayError as e:
            logger.error(
                f"update_document failed: document_id={document_id} error={e}"
            )
            return DocumentResult(success=False, message=str(e))

        return DocumentResult(
            success=True,
            message="Document updated in Slite",
            document_id=data.get("id", document_id),
        )
