"""Base classes for the tracker gateway and the document store."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional

from ..models import Comment, CycleData, IssueData, WorkflowState


class GatewayError(Exception):
    """Raised inside a gateway when a remote call fails.

    Never escapes the public ``EntityGateway`` methods; the document store
    raises it from reads so callers can tell "missing" from "unreachable".
    """


@dataclass
class Document:
    """A document in the collaboration service.

    Attributes:
        id: Document (note) id
        title: Document title
        content: Markdown body, empty when only listed
        parent_id: Collection the document lives in
        metadata: Front-matter key/values parsed from the body
    """

    id: str
    title: str
    content: str = ""
    parent_id: Optional[str] = None
    metadata: dict = field(default_factory=dict)


@dataclass
class DocumentResult:
    """Result of a write to the document store.

    Attributes:
        success: Whether the operation completed successfully
        message: Human-readable result message
        document_id: Id of the created or updated document
    """

    success: bool
    message: str
    document_id: Optional[str] = None


class EntityGateway(ABC):
    """Read-mostly lookup service over the tracker.

    Implementations return ``None`` or ``[]`` on failure and never raise.
    """

    @abstractmethod
    async def get_workflow_state(self, state_id: str) -> Optional[WorkflowState]:
        pass

    @abstractmethod
    async def get_cycle(self, cycle_id: str) -> Optional[CycleData]:
        pass

    @abstractmethod
    async def get_issues_by_label(self, label_id: str) -> list[IssueData]:
        pass

    @abstractmethod
    async def get_issues_by_label_parent(self, parent_id: str) -> list[IssueData]:
        pass

    @abstractmethod
    async def get_issues_by_cycle(self, cycle_id: str) -> list[IssueData]:
        pass

    @abstractmethod
    async def get_issue_comments(self, issue_id: str) -> list[Comment]:
        pass


class DocumentStore(ABC):
    """Document collaboration service holding release and retro documents."""

    @abstractmethod
    async def list_documents(self, collection_id: str) -> list[Document]:
        """List the documents directly under a collection.

        Args:
            collection_id: Parent note id

        Returns:
            Documents without content

        Raises:
            GatewayError: If the collection cannot be listed
        """
        pass

    @abstractmethod
    async def get_document(self, document_id: str) -> Optional[Document]:
        pass

    @abstractmethod
    async def find_document_by_title(
        self, title: str, collection_id: str
    ) -> Optional[Document]:
        """Find a document by title (case-insensitive) within a collection.

        Args:
            title: Title to look for
            collection_id: Parent note id to scan

        Returns:
            Full document with parsed metadata, or None if not found

        Raises:
            GatewayError: If the store cannot be reached
        """
        pass

    @abstractmethod
    async def create_document(
        self, title: str, markdown: str, collection_id: str
    ) -> DocumentResult:
        pass

    @abstractmethod
    async def update_document(self, document_id: str, markdown: str) -> DocumentResult:
        pass
