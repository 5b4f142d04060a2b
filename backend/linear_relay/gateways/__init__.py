"""Gateways to the tracker and the document store."""

from .base import (
    Document,
    DocumentResult,
    DocumentStore,
    EntityGateway,
    GatewayError,
)
from .linear import LinearGateway
from .slite import SliteDocumentStore

__all__ = [
    "Document",
    "DocumentResult",
    "DocumentStore",
    "EntityGateway",
    "GatewayError",
    "LinearGateway",
    "SliteDocumentStore",
]
