"""Base protocol for global store persistence backends.

A backend keeps one snapshot of store entries per document id. Backends sit
outside the execution engine: no pass calls a backend, and the engine never
encodes store entries. The host application saves and loads snapshots around
document open and close, and each backend owns its own encoding.
"""

from typing import Any, Dict, List, Optional, Protocol, runtime_checkable


@runtime_checkable
class StoreBackend(Protocol):
    """Protocol for store snapshot backends."""

    async def save(self, document_id: str, entries: Dict[str, Any]) -> None:
        """Save the store entries of a document.

        Args:
            document_id: Document identifier
            entries: Store entries to persist
        """
        ...

    async def load(self, document_id: str) -> Optional[Dict[str, Any]]:
        """Load the store entries of a document.

        Returns:
            Entries dictionary or None if nothing was saved
        """
        ...

    async def delete(self, document_id: str) -> None:
        ...

    async def exists(self, document_id: str) -> bool:
        ...

    async def list_documents(self) -> List[str]:
        """List all document ids with a saved snapshot."""
        ...
