"""In-memory store backend for tests and single-process editors."""

import copy
from typing import Any, Dict, List, Optional


class MemoryBackend:
    """Keeps store snapshots in a dictionary.

    Snapshots are deep-copied on the way in and out so that later mutations of
    a live store never leak into the saved copy.
    """

    def __init__(self):
        self._documents: Dict[str, Dict[str, Any]] = {}

    async def save(self, document_id: str, entries: Dict[str, Any]) -> None:
        self._documents[document_id] = copy.deepcopy(entries)

    async def load(self, document_id: str) -> Optional[Dict[str, Any]]:
        if document_id in self._documents:
            return copy.deepcopy(self._documents[document_id])
        return None

    async def delete(self, document_id: str) -> None:
        self._documents.pop(document_id, None)

    async def exists(self, document_id: str) -> bool:
        return document_id in self._documents

    async def list_documents(self) -> List[str]:
        return list(self._documents.keys())

    def clear_all(self) -> None:
        """Drop every snapshot."""
        self._documents.clear()

    def __repr__(self) -> str:
        return f"MemoryBackend(documents={len(self._documents)})"
