"""Global keyed store shared by every pass of a document.

State-variable nodes read and write entries under a user-chosen key. Channel
nodes use the reserved ``__channel_`` prefix so that a SEND_DATA node and any
RECEIVE_DATA node with the same channel name exchange values without a wire.
"""

from typing import Any, Dict, Iterator, List, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from weft.backends.base import StoreBackend
    from weft.core.graph import NodeRecord

CHANNEL_PREFIX = "__channel_"


def channel_key(channel_name: str) -> str:
    """Store key used for a named channel."""
    return f"{CHANNEL_PREFIX}{channel_name}"


class GlobalStore:
    """A single mutable key/value map referenced by all passes.

    The engine is single-threaded, so writes are visible to every pass
    scheduled afterwards without locking.

    Example:
        >>> store = GlobalStore()
        >>> store.set("counter", 1)
        >>> store.send("scores", [3, 4])
        >>> store.receive("scores")
        [3, 4]
    """

    def __init__(self, entries: Optional[Dict[str, Any]] = None):
        self._entries: Dict[str, Any] = dict(entries or {})

    def get(self, key: str, default: Any = None) -> Any:
        return self._entries.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self._entries[key] = value

    def has(self, key: str) -> bool:
        return key in self._entries

    def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()

    def keys(self) -> List[str]:
        return list(self._entries.keys())

    def send(self, channel_name: str, value: Any) -> None:
        """Publish a value on a named channel."""
        self._entries[channel_key(channel_name)] = value

    def receive(self, channel_name: str, default: Any = None) -> Any:
        """Read the last value published on a named channel."""
        return self._entries.get(channel_key(channel_name), default)

    def channels(self) -> List[str]:
        """Names of every channel that has been written."""
        return [
            key[len(CHANNEL_PREFIX):]
            for key in self._entries
            if key.startswith(CHANNEL_PREFIX)
        ]

    def discard_node_entries(self, node: "NodeRecord") -> None:
        """Drop the entry a deleted STATE node owned.

        Channels are shared between senders and receivers, so they are left
        in place.
        """
        state_id = node.config.get("state_id")
        if node.operation_type == "STATE" and state_id:
            self.delete(state_id)

    def snapshot(self) -> Dict[str, Any]:
        """Copy of all entries, for the persistence layer."""
        return dict(self._entries)

    def load(self, entries: Dict[str, Any]) -> None:
        """Replace all entries, as happens when a document is loaded."""
        self._entries = dict(entries)

    async def save_to(self, backend: "StoreBackend", document_id: str) -> None:
        """Persist the current entries for a document.

        Called by the host application, never by the engine. Passes read and
        write live Python values; only a backend may encode them.

        Args:
            backend: StoreBackend instance
            document_id: Identifier of the document owning this store
        """
        await backend.save(document_id, self.snapshot())

    @classmethod
    async def load_from(
        cls, backend: "StoreBackend", document_id: str
    ) -> "GlobalStore":
        """Create a store from the entries persisted for a document.

        Called by the host application before the first pass. Returns an
        empty store when the backend has nothing for the document.
        """
        entries = await backend.load(document_id)
        return cls(entries or {})

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._entries))

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"GlobalStore(entries={len(self._entries)})"
