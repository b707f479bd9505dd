"""Node registry — the fixed, ordered pool of interchangeable nodes.

Index 0 is the primary node by convention; the rest are backups in the
order failover visits them.  The registry never changes after
construction.
"""

from __future__ import annotations

from collections.abc import Iterator, Sequence
from dataclasses import dataclass

from src.core.config import Settings
from src.core.errors import UnknownNodeError


@dataclass(frozen=True)
class NodeDescriptor:
    """One candidate endpoint.

    Attributes:
        index:   Position in the registry (0 = primary).
        address: Base URL without a trailing slash.
    """

    index: int
    address: str

    def url_for(self, path: str) -> str:
        """Join *path* onto this node's address."""
        if not path:
            return self.address
        if not path.startswith("/"):
            path = f"/{path}"
        return f"{self.address}{path}"


class NodeRegistry:
    """Immutable ordered list of ``NodeDescriptor``.

    Raises:
        ValueError: If *addresses* contains no usable address.
    """

    def __init__(self, addresses: Sequence[str]) -> None:
        cleaned = [a.strip().rstrip("/") for a in addresses if a and a.strip()]
        if not cleaned:
            raise ValueError("Node registry requires at least one address")
        self._nodes: tuple[NodeDescriptor, ...] = tuple(
            NodeDescriptor(index=i, address=address) for i, address in enumerate(cleaned)
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> NodeRegistry:
        return cls(settings.node_addresses())

    @property
    def nodes(self) -> tuple[NodeDescriptor, ...]:
        return self._nodes

    @property
    def primary(self) -> NodeDescriptor:
        return self._nodes[0]

    def contains(self, index: int) -> bool:
        return 0 <= index < len(self._nodes)

    def __getitem__(self, index: int) -> NodeDescriptor:
        if not self.contains(index):
            raise UnknownNodeError(index, len(self._nodes))
        return self._nodes[index]

    def __len__(self) -> int:
        return len(self._nodes)

    def __iter__(self) -> Iterator[NodeDescriptor]:
        return iter(self._nodes)

    def __repr__(self) -> str:
        return f"NodeRegistry({[n.address for n in self._nodes]!r})"
