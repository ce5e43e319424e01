"""
Storefront registry: the replica spaces products are propagated to.
"""
from typing import Iterable, Iterator, Optional, Sequence

from app.core.config import settings


class StorefrontRegistry:
    """Known storefronts, resolved once from configuration."""

    def __init__(self, storefronts: Iterable[str]) -> None:
        self._storefronts = list(dict.fromkeys(s.strip() for s in storefronts if s and s.strip()))

    @classmethod
    def from_settings(cls) -> "StorefrontRegistry":
        return cls(settings.storefronts)

    @property
    def storefronts(self) -> list[str]:
        return list(self._storefronts)

    def targets(self, assigned: Optional[Sequence[str]] = None) -> list[str]:
        """Storefronts to propagate to: the assigned ones if any, else all."""
        if assigned:
            return list(dict.fromkeys(assigned))
        return self.storefronts

    def __iter__(self) -> Iterator[str]:
        return iter(self._storefronts)

    def __contains__(self, storefront: object) -> bool:
        return storefront in self._storefronts

    def __len__(self) -> int:
        return len(self._storefronts)
