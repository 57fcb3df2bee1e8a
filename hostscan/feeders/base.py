from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional


class Feeder(ABC):
    """Single-pass source of target addresses."""

    @abstractmethod
    async def next_address(self) -> Optional[str]:
        """Return the next address, or None once exhausted."""

    @abstractmethod
    def total_addresses(self) -> int:
        """Approximate number of addresses, for progress only."""

    def __aiter__(self):
        return self

    async def __anext__(self) -> str:
        addr = await self.next_address()
        if addr is None:
            raise StopAsyncIteration
        return addr
