from __future__ import annotations

from abc import ABC, abstractmethod

from hostscan.logging_setup import get_logger
from hostscan.subject import ScanningSubject


class Fetcher(ABC):
    """One kind of per-host probe.

    ``scan`` returns the formatted value for the result table. It may read
    and write the subject (classification, abort flag, signals); that is
    the only channel between fetchers. I/O problems should surface as
    ``ProbeFailure`` or ``OSError``; the scanner turns them into ``[n/a]``.
    """

    id: str = ""
    name: str = ""

    def __init__(self) -> None:
        self.log = get_logger(f"hostscan.fetchers.{self.id or self.__class__.__name__}")

    @abstractmethod
    async def scan(self, subject: ScanningSubject) -> str:
        ...

    async def close(self) -> None:
        """Release resources held for a scan. Called once every pipeline has finished."""

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(id={self.id!r})"
