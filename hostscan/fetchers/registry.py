from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Tuple

from hostscan.config import ScannerConfig
from hostscan.errors import UnknownFetcherError
from hostscan.fetchers.base import Fetcher
from hostscan.fetchers.hostname import HostnameFetcher
from hostscan.fetchers.mac import MacFetcher
from hostscan.fetchers.ping import PingFetcher
from hostscan.fetchers.ports import PortsFetcher
from hostscan.logging_setup import get_logger

log = get_logger(__name__)


class FetcherRegistry:
    """Registered fetchers by id, plus the ordered selection that runs.

    Build and select before the scan; the scanner only reads ``selected_fetchers()``.
    """

    def __init__(self) -> None:
        self._fetchers: Dict[str, Fetcher] = {}
        self._selected: Optional[List[str]] = None

    @classmethod
    def with_defaults(cls, config: ScannerConfig) -> "FetcherRegistry":
        reg = cls()
        reg.register(PingFetcher(config))
        reg.register(HostnameFetcher(config))
        reg.register(PortsFetcher(config))
        reg.register(MacFetcher())
        return reg

    def register(self, fetcher: Fetcher) -> None:
        if not fetcher.id:
            raise ValueError(f"{fetcher!r} has no id")
        if fetcher.id in self._fetchers:
            log.warning("fetcher_overridden", fetcher=fetcher.id, new=type(fetcher).__name__)
        self._fetchers[fetcher.id] = fetcher

    def select(self, ids: Iterable[str]) -> None:
        chosen: List[str] = []
        for fid in ids:
            if fid not in self._fetchers:
                raise UnknownFetcherError(fid)
            if fid not in chosen:
                chosen.append(fid)
        self._selected = chosen

    def get(self, fetcher_id: str) -> Fetcher:
        try:
            return self._fetchers[fetcher_id]
        except KeyError:
            raise UnknownFetcherError(fetcher_id) from None

    def fetchers(self) -> List[Fetcher]:
        return list(self._fetchers.values())

    def selected_fetchers(self) -> Tuple[Fetcher, ...]:
        """Immutable snapshot; later register/select calls don't affect it."""
        ids = self._selected if self._selected is not None else list(self._fetchers)
        return tuple(self._fetchers[i] for i in ids)

    def __len__(self) -> int:
        return len(self._fetchers)

    def __contains__(self, fetcher_id: object) -> bool:
        return fetcher_id in self._fetchers
