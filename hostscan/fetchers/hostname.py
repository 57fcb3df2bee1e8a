from __future__ import annotations

import asyncio
import socket
from concurrent.futures import ThreadPoolExecutor
from typing import Optional, Tuple

from hostscan.config import ScannerConfig
from hostscan.fetchers.base import Fetcher
from hostscan.models import NOT_AVAILABLE
from hostscan.subject import ScanningSubject


class HostnameFetcher(Fetcher):
    """Reverse DNS name. Never fails: anything unresolved becomes ``[n/a]``.

    Lookups run on a pool with one worker per host pipeline, and the DNS
    timeout starts once a worker has picked the lookup up.
    """

    id = "hostname"
    name = "Hostname"

    def __init__(self, config: ScannerConfig):
        super().__init__()
        self.config = config
        self._executor: Optional[ThreadPoolExecutor] = None

    def _pool(self) -> ThreadPoolExecutor:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=self.config.max_threads, thread_name_prefix="hostscan-dns"
            )
        return self._executor

    async def _lookup(self, address: str) -> Tuple[str, list, list]:
        loop = asyncio.get_running_loop()
        started = asyncio.Event()

        def resolve():
            loop.call_soon_threadsafe(started.set)
            return socket.gethostbyaddr(address)

        fut = loop.run_in_executor(self._pool(), resolve)
        await started.wait()
        return await asyncio.wait_for(fut, timeout=self.config.dns_timeout_ms / 1000.0)

    async def scan(self, subject: ScanningSubject) -> str:
        try:
            hostname, _, _ = await self._lookup(subject.address)
        except (OSError, UnicodeError, asyncio.TimeoutError) as e:
            self.log.debug("reverse_lookup_failed", address=subject.address, error=str(e))
            return NOT_AVAILABLE
        return hostname or NOT_AVAILABLE

    async def close(self) -> None:
        if self._executor is not None:
            # lookups stuck past their timeout are abandoned, not joined
            self._executor.shutdown(wait=False, cancel_futures=True)
            self._executor = None
