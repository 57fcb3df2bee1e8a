from __future__ import annotations

import asyncio
from typing import List

from hostscan.config import ScannerConfig
from hostscan.fetchers.base import Fetcher
from hostscan.models import NOT_AVAILABLE, NOT_SCANNED, ResultType
from hostscan.ports import PortIterator, compress_ports
from hostscan.subject import ScanningSubject


class PortsFetcher(Fetcher):
    """TCP connect probe of every configured port, one port at a time."""

    id = "ports"
    name = "Ports"

    def __init__(self, config: ScannerConfig):
        super().__init__()
        self.config = config
        # raises PortSpecError before any host is scanned
        self.ports = PortIterator(config.port_string)

    async def probe(self, address: str, port: int, timeout_ms: int) -> bool:
        try:
            _, writer = await asyncio.wait_for(asyncio.open_connection(address, port), timeout=timeout_ms / 1000.0)
        except (OSError, asyncio.TimeoutError):
            return False
        writer.close()
        try:
            await writer.wait_closed()
        except OSError:
            pass
        return True

    async def scan(self, subject: ScanningSubject) -> str:
        if self.ports.is_empty():
            return NOT_SCANNED

        timeout_ms = subject.port_timeout_ms
        open_ports: List[int] = []
        for port in self.ports:
            if await self.probe(subject.address, port, timeout_ms):
                open_ports.append(port)

        self.log.debug(
            "ports_probed", address=subject.address, checked=len(self.ports), open=len(open_ports), timeout_ms=timeout_ms
        )
        if not open_ports:
            return NOT_AVAILABLE
        subject.result_type = ResultType.WITH_PORTS
        return compress_ports(open_ports)
