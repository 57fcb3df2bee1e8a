from __future__ import annotations

import asyncio
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from hostscan.logging_setup import get_logger
from hostscan.models import ScanningResult, utcnow_iso
from hostscan.orchestrator import Scanner

log = get_logger(__name__)


@dataclass
class ScanRecord:
    scan_id: str
    scanner: Scanner
    results: List[ScanningResult] = field(default_factory=list)
    error: Optional[str] = None
    created: str = field(default_factory=utcnow_iso)

    def to_doc(self) -> Dict[str, Any]:
        return {
            "scan_id": self.scan_id,
            "created": self.created,
            "progress": self.scanner.progress.to_doc(),
            "error": self.error,
            "results": [r.to_doc() for r in self.results],
        }


class ScanStore:
    """Scans held in memory, oldest evicted past ``max_scans``."""

    def __init__(self, max_scans: int = 32):
        self.max_scans = max(1, max_scans)
        self._scans: "OrderedDict[str, ScanRecord]" = OrderedDict()
        self._lock = asyncio.Lock()

    async def add(self, record: ScanRecord) -> None:
        async with self._lock:
            self._scans[record.scan_id] = record
            while len(self._scans) > self.max_scans:
                evicted_id, evicted = self._scans.popitem(last=False)
                # an evicted scan stops dispatching new hosts
                evicted.scanner.stop()
                log.info("scan_evicted", scan_id=evicted_id, state=evicted.scanner.progress.state)

    async def append_result(self, result: ScanningResult) -> None:
        async with self._lock:
            record = self._scans.get(result.scan_id)
            # results of an evicted scan are dropped
            if record is None:
                return
            record.results.append(result)

    async def set_error(self, scan_id: str, error: str) -> None:
        async with self._lock:
            record = self._scans.get(scan_id)
            if record is not None:
                record.error = error

    def get(self, scan_id: str) -> Optional[ScanRecord]:
        return self._scans.get(scan_id)

    def __len__(self) -> int:
        return len(self._scans)
