from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional

NOT_AVAILABLE = "[n/a]"
NOT_SCANNED = "[n/s]"


def utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class ResultType(str, enum.Enum):
    UNKNOWN = "unknown"
    DEAD = "dead"
    ALIVE = "alive"
    WITH_PORTS = "with_ports"


@dataclass
class ScanningResult:
    address: str
    values: Dict[str, str] = field(default_factory=dict)
    result_type: ResultType = ResultType.UNKNOWN
    mac: Optional[str] = None
    scan_id: Optional[str] = None
    ts: str = field(default_factory=utcnow_iso)

    def add_value(self, fetcher_id: str, value: str) -> None:
        self.values[fetcher_id] = value

    def get_value(self, fetcher_id: str) -> Optional[str]:
        return self.values.get(fetcher_id)

    def to_doc(self) -> Dict[str, Any]:
        return {
            "address": self.address,
            "values": dict(self.values),
            "type": self.result_type.value,
            "mac": self.mac,
            "scan_id": self.scan_id,
            "@timestamp": self.ts,
        }
