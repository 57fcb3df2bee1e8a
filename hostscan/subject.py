from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from hostscan.config import ScannerConfig
from hostscan.models import ResultType


@dataclass
class SubjectSignals:
    """Values one fetcher leaves for later fetchers of the same host."""

    adapted_port_timeout_ms: Optional[int] = None
    avg_rtt_ms: Optional[int] = None
    mac: Optional[str] = None


class ScanningSubject:
    """Mutable state for one host while its fetcher chain runs.

    Owned by a single pipeline. ``config`` is shared across all hosts and
    must not be mutated.
    """

    def __init__(self, address: str, config: ScannerConfig):
        self.address = address
        self.config = config
        self.signals = SubjectSignals()
        self.result_type = ResultType.UNKNOWN
        self._aborted = False

    def abort(self) -> None:
        self._aborted = True

    @property
    def aborted(self) -> bool:
        return self._aborted

    def set_adapted_port_timeout(self, timeout_ms: int) -> None:
        self.signals.adapted_port_timeout_ms = timeout_ms

    @property
    def port_timeout_ms(self) -> int:
        if self.signals.adapted_port_timeout_ms is not None:
            return self.signals.adapted_port_timeout_ms
        return self.config.port_timeout_ms

    def __repr__(self) -> str:
        return f"ScanningSubject({self.address!r}, type={self.result_type.value}, aborted={self._aborted})"
