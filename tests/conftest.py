from __future__ import annotations

import pytest

from hostscan.config import ScannerConfig


@pytest.fixture
def make_config():
    """ScannerConfig with fixed values, independent of SCAN_* env vars."""

    def _make(**overrides) -> ScannerConfig:
        values = dict(
            max_threads=4,
            ping_timeout_ms=100,
            ping_count=3,
            scan_dead_hosts=False,
            port_string="80",
            use_requested_ports=False,
            port_timeout_ms=500,
            min_port_timeout_ms=100,
            adapt_port_timeout=True,
            dns_timeout_ms=100,
            profile=None,
        )
        values.update(overrides)
        return ScannerConfig(**values)

    return _make
