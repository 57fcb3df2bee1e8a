from __future__ import annotations

import asyncio
import math
import re
import sys
import time
from typing import List, Optional

from hostscan.config import ScannerConfig
from hostscan.errors import ProbeFailure
from hostscan.fetchers.base import Fetcher
from hostscan.models import NOT_AVAILABLE, ResultType
from hostscan.subject import ScanningSubject

_RTT_RE = re.compile(r"time[=<]\s*([\d.]+)\s*ms", re.IGNORECASE)


def build_ping_cmd(address: str, timeout_ms: int, platform: str = sys.platform) -> List[str]:
    ipv6 = ":" in address
    if platform.startswith("win"):
        cmd = ["ping", "-n", "1", "-w", str(timeout_ms)]
        if ipv6:
            cmd.append("-6")
    elif platform == "darwin":
        cmd = ["ping6" if ipv6 else "ping", "-c", "1"]
        if not ipv6:
            cmd.extend(["-W", str(timeout_ms)])
    else:
        cmd = ["ping", "-c", "1", "-W", str(max(1, math.ceil(timeout_ms / 1000)))]
        if ipv6:
            cmd.append("-6")
    cmd.append(address)
    return cmd


def parse_rtt_ms(output: str) -> Optional[float]:
    m = _RTT_RE.search(output)
    if not m:
        return None
    try:
        return float(m.group(1))
    except ValueError:
        return None


class PingFetcher(Fetcher):
    """Liveness: ``ping_count`` sequential echo requests via the system ping."""

    id = "ping"
    name = "Ping"

    def __init__(self, config: ScannerConfig):
        super().__init__()
        self.config = config

    async def _ping_once(self, address: str) -> Optional[float]:
        """Round-trip time in ms for one echo, or None if it got no reply."""
        timeout_ms = self.config.ping_timeout_ms
        cmd = build_ping_cmd(address, timeout_ms)
        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd, stdout=asyncio.subprocess.PIPE, stderr=asyncio.subprocess.DEVNULL
            )
        except (FileNotFoundError, PermissionError) as e:
            raise ProbeFailure(self.id, f"cannot run {cmd[0]}", e) from e
        started = time.monotonic()
        try:
            stdout, _ = await asyncio.wait_for(proc.communicate(), timeout=timeout_ms / 1000.0)
        except asyncio.TimeoutError:
            try:
                proc.kill()
            except ProcessLookupError:
                pass
            await proc.wait()
            return None
        elapsed_ms = (time.monotonic() - started) * 1000.0
        if proc.returncode != 0:
            return None
        rtt = parse_rtt_ms(stdout.decode(errors="ignore"))
        return rtt if rtt is not None else elapsed_ms

    async def scan(self, subject: ScanningSubject) -> str:
        total_ms = 0.0
        replies = 0
        for seq in range(self.config.ping_count):
            rtt = await self._ping_once(subject.address)
            self.log.debug("ping_attempt", address=subject.address, seq=seq, rtt_ms=rtt)
            if rtt is not None:
                total_ms += rtt
                replies += 1

        if replies:
            subject.result_type = ResultType.ALIVE
            avg_ms = int(total_ms / replies)
            subject.signals.avg_rtt_ms = avg_ms
            if self.config.adapt_port_timeout:
                subject.set_adapted_port_timeout(max(avg_ms * 3, self.config.min_port_timeout_ms))
            return f"{avg_ms} ms"

        subject.result_type = ResultType.DEAD
        if not self.config.scan_dead_hosts:
            subject.abort()
        return NOT_AVAILABLE
