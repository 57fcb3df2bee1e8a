from __future__ import annotations

import asyncio
import re
import sys
from pathlib import Path
from typing import List, Optional

from hostscan.fetchers.base import Fetcher
from hostscan.models import NOT_AVAILABLE
from hostscan.subject import ScanningSubject

PROC_ARP = Path("/proc/net/arp")
NEIGHBOR_TIMEOUT_S = 2.0

_MAC_RE = re.compile(r"^[0-9a-f]{1,2}([:-][0-9a-f]{1,2}){5}$", re.IGNORECASE)


def normalize_mac(raw: str) -> Optional[str]:
    mac = raw.strip().replace("-", ":")
    if not _MAC_RE.match(mac):
        return None
    mac = ":".join(part.zfill(2) for part in mac.split(":")).upper()
    if mac == "00:00:00:00:00:00":
        return None
    return mac


def parse_proc_arp(text: str, address: str) -> Optional[str]:
    for line in text.splitlines()[1:]:
        parts = line.split()
        if len(parts) >= 6 and parts[0] == address:
            return normalize_mac(parts[3])
    return None


def parse_ip_neigh(text: str) -> Optional[str]:
    parts = text.split()
    if "lladdr" in parts:
        pos = parts.index("lladdr")
        if pos + 1 < len(parts):
            return normalize_mac(parts[pos + 1])
    return None


def parse_arp_output(text: str, address: str) -> Optional[str]:
    """Handles ``arp -n`` (Linux/BSD/macOS) and ``arp -a`` (Windows) tables."""
    for line in text.splitlines():
        if address not in line.replace("(", " ").replace(")", " ").split():
            continue
        for token in line.split():
            mac = normalize_mac(token)
            if mac:
                return mac
    return None


class MacFetcher(Fetcher):
    """Link-layer address from the local neighbor table (same segment only)."""

    id = "mac"
    name = "MAC Address"

    def __init__(self, platform: str = sys.platform, proc_arp: Path = PROC_ARP):
        super().__init__()
        self.platform = platform
        self.proc_arp = proc_arp

    async def _run(self, cmd: List[str]) -> str:
        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd, stdout=asyncio.subprocess.PIPE, stderr=asyncio.subprocess.DEVNULL
            )
        except (FileNotFoundError, PermissionError):
            self.log.debug("neighbor_tool_missing", cmd=cmd[0])
            return ""
        try:
            stdout, _ = await asyncio.wait_for(proc.communicate(), timeout=NEIGHBOR_TIMEOUT_S)
        except asyncio.TimeoutError:
            try:
                proc.kill()
            except ProcessLookupError:
                pass
            await proc.wait()
            return ""
        return stdout.decode(errors="ignore")

    async def _lookup_linux(self, address: str) -> Optional[str]:
        if ":" not in address:
            try:
                text = await asyncio.to_thread(self.proc_arp.read_text)
            except OSError:
                text = ""
            mac = parse_proc_arp(text, address)
            if mac:
                return mac
        mac = parse_ip_neigh(await self._run(["ip", "neigh", "show", address]))
        if mac:
            return mac
        return parse_arp_output(await self._run(["arp", "-n", address]), address)

    async def lookup(self, address: str) -> Optional[str]:
        if self.platform.startswith("linux"):
            return await self._lookup_linux(address)
        if self.platform == "darwin" or "bsd" in self.platform:
            return parse_arp_output(await self._run(["arp", "-n", address]), address)
        if self.platform.startswith("win"):
            return parse_arp_output(await self._run(["arp", "-a", address]), address)
        return None

    async def scan(self, subject: ScanningSubject) -> str:
        mac = await self.lookup(subject.address)
        if not mac:
            return NOT_AVAILABLE
        subject.signals.mac = mac
        return mac
