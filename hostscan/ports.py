from __future__ import annotations

from typing import Iterable, Iterator, List, Sequence

from hostscan.errors import PortSpecError

MAX_PORT = 65535
MAX_PORTS = 65535


def _parse_port(token: str, whole: str) -> int:
    t = token.strip()
    if not (t.isascii() and t.isdigit()):
        raise PortSpecError(whole, "Invalid port number")
    v = int(t)
    if v > MAX_PORT:
        raise PortSpecError(whole, "Port out of range")
    return v


def parse_ports(spec: str) -> List[int]:
    """
    Parse a port specification:
    - CSV: "80,443,22"
    - Ranges: "20-25" (inclusive, lo <= hi)
    Whitespace around tokens is ignored. An empty or blank spec yields [].
    Returns a sorted unique list of ints in [0,65535]. Raises PortSpecError
    naming the offending token.
    """
    if not spec or not spec.strip():
        return []
    out: set[int] = set()
    for part in spec.split(","):
        p = part.strip()
        if not p:
            raise PortSpecError(part, "Empty port token")
        if "-" in p:
            bounds = p.split("-")
            if len(bounds) != 2:
                raise PortSpecError(p, "Invalid port range")
            start = _parse_port(bounds[0], p)
            end = _parse_port(bounds[1], p)
            if start > end:
                raise PortSpecError(p, "Inverted port range")
            # fail before materializing an oversized expansion
            added = (end - start + 1) - sum(1 for v in out if start <= v <= end)
            if len(out) + added > MAX_PORTS:
                raise PortSpecError(p, f"Too many ports specified (max: {MAX_PORTS})")
            out.update(range(start, end + 1))
        else:
            out.add(_parse_port(p, p))
            if len(out) > MAX_PORTS:
                raise PortSpecError(p, f"Too many ports specified (max: {MAX_PORTS})")
    return sorted(out)


def compress_ports(ports: Sequence[int]) -> str:
    """Render sorted unique ports as "22,80-82,443"."""
    if not ports:
        return ""
    ranges: List[str] = []
    start = end = ports[0]
    for port in ports[1:]:
        if port == end + 1:
            end = port
            continue
        ranges.append(str(start) if start == end else f"{start}-{end}")
        start = end = port
    ranges.append(str(start) if start == end else f"{start}-{end}")
    return ",".join(ranges)


class PortIterator:
    """Ascending, de-duplicated ports of one spec. Iterating again restarts."""

    def __init__(self, spec: str):
        self.spec = spec
        self._ports = parse_ports(spec)

    @classmethod
    def from_ports(cls, ports: Iterable[int]) -> "PortIterator":
        return cls(compress_ports(sorted(set(ports))))

    def __iter__(self) -> Iterator[int]:
        return iter(self._ports)

    def __len__(self) -> int:
        return len(self._ports)

    def is_empty(self) -> bool:
        return not self._ports

    def ports(self) -> List[int]:
        return list(self._ports)
