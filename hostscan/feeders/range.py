from __future__ import annotations

import ipaddress
import sys
from typing import Optional, Union

from hostscan.errors import InvalidRangeError
from hostscan.feeders.base import Feeder

IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]


class RangeFeeder(Feeder):
    """Every address in [start, end], ascending, for one address family."""

    def __init__(self, start: IPAddress, end: IPAddress):
        if start.version != end.version:
            raise InvalidRangeError(f"Address families differ: {start} / {end}")
        if start > end:
            raise InvalidRangeError(f"Start address {start} is above end address {end}")
        self.start = start
        self.end = end
        self._current = int(start)
        self._end = int(end)
        self._cls = type(start)
        self._finished = False

    @classmethod
    def from_strings(cls, start: str, end: str) -> "RangeFeeder":
        try:
            return cls(ipaddress.ip_address(start.strip()), ipaddress.ip_address(end.strip()))
        except ValueError as e:
            raise InvalidRangeError(str(e)) from e

    async def next_address(self) -> Optional[str]:
        if self._finished:
            return None
        addr = self._cls(self._current)
        # check before incrementing so 255.255.255.255 / ffff:...:ffff is still emitted
        if self._current == self._end:
            self._finished = True
        else:
            self._current += 1
        return str(addr)

    def total_addresses(self) -> int:
        return min(int(self.end) - int(self.start) + 1, sys.maxsize)

    def __repr__(self) -> str:
        return f"RangeFeeder({self.start} - {self.end})"
