from __future__ import annotations

from typing import Optional


class ScanError(Exception):
    pass


class ConstructionError(ScanError):
    """Raised before any host pipeline starts: bad range, ports or config."""


class InvalidRangeError(ConstructionError):
    def __init__(self, message: str = "Invalid IP range"):
        super().__init__(message)


class PortSpecError(ConstructionError):
    def __init__(self, token: str, reason: str):
        self.token = token
        self.reason = reason
        super().__init__(f"{reason}: {token!r}")


class ConfigError(ConstructionError):
    pass


class ProbeFailure(ScanError):
    def __init__(self, fetcher_id: str, message: str, cause: Optional[BaseException] = None):
        self.fetcher_id = fetcher_id
        self.cause = cause
        super().__init__(f"{fetcher_id}: {message}")


class PipelineFault(ScanError):
    def __init__(self, address: str, cause: BaseException):
        self.address = address
        self.cause = cause
        super().__init__(f"pipeline for {address} failed: {cause!r}")


class UnknownFetcherError(ConstructionError):
    def __init__(self, fetcher_id: str):
        self.fetcher_id = fetcher_id
        super().__init__(f"Unknown fetcher: {fetcher_id!r}")
