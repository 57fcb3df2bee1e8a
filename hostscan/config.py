from __future__ import annotations

import dataclasses
import os
from dataclasses import dataclass, field
from typing import Any, Optional

from hostscan.errors import ConfigError
from hostscan.ports import parse_ports

DEFAULT_PORT_STRING = "80,443,8080,3389,22,23,21,25,110,139,445"


def _getenv(name: str, default: Optional[str] = None) -> Optional[str]:
    v = os.getenv(name)
    return v if v is not None else default


def _getint(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except Exception:
        return default


def _getbool(name: str, default: bool = False) -> bool:
    v = os.getenv(name)
    if v is None:
        return default
    return v.lower() in ("1", "true", "yes", "y", "on")


@dataclass(frozen=True)
class ScannerConfig:
    # concurrency
    max_threads: int = field(default_factory=lambda: _getint("SCAN_MAX_THREADS", 100))
    # liveness
    ping_timeout_ms: int = field(default_factory=lambda: _getint("SCAN_PING_TIMEOUT_MS", 2000))
    ping_count: int = field(default_factory=lambda: _getint("SCAN_PING_COUNT", 3))
    scan_dead_hosts: bool = field(default_factory=lambda: _getbool("SCAN_DEAD_HOSTS", False))
    # ports
    port_string: str = field(
        default_factory=lambda: _getenv("SCAN_PORTS", DEFAULT_PORT_STRING) or ""
    )
    use_requested_ports: bool = field(default_factory=lambda: _getbool("SCAN_USE_REQUESTED_PORTS", False))
    port_timeout_ms: int = field(default_factory=lambda: _getint("SCAN_PORT_TIMEOUT_MS", 500))
    min_port_timeout_ms: int = field(default_factory=lambda: _getint("SCAN_MIN_PORT_TIMEOUT_MS", 100))
    adapt_port_timeout: bool = field(default_factory=lambda: _getbool("SCAN_ADAPT_PORT_TIMEOUT", True))
    # name resolution
    dns_timeout_ms: int = field(default_factory=lambda: _getint("SCAN_DNS_TIMEOUT_MS", 2000))
    # profile
    profile: Optional[str] = field(default_factory=lambda: _getenv("SCAN_PROFILE"))

    def validate(self) -> "ScannerConfig":
        if self.max_threads < 1:
            raise ConfigError(f"max_threads must be >= 1, got {self.max_threads}")
        if self.ping_count < 1:
            raise ConfigError(f"ping_count must be >= 1, got {self.ping_count}")
        for name in ("ping_timeout_ms", "port_timeout_ms", "min_port_timeout_ms", "dns_timeout_ms"):
            if getattr(self, name) <= 0:
                raise ConfigError(f"{name} must be positive, got {getattr(self, name)}")
        # raises PortSpecError
        parse_ports(self.port_string)
        return self

    def with_overrides(self, **overrides: Any) -> "ScannerConfig":
        clean = {k: v for k, v in overrides.items() if v is not None}
        return dataclasses.replace(self, **clean).validate()


@dataclass
class OTelConfig:
    enabled: bool = field(default_factory=lambda: _getbool("OTEL_ENABLED", False))
    endpoint: str = field(
        default_factory=lambda: _getenv("OTEL_EXPORTER_OTLP_ENDPOINT", "http://localhost:4317") or "http://localhost:4317"
    )
    service_name: str = field(default_factory=lambda: _getenv("OTEL_SERVICE_NAME", "hostscan") or "hostscan")


@dataclass
class ApiConfig:
    api_key: Optional[str] = field(default_factory=lambda: _getenv("API_KEY"))
    max_scans: int = field(default_factory=lambda: _getint("API_MAX_SCANS", 32))
    host: str = field(default_factory=lambda: _getenv("API_HOST", "127.0.0.1") or "127.0.0.1")
    port: int = field(default_factory=lambda: _getint("API_PORT", 8080))


@dataclass
class AppConfig:
    scanner: ScannerConfig = field(default_factory=ScannerConfig)
    otel: OTelConfig = field(default_factory=OTelConfig)
    api: ApiConfig = field(default_factory=ApiConfig)


def apply_profile(cfg: ScannerConfig) -> ScannerConfig:
    prof = (cfg.profile or "").strip().lower()
    if prof == "low":
        return dataclasses.replace(
            cfg, max_threads=16, ping_count=2, ping_timeout_ms=3000, port_timeout_ms=1000, min_port_timeout_ms=300
        )
    if prof == "medium":
        return dataclasses.replace(
            cfg, max_threads=64, ping_count=3, ping_timeout_ms=2000, port_timeout_ms=500, min_port_timeout_ms=150
        )
    if prof == "high":
        return dataclasses.replace(
            cfg, max_threads=256, ping_count=2, ping_timeout_ms=1000, port_timeout_ms=300, min_port_timeout_ms=50
        )
    return cfg


def load_config() -> AppConfig:
    cfg = AppConfig()
    # Apply politeness profile overrides if requested
    cfg.scanner = apply_profile(cfg.scanner).validate()
    return cfg
