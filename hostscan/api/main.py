from __future__ import annotations

import os
from typing import Callable, List, Optional

import uvicorn
from fastapi import BackgroundTasks, Depends, FastAPI, HTTPException
from pydantic import BaseModel

from hostscan.api.middleware import ApiKeyMiddleware
from hostscan.config import AppConfig, ScannerConfig, load_config
from hostscan.errors import ConstructionError
from hostscan.feeders.base import Feeder
from hostscan.feeders.range import RangeFeeder
from hostscan.fetchers.registry import FetcherRegistry
from hostscan.logging_setup import setup_logging, get_logger
from hostscan.orchestrator import Scanner
from hostscan.otel import init_otel, shutdown_otel
from hostscan.storage.scan_store import ScanRecord, ScanStore

RegistryFactory = Callable[[ScannerConfig], FetcherRegistry]


class ScanBody(BaseModel):
    start: str
    end: str
    port_string: Optional[str] = None
    fetchers: Optional[List[str]] = None
    scan_dead_hosts: Optional[bool] = None
    max_threads: Optional[int] = None


cfg = load_config()
setup_logging(os.getenv("LOG_LEVEL", "INFO"), os.getenv("LOG_FORMAT", "json"))
otel_providers = init_otel(cfg.otel) if cfg.otel.enabled else None

log = get_logger("api")
store = ScanStore(cfg.api.max_scans)

app = FastAPI(title="hostscan API", version="0.1.0")
if cfg.api.api_key:
    app.add_middleware(ApiKeyMiddleware, api_key=cfg.api.api_key)


def get_config() -> AppConfig:
    return cfg


def get_store() -> ScanStore:
    return store


def get_registry_factory() -> RegistryFactory:
    return FetcherRegistry.with_defaults


async def run_scan(scans: ScanStore, scanner: Scanner, feeder: Feeder) -> None:
    try:
        async for result in scanner.scan_iter(feeder):
            await scans.append_result(result)
    except Exception as e:
        log.error("scan_failed", scan_id=scanner.scan_id, error=str(e), exc_info=True)
        await scans.set_error(scanner.scan_id, str(e))


@app.on_event("startup")
async def on_startup():
    log.info("startup", max_threads=cfg.scanner.max_threads, ports=cfg.scanner.port_string)


@app.on_event("shutdown")
async def on_shutdown():
    if otel_providers is not None:
        shutdown_otel(otel_providers)


@app.get("/healthz")
async def healthz():
    return {"ok": True}


@app.get("/fetchers")
async def list_fetchers(
    app_cfg: AppConfig = Depends(get_config),
    make_registry: RegistryFactory = Depends(get_registry_factory),
):
    registry = make_registry(app_cfg.scanner)
    return [{"id": f.id, "name": f.name} for f in registry.fetchers()]


@app.post("/scans")
async def create_scan(
    body: ScanBody,
    tasks: BackgroundTasks,
    app_cfg: AppConfig = Depends(get_config),
    scans: ScanStore = Depends(get_store),
    make_registry: RegistryFactory = Depends(get_registry_factory),
):
    try:
        feeder = RangeFeeder.from_strings(body.start, body.end)
        scan_cfg = app_cfg.scanner.with_overrides(
            port_string=body.port_string if app_cfg.scanner.use_requested_ports else None,
            scan_dead_hosts=body.scan_dead_hosts,
            max_threads=body.max_threads,
        )
        registry = make_registry(scan_cfg)
        if body.fetchers:
            registry.select(body.fetchers)
    except ConstructionError as e:
        raise HTTPException(status_code=400, detail=str(e))

    scanner = Scanner(registry, scan_cfg)
    await scans.add(ScanRecord(scan_id=scanner.scan_id, scanner=scanner))
    # fire-and-forget background task
    tasks.add_task(run_scan, scans, scanner, feeder)
    log.info("scan_queued", scan_id=scanner.scan_id, feeder=repr(feeder), total=feeder.total_addresses())
    return {"scan_id": scanner.scan_id, "total": feeder.total_addresses()}


@app.get("/scans/{scan_id}")
async def get_scan(scan_id: str, scans: ScanStore = Depends(get_store)):
    record = scans.get(scan_id)
    if record is None:
        raise HTTPException(status_code=404, detail="Unknown scan")
    return record.to_doc()


@app.post("/scans/{scan_id}/stop")
async def stop_scan(scan_id: str, scans: ScanStore = Depends(get_store)):
    record = scans.get(scan_id)
    if record is None:
        raise HTTPException(status_code=404, detail="Unknown scan")
    record.scanner.stop()
    log.info("scan_stop_requested", scan_id=scan_id)
    return record.scanner.progress.to_doc()


def main():
    uvicorn.run(app, host=cfg.api.host, port=cfg.api.port, log_config=None)


if __name__ == "__main__":
    main()
