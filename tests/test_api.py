import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from hostscan.api import main as api
from hostscan.api.middleware import ApiKeyMiddleware
from hostscan.config import ApiConfig, AppConfig, OTelConfig
from hostscan.fetchers.base import Fetcher
from hostscan.fetchers.registry import FetcherRegistry
from hostscan.models import ResultType, ScanningResult
from hostscan.orchestrator import Scanner
from hostscan.storage.scan_store import ScanRecord, ScanStore


class Echo(Fetcher):
    id = "echo"
    name = "Echo"

    async def scan(self, subject):
        subject.result_type = ResultType.ALIVE
        return f"{subject.address}|{subject.config.port_string}"


class Quiet(Fetcher):
    id = "quiet"
    name = "Quiet"

    async def scan(self, subject):
        return "shh"


@pytest.fixture
def store():
    return ScanStore(max_scans=8)


@pytest.fixture
def client_for(make_config, store):
    built = []

    def factory(scan_cfg):
        built.append(scan_cfg)
        reg = FetcherRegistry()
        reg.register(Echo())
        reg.register(Quiet())
        return reg

    def _client(**scanner_overrides):
        app_cfg = AppConfig(scanner=make_config(**scanner_overrides), otel=OTelConfig(enabled=False), api=ApiConfig())
        api.app.dependency_overrides[api.get_config] = lambda: app_cfg
        api.app.dependency_overrides[api.get_store] = lambda: store
        api.app.dependency_overrides[api.get_registry_factory] = lambda: factory
        return TestClient(api.app), built

    yield _client
    api.app.dependency_overrides.clear()


def test_healthz(client_for):
    client, _ = client_for()
    assert client.get("/healthz").json() == {"ok": True}


def test_list_fetchers(client_for):
    client, _ = client_for()
    assert client.get("/fetchers").json() == [{"id": "echo", "name": "Echo"}, {"id": "quiet", "name": "Quiet"}]


def test_scan_roundtrip(client_for):
    client, _ = client_for(port_string="80")
    r = client.post("/scans", json={"start": "10.0.0.1", "end": "10.0.0.3"})
    assert r.status_code == 200
    body = r.json()
    assert body["total"] == 3

    doc = client.get(f"/scans/{body['scan_id']}").json()
    assert doc["progress"] == {"scanned": 3, "total": 3, "state": "completed"}
    assert doc["error"] is None
    by_addr = {res["address"]: res for res in doc["results"]}
    assert set(by_addr) == {"10.0.0.1", "10.0.0.2", "10.0.0.3"}
    assert by_addr["10.0.0.2"]["values"] == {"echo": "10.0.0.2|80", "quiet": "shh"}
    assert by_addr["10.0.0.2"]["type"] == "alive"
    assert by_addr["10.0.0.2"]["scan_id"] == body["scan_id"]


def test_scan_fetcher_selection(client_for):
    client, _ = client_for()
    r = client.post("/scans", json={"start": "10.0.0.1", "end": "10.0.0.1", "fetchers": ["quiet"]})
    doc = client.get(f"/scans/{r.json()['scan_id']}").json()
    assert doc["results"][0]["values"] == {"quiet": "shh"}


def test_requested_ports_used_only_when_allowed(client_for):
    client, built = client_for(port_string="80", use_requested_ports=False)
    client.post("/scans", json={"start": "10.0.0.1", "end": "10.0.0.1", "port_string": "22"})
    assert built[-1].port_string == "80"

    client, built = client_for(port_string="80", use_requested_ports=True)
    client.post("/scans", json={"start": "10.0.0.1", "end": "10.0.0.1", "port_string": "22"})
    assert built[-1].port_string == "22"


@pytest.mark.parametrize(
    "payload",
    [
        {"start": "10.0.0.9", "end": "10.0.0.1"},
        {"start": "10.0.0.1", "end": "::1"},
        {"start": "nonsense", "end": "10.0.0.1"},
        {"start": "10.0.0.1", "end": "10.0.0.2", "port_string": "80-70"},
        {"start": "10.0.0.1", "end": "10.0.0.2", "fetchers": ["nope"]},
        {"start": "10.0.0.1", "end": "10.0.0.2", "max_threads": 0},
    ],
)
def test_bad_scan_requests(client_for, store, payload):
    client, _ = client_for(use_requested_ports=True)
    r = client.post("/scans", json=payload)
    assert r.status_code == 400
    assert len(store) == 0


def test_unknown_scan(client_for):
    client, _ = client_for()
    assert client.get("/scans/missing").status_code == 404
    assert client.post("/scans/missing/stop").status_code == 404


def test_stop_finished_scan(client_for):
    client, _ = client_for()
    scan_id = client.post("/scans", json={"start": "10.0.0.1", "end": "10.0.0.2"}).json()["scan_id"]
    r = client.post(f"/scans/{scan_id}/stop")
    assert r.status_code == 200
    assert r.json()["scanned"] == 2


def test_api_key_middleware():
    app = FastAPI()
    app.add_middleware(ApiKeyMiddleware, api_key="s3cret")

    @app.get("/healthz")
    async def healthz():
        return {"ok": True}

    @app.get("/scans/x")
    async def scan():
        return {"x": 1}

    client = TestClient(app)
    assert client.get("/healthz").status_code == 200
    assert client.get("/scans/x").status_code == 401
    assert client.get("/scans/x", headers={"X-API-Key": "wrong"}).status_code == 401
    assert client.get("/scans/x", headers={"X-API-Key": "s3cret"}).json() == {"x": 1}


async def test_store_evicts_oldest(make_config):
    scans = ScanStore(max_scans=2)
    records = [ScanRecord(scan_id=s.scan_id, scanner=s) for s in (Scanner(FetcherRegistry(), make_config()) for _ in range(3))]
    for rec in records:
        await scans.add(rec)
    assert len(scans) == 2
    assert scans.get(records[0].scan_id) is None
    assert scans.get(records[2].scan_id) is records[2]
    assert records[0].scanner.stopped
    assert not records[1].scanner.stopped


async def test_store_drops_results_of_evicted_scan(make_config):
    scans = ScanStore(max_scans=1)
    first = Scanner(FetcherRegistry(), make_config())
    second = Scanner(FetcherRegistry(), make_config())
    await scans.add(ScanRecord(scan_id=first.scan_id, scanner=first))
    await scans.add(ScanRecord(scan_id=second.scan_id, scanner=second))

    await scans.append_result(ScanningResult(address="10.0.0.1", scan_id=first.scan_id))
    await scans.append_result(ScanningResult(address="10.0.0.2", scan_id=second.scan_id))
    assert [r.address for r in scans.get(second.scan_id).results] == ["10.0.0.2"]
