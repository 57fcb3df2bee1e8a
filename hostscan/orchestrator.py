from __future__ import annotations

import asyncio
import uuid
from dataclasses import dataclass
from typing import AsyncIterator, Callable, List, Optional, Sequence

from opentelemetry import trace, metrics

from hostscan.config import ScannerConfig
from hostscan.errors import ConstructionError, PipelineFault, ProbeFailure
from hostscan.feeders.base import Feeder
from hostscan.fetchers.base import Fetcher
from hostscan.fetchers.registry import FetcherRegistry
from hostscan.logging_setup import bind_scan, get_logger
from hostscan.models import NOT_AVAILABLE, ScanningResult
from hostscan.subject import ScanningSubject

log = get_logger(__name__)
tracer = trace.get_tracer(__name__)
meter = metrics.get_meter(__name__)

metric_hosts = meter.create_counter("scanner_hosts_total")
metric_fetcher_errors = meter.create_counter("scanner_fetcher_errors_total")
metric_faults = meter.create_counter("scanner_pipeline_faults_total")

_DONE = object()


@dataclass
class ScanProgress:
    scanned: int = 0
    total: int = 0
    state: str = "idle"

    def to_doc(self) -> dict:
        return {"scanned": self.scanned, "total": self.total, "state": self.state}


class Scanner:
    """Runs the selected fetchers for every address a feeder produces.

    At most ``config.max_threads`` host pipelines are active at once; the
    dispatch loop waits for a free slot before pulling the next address.
    """

    def __init__(
        self,
        registry: FetcherRegistry,
        config: ScannerConfig,
        scan_id: Optional[str] = None,
        on_result: Optional[Callable[[ScanningResult], None]] = None,
    ):
        self.registry = registry
        self.config = config
        self.scan_id = scan_id or str(uuid.uuid4())
        self.on_result = on_result
        self.progress = ScanProgress()
        self._stop = asyncio.Event()
        self._active = 0

    def stop(self) -> None:
        """Stop dispatching new hosts; pipelines already running finish."""
        self._stop.set()

    @property
    def stopped(self) -> bool:
        return self._stop.is_set()

    @property
    def active_pipelines(self) -> int:
        return self._active

    async def scan(self, feeder: Feeder) -> List[ScanningResult]:
        return [r async for r in self.scan_iter(feeder)]

    async def scan_iter(self, feeder: Feeder) -> AsyncIterator[ScanningResult]:
        """Yield each host's result as soon as its pipeline completes."""
        try:
            self.config.validate()
        except ConstructionError:
            self.progress.state = "failed"
            raise
        fetchers = self.registry.selected_fetchers()
        self.progress = ScanProgress(total=feeder.total_addresses(), state="running")
        queue: asyncio.Queue = asyncio.Queue()
        dispatcher = asyncio.create_task(self._dispatch(feeder, fetchers, queue))
        try:
            while True:
                item = await queue.get()
                if item is _DONE:
                    break
                if self.on_result is not None:
                    self.on_result(item)
                yield item
            await dispatcher
        finally:
            if not dispatcher.done():
                self.stop()
            # drain in-flight pipelines; a feeder error was already logged by the dispatcher
            await asyncio.gather(dispatcher, return_exceptions=True)

    async def _dispatch(self, feeder: Feeder, fetchers: Sequence[Fetcher], queue: asyncio.Queue) -> None:
        sem = asyncio.Semaphore(self.config.max_threads)
        tasks: set[asyncio.Task] = set()
        bind_scan(self.scan_id)
        with tracer.start_as_current_span("scan", attributes={"scan.id": self.scan_id}):
            log.info(
                "scan_start",
                scan_id=self.scan_id,
                feeder=repr(feeder),
                total=self.progress.total,
                max_threads=self.config.max_threads,
                fetchers=[f.id for f in fetchers],
            )
            try:
                while not self._stop.is_set():
                    await sem.acquire()
                    if self._stop.is_set():
                        sem.release()
                        break
                    address = await feeder.next_address()
                    if address is None:
                        sem.release()
                        break
                    task = asyncio.create_task(self._run_pipeline(address, fetchers, sem, queue))
                    tasks.add(task)
                    task.add_done_callback(tasks.discard)
            except Exception:
                self.progress.state = "failed"
                log.error("feeder_failed", scan_id=self.scan_id, exc_info=True)
                raise
            finally:
                # in-flight pipelines always run to completion
                if self.progress.state != "failed":
                    self.progress.state = "draining"
                if tasks:
                    await asyncio.gather(*list(tasks), return_exceptions=True)
                for fetcher in fetchers:
                    await fetcher.close()
                await queue.put(_DONE)

            self.progress.state = "stopped" if self._stop.is_set() else "completed"
            log.info("scan_complete", scan_id=self.scan_id, scanned=self.progress.scanned, state=self.progress.state)

    async def _run_pipeline(
        self, address: str, fetchers: Sequence[Fetcher], sem: asyncio.Semaphore, queue: asyncio.Queue
    ) -> None:
        self._active += 1
        try:
            with tracer.start_as_current_span("host", attributes={"host.address": address}):
                result = await self._run_fetchers(address, fetchers)
            metric_hosts.add(1, {"type": result.result_type.value})
            log.debug("host_scanned", address=address, type=result.result_type.value, values=result.values)
            await queue.put(result)
        except Exception as e:
            fault = PipelineFault(address, e)
            metric_faults.add(1)
            log.error("pipeline_fault", scan_id=self.scan_id, address=address, error=str(fault), exc_info=True)
        finally:
            self._active -= 1
            self.progress.scanned += 1
            sem.release()

    async def _run_fetchers(self, address: str, fetchers: Sequence[Fetcher]) -> ScanningResult:
        subject = ScanningSubject(address, self.config)
        result = ScanningResult(address=address, scan_id=self.scan_id)
        for fetcher in fetchers:
            try:
                value = await fetcher.scan(subject)
            except (ProbeFailure, OSError, asyncio.TimeoutError) as e:
                metric_fetcher_errors.add(1, {"fetcher": fetcher.id})
                log.debug("fetcher_failed", fetcher=fetcher.id, address=address, error=str(e))
                value = NOT_AVAILABLE
            result.add_value(fetcher.id, value)
            if subject.aborted and not self.config.scan_dead_hosts:
                break
        result.result_type = subject.result_type
        result.mac = subject.signals.mac
        return result
