import datetime as dt
import logging
import threading
import time
from typing import Any, Callable, Optional

from apscheduler.schedulers.background import BackgroundScheduler

from .aggregate import count_available, count_ecs, filter_regions, parse_amount, sum_commodities, sum_cpu_ram
from .config import Settings
from .metrics import Counters
from .providers.alibaba import AlibabaClient
from .schemas import CycleResult

LOG = logging.getLogger(__name__)

JOB_ID = "collect"


class CycleCancelled(Exception):
    """Raised inside a cycle once the stop event is seen."""


class Collector:
    """
    Runs collection cycles on a fixed interval and publishes them into Counters.

    A cycle is a sequence of independent steps. A step whose remote call fails is
    logged and contributes an empty result; later steps still run. Anything else
    that goes wrong is caught by collect_once, so the schedule keeps going.
    Overlapping ticks are skipped (max_instances=1).
    """

    def __init__(self, settings: Settings, client: AlibabaClient, counters: Counters,
                 stop_event: Optional[threading.Event] = None):
        self.settings = settings
        self.client = client
        self.counters = counters
        self.stop_event = stop_event or threading.Event()
        self._scheduler: Optional[BackgroundScheduler] = None

    # --- scheduling --------------------------------------------------------

    def start(self) -> BackgroundScheduler:
        scheduler = BackgroundScheduler()
        scheduler.add_job(
            self.collect_once,
            "interval",
            seconds=self.settings.interval,
            id=JOB_ID,
            next_run_time=dt.datetime.now(dt.timezone.utc),
            max_instances=1,
            coalesce=True,
        )
        scheduler.start()
        self._scheduler = scheduler
        LOG.info(f"Collector scheduled every {self.settings.interval}s")
        return scheduler

    def stop(self):
        self.stop_event.set()
        if self._scheduler is not None:
            # waits for a running cycle, which unwinds at its next cancellation check
            self._scheduler.shutdown(wait=True)
            self._scheduler = None
            LOG.info("Collector stopped")

    def run(self, stop_event: Optional[threading.Event] = None):
        """Block, collecting every interval, until the stop event is set."""
        if stop_event is not None:
            self.stop_event = stop_event
        if self.stop_event.is_set():
            return
        self.start()
        try:
            self.stop_event.wait()
        finally:
            self.stop()

    # --- one cycle ---------------------------------------------------------

    def collect_once(self) -> CycleResult:
        started = time.monotonic()
        result = CycleResult(started_at=dt.datetime.now(dt.timezone.utc))
        LOG.info(f"{result.started_at.isoformat()} start collection cycle")
        try:
            self._run_cycle(result)
            result.status = "partial" if result.failed_steps else "success"
        except CycleCancelled as e:
            result.status = "cancelled"
            result.message = f"cancelled before {e}"
            LOG.warning(f"Collection cycle {result.message}")
        except Exception as e:
            result.status = "error"
            result.message = f"{type(e).__name__}: {e}"
            LOG.exception("Collection cycle failed")
        result.ended_at = dt.datetime.now(dt.timezone.utc)
        result.duration = time.monotonic() - started
        if result.status != "cancelled":
            self.counters.set_cycle(result.duration, result.status == "success", result.ended_at.timestamp())
        LOG.info(f"{result.ended_at.isoformat()} finish collection cycle: {result.status} (took {result.duration:.2f}s)")
        return result

    def _check_cancelled(self, step: str):
        if self.stop_event.is_set():
            raise CycleCancelled(step)

    def _fetch(self, result: CycleResult, step: str, call: Callable[[], Any], default: Any) -> Any:
        self._check_cancelled(step)
        try:
            value = call()
        except Exception as e:
            LOG.error(f"{step} failed: {e}")
            result.failed_steps.append(step)
            return default
        # a paginated fetch cut short by the stop event is discarded
        self._check_cancelled(step)
        return value

    def _run_cycle(self, result: CycleResult):
        conf = self.settings.collect
        snap = result.snapshot

        packages = self._fetch(result, "resource_packages",
                               lambda: self.client.list_resource_packages(conf.page_size, self.stop_event), [])
        snap.commodities = sum_commodities(packages)
        snap.prepaid_traffic = snap.commodities.get(conf.prepaid_traffic_commodity, 0.0)
        self.counters.set_commodities(snap.commodities, conf.prepaid_traffic_commodity)
        LOG.info(f"Resource packages: {len(packages)} records, {len(snap.commodities)} commodities")

        raw_balance = self._fetch(result, "account_balance", self.client.query_account_balance, None)
        snap.balance = parse_amount(raw_balance)
        self.counters.set_balance(snap.balance)

        regions = self._fetch(result, "regions", self.client.list_regions, [])
        instances = []
        for region_id in filter_regions(regions, conf.excluded_region_prefixes):
            self._check_cancelled(f"ecs_instances:{region_id}")
            try:
                instances.extend(self.client.list_ecs_instances(region_id, conf.page_size, self.stop_event))
            except Exception as e:
                LOG.warning(f"DescribeInstances failed in region {region_id}: {e}")
                result.failed_steps.append(f"ecs_instances:{region_id}")
        self._check_cancelled("ecs aggregation")
        snap.cpu, snap.ram = sum_cpu_ram(instances)
        snap.ecs_counts = count_ecs(instances, conf.workload_tag_key)
        self.counters.set_ecs(snap.cpu, snap.ram, snap.ecs_counts)
        LOG.info(f"ECS: {len(instances)} instances, cpu={snap.cpu:g} ram={snap.ram:g}")

        available = self._fetch(result, "available_instances",
                                lambda: self.client.list_available_instances(conf.page_size, self.stop_event), [])
        snap.billing_counts = count_available(available)
        self.counters.set_billing(snap.billing_counts)
        LOG.info(f"Available instances: {len(available)}")
