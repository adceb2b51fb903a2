import threading
from typing import Callable, Dict, List, Optional

import pytest

from alibaba_exporter.collector import Collector
from alibaba_exporter.config import Settings
from alibaba_exporter.metrics import Counters
from alibaba_exporter.schemas import AvailableInstance, EcsInstance, ResourcePackage


class FakeClient:
    """In-memory stand-in for AlibabaClient; set ``fail`` entries to make a call raise."""

    def __init__(self):
        self.packages: List[ResourcePackage] = []
        self.balance: Optional[str] = "0"
        self.regions: List[str] = []
        self.instances: Dict[str, List[EcsInstance]] = {}
        self.available: List[AvailableInstance] = []
        self.fail: Dict[str, Exception] = {}
        self.hooks: Dict[str, Callable[[], None]] = {}
        self.calls: List[str] = []

    def _call(self, name: str):
        self.calls.append(name)
        if name in self.hooks:
            self.hooks[name]()
        if name in self.fail:
            raise self.fail[name]

    def list_resource_packages(self, page_size=100, stop_event=None):
        self._call("list_resource_packages")
        return list(self.packages)

    def query_account_balance(self):
        self._call("query_account_balance")
        return self.balance

    def list_regions(self):
        self._call("list_regions")
        return list(self.regions)

    def list_ecs_instances(self, region_id, page_size=100, stop_event=None):
        self._call(f"list_ecs_instances:{region_id}")
        return list(self.instances.get(region_id, []))

    def list_available_instances(self, page_size=100, stop_event=None):
        self._call("list_available_instances")
        return list(self.available)


def ecs(region_id, instance_type="ecs.g6.large", charge="PrePaid", cpu=2, memory=8192, workload=None):
    tags = {"workload": workload} if workload else {}
    return EcsInstance(region_id=region_id, instance_charge_type=charge, instance_type=instance_type,
                       cpu=cpu, memory=memory, tags=tags)


def available(product="ecs", sub="Subscription", region="ap-southeast-1",
              renew="ManualRenewal", status="Normal", sub_status="Normal"):
    return AvailableInstance(product_code=product, subscription_type=sub, region=region,
                             renew_status=renew, status=status, sub_status=sub_status)


@pytest.fixture
def settings():
    return Settings()


@pytest.fixture
def counters():
    return Counters()


@pytest.fixture
def client():
    return FakeClient()


@pytest.fixture
def stop_event():
    return threading.Event()


@pytest.fixture
def collector(settings, client, counters, stop_event):
    return Collector(settings, client, counters, stop_event)
