import threading
from typing import Dict, Mapping, Optional, Tuple

from prometheus_client import CollectorRegistry, Gauge, generate_latest, CONTENT_TYPE_LATEST

BILLING_LABELS = ["ProductCode", "SubscriptionType", "Region", "RenewStatus", "Status", "SubStatus"]
ECS_LABELS = ["Region", "InstanceChargeType", "InstanceType", "Workload"]


class Counters:
    """Every series the exporter publishes, on its own registry.

    Vector updates and exposition share one lock so a scrape never observes a
    vector that has been cleared but not refilled.
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        self.registry = registry or CollectorRegistry()
        self._lock = threading.Lock()
        reg = self.registry

        self.available_amount = Gauge("available_amount_balance", "QueryAccountBalance availableAmount", registry=reg)
        self.prepaid_traffic = Gauge("prepaid_traffic", "Total traffic available.", registry=reg)
        self.prepaid_commodities = Gauge("prepaid_commodities", "Remaining prepaid commodity balance in bytes",
                                         ["CommodityCode"], registry=reg)
        self.total_instances = Gauge("total_instances", "Total instances by payment method.",
                                     BILLING_LABELS, registry=reg)
        self.ecs_cpu = Gauge("ecs_cpu_total", "Total vCPUs across ECS instances", registry=reg)
        self.ecs_ram = Gauge("ecs_ram_total", "Total memory (MiB) across ECS instances", registry=reg)
        self.ecs_instances = Gauge("ecs_instances", "ECS instances by region, charge type, type and workload",
                                   ECS_LABELS, registry=reg)

        self.cycle_duration = Gauge("exporter_last_cycle_duration_seconds", "Duration of the last collection cycle",
                                    registry=reg)
        self.cycle_success = Gauge("exporter_last_cycle_success", "1 if the last collection cycle had no failures",
                                   registry=reg)
        self.cycle_timestamp = Gauge("exporter_last_cycle_timestamp_seconds",
                                     "Unix time the last collection cycle finished", registry=reg)

    def replace(self, vector: Gauge, values: Mapping[Tuple[str, ...], float]):
        """Drop every child of ``vector`` and set only ``values``."""
        with self._lock:
            vector.clear()
            for labels, value in values.items():
                vector.labels(*labels).set(value)

    def set_commodities(self, commodities: Dict[str, float], traffic_code: str):
        self.replace(self.prepaid_commodities, {(code,): v for code, v in commodities.items()})
        self.prepaid_traffic.set(commodities.get(traffic_code, 0.0))

    def set_balance(self, amount: float):
        self.available_amount.set(amount)

    def set_ecs(self, cpu: float, ram: float, counts: Mapping[Tuple[str, ...], float]):
        self.ecs_cpu.set(cpu)
        self.ecs_ram.set(ram)
        self.replace(self.ecs_instances, counts)

    def set_billing(self, counts: Mapping[Tuple[str, ...], float]):
        self.replace(self.total_instances, counts)

    def set_cycle(self, duration: float, success: bool, finished_at: float):
        self.cycle_duration.set(duration)
        self.cycle_success.set(1 if success else 0)
        self.cycle_timestamp.set(finished_at)

    def sample(self, name: str, labels: Optional[Dict[str, str]] = None) -> float:
        """Current value of a series; a combination that is not set reads 0."""
        value = self.registry.get_sample_value(name, labels or {})
        return value or 0.0

    def scrape(self):
        with self._lock:
            output = generate_latest(self.registry)
        return output, CONTENT_TYPE_LATEST
