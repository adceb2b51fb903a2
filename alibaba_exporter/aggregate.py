"""
Pure aggregation helpers: raw records in, labelled numbers out.

Nothing here talks to the network or the registry, so every function can be
exercised with plain lists of records.
"""
import logging
from collections import defaultdict
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .schemas import AvailableInstance, BillingKey, EcsInstance, EcsKey, ResourcePackage
from .units import to_bytes

LOG = logging.getLogger(__name__)

AVAILABLE_STATUS = "Available"
UNKNOWN_WORKLOAD = "unknown"


def parse_amount(text: Optional[str]) -> float:
    """Parse a comma-grouped decimal such as ``"1,234,567.89"``; malformed input yields 0."""
    if text is None:
        return 0.0
    cleaned = text.replace(",", "").strip()
    if not cleaned:
        return 0.0
    try:
        return float(cleaned)
    except ValueError:
        LOG.warning(f"Failed to parse amount {text!r}")
        return 0.0


def sum_commodities(packages: Iterable[ResourcePackage]) -> Dict[str, float]:
    commodities: Dict[str, float] = defaultdict(float)
    for pkg in packages:
        LOG.debug(f"Instance({pkg.instance_id}): {pkg.remaining_amount} {pkg.remaining_amount_unit} ({pkg.status})")
        if pkg.status != AVAILABLE_STATUS or not pkg.commodity_code:
            continue
        try:
            value = to_bytes(pkg.remaining_amount, pkg.remaining_amount_unit)
        except ValueError:
            LOG.warning(f"Skipping {pkg.instance_id}: bad remaining amount {pkg.remaining_amount!r}")
            continue
        commodities[pkg.commodity_code] += value
        LOG.debug(f"{pkg.commodity_code} - converted {value} total {commodities[pkg.commodity_code]}")
    return dict(commodities)


def is_region_excluded(region_id: str, prefixes: Sequence[str]) -> bool:
    return any(region_id.startswith(p) for p in prefixes)


def filter_regions(regions: Iterable[str], prefixes: Sequence[str]) -> List[str]:
    kept = []
    for region_id in regions:
        if is_region_excluded(region_id, prefixes):
            LOG.debug(f"Skipping region: {region_id}")
            continue
        kept.append(region_id)
    return kept


def workload_of(instance: EcsInstance, tag_key: str = "workload") -> str:
    return instance.tags.get(tag_key) or UNKNOWN_WORKLOAD


def sum_cpu_ram(instances: Iterable[EcsInstance]) -> Tuple[float, float]:
    cpu = ram = 0.0
    for inst in instances:
        cpu += inst.cpu
        ram += inst.memory
    return cpu, ram


def count_ecs(instances: Iterable[EcsInstance], tag_key: str = "workload") -> Dict[EcsKey, float]:
    counts: Dict[EcsKey, float] = defaultdict(float)
    for inst in instances:
        key = (inst.region_id, inst.instance_charge_type, inst.instance_type, workload_of(inst, tag_key))
        counts[key] += 1
    return dict(counts)


def count_available(instances: Iterable[AvailableInstance]) -> Dict[BillingKey, float]:
    counts: Dict[BillingKey, float] = defaultdict(float)
    for inst in instances:
        counts[inst.dimensions()] += 1
    return dict(counts)
