import argparse
import json
import logging
import sys
from typing import List, Optional

import uvicorn

from .app import create_app
from .collector import Collector
from .config import DEFAULT_CONFIG_PATH, Settings, load_settings
from .metrics import Counters
from .providers.alibaba import AlibabaClient

LOG = logging.getLogger("alibaba_exporter")

LOG_FORMAT = "%(asctime)s [alibaba-exporter] %(levelname)s %(name)s: %(message)s"


# zap level names that logging does not know
ZAP_LEVELS = {"dpanic": "CRITICAL", "panic": "CRITICAL"}


def setup_logging(level: str) -> int:
    """Configure logging and return the numeric level actually used (INFO if unknown)."""
    name = ZAP_LEVELS.get(level.lower(), level.upper())
    numeric = logging.getLevelName(name)
    if not isinstance(numeric, int):
        numeric = logging.INFO
    logging.basicConfig(level=numeric, format=LOG_FORMAT)
    # APScheduler logs every job run at INFO
    logging.getLogger("apscheduler").setLevel(max(numeric, logging.WARNING))
    return numeric


def build(settings: Settings):
    counters = Counters()
    client = AlibabaClient(settings.alibaba)
    collector = Collector(settings, client, counters)
    return counters, collector


def run_once(collector: Collector) -> int:
    result = collector.collect_once()
    summary = json.loads(result.model_dump_json(exclude={"snapshot"}))
    snap = result.snapshot
    summary["snapshot"] = {
        "balance": snap.balance,
        "prepaid_traffic": snap.prepaid_traffic,
        "commodities": snap.commodities,
        "cpu": snap.cpu,
        "ram": snap.ram,
        "ecs_instances": sum(snap.ecs_counts.values()),
        "billing_instances": sum(snap.billing_counts.values()),
    }
    print(json.dumps(summary, indent=2))
    return 0 if result.ok else 1


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Export Alibaba Cloud billing and ECS metrics for Prometheus")
    parser.add_argument("--config", default=DEFAULT_CONFIG_PATH, help="Configuration file path")
    parser.add_argument("--once", action="store_true", help="Run one collection cycle, print it and exit")
    args = parser.parse_args(argv)

    settings = load_settings(args.config)
    level = setup_logging(settings.log_level)
    LOG.debug(settings.masked_json())

    counters, collector = build(settings)
    if args.once:
        return run_once(collector)

    app = create_app(settings, counters, collector)
    LOG.info(f"Starting alibaba-exporter on :{settings.http.port}{settings.http.route_prefix}/metrics")
    uvicorn.run(app, host="0.0.0.0", port=settings.http.port, log_level=logging.getLevelName(level).lower())
    return 0


if __name__ == "__main__":
    sys.exit(main())
