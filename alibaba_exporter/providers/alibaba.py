import logging
import threading
from typing import Any, Callable, Dict, List, Optional

from alibabacloud_bssopenapi20171214 import models as bss_models
from alibabacloud_bssopenapi20171214.client import Client as BssOpenApiClient
from alibabacloud_ecs20140526 import models as ecs_models
from alibabacloud_ecs20140526.client import Client as EcsClient
from alibabacloud_tea_openapi import models as open_api_models
from alibabacloud_tea_util import models as util_models

from ..config import AlibabaConf
from ..pagination import DEFAULT_PAGE_SIZE, paginate
from ..schemas import AvailableInstance, EcsInstance, Page, ResourcePackage

LOG = logging.getLogger(__name__)


def _bss_client(conf: AlibabaConf) -> BssOpenApiClient:
    config = open_api_models.Config(
        access_key_id=conf.access_key_id,
        access_key_secret=conf.access_key_secret,
        endpoint=conf.bss_endpoint,
    )
    return BssOpenApiClient(config)


def _ecs_client(conf: AlibabaConf, region_id: str) -> EcsClient:
    config = open_api_models.Config(
        access_key_id=conf.access_key_id,
        access_key_secret=conf.access_key_secret,
        region_id=region_id,
    )
    return EcsClient(config)


def _tags(inst: Any) -> Dict[str, str]:
    tags = getattr(inst, "tags", None)
    if tags is None or not tags.tag:
        return {}
    return {t.tag_key: t.tag_value or "" for t in tags.tag if t.tag_key}


class AlibabaClient:
    """
    Thin facade over the BSS OpenAPI and ECS SDK clients.

    Every method returns plain records from schemas.py. SDK errors are not caught
    here; the collector decides what a failed call means for its cycle.
    ECS clients are created lazily per region and reused.
    """

    def __init__(self, conf: AlibabaConf, bss: Optional[BssOpenApiClient] = None,
                 ecs_factory: Optional[Callable[[str], EcsClient]] = None):
        self.conf = conf
        self.bss = bss if bss is not None else _bss_client(conf)
        self._ecs_factory = ecs_factory or (lambda region_id: _ecs_client(conf, region_id))
        self._ecs: Dict[str, EcsClient] = {}
        self._ecs_lock = threading.Lock()

    def ecs(self, region_id: str) -> EcsClient:
        with self._ecs_lock:
            client = self._ecs.get(region_id)
            if client is None:
                client = self._ecs_factory(region_id)
                self._ecs[region_id] = client
            return client

    # --- billing -----------------------------------------------------------

    def query_account_balance(self) -> Optional[str]:
        resp = self.bss.query_account_balance()
        data = resp.body.data if resp.body is not None else None
        if data is None:
            return None
        return data.available_amount

    def resource_package_page(self, page_num: int, page_size: int) -> Page:
        request = bss_models.QueryResourcePackageInstancesRequest(page_num=page_num, page_size=page_size)
        resp = self.bss.query_resource_package_instances_with_options(request, util_models.RuntimeOptions())
        data = resp.body.data if resp.body is not None else None
        if data is None or data.instances is None:
            return Page()
        records = [
            ResourcePackage(
                instance_id=inst.instance_id or "",
                status=inst.status or "",
                remaining_amount=inst.remaining_amount or "0",
                remaining_amount_unit=inst.remaining_amount_unit or "",
                commodity_code=inst.commodity_code or "",
            )
            for inst in (data.instances.instance or [])
        ]
        return Page(records=records, total_count=data.total_count)

    def available_instance_page(self, page_num: int, page_size: int) -> Page:
        request = bss_models.QueryAvailableInstancesRequest(page_num=page_num, page_size=page_size)
        resp = self.bss.query_available_instances_with_options(request, util_models.RuntimeOptions())
        data = resp.body.data if resp.body is not None else None
        if data is None:
            return Page()
        records = [
            AvailableInstance(
                product_code=inst.product_code or "",
                subscription_type=inst.subscription_type or "",
                region=inst.region or "",
                renew_status=inst.renew_status or "",
                status=inst.status or "",
                sub_status=inst.sub_status or "",
            )
            for inst in (data.instance_list or [])
        ]
        return Page(records=records, total_count=data.total_count)

    def list_resource_packages(self, page_size: int = DEFAULT_PAGE_SIZE,
                               stop_event: Optional[threading.Event] = None) -> List[ResourcePackage]:
        return paginate(self.resource_package_page, page_size, stop_event, name="QueryResourcePackageInstances")

    def list_available_instances(self, page_size: int = DEFAULT_PAGE_SIZE,
                                 stop_event: Optional[threading.Event] = None) -> List[AvailableInstance]:
        return paginate(self.available_instance_page, page_size, stop_event, name="QueryAvailableInstances")

    # --- compute -----------------------------------------------------------

    def list_regions(self) -> List[str]:
        resp = self.ecs(self.conf.region_id).describe_regions_with_options(
            ecs_models.DescribeRegionsRequest(), util_models.RuntimeOptions())
        if resp.body is None or resp.body.regions is None:
            return []
        return [r.region_id for r in (resp.body.regions.region or []) if r.region_id]

    def ecs_instance_page(self, region_id: str, page_num: int, page_size: int) -> Page:
        request = ecs_models.DescribeInstancesRequest(
            region_id=region_id, page_number=page_num, page_size=page_size)
        resp = self.ecs(region_id).describe_instances_with_options(request, util_models.RuntimeOptions())
        body = resp.body
        if body is None or body.instances is None:
            return Page()
        records = [
            EcsInstance(
                instance_id=inst.instance_id or "",
                region_id=inst.region_id or region_id,
                instance_charge_type=inst.instance_charge_type or "",
                instance_type=inst.instance_type or "",
                cpu=inst.cpu or 0,
                memory=inst.memory or 0,
                tags=_tags(inst),
            )
            for inst in (body.instances.instance or [])
        ]
        return Page(records=records, total_count=body.total_count)

    def list_ecs_instances(self, region_id: str, page_size: int = DEFAULT_PAGE_SIZE,
                           stop_event: Optional[threading.Event] = None) -> List[EcsInstance]:
        instances = paginate(lambda num, size: self.ecs_instance_page(region_id, num, size),
                             page_size, stop_event, name=f"DescribeInstances({region_id})")
        LOG.debug(f"Region {region_id}: total instances fetched: {len(instances)}")
        return instances
