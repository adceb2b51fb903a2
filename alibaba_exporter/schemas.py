import datetime as dt
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, Field

BillingKey = Tuple[str, str, str, str, str, str]
EcsKey = Tuple[str, str, str, str]


class Page(BaseModel):
    records: List[Any] = Field(default_factory=list)
    total_count: Optional[int] = None


class ResourcePackage(BaseModel):
    instance_id: str = ""
    status: str = ""
    remaining_amount: str = "0"
    remaining_amount_unit: str = ""
    commodity_code: str = ""


class AvailableInstance(BaseModel):
    product_code: str = ""
    subscription_type: str = ""
    region: str = ""
    renew_status: str = ""
    status: str = ""
    sub_status: str = ""

    def dimensions(self) -> BillingKey:
        return (self.product_code, self.subscription_type, self.region,
                self.renew_status, self.status, self.sub_status)


class EcsInstance(BaseModel):
    instance_id: str = ""
    region_id: str
    instance_charge_type: str = ""
    instance_type: str = ""
    cpu: int = 0
    memory: int = 0
    tags: Dict[str, str] = Field(default_factory=dict)


class MetricsSnapshot(BaseModel):
    balance: float = 0.0
    prepaid_traffic: float = 0.0
    commodities: Dict[str, float] = Field(default_factory=dict)
    cpu: float = 0.0
    ram: float = 0.0
    billing_counts: Dict[BillingKey, float] = Field(default_factory=dict)
    ecs_counts: Dict[EcsKey, float] = Field(default_factory=dict)


class CycleResult(BaseModel):
    status: str = "running"
    started_at: dt.datetime
    ended_at: Optional[dt.datetime] = None
    duration: float = 0.0
    failed_steps: List[str] = Field(default_factory=list)
    message: Optional[str] = None
    snapshot: MetricsSnapshot = Field(default_factory=MetricsSnapshot)

    @property
    def ok(self) -> bool:
        return self.status in ("success", "partial")
