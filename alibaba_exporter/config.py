"""
Exporter configuration.

Values are resolved in this order, later sources winning:

1. model defaults
2. YAML file (``--config``, default ``config.yaml``; a missing file is fine)
3. environment variables (see ``ENV_VAR_MAPPING``)

Example file::

    logLevel: debug
    interval: 300
    alibaba:
      regionId: ap-southeast-1
      accessKeyId: LTAI...
      accessKeySecret: ...
    http:
      port: "8080"
      routePrefix: /alibaba
"""
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_serializer
from pydantic.alias_generators import to_camel

LOG = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "config.yaml"

# dotted settings path -> environment variable
ENV_VAR_MAPPING = {
    "log_level": "LOG_LEVEL",
    "interval": "INTERVAL",
    "alibaba.region_id": "REGION_ID",
    "alibaba.access_key_id": "ACCESS_KEY_ID",
    "alibaba.access_key_secret": "ACCESS_KEY_SECRET",
    "alibaba.bss_endpoint": "BSS_ENDPOINT",
    "http.port": "HTTP_PORT",
    "http.route_prefix": "HTTP_ROUTE_PREFIX",
}


class _Conf(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class AlibabaConf(_Conf):
    region_id: str = "my_region"
    access_key_id: str = "access_key_id"
    access_key_secret: str = "access_key_secret"
    bss_endpoint: str = "business.ap-southeast-1.aliyuncs.com"

    @field_serializer("access_key_secret")
    def mask_secret(self, value: str) -> str:
        return "XXX" if value else ""


class HttpConf(_Conf):
    port: int = 8080
    route_prefix: str = ""


class CollectConf(_Conf):
    page_size: int = Field(100, gt=0)
    prepaid_traffic_commodity: str = "flowbag_intl"
    excluded_region_prefixes: List[str] = Field(default_factory=lambda: ["cn"])
    workload_tag_key: str = "workload"


class Settings(_Conf):
    log_level: str = "info"
    interval: int = Field(600, gt=0)
    alibaba: AlibabaConf = Field(default_factory=AlibabaConf)
    http: HttpConf = Field(default_factory=HttpConf)
    collect: CollectConf = Field(default_factory=CollectConf)

    def masked_json(self) -> str:
        return self.model_dump_json(by_alias=True)


def _set_dotted(data: Dict[str, Any], dotted: str, value: Any):
    keys = dotted.split(".")
    node = data
    for key in keys[:-1]:
        node = node.setdefault(key, {})
    node[keys[-1]] = value


def _compact(name: str) -> str:
    return name.replace("_", "").replace("-", "").lower()


# compacted key -> field name, so camelCase, PascalCase, snake_case and the
# older AlibabaConf / Http / AccessKeyId layout all resolve to the same field
FIELD_NAMES = {
    _compact(name): name
    for model in (Settings, AlibabaConf, HttpConf, CollectConf)
    for name in model.model_fields
}
FIELD_NAMES[_compact("alibaba_conf")] = "alibaba"


def _normalize_keys(data: Any) -> Any:
    if not isinstance(data, dict):
        return data
    out = {}
    for key, value in data.items():
        name = FIELD_NAMES.get(_compact(str(key)), str(key))
        out[name] = _normalize_keys(value)
    return out


def load_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        LOG.info(f"Config file {path} not found, using defaults and environment")
        return {}
    with open(path, "r", encoding="utf-8") as fh:
        data = yaml.safe_load(fh) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Config file {path} must contain a mapping, got {type(data).__name__}")
    return _normalize_keys(data)


def load_settings(config_path: Optional[str] = None, environ: Optional[Mapping[str, str]] = None) -> Settings:
    environ = os.environ if environ is None else environ
    data = load_yaml(Path(config_path or DEFAULT_CONFIG_PATH).expanduser())
    for dotted, env_name in ENV_VAR_MAPPING.items():
        value = environ.get(env_name)
        if value is not None and value != "":
            _set_dotted(data, dotted, value)
    return Settings.model_validate(data)
