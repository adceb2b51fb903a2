"""Tests for the pure aggregation helpers."""
import pytest

from alibaba_exporter.aggregate import (
    UNKNOWN_WORKLOAD,
    count_available,
    count_ecs,
    filter_regions,
    parse_amount,
    sum_commodities,
    sum_cpu_ram,
    workload_of,
)
from alibaba_exporter.schemas import ResourcePackage

from conftest import available, ecs

GB = 1024 ** 3


def pkg(code, amount, unit="GB", status="Available", instance_id="rp-1"):
    return ResourcePackage(instance_id=instance_id, status=status, remaining_amount=amount,
                           remaining_amount_unit=unit, commodity_code=code)


class TestParseAmount:

    def test_comma_grouped(self):
        assert parse_amount("1,234,567.89") == pytest.approx(1234567.89)

    def test_plain(self):
        assert parse_amount("12.5") == 12.5

    @pytest.mark.parametrize("text", [None, "", "  ", "abc", "1.2.3"])
    def test_malformed_is_zero(self, text):
        assert parse_amount(text) == 0.0

    def test_negative(self):
        assert parse_amount("-1,000.00") == -1000.0


class TestSumCommodities:

    def test_groups_by_code_in_bytes(self):
        result = sum_commodities([
            pkg("flowbag_intl", "1", "TB"),
            pkg("flowbag_intl", "512", "GB"),
            pkg("oss_storage", "100", "MB"),
        ])
        assert result == {
            "flowbag_intl": 1024 * GB + 512 * GB,
            "oss_storage": 100 * 1024 ** 2,
        }

    def test_only_available_counts(self):
        result = sum_commodities([
            pkg("flowbag_intl", "1", "GB"),
            pkg("flowbag_intl", "5", "GB", status="Expired"),
        ])
        assert result == {"flowbag_intl": GB}

    def test_empty_code_is_skipped(self):
        assert sum_commodities([pkg("", "1", "GB")]) == {}

    def test_bad_amount_is_skipped(self):
        result = sum_commodities([pkg("flowbag_intl", "oops"), pkg("flowbag_intl", "2")])
        assert result == {"flowbag_intl": 2 * GB}

    def test_unknown_unit_counts_as_bytes(self):
        assert sum_commodities([pkg("sms", "300", "Item")]) == {"sms": 300.0}

    def test_empty(self):
        assert sum_commodities([]) == {}


class TestRegions:

    def test_excluded_prefix(self):
        regions = ["cn-hangzhou", "ap-southeast-1", "cn-beijing"]
        assert filter_regions(regions, ["cn"]) == ["ap-southeast-1"]

    def test_no_prefixes_keeps_all(self):
        assert filter_regions(["cn-hangzhou", "eu-central-1"], []) == ["cn-hangzhou", "eu-central-1"]

    def test_multiple_prefixes(self):
        assert filter_regions(["cn-hangzhou", "us-east-1", "eu-west-1"], ["cn", "us"]) == ["eu-west-1"]


class TestEcsAggregation:

    def test_workload_tag(self):
        assert workload_of(ecs("ap-southeast-1", workload="batch")) == "batch"
        assert workload_of(ecs("ap-southeast-1")) == UNKNOWN_WORKLOAD

    def test_custom_tag_key(self):
        inst = ecs("ap-southeast-1")
        inst.tags["team"] = "data"
        assert workload_of(inst, "team") == "data"

    def test_sum_cpu_ram(self):
        cpu, ram = sum_cpu_ram([ecs("a", cpu=2, memory=4096), ecs("b", cpu=8, memory=32768)])
        assert cpu == 10
        assert ram == 36864

    def test_sum_empty(self):
        assert sum_cpu_ram([]) == (0.0, 0.0)

    def test_count_by_dimensions(self):
        counts = count_ecs([
            ecs("ap-southeast-1", workload="web"),
            ecs("ap-southeast-1", workload="web"),
            ecs("ap-southeast-1"),
            ecs("eu-central-1", instance_type="ecs.c6.xlarge", charge="PostPaid", workload="web"),
        ])
        assert counts == {
            ("ap-southeast-1", "PrePaid", "ecs.g6.large", "web"): 2,
            ("ap-southeast-1", "PrePaid", "ecs.g6.large", "unknown"): 1,
            ("eu-central-1", "PostPaid", "ecs.c6.xlarge", "web"): 1,
        }


class TestCountAvailable:

    def test_each_record_counts_one(self):
        counts = count_available([available(), available(), available(product="rds")])
        assert counts == {
            ("ecs", "Subscription", "ap-southeast-1", "ManualRenewal", "Normal", "Normal"): 2,
            ("rds", "Subscription", "ap-southeast-1", "ManualRenewal", "Normal", "Normal"): 1,
        }

    def test_empty(self):
        assert count_available([]) == {}
