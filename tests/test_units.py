"""Tests for unit conversion."""
import pytest

from alibaba_exporter.units import DEFAULT_MULTIPLIER, UNIT_MULTIPLIERS, to_bytes, unit_multiplier


class TestUnitMultiplier:

    @pytest.mark.parametrize("unit,expected", [
        ("Byte", 1),
        ("KB", 1024),
        ("MB", 1024 ** 2),
        ("GB", 1024 ** 3),
        ("TB", 1024 ** 4),
    ])
    def test_known_units(self, unit, expected):
        assert unit_multiplier(unit) == expected

    def test_unknown_unit_is_bytes(self):
        assert DEFAULT_MULTIPLIER == 1
        assert unit_multiplier("PB") == 1
        assert unit_multiplier("") == 1

    def test_labels_are_case_sensitive(self):
        assert unit_multiplier("gb") == DEFAULT_MULTIPLIER
        assert "gb" not in UNIT_MULTIPLIERS


class TestToBytes:

    def test_string_amount(self):
        assert to_bytes("1.5", "GB") == 1.5 * 1024 ** 3

    def test_numeric_amount(self):
        assert to_bytes(3, "KB") == 3072.0

    def test_unknown_unit_keeps_value(self):
        assert to_bytes("42", "Widgets") == 42.0

    def test_whitespace_is_ignored(self):
        assert to_bytes(" 2 ", "MB") == 2 * 1024 ** 2

    def test_malformed_amount_raises(self):
        with pytest.raises(ValueError):
            to_bytes("n/a", "GB")
