from typing import Union

# Binary multiples, as reported by RemainingAmountUnit
UNIT_MULTIPLIERS = {
    "Byte": 1,
    "KB": 1024,
    "MB": 1024 ** 2,
    "GB": 1024 ** 3,
    "TB": 1024 ** 4,
}

# Unknown units are taken to be bytes already
DEFAULT_MULTIPLIER = 1


def unit_multiplier(unit: str) -> int:
    return UNIT_MULTIPLIERS.get(unit, DEFAULT_MULTIPLIER)


def to_bytes(amount: Union[str, float, int], unit: str) -> float:
    """Convert a remaining amount and its unit label to bytes.

    Raises ValueError when ``amount`` is not a number.
    """
    if isinstance(amount, str):
        amount = float(amount.strip())
    return float(amount) * unit_multiplier(unit)
