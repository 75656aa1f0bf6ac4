"""
Enums for the accounting engine.
"""

from enum import Enum


class UpdateOperation(str, Enum):
    """How an update's value combines with the stored one."""

    ADD = "ADD"  # stored + value
    SET = "SET"  # value replaces stored


class ValueType(str, Enum):
    """Which ledger an update event targets."""

    USAGES = "usages"
    QUOTAS = "quotas"


class ResourceName(str, Enum):
    """Resource names accepted on update events."""

    CPU_HOURS = "cpu.hours"
    DATA_SIZE = "data.size"


class ResourceUnit(str, Enum):
    """Resource units accepted on update events."""

    CPU_HOURS = "cpu hours"
    BYTES = "bytes"
