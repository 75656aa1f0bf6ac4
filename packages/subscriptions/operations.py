"""
Ledger arithmetic shared by the usage and quota pipelines.
"""

from typing import Union

from common.core.exceptions import ValidationError
from packages.subscriptions.models.domain.enums import UpdateOperation


def parse_operation(operation: Union[str, UpdateOperation]) -> UpdateOperation:
    """Accepts exactly "ADD" or "SET", or an UpdateOperation."""
    if isinstance(operation, UpdateOperation):
        return operation
    try:
        return UpdateOperation(operation)
    except ValueError:
        raise ValidationError(f"invalid operation name: {operation!r}") from None


def apply_operation(
    operation: Union[str, UpdateOperation], current: float, value: float
) -> float:
    """SET replaces the current value, ADD adds to it."""
    op = parse_operation(operation)
    if op == UpdateOperation.SET:
        return value
    return current + value
