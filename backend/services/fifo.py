"""
FIFO batch allocation.

Open batches are drained in this order:
1. expiration_date ascending (batches without an expiration date go last)
2. received_at ascending
3. created_at ascending
4. id (stable tiebreak)

The planner is pure: it never mutates the batches, callers apply the returned
allocations inside their own transaction.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable, List, Optional


class FifoError(Exception):
    pass


class NoOpenBatchesError(FifoError):
    def __init__(self):
        super().__init__("No open batches available to consume")


class InsufficientBatchQuantityError(FifoError):
    def __init__(self, requested: int, available: int):
        self.requested = requested
        self.available = available
        super().__init__("Insufficient batch quantity available to fulfill request")


@dataclass(frozen=True)
class BatchAllocation:
    batch_id: Any
    consumed: int
    remaining_quantity: int
    is_open: bool
    expiration_date: Optional[datetime] = None


_LATEST = datetime.max


def fifo_sort_key(batch) -> tuple:
    expiration = getattr(batch, "expiration_date", None)
    received = getattr(batch, "received_at", None)
    created = getattr(batch, "created_at", None)
    return (
        expiration is None,
        expiration or _LATEST,
        received or _LATEST,
        created or _LATEST,
        str(getattr(batch, "id", "")),
    )


def sort_batches_fifo(batches: Iterable) -> list:
    return sorted(batches, key=fifo_sort_key)


def open_batches(batches: Iterable) -> list:
    return [b for b in batches if getattr(b, "is_open", True) and int(b.quantity or 0) > 0]


def available_quantity(batches: Iterable) -> int:
    return sum(int(b.quantity or 0) for b in open_batches(batches))


def plan_fifo_consumption(batches: Iterable, quantity: int) -> List[BatchAllocation]:
    """Greedy allocation of `quantity` across open batches in FIFO order."""
    if quantity <= 0:
        raise ValueError("quantity must be positive")

    candidates = sort_batches_fifo(open_batches(batches))
    if not candidates:
        raise NoOpenBatchesError()

    remaining = quantity
    plan: List[BatchAllocation] = []
    for batch in candidates:
        if remaining <= 0:
            break
        have = int(batch.quantity)
        take = min(have, remaining)
        left = have - take
        plan.append(
            BatchAllocation(
                batch_id=batch.id,
                consumed=take,
                remaining_quantity=left,
                is_open=left > 0,
                expiration_date=getattr(batch, "expiration_date", None),
            )
        )
        remaining -= take

    if remaining > 0:
        raise InsufficientBatchQuantityError(quantity, quantity - remaining)
    return plan


def apply_allocations(batches: Iterable, plan: List[BatchAllocation]) -> None:
    """Write a plan back onto the batch objects it was computed from."""
    by_id = {b.id: b for b in batches}
    for alloc in plan:
        batch = by_id[alloc.batch_id]
        batch.quantity = alloc.remaining_quantity
        batch.is_open = alloc.is_open
