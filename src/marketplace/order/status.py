"""Order status aggregation: the two reducers and the rank lock.

Line items evolve independently (each shop acts on its own items, in any
order), so the order-level status is never assigned directly. Instead, after
every line-item change one of two reducers folds the full multiset of line
item states into a candidate status, and the rank lock decides whether the
candidate may replace the current one:

    Phase 1 (approval):    pending / approved / rejected counts
                           -> partial-pending, pending, rejected
    Phase 2 (fulfillment): approved items bucketed by product status
                           -> <bucket> on full coverage, else partial-<bucket>

    Rank lock: apply the candidate only if its rank is strictly greater
    than the current rank. Full-coverage terminal candidates (rejected,
    cancelled) always apply, and an order holding a terminal status takes
    no further reducer output.

All functions here are pure; they read ``shop_approved`` and
``product_status`` off whatever objects they are given.
"""

from collections import Counter
from collections.abc import Iterable
from enum import Enum
from types import MappingProxyType
from typing import NamedTuple


class OrderStatus(Enum):
    PAYMENT_INITIATED = "payment-initiated"
    PLACED = "placed"
    PARTIAL_PENDING = "partial-pending"
    PENDING = "pending"
    PARTIAL_SHIPMENT_PREPARATION = "partial-shipment-preparation"
    SHIPMENT_PREPARATION = "shipment-preparation"
    PARTIAL_SHIPPED = "partial-shipped"
    SHIPPED = "shipped"
    PARTIAL_DELIVERED = "partial-delivered"
    DELIVERED = "delivered"
    PARTIAL_CANCELLED = "partial-cancelled"
    CANCELLED = "cancelled"
    PARTIAL_RETURNED = "partial-returned"
    RETURNED = "returned"
    PARTIAL_REFUNDED = "partial-refunded"
    REFUNDED = "refunded"
    FAILED = "failed"
    REJECTED = "rejected"


class ProductStatus(Enum):
    PENDING = "pending"
    SHIPMENT_PREPARATION = "shipment-preparation"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    RETURN_REQUESTED = "return-requested"
    REFUND_APPROVED = "refund-approved"
    REFUND_REJECTED = "refund-rejected"
    REFUNDED = "refunded"
    REJECTED = "rejected"
    REFUND_IN_PROGRESS = "refund-in-progress"
    FAILED = "failed"


class ApprovalStatus(Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class LineState(NamedTuple):
    """The two per-item facts the reducers look at."""

    shop_approved: str
    product_status: str


# Partial statuses rank below their full-coverage counterpart so that an order
# can always progress from "some items delivered" to "all items delivered".
# Ranking partials above full coverage would freeze partial-delivered orders.
STATUS_RANK = MappingProxyType(
    {
        OrderStatus.FAILED.value: 0,
        OrderStatus.REJECTED.value: 0,
        OrderStatus.CANCELLED.value: 0,
        OrderStatus.PAYMENT_INITIATED.value: 1,
        OrderStatus.PLACED.value: 2,
        OrderStatus.PARTIAL_PENDING.value: 3,
        OrderStatus.PENDING.value: 4,
        OrderStatus.PARTIAL_SHIPMENT_PREPARATION.value: 5,
        OrderStatus.SHIPMENT_PREPARATION.value: 6,
        OrderStatus.PARTIAL_SHIPPED.value: 7,
        OrderStatus.SHIPPED.value: 8,
        OrderStatus.PARTIAL_DELIVERED.value: 9,
        OrderStatus.DELIVERED.value: 10,
        OrderStatus.PARTIAL_CANCELLED.value: 11,
        OrderStatus.PARTIAL_RETURNED.value: 12,
        OrderStatus.RETURNED.value: 13,
        OrderStatus.PARTIAL_REFUNDED.value: 14,
        OrderStatus.REFUNDED.value: 15,
    }
)

TERMINAL_STATUSES = frozenset(
    {
        OrderStatus.FAILED.value,
        OrderStatus.REJECTED.value,
        OrderStatus.CANCELLED.value,
    }
)


class Bucket(Enum):
    SHIPMENT_PREPARATION = "shipment-preparation"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    RETURNED = "returned"
    REFUNDED = "refunded"


# Most terminal first
_BUCKET_PRECEDENCE = (
    Bucket.REFUNDED,
    Bucket.RETURNED,
    Bucket.CANCELLED,
    Bucket.DELIVERED,
    Bucket.SHIPPED,
    Bucket.SHIPMENT_PREPARATION,
)

_PRODUCT_BUCKETS = MappingProxyType(
    {
        ProductStatus.SHIPMENT_PREPARATION.value: Bucket.SHIPMENT_PREPARATION,
        ProductStatus.SHIPPED.value: Bucket.SHIPPED,
        ProductStatus.DELIVERED.value: Bucket.DELIVERED,
        ProductStatus.REFUND_REJECTED.value: Bucket.DELIVERED,
        ProductStatus.CANCELLED.value: Bucket.CANCELLED,
        ProductStatus.RETURN_REQUESTED.value: Bucket.RETURNED,
        ProductStatus.REFUND_APPROVED.value: Bucket.RETURNED,
        ProductStatus.REFUNDED.value: Bucket.REFUNDED,
    }
)


def rank_of(status: str) -> int:
    return STATUS_RANK[status]


def reduce_approval_phase(items: Iterable) -> str | None:
    """Fold shop approval decisions into a candidate order status.

    Returns None when no rule matches (only rejections so far, with some
    items still undecided).
    """
    counts = Counter(item.shop_approved for item in items)
    total = sum(counts.values())
    approved = counts[ApprovalStatus.APPROVED.value]
    rejected = counts[ApprovalStatus.REJECTED.value]

    if total == 0:
        return None
    if approved + rejected == total and approved > 0:
        return OrderStatus.PENDING.value
    if rejected == total:
        return OrderStatus.REJECTED.value
    if approved > 0:
        return OrderStatus.PARTIAL_PENDING.value
    return None


def reduce_fulfillment_phase(items: Iterable) -> str | None:
    """Fold the product status of approved items into a candidate order status.

    Items still waiting for shipment preparation count towards the total but
    towards no bucket, so they turn full coverage into partial coverage.
    """
    approved = [item for item in items if item.shop_approved == ApprovalStatus.APPROVED.value]
    if not approved:
        return None

    counts = Counter(_PRODUCT_BUCKETS.get(item.product_status) for item in approved)
    total = len(approved)

    for bucket in _BUCKET_PRECEDENCE:
        if counts[bucket] == total:
            return bucket.value
    for bucket in _BUCKET_PRECEDENCE:
        if counts[bucket] > 0:
            return f"partial-{bucket.value}"
    return None


def apply_rank_lock(current: str, candidate: str | None) -> str:
    """Return the status the order should hold after seeing ``candidate``."""
    if candidate is None or candidate == current:
        return current
    # Other shops may still act after one shop cancels, so only failed and
    # rejected orders stop taking reducer output.
    if current in TERMINAL_STATUSES and current != OrderStatus.CANCELLED.value:
        return current
    if candidate in TERMINAL_STATUSES:
        return candidate
    if rank_of(candidate) > rank_of(current):
        return candidate
    return current
