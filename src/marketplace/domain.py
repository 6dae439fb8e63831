"""Marketplace bounded context: multi-vendor order lifecycle.

Handles placement of multi-shop orders from a cart snapshot (event-sourced),
per-shop approval and fulfillment of line items, returns and refunds, and the
read models used to list orders by role.
"""

import structlog
from protean.domain import Domain

marketplace = Domain(name="marketplace")

logger = structlog.get_logger(__name__)
