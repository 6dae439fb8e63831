"""Role-gated order queries over the listing projections.

Buyers see their own orders, shop operators see only their own line items,
administrators see everything. Orders still waiting for online payment are
invisible everywhere. Results are newest first, ``PAGE_SIZE`` per page.
"""

import json

from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from marketplace.order.actors import ActorRole
from marketplace.order.errors import NotAuthorizedError
from marketplace.order.order import ApprovalStatus, OrderStatus, ProductStatus
from marketplace.projections.order_listing import OrderListing
from marketplace.projections.shop_line_items import ShopLineItem

PAGE_SIZE = 10

_HIDDEN_STATUSES = frozenset({OrderStatus.PAYMENT_INITIATED.value})
# Orders in which shops cannot act yet
_UNDECIDABLE_STATUSES = frozenset({OrderStatus.PAYMENT_INITIATED.value, OrderStatus.FAILED.value})


def _paginate(records, page):
    page = max(int(page or 1), 1)
    start = (page - 1) * PAGE_SIZE
    return {
        "page": page,
        "page_size": PAGE_SIZE,
        "total": len(records),
        "results": records[start : start + PAGE_SIZE],
    }


def _newest_first(records):
    return sorted(records, key=lambda r: r.created_at or r.updated_at, reverse=True)


def _line_item_dict(record):
    return {
        "line_item_id": str(record.line_item_id),
        "order_id": str(record.order_id),
        "order_number": record.order_number,
        "shop_id": str(record.shop_id),
        "shop_name": record.shop_name,
        "product_id": str(record.product_id),
        "title": record.title,
        "thumbnail": record.thumbnail,
        "quantity": record.quantity,
        "unit_price": record.unit_price,
        "total_price": record.total_price,
        "shop_approved": record.shop_approved,
        "product_status": record.product_status,
        "tracking_link": record.tracking_link,
        "decision_reason": record.decision_reason,
        "return_quantity": record.return_quantity,
        "return_reason": record.return_reason,
        "return_rejection_reason": record.return_rejection_reason,
    }


def _order_dict(listing, items):
    return {
        "order_id": str(listing.order_id),
        "order_number": listing.order_number,
        "buyer_id": str(listing.buyer_id),
        "buyer_name": listing.buyer_name,
        "buyer_role": listing.buyer_role,
        "status": listing.status,
        "payment_type": listing.payment_type,
        "include": listing.include,
        "total_items": listing.total_items,
        "total_amount": listing.total_amount,
        "delivery_address": json.loads(listing.delivery_address) if listing.delivery_address else None,
        "created_at": listing.created_at.isoformat() if listing.created_at else None,
        "items": [_line_item_dict(item) for item in items],
    }


def _items_of(order_id, shop_id=None):
    filters = {"order_id": str(order_id)}
    if shop_id is not None:
        filters["shop_id"] = shop_id
    items = current_domain.repository_for(ShopLineItem)._dao.query.filter(**filters).all().items
    return sorted(items, key=lambda i: str(i.line_item_id))


def _listings_by_id(order_ids):
    repo = current_domain.repository_for(OrderListing)
    listings = {}
    for order_id in order_ids:
        try:
            listings[order_id] = repo.get(order_id)
        except ObjectNotFoundError:
            continue
    return listings


def _visible_to_shops(listing):
    """Super-customer orders reach shops only once included."""
    return listing.buyer_role != ActorRole.SUPER_CUSTOMER.value or listing.include


def list_orders(actor, status=None, page=1):
    """List the orders the actor is allowed to see, optionally by order status."""
    if actor.is_shop_user:
        approved = (
            current_domain.repository_for(ShopLineItem)
            ._dao.query.filter(shop_id=actor.shop_id, shop_approved=ApprovalStatus.APPROVED.value)
            .all()
            .items
        )
        listings = _listings_by_id({str(item.order_id) for item in approved})
        candidates = [listing for listing in listings.values() if _visible_to_shops(listing)]
    elif actor.is_admin:
        candidates = current_domain.repository_for(OrderListing)._dao.query.all().items
    elif actor.is_buyer:
        candidates = current_domain.repository_for(OrderListing)._dao.query.filter(buyer_id=actor.id).all().items
    else:
        raise NotAuthorizedError({"actor_role": [f"Role {actor.role.value} cannot list orders"]})

    visible = [
        listing
        for listing in candidates
        if listing.status not in _HIDDEN_STATUSES and (status is None or listing.status == status)
    ]
    result = _paginate(_newest_first(visible), page)
    shop_scope = actor.shop_id if actor.is_shop_user else None
    result["results"] = [_order_dict(listing, _items_of(listing.order_id, shop_scope)) for listing in result["results"]]
    return result


def _shop_queue(actor, product_statuses=None, shop_approved=None):
    if actor.is_shop_user:
        filters = {"shop_id": actor.shop_id}
    elif actor.is_admin:
        filters = {}
    else:
        raise NotAuthorizedError({"actor_role": [f"Role {actor.role.value} cannot view shop queues"]})
    if shop_approved is not None:
        filters["shop_approved"] = shop_approved

    items = current_domain.repository_for(ShopLineItem)._dao.query.filter(**filters).all().items
    if product_statuses is not None:
        items = [item for item in items if item.product_status in product_statuses]
    return items


def list_approval_requests(actor, page=1):
    """Line items waiting for the shop's decision."""
    items = _shop_queue(actor, shop_approved=ApprovalStatus.PENDING.value)
    listings = _listings_by_id({str(item.order_id) for item in items})

    pending = []
    for item in items:
        listing = listings.get(str(item.order_id))
        if listing is None or listing.status in _UNDECIDABLE_STATUSES:
            continue
        if actor.is_shop_user and not _visible_to_shops(listing):
            continue
        pending.append(item)

    result = _paginate(_newest_first(pending), page)
    result["results"] = [_line_item_dict(item) for item in result["results"]]
    return result


def list_return_requests(actor, page=1):
    """Open return requests; administrators also see completed refunds."""
    statuses = {ProductStatus.RETURN_REQUESTED.value}
    if actor.is_admin:
        statuses.add(ProductStatus.REFUNDED.value)

    items = _shop_queue(actor, product_statuses=statuses)
    if actor.is_shop_user:
        listings = _listings_by_id({str(item.order_id) for item in items})
        items = [
            item
            for item in items
            if str(item.order_id) in listings and _visible_to_shops(listings[str(item.order_id)])
        ]
    result = _paginate(_newest_first(items), page)
    result["results"] = [_line_item_dict(item) for item in result["results"]]
    return result


def get_order(actor, order_id):
    """Fetch one order as seen by ``actor``.

    Raises:
        ObjectNotFoundError: The order does not exist or still awaits payment.
        NotAuthorizedError: The actor has no stake in the order.
    """
    repo = current_domain.repository_for(OrderListing)
    listing = repo.get(order_id)
    if listing.status in _HIDDEN_STATUSES:
        raise ObjectNotFoundError({"order_id": [f"Order {order_id} not found"]})

    if actor.is_admin:
        return _order_dict(listing, _items_of(listing.order_id))
    if actor.is_buyer:
        if str(listing.buyer_id) != actor.id:
            raise NotAuthorizedError({"actor": ["Order belongs to another buyer"]})
        return _order_dict(listing, _items_of(listing.order_id))
    if actor.is_shop_user:
        items = _items_of(listing.order_id, actor.shop_id)
        if not items or not _visible_to_shops(listing):
            raise NotAuthorizedError({"actor": ["Order has no line items for this shop"]})
        return _order_dict(listing, items)
    raise NotAuthorizedError({"actor_role": [f"Role {actor.role.value} cannot view orders"]})
