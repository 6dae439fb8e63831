"""FastAPI routes for the Marketplace order lifecycle.

Thin adapters that translate HTTP requests into domain commands and listing
queries. The upstream auth gateway identifies the caller through the
``X-Actor-*`` headers.
"""

import json

from fastapi import APIRouter, Depends, FastAPI, Header, Request
from fastapi.responses import JSONResponse
from protean.utils.globals import current_domain

from marketplace.api.schemas import (
    AdvanceFulfillmentRequest,
    ConfirmPaymentRequest,
    DecisionRequest,
    InclusionRequest,
    InclusionResponse,
    LineItemPageResponse,
    OrderIdResponse,
    OrderPageResponse,
    OrderResponse,
    PlaceOrderRequest,
    RejectReturnRequest,
    RequestReturnRequest,
    SettlementResponse,
    StatusResponse,
    TrackingLinkRequest,
)
from marketplace.gateway import get_gateway
from marketplace.order.actors import Actor
from marketplace.order.approval import ApproveLineItem, RejectLineItem
from marketplace.order.errors import NotAuthorizedError
from marketplace.order.fulfillment import AdvanceFulfillment, SetTrackingLink
from marketplace.order.inclusion import SetOrderInclusion
from marketplace.order.listing import get_order, list_approval_requests, list_orders, list_return_requests
from marketplace.order.placement import PlaceOrder
from marketplace.order.returns import ApproveReturn, CompleteRefund, RejectReturn, RequestReturn
from marketplace.order.settlement import ConfirmPayment, VerifyPayment

order_router = APIRouter(prefix="/orders", tags=["orders"])


def current_actor(
    x_actor_id: str = Header(...),
    x_actor_role: str = Header(...),
    x_actor_name: str | None = Header(None),
    x_actor_shop_id: str | None = Header(None),
) -> Actor:
    """Rebuild the authenticated actor from the auth gateway headers."""
    return Actor.build(x_actor_id, x_actor_role, x_actor_name, x_actor_shop_id)


def register_authorization_handler(app: FastAPI) -> None:
    """Map role and shop mismatches to 403 responses."""

    @app.exception_handler(NotAuthorizedError)
    async def _not_authorized(request: Request, exc: NotAuthorizedError) -> JSONResponse:
        return JSONResponse(status_code=403, content={"error": exc.messages})


# ---------------------------------------------------------------------------
# Placement & settlement
# ---------------------------------------------------------------------------
@order_router.post("", status_code=201, response_model=OrderIdResponse)
async def place_order(body: PlaceOrderRequest, actor: Actor = Depends(current_actor)) -> OrderIdResponse:
    command = PlaceOrder(
        **actor.as_command_fields(),
        cart_lines=json.dumps([line.model_dump() for line in body.cart_lines]),
        addresses=json.dumps([address.model_dump() for address in body.addresses]),
        payment_type=body.payment_type,
        buyer_email=body.buyer_email,
        buyer_phone=body.buyer_phone,
        expected_total=body.expected_total,
    )
    result = current_domain.process(command, asynchronous=False)
    return OrderIdResponse(order_id=result)


@order_router.post("/{order_id}/payment/confirm", response_model=SettlementResponse)
async def confirm_payment(
    order_id: str,
    body: ConfirmPaymentRequest,
    request: Request,
    x_gateway_signature: str = Header(default=""),
) -> SettlementResponse:
    """Gateway webhook: report the outcome of a checkout session."""
    payload = (await request.body()).decode()
    if not get_gateway().verify_webhook_signature(payload, x_gateway_signature):
        raise NotAuthorizedError({"signature": ["Invalid webhook signature"]})

    command = ConfirmPayment(
        order_id=order_id,
        paid=body.paid,
        amount=body.amount,
        payment_reference=body.payment_reference,
    )
    placed = current_domain.process(command, asynchronous=False)
    return SettlementResponse(placed=bool(placed))


@order_router.post("/{order_id}/payment/verify", response_model=SettlementResponse)
async def verify_payment(order_id: str, actor: Actor = Depends(current_actor)) -> SettlementResponse:
    command = VerifyPayment(order_id=order_id, **actor.as_command_fields())
    placed = current_domain.process(command, asynchronous=False)
    return SettlementResponse(placed=bool(placed))


# ---------------------------------------------------------------------------
# Shop approval & fulfillment
# ---------------------------------------------------------------------------
@order_router.post("/{order_id}/items/{line_item_id}/approve", response_model=StatusResponse)
async def approve_line_item(
    order_id: str,
    line_item_id: str,
    body: DecisionRequest | None = None,
    actor: Actor = Depends(current_actor),
) -> StatusResponse:
    command = ApproveLineItem(
        order_id=order_id,
        line_item_id=line_item_id,
        reason=body.reason if body else None,
        **actor.as_command_fields(),
    )
    current_domain.process(command, asynchronous=False)
    return StatusResponse()


@order_router.post("/{order_id}/items/{line_item_id}/reject", response_model=StatusResponse)
async def reject_line_item(
    order_id: str,
    line_item_id: str,
    body: DecisionRequest | None = None,
    actor: Actor = Depends(current_actor),
) -> StatusResponse:
    command = RejectLineItem(
        order_id=order_id,
        line_item_id=line_item_id,
        reason=body.reason if body else None,
        **actor.as_command_fields(),
    )
    current_domain.process(command, asynchronous=False)
    return StatusResponse()


@order_router.post("/{order_id}/items/{line_item_id}/fulfillment", response_model=StatusResponse)
async def advance_fulfillment(
    order_id: str,
    line_item_id: str,
    body: AdvanceFulfillmentRequest,
    actor: Actor = Depends(current_actor),
) -> StatusResponse:
    command = AdvanceFulfillment(
        order_id=order_id,
        line_item_id=line_item_id,
        product_status=body.product_status,
        **actor.as_command_fields(),
    )
    current_domain.process(command, asynchronous=False)
    return StatusResponse()


@order_router.put("/{order_id}/items/{line_item_id}/tracking-link", response_model=StatusResponse)
async def set_tracking_link(
    order_id: str,
    line_item_id: str,
    body: TrackingLinkRequest,
    actor: Actor = Depends(current_actor),
) -> StatusResponse:
    command = SetTrackingLink(
        order_id=order_id,
        line_item_id=line_item_id,
        tracking_link=body.tracking_link,
        **actor.as_command_fields(),
    )
    current_domain.process(command, asynchronous=False)
    return StatusResponse()


# ---------------------------------------------------------------------------
# Returns & refunds
# ---------------------------------------------------------------------------
@order_router.post("/{order_id}/items/{line_item_id}/return", response_model=StatusResponse)
async def request_return(
    order_id: str,
    line_item_id: str,
    body: RequestReturnRequest,
    actor: Actor = Depends(current_actor),
) -> StatusResponse:
    command = RequestReturn(
        order_id=order_id,
        line_item_id=line_item_id,
        quantity=body.quantity,
        reason=body.reason,
        description=body.description,
        images=json.dumps(body.images) if body.images is not None else None,
        **actor.as_command_fields(),
    )
    current_domain.process(command, asynchronous=False)
    return StatusResponse()


@order_router.post("/{order_id}/items/{line_item_id}/return/approve", response_model=StatusResponse)
async def approve_return(order_id: str, line_item_id: str, actor: Actor = Depends(current_actor)) -> StatusResponse:
    command = ApproveReturn(order_id=order_id, line_item_id=line_item_id, **actor.as_command_fields())
    current_domain.process(command, asynchronous=False)
    return StatusResponse()


@order_router.post("/{order_id}/items/{line_item_id}/return/reject", response_model=StatusResponse)
async def reject_return(
    order_id: str,
    line_item_id: str,
    body: RejectReturnRequest,
    actor: Actor = Depends(current_actor),
) -> StatusResponse:
    command = RejectReturn(
        order_id=order_id,
        line_item_id=line_item_id,
        reason=body.reason,
        **actor.as_command_fields(),
    )
    current_domain.process(command, asynchronous=False)
    return StatusResponse()


@order_router.post("/{order_id}/items/{line_item_id}/refund/complete", response_model=StatusResponse)
async def complete_refund(order_id: str, line_item_id: str, actor: Actor = Depends(current_actor)) -> StatusResponse:
    command = CompleteRefund(order_id=order_id, line_item_id=line_item_id, **actor.as_command_fields())
    current_domain.process(command, asynchronous=False)
    return StatusResponse()


@order_router.put("/{order_id}/include", response_model=InclusionResponse)
async def set_inclusion(order_id: str, body: InclusionRequest, actor: Actor = Depends(current_actor)) -> InclusionResponse:
    command = SetOrderInclusion(order_id=order_id, include=body.include, **actor.as_command_fields())
    changed = current_domain.process(command, asynchronous=False)
    return InclusionResponse(changed=bool(changed))


# ---------------------------------------------------------------------------
# Listings
# ---------------------------------------------------------------------------
@order_router.get("", response_model=OrderPageResponse)
async def get_orders(
    status: str | None = None,
    page: int = 1,
    actor: Actor = Depends(current_actor),
) -> OrderPageResponse:
    return OrderPageResponse(**list_orders(actor, status=status, page=page))


@order_router.get("/approval-requests", response_model=LineItemPageResponse)
async def get_approval_requests(page: int = 1, actor: Actor = Depends(current_actor)) -> LineItemPageResponse:
    return LineItemPageResponse(**list_approval_requests(actor, page=page))


@order_router.get("/return-requests", response_model=LineItemPageResponse)
async def get_return_requests(page: int = 1, actor: Actor = Depends(current_actor)) -> LineItemPageResponse:
    return LineItemPageResponse(**list_return_requests(actor, page=page))


@order_router.get("/{order_id}", response_model=OrderResponse)
async def get_order_detail(order_id: str, actor: Actor = Depends(current_actor)) -> OrderResponse:
    return OrderResponse(**get_order(actor, order_id))
