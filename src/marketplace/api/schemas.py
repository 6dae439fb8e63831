"""Pydantic request/response schemas for the Marketplace order API.

These are external contracts (anti-corruption layer), separate from
internal Protean commands.
"""

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Shared sub-models
# ---------------------------------------------------------------------------
class CartLineSchema(BaseModel):
    product_id: str
    quantity: int = Field(ge=1)


class AddressSchema(BaseModel):
    name: str | None = None
    phone: str | None = None
    house: str | None = None
    street: str | None = None
    city: str | None = None
    state: str | None = None
    zip: str | None = None
    recently_used: bool = False


# ---------------------------------------------------------------------------
# Request Schemas
# ---------------------------------------------------------------------------
class PlaceOrderRequest(BaseModel):
    cart_lines: list[CartLineSchema] = Field(min_length=1)
    addresses: list[AddressSchema]
    payment_type: str = "online-payment"
    buyer_email: str | None = None
    buyer_phone: str | None = None
    expected_total: float | None = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "cart_lines": [{"product_id": "prod-001", "quantity": 2}],
                    "addresses": [
                        {
                            "name": "Asha",
                            "phone": "9800000000",
                            "house": "12",
                            "street": "MG Road",
                            "city": "Pune",
                            "state": "MH",
                            "zip": "411001",
                            "recently_used": True,
                        }
                    ],
                    "payment_type": "cash-on-delivery",
                }
            ]
        }
    }


class ConfirmPaymentRequest(BaseModel):
    paid: bool
    amount: float | None = None
    payment_reference: str | None = None


class DecisionRequest(BaseModel):
    reason: str | None = None


class AdvanceFulfillmentRequest(BaseModel):
    product_status: str


class TrackingLinkRequest(BaseModel):
    tracking_link: str = Field(min_length=1, max_length=1024)


class RequestReturnRequest(BaseModel):
    quantity: int
    reason: str | None = None
    description: str | None = None
    images: list[str] | None = None


class RejectReturnRequest(BaseModel):
    reason: str | None = None


class InclusionRequest(BaseModel):
    include: bool


# ---------------------------------------------------------------------------
# Response Schemas
# ---------------------------------------------------------------------------
class OrderIdResponse(BaseModel):
    order_id: str


class SettlementResponse(BaseModel):
    placed: bool


class InclusionResponse(BaseModel):
    changed: bool


class StatusResponse(BaseModel):
    status: str = "ok"


class LineItemResponse(BaseModel):
    line_item_id: str
    order_id: str
    order_number: str | None = None
    shop_id: str
    shop_name: str | None = None
    product_id: str
    title: str | None = None
    thumbnail: str | None = None
    quantity: int | None = None
    unit_price: float | None = None
    total_price: float | None = None
    shop_approved: str | None = None
    product_status: str | None = None
    tracking_link: str | None = None
    decision_reason: str | None = None
    return_quantity: int | None = None
    return_reason: str | None = None
    return_rejection_reason: str | None = None


class OrderResponse(BaseModel):
    order_id: str
    order_number: str
    buyer_id: str
    buyer_name: str | None = None
    buyer_role: str | None = None
    status: str
    payment_type: str | None = None
    include: bool | None = None
    total_items: int | None = None
    total_amount: float | None = None
    delivery_address: dict | None = None
    created_at: str | None = None
    items: list[LineItemResponse] = []


class OrderPageResponse(BaseModel):
    page: int
    page_size: int
    total: int
    results: list[OrderResponse]


class LineItemPageResponse(BaseModel):
    page: int
    page_size: int
    total: int
    results: list[LineItemResponse]
