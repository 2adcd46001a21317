"""Closelook contract models shared by routes, services and tests.

Request models accept the camelCase keys the storefront widgets send
(``orderName``, ``ticketData``...) as aliases; responses are snake_case.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

# === Shared Types ===


class ShopSession(BaseModel):
    """OAuth credential set for one shop. ``shop`` is the unique key."""

    shop: str
    access_token: str
    storefront_token: str | None = None
    scope: str = ""
    is_online: bool = False
    expires: datetime | None = None
    custom_domain: str | None = None


class QueryType(BaseModel):
    is_order: bool = False
    is_policy: bool = False
    is_account: bool = False
    order_number: str | None = None
    email: str | None = None


class ApiError(BaseModel):
    """Normalized upstream failure. Never persisted."""

    message: str
    code: str | None = None
    retryable: bool = False
    status_code: int | None = None


class ErrorResponse(BaseModel):
    error: str
    message: str
    retryable: bool = False


class ConversationMessage(BaseModel):
    role: str
    content: str


ImageType = Literal["fullBody", "halfBody"]
TimeRange = Literal["7d", "30d", "90d", "all"]


# === Products ===


class Product(BaseModel):
    """Storefront product in the shape the widgets render."""

    id: str
    name: str
    category: str = "Uncategorized"
    type: str = ""
    color: str = ""
    price: float = 0.0
    images: list[str] = []
    description: str = ""
    url: str | None = None
    sizes: list[str] | None = None
    metadata: dict[str, Any] = {}


class ProductListResponse(BaseModel):
    products: list[Product]
    count: int
    cached: bool = False


# === Orders / Policies / Tickets ===


class _WidgetRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class OrdersRequest(_WidgetRequest):
    shop: str | None = None
    email: str | None = None
    order_name: str | None = Field(default=None, alias="orderName")


class PoliciesRequest(_WidgetRequest):
    shop: str | None = None


class StorePolicies(BaseModel):
    shipping_policy: str | None = None
    refund_policy: str | None = None
    privacy_policy: str | None = None
    terms_of_service: str | None = None


class TicketData(_WidgetRequest):
    customer_email: str | None = Field(default=None, alias="customerEmail")
    customer_id: str | None = Field(default=None, alias="customerId")
    customer_name: str | None = Field(default=None, alias="customerName")
    issue: str = ""
    conversation_history: list[ConversationMessage] = Field(
        default_factory=list, alias="conversationHistory"
    )
    order_number: str | None = Field(default=None, alias="orderNumber")


class CreateTicketRequest(_WidgetRequest):
    shop: str | None = None
    ticket_data: TicketData | None = Field(default=None, alias="ticketData")


class TicketResult(BaseModel):
    success: bool
    note_id: str | None = None
    draft_order_id: str | None = None
    error: str | None = None


class TicketResponse(BaseModel):
    success: bool = True
    message: str
    note_id: str | None = None
    draft_order_id: str | None = None


# === Chat ===


class ChatRequest(_WidgetRequest):
    message: str = ""
    conversation_history: list[ConversationMessage] = Field(
        default_factory=list, alias="conversationHistory"
    )
    current_product: Product | None = Field(default=None, alias="currentProduct")
    all_products: list[Product] = Field(default_factory=list, alias="allProducts")
    shop: str | None = None
    customer_email: str | None = Field(default=None, alias="customerEmail")
    session_id: str | None = Field(default=None, alias="sessionId")


class ChatResponse(BaseModel):
    message: str
    recommendations: list[dict[str, Any]] = []
    query_type: QueryType


# === Try-on / images ===


class ProductAnalysis(BaseModel):
    """Visual analysis of a product used to steer the try-on prompt.

    Fields set to "Unknown" fall back to per-category defaults.
    """

    product_category: str = "Default"
    detailed_visual_description: str = ""
    image_generation_prompt: str = ""
    camera_hint: str = "Unknown"
    product_scale_category: str = "Unknown"
    product_scale_ratio_to_head: float = 1.0
    target_framing: str = "Unknown"
    background_instruction: str = "Unknown"
    positive_prompt: str = "Unknown"
    negative_prompt: str = "Unknown"
    user_characteristics: dict[str, Any] = {}


class TryOnResponse(BaseModel):
    image_url: str
    product_name: str
    metadata: dict[str, Any] = {}


class GenerateImageResponse(BaseModel):
    image_url: str
    text: str = ""


class UserImage(BaseModel):
    """One stored profile photo. Unique on (user_id, image_type)."""

    user_id: str
    shopify_customer_id: str | None = None
    username: str | None = None
    image_type: ImageType
    image_url: str
    blob_filename: str
    created_at: datetime | None = None
    updated_at: datetime | None = None


class UserImagesResult(BaseModel):
    full_body_url: str | None = None
    half_body_url: str | None = None


class UploadedImage(BaseModel):
    type: ImageType
    url: str
    filename: str


# === Analytics ===


class OrderRecord(BaseModel):
    shopify_order_id: str
    order_name: str | None = None
    order_number: str | None = None
    customer_email: str | None = None
    shopify_customer_id: str | None = None
    total_price: float = 0.0
    currency_code: str = "USD"
    line_items: list[Any] = []
    order_status: str = "pending"


class TryOnEventInput(BaseModel):
    shop_domain: str | None = None
    product_id: str | None = None
    product_name: str | None = None
    product_url: str | None = None
    product_image_url: str | None = None
    customer_id: str | None = None
    customer_email: str | None = None
    shopify_customer_id: str | None = None
    metadata: dict[str, Any] | None = None


class DashboardStats(BaseModel):
    total_try_ons: int = 0
    total_orders: int = 0
    total_conversions: int = 0
    conversion_rate: float = 0.0
    try_ons_this_period: int = 0
    orders_this_period: int = 0
    conversions_this_period: int = 0
    conversion_rate_this_period: float = 0.0


class ProductAnalytics(BaseModel):
    product_id: str
    product_name: str | None = None
    product_image_url: str | None = None
    product_url: str | None = None
    try_on_count: int = 0
    order_count: int = 0
    conversion_rate: float = 0.0


class WebhookAck(BaseModel):
    success: bool = True
