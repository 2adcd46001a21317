"""Tests for widget request parsing (camelCase aliases) and response shapes."""

import pytest
from pydantic import ValidationError

from app.models.contracts import (
    ChatRequest,
    CreateTicketRequest,
    OrdersRequest,
    Product,
    WebhookAck,
)


class TestWidgetAliases:
    def test_orders_request_camel_case(self):
        req = OrdersRequest.model_validate({"shop": "s.myshopify.com", "orderName": "#1001"})
        assert req.order_name == "#1001"

    def test_orders_request_field_name_also_accepted(self):
        assert OrdersRequest(order_name="#7").order_name == "#7"

    def test_ticket_nested_aliases(self):
        req = CreateTicketRequest.model_validate(
            {
                "shop": "s.myshopify.com",
                "ticketData": {
                    "customerEmail": "a@b.co",
                    "issue": "Package never arrived",
                    "orderNumber": "1001",
                    "conversationHistory": [{"role": "user", "content": "where is it"}],
                },
            }
        )
        assert req.ticket_data is not None
        assert req.ticket_data.customer_email == "a@b.co"
        assert req.ticket_data.order_number == "1001"
        assert req.ticket_data.conversation_history[0].content == "where is it"

    def test_chat_request_defaults(self):
        req = ChatRequest.model_validate({"message": "hi"})
        assert req.conversation_history == []
        assert req.all_products == []
        assert req.current_product is None

    def test_chat_request_products(self):
        req = ChatRequest.model_validate(
            {
                "message": "does it come in blue",
                "currentProduct": {"id": "gid://shopify/Product/1", "name": "Tee"},
                "sessionId": "abc",
            }
        )
        assert req.current_product.category == "Uncategorized"
        assert req.session_id == "abc"


class TestProduct:
    def test_requires_id_and_name(self):
        with pytest.raises(ValidationError):
            Product.model_validate({"name": "No id"})


class TestWebhookAck:
    def test_serializes(self):
        assert WebhookAck().model_dump() == {"success": True}
