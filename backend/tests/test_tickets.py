"""Tests for support-ticket escalation."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from app.models.contracts import ConversationMessage, TicketData
from app.shopify.tickets import create_ticket, format_ticket_note


def _ticket(**overrides):
    fields = {
        "customerName": "Jane Doe",
        "customerEmail": "jane@example.com",
        "issue": "My parcel arrived damaged",
        "orderNumber": "#1042",
    }
    fields.update(overrides)
    return TicketData.model_validate(fields)


def _shopify_client():
    client = MagicMock()
    client.shop = "cool-store.myshopify.com"
    client.get_customer_by_email = AsyncMock(return_value=None)
    client.update_customer_note = AsyncMock()
    client.create_draft_order = AsyncMock()
    return client


class TestFormatTicketNote:
    def test_header_and_details(self):
        note = format_ticket_note(_ticket())
        assert note.startswith("SUPPORT TICKET - CHATBOT ESCALATION")
        assert "Customer: Jane Doe" in note
        assert "Email: jane@example.com" in note
        assert "Order: #1042" in note
        assert "Issue Description:\nMy parcel arrived damaged" in note

    def test_history_keeps_last_five_truncated(self):
        history = [ConversationMessage(role="user", content=f"msg {i}") for i in range(7)]
        history.append(ConversationMessage(role="assistant", content="x" * 500))
        note = format_ticket_note(_ticket(conversationHistory=[m.model_dump() for m in history]))
        assert "msg 2" not in note
        assert "1. Customer: msg 3" in note
        assert "5. Chatbot: " + "x" * 200 + "\n" in note
        assert "x" * 201 not in note

    def test_optional_lines_omitted(self):
        note = format_ticket_note(TicketData(issue="Help"))
        assert "Customer:" not in note
        assert "Conversation History:" not in note


class TestCreateTicket:
    @pytest.mark.asyncio
    async def test_note_on_known_customer(self):
        client = _shopify_client()
        client.get_customer_by_email.return_value = {"id": "gid://shopify/Customer/7"}
        client.update_customer_note.return_value = {
            "customer": {"id": "gid://shopify/Customer/7"},
            "userErrors": [],
        }

        result = await create_ticket(client, _ticket())

        assert result.success
        assert result.note_id == "gid://shopify/Customer/7"
        customer_id, note = client.update_customer_note.call_args[0]
        assert customer_id == "gid://shopify/Customer/7"
        assert "My parcel arrived damaged" in note
        client.create_draft_order.assert_not_called()

    @pytest.mark.asyncio
    async def test_draft_order_when_customer_unknown(self):
        client = _shopify_client()
        client.create_draft_order.return_value = {
            "draftOrder": {"id": "gid://shopify/DraftOrder/9"},
            "userErrors": [],
        }

        result = await create_ticket(client, _ticket())

        assert result.success
        assert result.draft_order_id == "gid://shopify/DraftOrder/9"
        draft_input = client.create_draft_order.call_args[0][0]
        assert draft_input["tags"] == ["support-ticket", "chatbot-escalation"]
        assert draft_input["note"].startswith("[SUPPORT TICKET] ")
        assert draft_input["customAttributes"] == [{"key": "Customer Name", "value": "Jane Doe"}]

    @pytest.mark.asyncio
    async def test_user_errors_are_unsuccessful(self):
        client = _shopify_client()
        client.update_customer_note.return_value = {
            "customer": None,
            "userErrors": [{"field": ["note"], "message": "Note is too long"}],
        }

        result = await create_ticket(client, _ticket(customerId="7"))

        assert not result.success
        assert result.error == "Note is too long"
        client.get_customer_by_email.assert_not_called()
