"""Support-ticket escalation.

When the chatbot cannot resolve an issue the ticket becomes a note on the
Shopify customer record. Without a known customer, a tagged draft order is
created instead so the merchant still sees it in the admin.
"""

from __future__ import annotations

from typing import Any

import structlog

from app.models.contracts import TicketData, TicketResult
from app.shopify.client import ShopifyClient

logger = structlog.get_logger()

TICKET_TAGS = ["support-ticket", "chatbot-escalation"]
HISTORY_MESSAGES = 5
HISTORY_MESSAGE_CHARS = 200


def format_ticket_note(ticket: TicketData) -> str:
    lines = ["SUPPORT TICKET - CHATBOT ESCALATION", ""]
    if ticket.customer_name:
        lines.append(f"Customer: {ticket.customer_name}")
    if ticket.customer_email:
        lines.append(f"Email: {ticket.customer_email}")
    if ticket.order_number:
        lines.append(f"Order: {ticket.order_number}")
    lines += ["", "Issue Description:", ticket.issue]

    if ticket.conversation_history:
        lines += ["", "Conversation History:"]
        recent = ticket.conversation_history[-HISTORY_MESSAGES:]
        for idx, msg in enumerate(recent, start=1):
            speaker = "Customer" if msg.role == "user" else "Chatbot"
            lines.append(f"{idx}. {speaker}: {msg.content[:HISTORY_MESSAGE_CHARS]}")

    lines += [
        "",
        "This ticket was created because the chatbot was unable to resolve the "
        "customer's issue. Please review and contact the customer directly.",
    ]
    return "\n".join(lines)


def _user_error_message(result: dict[str, Any]) -> str | None:
    errors = result.get("userErrors") or []
    if not errors:
        return None
    return ", ".join(e.get("message", "") for e in errors)


async def _create_draft_order_note(client: ShopifyClient, ticket: TicketData) -> TicketResult:
    draft_input: dict[str, Any] = {
        "note": f"[SUPPORT TICKET] {format_ticket_note(ticket)}",
        "tags": TICKET_TAGS,
    }
    if ticket.customer_email:
        draft_input["email"] = ticket.customer_email
    if ticket.customer_name:
        draft_input["customAttributes"] = [
            {"key": "Customer Name", "value": ticket.customer_name}
        ]

    result = await client.create_draft_order(draft_input)
    error = _user_error_message(result)
    if error:
        return TicketResult(success=False, error=error)
    draft_order = result.get("draftOrder") or {}
    return TicketResult(success=True, draft_order_id=draft_order.get("id"))


async def create_ticket(client: ShopifyClient, ticket: TicketData) -> TicketResult:
    """Attach the ticket to the customer, or fall back to a draft order.

    Upstream failures propagate as UpstreamError; Shopify userErrors are
    returned as an unsuccessful TicketResult.
    """
    customer_id = ticket.customer_id
    if not customer_id and ticket.customer_email:
        customer = await client.get_customer_by_email(ticket.customer_email)
        if customer:
            customer_id = customer.get("id")

    if not customer_id:
        logger.info("ticket_customer_not_found", shop=client.shop)
        return await _create_draft_order_note(client, ticket)

    result = await client.update_customer_note(customer_id, format_ticket_note(ticket))
    error = _user_error_message(result)
    if error:
        return TicketResult(success=False, error=error)
    customer = result.get("customer") or {}
    return TicketResult(success=True, note_id=customer.get("id"))
