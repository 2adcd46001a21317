"""Support-ticket escalation from the chatbot."""

import structlog
from fastapi import APIRouter, Request

from app.api.deps import require_session, resolve_shop
from app.models.contracts import CreateTicketRequest, TicketResponse
from app.shopify.client import ShopifyClient
from app.shopify.tickets import create_ticket
from app.utils.api_errors import UnknownError, UpstreamError, ValidationError, to_service_error

logger = structlog.get_logger()

router = APIRouter(tags=["shopify"])


@router.post("/tickets")
async def post_ticket(request: Request, body: CreateTicketRequest) -> TicketResponse:
    shop = resolve_shop(request, body.shop)
    if body.ticket_data is None or not body.ticket_data.issue.strip():
        raise ValidationError("Issue description is required", code="missing_issue")
    session = await require_session(shop)

    try:
        result = await create_ticket(ShopifyClient.from_session(session), body.ticket_data)
    except UpstreamError as exc:
        raise to_service_error(exc, fallback="Failed to create ticket") from exc

    if not result.success:
        logger.error("ticket_create_failed", shop=shop, error=result.error)
        raise UnknownError("Failed to create ticket", code="ticket_failed")

    logger.info("ticket_created", shop=shop, note_id=result.note_id, draft_order_id=result.draft_order_id)
    return TicketResponse(
        message="Ticket created successfully. The shop owner has been notified.",
        note_id=result.note_id,
        draft_order_id=result.draft_order_id,
    )
