"""Store policies (shipping, refund, privacy, terms) for the chatbot widget."""

from fastapi import APIRouter, Request

from app.api.deps import require_session, resolve_shop
from app.models.contracts import PoliciesRequest, StorePolicies
from app.shopify.client import ShopifyClient
from app.utils.api_errors import UpstreamError, to_service_error

router = APIRouter(tags=["shopify"])


async def _fetch_policies(shop: str) -> dict[str, StorePolicies]:
    session = await require_session(shop)
    try:
        policies = await ShopifyClient.from_session(session).get_shop_policies()
    except UpstreamError as exc:
        raise to_service_error(exc, fallback="Failed to fetch store policies") from exc
    return {"policies": policies}


@router.get("/policies")
async def get_policies(request: Request) -> dict[str, StorePolicies]:
    return await _fetch_policies(resolve_shop(request))


@router.post("/policies")
async def post_policies(request: Request, body: PoliciesRequest) -> dict[str, StorePolicies]:
    return await _fetch_policies(resolve_shop(request, body.shop))
