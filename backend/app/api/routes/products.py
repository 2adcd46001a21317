"""Storefront product listing, cached per shop."""

from fastapi import APIRouter, Request

from app.api.deps import require_session, resolve_shop
from app.models.contracts import ProductListResponse
from app.shopify.products import list_products
from app.utils.api_errors import UpstreamError, to_service_error

router = APIRouter(tags=["shopify"])


@router.get("/products")
async def get_products(request: Request) -> ProductListResponse:
    shop = resolve_shop(request)
    session = await require_session(shop)
    try:
        products, cached = await list_products(session)
    except UpstreamError as exc:
        raise to_service_error(exc, fallback="Failed to fetch products") from exc
    return ProductListResponse(products=products, count=len(products), cached=cached)
