"""
FastAPI Endpoints for the Link Service

This module defines all REST API endpoints with minimal logic.
Endpoints only handle:
- Request validation (Pydantic models)
- Rate limiting
- Capturing request metadata for analytics
- Delegating to the service layer

Errors raised by services are turned into HTTP responses by the exception
handlers registered in shortlink.main, so endpoints never build error
responses themselves.

Routes under /api/urls are declared before the catch-all /{short_code}
redirect route.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.responses import RedirectResponse

from shortlink.api.schemas import (
    AnalyticsResponse,
    BatchFailure,
    BatchResponse,
    BatchShortenRequest,
    LinkListResponse,
    LinkResponse,
    Pagination,
    ShortenRequest,
    SortField,
    SortOrder,
    StatsResponse,
    UpdateLinkRequest,
)
from shortlink.core.container import ServiceContainer, get_container
from shortlink.core.rate_limit import RATE_LIMITS, limiter
from shortlink.services.click_recorder import RequestMetadata
from shortlink.services.stats_service import MAX_WINDOW_DAYS, MIN_WINDOW_DAYS

router = APIRouter()


def request_metadata(request: Request) -> RequestMetadata:
    """Capture the request attributes click analytics needs."""
    headers = request.headers
    return RequestMetadata(
        client_host=request.client.host if request.client else None,
        user_agent=headers.get("User-Agent"),
        referrer=headers.get("Referer") or headers.get("Referrer"),
        forwarded_for=headers.get("X-Forwarded-For"),
        real_ip=headers.get("X-Real-IP"),
        country=headers.get("CF-IPCountry") or headers.get("X-Country-Code"),
    )


@router.post(
    "/api/urls",
    response_model=LinkResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a short URL",
    description="Takes a long URL and returns a short link, optionally with a custom alias"
)
@limiter.limit(RATE_LIMITS["shorten"])
async def create_short_url(
    request: Request,  # Required for rate limiting (slowapi expects parameter named 'request')
    body: ShortenRequest,
    container: ServiceContainer = Depends(get_container)
) -> LinkResponse:
    link = await container.url_service.create_short_url(**body.to_service_kwargs())
    return LinkResponse.from_link(link)


@router.post(
    "/api/urls/batch",
    response_model=BatchResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create up to 50 short URLs"
)
@limiter.limit(RATE_LIMITS["batch"])
async def create_batch(
    request: Request,
    body: BatchShortenRequest,
    container: ServiceContainer = Depends(get_container)
) -> BatchResponse:
    result = await container.url_service.create_batch(
        [item.to_service_kwargs() for item in body.urls]
    )
    return BatchResponse(
        created=len(result.created),
        failed=len(result.failed),
        results=[LinkResponse.from_link(link) for link in result.created],
        errors=[
            BatchFailure(
                index=failure["index"],
                original_url=failure["destination_url"],
                kind=failure["kind"],
                message=failure["message"],
            )
            for failure in result.failed
        ],
    )


@router.get(
    "/api/urls",
    response_model=LinkListResponse,
    summary="List active links",
    description="Paginated list of active links with an overview of all of them"
)
@limiter.limit(RATE_LIMITS["stats"])
async def list_links(
    request: Request,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    sort_by: SortField = Query("created_at"),
    order: SortOrder = Query("desc"),
    search: Optional[str] = Query(None, max_length=200),
    tag: Optional[str] = Query(None, max_length=50),
    container: ServiceContainer = Depends(get_container)
) -> LinkListResponse:
    listing = await container.url_service.list_links(
        page=page, limit=limit, sort_by=sort_by, order=order, search=search, tag=tag
    )
    overview = await container.stats_service.overview()
    return LinkListResponse(
        items=[LinkResponse.from_link(link) for link in listing["items"]],
        pagination=Pagination(
            page=listing["page"],
            limit=listing["limit"],
            total=listing["total"],
            total_pages=listing["total_pages"],
        ),
        overview=overview,
    )


@router.get(
    "/api/urls/{short_code}/stats",
    response_model=StatsResponse,
    summary="Get link counters",
    description="Click count, creation and last access time of a short link"
)
@limiter.limit(RATE_LIMITS["stats"])
async def get_url_stats(
    short_code: str,
    request: Request,
    container: ServiceContainer = Depends(get_container)
) -> StatsResponse:
    stats = await container.stats_service.link_stats(short_code)
    return StatsResponse(**stats)


@router.get(
    "/api/urls/{short_code}/analytics",
    response_model=AnalyticsResponse,
    summary="Get rolling click analytics"
)
@limiter.limit(RATE_LIMITS["stats"])
async def get_url_analytics(
    short_code: str,
    request: Request,
    days: int = Query(7, ge=MIN_WINDOW_DAYS, le=MAX_WINDOW_DAYS),
    container: ServiceContainer = Depends(get_container)
) -> AnalyticsResponse:
    summary = await container.stats_service.summarize(short_code, window_days=days)
    return AnalyticsResponse(**summary)


@router.put(
    "/api/urls/{short_code}",
    response_model=LinkResponse,
    summary="Update tags or custom domain"
)
async def update_link(
    short_code: str,
    body: UpdateLinkRequest,
    container: ServiceContainer = Depends(get_container)
) -> LinkResponse:
    link = await container.url_service.update_link(
        short_code, tags=body.tags, custom_domain=body.custom_domain
    )
    return LinkResponse.from_link(link)


@router.delete(
    "/api/urls/{short_code}",
    summary="Soft delete a link"
)
async def delete_link(
    short_code: str,
    container: ServiceContainer = Depends(get_container)
) -> dict:
    await container.url_service.soft_delete(short_code)
    return {"message": f"Short code '{short_code}' deleted"}


@router.get(
    "/{short_code}",
    status_code=status.HTTP_302_FOUND,
    summary="Redirect to original URL",
    description="Takes a short code and redirects to the original long URL"
)
@limiter.limit(RATE_LIMITS["redirect"])
async def redirect_to_url(
    short_code: str,
    request: Request,
    container: ServiceContainer = Depends(get_container)
) -> RedirectResponse:
    """
    Redirect to the original URL for a given short code.

    Raises (via exception handlers):
        404: Unknown, malformed or deleted short code
        410: Link has expired
        503: Cache miss and the durable store is unavailable
    """
    destination = await container.redirect_service.resolve(short_code, request_metadata(request))
    return RedirectResponse(url=destination, status_code=status.HTTP_302_FOUND)
