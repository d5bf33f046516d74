"""API v1 router module."""

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse
from starlette import status

from sarcasm_wiki.generation.processor import ProcessReport
from sarcasm_wiki.generation.queue import QueueStats
from sarcasm_wiki.generation.rate_limit import RateLimitStatus
from sarcasm_wiki.service import ArticleResponse, ArticleService, ArticleStatus

router = APIRouter(default_response_class=JSONResponse)

STATUS_CODES = {
    ArticleStatus.READY: status.HTTP_200_OK,
    ArticleStatus.PENDING: status.HTTP_202_ACCEPTED,
    ArticleStatus.RATE_LIMITED: status.HTTP_429_TOO_MANY_REQUESTS,
    ArticleStatus.NOT_FOUND: status.HTTP_404_NOT_FOUND,
}


def get_service(request: Request) -> ArticleService:
    """Return the service created at startup."""
    return request.app.state.service


def _article_response(result: ArticleResponse) -> JSONResponse:
    headers = {}
    if result.status is ArticleStatus.RATE_LIMITED and result.retry_after:
        headers["Retry-After"] = str(result.retry_after)
    return JSONResponse(
        status_code=STATUS_CODES[result.status],
        content=result.model_dump(mode="json"),
        headers=headers,
    )


@router.get("/health")
async def health_check(request: Request) -> dict[str, Any]:
    """Liveness and a little state."""
    service = get_service(request)
    settings = request.app.state.settings
    return {
        "status": "healthy",
        "version": settings.version,
        "queue_depth": service.queue.length(),
        "processor_running": service.processor.running,
    }


@router.get("/articles/{identifier:path}")
async def get_article(
    identifier: str, service: ArticleService = Depends(get_service)
) -> JSONResponse:
    """Return a cached article or schedule its generation."""
    return _article_response(await service.get_article(identifier))


@router.post("/articles/{identifier:path}/refresh")
async def refresh_article(
    identifier: str, service: ArticleService = Depends(get_service)
) -> JSONResponse:
    """Regenerate an article, ignoring the cache."""
    return _article_response(await service.force_refresh(identifier))


@router.get("/queue")
async def list_queue(service: ArticleService = Depends(get_service)) -> dict[str, Any]:
    entries = service.queue.entries()
    return {
        "length": len(entries),
        "entries": [entry.model_dump(mode="json") for entry in entries],
    }


@router.get("/queue/stats", response_model=QueueStats)
async def queue_stats(service: ArticleService = Depends(get_service)) -> QueueStats:
    return service.get_queue_stats()


@router.post("/queue/process", response_model=ProcessReport)
async def process_queue(service: ArticleService = Depends(get_service)) -> ProcessReport:
    """Run one processor pass now."""
    return await service.process_next()


@router.post("/queue/{identifier}", status_code=status.HTTP_202_ACCEPTED)
async def enqueue_article(
    identifier: str, service: ArticleService = Depends(get_service)
) -> dict[str, Any]:
    """Add an identifier to the front of the queue."""
    try:
        added = service.enqueue(identifier)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e
    return {
        "identifier": identifier,
        "added": added,
        "position": service.queue.position(identifier),
    }


@router.get("/rate-limit", response_model=RateLimitStatus)
async def rate_limit_status(
    service: ArticleService = Depends(get_service),
) -> RateLimitStatus:
    return service.get_rate_limit_status()


@router.get("/admin/inspect")
async def inspect(service: ArticleService = Depends(get_service)) -> dict[str, Any]:
    """Queue, counters, cooldown and providers in one document."""
    return service.inspect()
