"""Metrics endpoint for Prometheus scraping."""

from fastapi import APIRouter, Response
from prometheus_client import CONTENT_TYPE_LATEST

from ..core.observability import get_prometheus_metrics

router = APIRouter(tags=["ops"])


@router.get(
    "/metrics",
    summary="Prometheus Metrics",
    description="HTTP request, signup, login, payment and booking counters",
    response_class=Response,
)
async def metrics() -> Response:
    """Return the application's registry in the Prometheus text format."""
    return Response(content=get_prometheus_metrics(), media_type=CONTENT_TYPE_LATEST)
