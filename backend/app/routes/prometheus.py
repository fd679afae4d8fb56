# backend/app/routes/prometheus.py
"""
Prometheus metrics endpoint.

Public (no authentication) as is standard for scrape targets. Exposes the
metrics recorded by ``BaseService.measure_operation`` and the scheduling
counters.
"""

from fastapi import APIRouter, Response

from ..monitoring.prometheus_metrics import prometheus_metrics

router = APIRouter(tags=["monitoring"])


@router.get("/metrics", include_in_schema=False)
def metrics() -> Response:
    return Response(
        content=prometheus_metrics.get_metrics(),
        media_type=prometheus_metrics.get_content_type(),
        headers={"Cache-Control": "no-store"},
    )
