from typing import Annotated

from fastapi import APIRouter, Depends
from fastapi.responses import PlainTextResponse

from helpdesk.dependencies.services import get_metrics
from helpdesk.metrics import HelpdeskMetrics, PrometheusExporter

router = APIRouter(tags=["metrics"])


@router.get("/metrics", response_class=PlainTextResponse, summary="Prometheus metrics")
async def metrics(helpdesk_metrics: Annotated[HelpdeskMetrics, Depends(get_metrics)]) -> str:
    return PrometheusExporter(helpdesk_metrics.registry).build_payload()
