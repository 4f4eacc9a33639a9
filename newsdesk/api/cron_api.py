"""Endpoints called by the external scheduler with ``Authorization: Bearer <CRON_SECRET>``."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from starlette.status import HTTP_500_INTERNAL_SERVER_ERROR

from newsdesk.api.dependencies import UnitOfWork, get_uow, require_cron_secret
from newsdesk.api.openapi_responses import unauthorized_response
from newsdesk.api.schemas.sequence_response_models import (
    CronDistributionResponse,
    IngestionRunResponse,
    ScheduledRunResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(require_cron_secret)], responses=unauthorized_response())


@router.get(
    "/ingestion",
    summary="Scheduled ingestion",
    description="Lookback is the gap back to the previous scheduled ingestion day.",
    response_model=IngestionRunResponse,
)
async def cron_ingestion(
    uow: UnitOfWork = Depends(get_uow),
) -> IngestionRunResponse | JSONResponse:
    try:
        outcome, time_frame = await uow.ingestion_service.run_tracked("cron")
    except Exception as exc:
        return JSONResponse(
            status_code=HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Ingestion failed", "details": str(exc)},
        )
    return IngestionRunResponse(
        processed=outcome.processed,
        selected=outcome.selected,
        stored=outcome.stored,
        time_frame=time_frame,
    )


@router.get(
    "/distribution",
    summary="Scheduled distribution",
    description="Send every active sequence due now. One failing sequence does not stop the rest.",
    response_model=CronDistributionResponse,
)
async def cron_distribution(
    uow: UnitOfWork = Depends(get_uow),
) -> CronDistributionResponse | JSONResponse:
    try:
        results = await uow.distribution_service.run_scheduled_distributions()
    except Exception as exc:
        logger.exception("Scheduled distribution failed")
        return JSONResponse(
            status_code=HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Distribution failed", "details": str(exc)},
        )
    return CronDistributionResponse(
        results=[
            ScheduledRunResponse(
                sequence_id=result.sequence_id, success=result.success, error=result.error
            )
            for result in results
        ]
    )
