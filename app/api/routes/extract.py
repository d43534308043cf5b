from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from app.api.deps import get_auth_context, get_pipeline
from app.extract.interfaces import AuthContext
from app.extract.orchestrator import ExtractionPipeline
from app.models.schemas import ExtractRequest
from app.services import logger as log_service

router = APIRouter(prefix="/v1", tags=["extract"])


@router.post("/extract")
async def extract(
    request: ExtractRequest,
    auth: AuthContext = Depends(get_auth_context),
    pipeline: ExtractionPipeline = Depends(get_pipeline),
):
    """Extract structured data from the given URLs and site patterns."""
    log_service.log_event(
        event_type="extract_requested",
        message="Extract requested",
        team_id=auth.team_id,
        urls=len(request.urls),
        origin=request.origin,
    )
    outcome = await pipeline.run(request, auth)
    return JSONResponse(status_code=outcome.status_code, content=outcome.response.to_json())
