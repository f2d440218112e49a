# File: api/routers/graphs.py
import logging

from fastapi import APIRouter, Depends

from api.dependencies.auth import get_user_id
from api.dependencies.services import get_graph_pipeline
from api.errors import to_http_exception
from api.models.graph_models import BuildGraphRequest, BuildGraphResponse
from services.graph_pipeline import GraphPipeline

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/build", response_model=BuildGraphResponse)
async def build_graph(
    payload: BuildGraphRequest,
    user_id: str = Depends(get_user_id),
    pipeline: GraphPipeline = Depends(get_graph_pipeline),
) -> BuildGraphResponse:
    logger.info(f"📊 Graph build requested by {user_id} for {len(payload.urls)} URLs")
    try:
        result = await pipeline.build_graph(payload.urls)
    except Exception as e:
        raise to_http_exception(e, "build_graph")

    return BuildGraphResponse(
        success=True,
        graphData=result["graph"],
        papers=result["papers"],
        originalPapers=result["originalPapers"],
        statistics=result["statistics"],
    )
