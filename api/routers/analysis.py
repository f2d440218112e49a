# File: api/routers/analysis.py
import logging

from fastapi import APIRouter, Depends

from api.dependencies.auth import get_user_id
from api.dependencies.services import get_persistence_service
from api.errors import to_http_exception
from api.models.graph_models import SaveResultRequest, SaveResultResponse
from services.graph_persistence_service import GraphPersistenceService

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/save-result", response_model=SaveResultResponse)
def save_result(
    payload: SaveResultRequest,
    user_id: str = Depends(get_user_id),
    service: GraphPersistenceService = Depends(get_persistence_service),
) -> SaveResultResponse:
    try:
        result = service.save_graph(
            user_id=user_id,
            title=payload.title,
            papers=[p.model_dump(exclude_none=True) for p in payload.papers],
            graph_data=payload.graphData.to_payload(),
            original_papers=payload.originalPapers,
            session_id=payload.sessionId,
        )
    except Exception as e:
        raise to_http_exception(e, "save_result")

    data = result.to_dict()
    return SaveResultResponse(
        success=True,
        sessionId=data["session"]["id"],
        nodeCount=data["nodeCount"],
        edgeCount=data["edgeCount"],
        stats=data["stats"],
    )
