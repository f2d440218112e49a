# File: api/routers/sessions.py
import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException

from api.dependencies.auth import get_user_id
from api.dependencies.services import get_persistence_service, get_session_service
from api.errors import to_http_exception
from api.models.graph_models import (
    CreateSessionRequest,
    EditGraphRequest,
    UpdateGraphRequest,
    UpdateSessionRequest,
)
from services.graph_editing_service import apply_graph_edit
from services.graph_persistence_service import GraphPersistenceService
from services.session_service import SessionService

router = APIRouter()
logger = logging.getLogger(__name__)


def _save_summary(result) -> Dict[str, Any]:
    data = result.to_dict()
    return {
        "success": True,
        "sessionId": data["session"]["id"],
        "nodeCount": data["nodeCount"],
        "edgeCount": data["edgeCount"],
        "stats": data["stats"],
    }


@router.post("")
def create_session(
    payload: CreateSessionRequest,
    user_id: str = Depends(get_user_id),
    service: SessionService = Depends(get_session_service),
):
    try:
        return service.create_session(user_id, payload.title, payload.description)
    except Exception as e:
        raise to_http_exception(e, "create_session")


@router.get("")
def list_sessions(
    user_id: str = Depends(get_user_id),
    service: SessionService = Depends(get_session_service),
):
    try:
        return {"sessions": service.list_user_sessions(user_id)}
    except Exception as e:
        raise to_http_exception(e, "list_sessions")


@router.get("/{session_id}")
def get_session(
    session_id: str,
    user_id: str = Depends(get_user_id),
    service: SessionService = Depends(get_session_service),
):
    try:
        return service.get_session(session_id, user_id)
    except Exception as e:
        raise to_http_exception(e, "get_session")


@router.put("/{session_id}")
def update_session(
    session_id: str,
    payload: UpdateSessionRequest,
    user_id: str = Depends(get_user_id),
    service: SessionService = Depends(get_session_service),
):
    try:
        return service.update_session(session_id, user_id, payload.title, payload.description)
    except Exception as e:
        raise to_http_exception(e, "update_session")


@router.delete("/{session_id}")
def delete_session(
    session_id: str,
    user_id: str = Depends(get_user_id),
    service: SessionService = Depends(get_session_service),
):
    try:
        service.delete_session(session_id, user_id)
    except Exception as e:
        raise to_http_exception(e, "delete_session")
    return {"success": True}


@router.get("/{session_id}/graph")
def get_session_graph(
    session_id: str,
    user_id: str = Depends(get_user_id),
    service: GraphPersistenceService = Depends(get_persistence_service),
):
    try:
        graph = service.get_session_graph_data(session_id, user_id)
    except Exception as e:
        raise to_http_exception(e, "get_session_graph")

    if graph is None:
        raise HTTPException(status_code=404, detail="No graph data for this session")
    return {"sessionId": session_id, "graphData": graph}


@router.put("/{session_id}/update-graph")
def update_session_graph(
    session_id: str,
    payload: UpdateGraphRequest,
    user_id: str = Depends(get_user_id),
    service: GraphPersistenceService = Depends(get_persistence_service),
):
    try:
        result = service.update_session_graph(session_id, user_id, payload.graphData.to_payload())
    except Exception as e:
        raise to_http_exception(e, "update_session_graph")
    return _save_summary(result)


@router.post("/{session_id}/edit-graph")
def edit_session_graph(
    session_id: str,
    payload: EditGraphRequest,
    user_id: str = Depends(get_user_id),
    service: GraphPersistenceService = Depends(get_persistence_service),
):
    try:
        graph = service.get_session_graph_data(session_id, user_id)
        if graph is None:
            raise HTTPException(status_code=404, detail="No graph data for this session")

        edited = apply_graph_edit(graph, payload.action, payload.payload)
        result = service.update_session_graph(session_id, user_id, edited)
    except HTTPException:
        raise
    except Exception as e:
        raise to_http_exception(e, "edit_session_graph")

    summary = _save_summary(result)
    summary["graphData"] = service.get_session_graph_data(session_id, user_id)
    return summary
