# api/dependencies/services.py
from fastapi import Request

from services.citation_extractor import CitationExtractor
from services.graph_persistence_service import GraphPersistenceService, graph_persistence_service
from services.graph_pipeline import GraphPipeline
from services.session_service import SessionService, session_service


def get_persistence_service() -> GraphPersistenceService:
    return graph_persistence_service


def get_session_service() -> SessionService:
    return session_service


def get_graph_pipeline(request: Request) -> GraphPipeline:
    cache = getattr(request.app.state, "cache", None)
    return GraphPipeline(CitationExtractor(cache=cache))
