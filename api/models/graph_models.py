# api/models/graph_models.py
from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from typing import Any, Dict, List, Optional


class GraphNode(BaseModel):
    """Paper-shaped node; arbitrary paper fields are kept."""
    model_config = ConfigDict(extra="allow")

    id: Optional[Any] = None
    label: Optional[str] = None


class GraphEdge(BaseModel):
    """Edge endpoints may be given as from/to or source/target."""
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: Optional[Any] = None
    from_: Optional[Any] = Field(None, alias="from")
    to: Optional[Any] = None
    source: Optional[Any] = None
    target: Optional[Any] = None


class GraphData(BaseModel):
    model_config = ConfigDict(extra="allow")

    nodes: List[GraphNode]
    edges: List[GraphEdge] = Field(..., validation_alias=AliasChoices("edges", "links"))

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class PaperPayload(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: Optional[Any] = None
    url: Optional[str] = None
    title: Optional[str] = None


class BuildGraphRequest(BaseModel):
    urls: List[str] = Field(..., description="Paper URLs (arXiv abs/pdf links or direct PDF links)")


class BuildGraphResponse(BaseModel):
    success: bool
    graphData: Dict[str, Any]
    papers: List[Dict[str, Any]]
    originalPapers: List[str]
    statistics: Dict[str, Any]


class SaveResultRequest(BaseModel):
    title: Optional[str] = None
    papers: List[PaperPayload] = Field(default_factory=list)
    graphData: GraphData
    originalPapers: Optional[List[str]] = None
    sessionId: Optional[str] = None


class SaveResultResponse(BaseModel):
    success: bool
    sessionId: str
    nodeCount: int
    edgeCount: int
    stats: Dict[str, int]


class CreateSessionRequest(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None


class UpdateSessionRequest(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None


class UpdateGraphRequest(BaseModel):
    graphData: GraphData


class EditGraphRequest(BaseModel):
    """Request model for graph editing operations."""
    action: str = Field(..., description="Edit action to perform")
    payload: Dict[str, Any] = Field(default_factory=dict, description="Action-specific payload")
