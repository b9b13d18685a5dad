from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field


class ChangeItemModel(BaseModel):
    title: str
    value: str
    description: Optional[str] = None


class InsightsPayload(BaseModel):
    insights: List[str] = Field(..., description="Narrative bullets; **bold** markup allowed")


class ChangesPayload(BaseModel):
    changes: List[ChangeItemModel]


class InsightsResponse(BaseModel):
    success: bool = True
    insights: List[str]


class ChangesResponse(BaseModel):
    success: bool = True
    changes: List[ChangeItemModel]


class TreeNodeModel(BaseModel):
    id: str
    row_data: List[str]
    level: int
    kind: str
    role: Optional[str] = None
    is_header: bool
    is_expanded: bool
    children: List["TreeNodeModel"] = Field(default_factory=list)


class StatementResponse(BaseModel):
    tab: str
    headers: List[str]
    rows: List[List[str]]
    tree: List[TreeNodeModel]


class RecalcResponse(BaseModel):
    status: str
    missing_roles: List[str] = Field(default_factory=list)
    ratio: Optional[float] = None
    headers: List[str]
    rows: List[List[str]]


class ScenarioResponse(BaseModel):
    rate: float
    cashflow: RecalcResponse
    cashloan: Optional[RecalcResponse] = None
    tree: List[TreeNodeModel] = Field(default_factory=list)


class SensitivityRow(BaseModel):
    growth_rate: float
    online_revenue: Optional[float] = None
    net_cash: Optional[float] = None
    year_end_cash: Optional[float] = None
    status: str


class StatusResponse(BaseModel):
    redis_configured: bool
    backend: str
    redis_url_env: Optional[str] = None
    redis_url_preview: str
    local_store_path: str
    environment: str


TreeNodeModel.model_rebuild()
