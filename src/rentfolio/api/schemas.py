# src/rentfolio/api/schemas.py
from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from rentfolio.domain.analysis import (
    AnalysisStatus,
    Calculations,
    ComparableProperty,
    PropertyInfo,
    SavedAnalysis,
)


# --------------------------------------------
# Saved analyses
# --------------------------------------------

class AnalysisListResponse(BaseModel):
    analyses: list[SavedAnalysis]
    total: int
    page: int
    page_size: int
    has_more: bool


class AnalysisEnvelope(BaseModel):
    success: bool = True
    analysis: SavedAnalysis
    message: str = ""


class AnalysisDetail(BaseModel):
    analysis: SavedAnalysis


class DeletedAnalysisItem(BaseModel):
    id: str
    title: str
    address: str


class DeleteResponse(BaseModel):
    success: bool = True
    message: str = ""
    deleted_analysis: DeletedAnalysisItem


class StatusUpdate(BaseModel):
    status: AnalysisStatus


class StatusUpdateResponse(BaseModel):
    success: bool


class ImportResponse(BaseModel):
    success: bool
    total: int = 0


# --------------------------------------------
# Pricing helpers
# --------------------------------------------

class ComparablesRequest(BaseModel):
    """
    Subject property plus up to a handful of comparable listings.
    Extra fields are tolerated so form payloads can be posted as-is.
    """
    model_config = ConfigDict(extra="allow")

    property: PropertyInfo
    comparables: list[ComparableProperty] = Field(default_factory=list)


class ComparableScoreItem(BaseModel):
    index: int
    rent_clp: float
    size_m2: float
    price_per_m2: float
    similarity: float
    adjusted_price_per_m2: float


class RentSuggestionResponse(BaseModel):
    suggested_rent_clp: float
    min_rent_clp: float
    max_rent_clp: float
    avg_price_per_m2: float
    weighted_avg_price_per_m2: float
    comparables: list[ComparableScoreItem]


class CalculationsResponse(BaseModel):
    calculations: Calculations
