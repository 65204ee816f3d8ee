# src/rentfolio/domain/analysis.py
from __future__ import annotations

import random
import string
import time
from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel, Field, field_validator

AnalysisStatus = Literal[
    "draft",
    "sent_to_client",
    "client_responded",
    "published",
    "archived",
]

Currency = Literal["CLP", "UF"]

PlanId = Literal["A", "B", "C"]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(ts: datetime) -> datetime:
    """Naive datetimes are read as UTC."""
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts


def generate_analysis_id() -> str:
    # analysis_<epoch-ms>_<9 base36 chars>
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=9))
    return f"analysis_{int(time.time() * 1000)}_{suffix}"


class PropertyInfo(BaseModel):
    address: str
    value_clp: float = Field(..., description="Property value in CLP")
    value_uf: float | None = Field(default=None, description="Property value in UF, if known")
    size_m2: float
    bedrooms: int
    bathrooms: int
    parking_spaces: int = 0
    storage_units: int = 0


class ComparableProperty(BaseModel):
    address: str | None = None
    size_m2: float | None = None
    bedrooms: int | None = None
    bathrooms: int | None = None
    parking_spaces: int | None = None
    storage_units: int | None = None
    rent_clp: float | None = None  # monthly asking rent of the comparable


class AnnualExpenses(BaseModel):
    maintenance_clp: float = 0.0
    property_tax_clp: float = 0.0
    insurance_clp: float = 0.0

    @property
    def total_clp(self) -> float:
        return self.maintenance_clp + self.property_tax_clp + self.insurance_clp


class RentalInputs(BaseModel):
    suggested_rent_clp: float | None = None
    suggested_rent_uf: float | None = None
    rent_currency: Currency = "CLP"

    capture_price_clp: float | None = None
    capture_price_uf: float | None = None
    capture_price_currency: Currency | None = None

    comparable_properties: list[ComparableProperty] = Field(default_factory=list)
    annual_expenses: AnnualExpenses = Field(default_factory=AnnualExpenses)

    uf_value_clp: float = Field(default=0.0, description="CLP per 1 UF at analysis time")


class PlanComparison(BaseModel):
    plan_id: PlanId
    expected_rental_time: float
    total_commission: float
    net_annual_income: float
    vacancy_risk_score: float
    recommendation_score: float


class Calculations(BaseModel):
    """
    Derived financial metrics. The all-zero default is the placeholder stored
    for analyses whose figures have not been computed yet.
    """
    cap_rate: float = 0.0                   # NOI / value, percent
    annual_rental_yield: float = 0.0        # gross annual rent / value, percent
    monthly_net_income: float = 0.0         # NOI / 12
    vacancy_cost_per_month: float = 0.0
    break_even_rent_reduction: float = 0.0  # percent
    plan_comparisons: list[PlanComparison] = Field(default_factory=list)


class AnalysisMetadata(BaseModel):
    created_at: datetime
    updated_at: datetime
    broker_email: str = ""
    status: AnalysisStatus = "draft"
    tags: list[str] | None = None
    notes: str | None = None

    @field_validator("created_at", "updated_at")
    @classmethod
    def _to_utc(cls, v: datetime) -> datetime:
        return as_utc(v)


class SavedAnalysis(BaseModel):
    id: str
    title: str
    property: PropertyInfo
    analysis: RentalInputs
    calculations: Calculations = Field(default_factory=Calculations)
    metadata: AnalysisMetadata


# --------------------------------------------
# Typed partial updates
# --------------------------------------------

class MetadataChanges(BaseModel):
    broker_email: str | None = None
    status: AnalysisStatus | None = None
    tags: list[str] | None = None
    notes: str | None = None


class AnalysisChanges(BaseModel):
    """
    Fields a caller may replace on an existing analysis.

    Only fields explicitly set participate in a merge, so passing
    `notes=None` clears notes while omitting `notes` keeps them.
    """
    title: str | None = None
    property: PropertyInfo | None = None
    analysis: RentalInputs | None = None
    calculations: Calculations | None = None
    metadata: MetadataChanges | None = None


def apply_changes(existing: SavedAnalysis, changes: AnalysisChanges, *, now: datetime) -> SavedAnalysis:
    merged = existing.model_copy(deep=True)

    for field in ("title", "property", "analysis", "calculations"):
        value = getattr(changes, field)
        if field in changes.model_fields_set and value is not None:
            setattr(merged, field, value.model_copy(deep=True) if isinstance(value, BaseModel) else value)

    meta = changes.metadata
    if meta is not None:
        for field in meta.model_fields_set:
            value = getattr(meta, field)
            if field in ("broker_email", "status") and value is None:
                continue
            setattr(merged.metadata, field, value)

    # updated_at never moves backwards
    merged.metadata.updated_at = max(as_utc(now), existing.metadata.updated_at)
    return merged
