# src/rentfolio/domain/dashboard.py
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Literal, Sequence

from pydantic import BaseModel, Field

from rentfolio.domain.analysis import SavedAnalysis, utcnow

ActivityType = Literal[
    "analysis_created",
    "rental_sent",
    "client_response",
    "price_updated",
]

ACTIVE_STATUSES = frozenset({"sent_to_client", "published"})


class ActivityEntry(BaseModel):
    id: str
    type: ActivityType
    title: str
    description: str
    date: datetime
    property_address: str | None = None


class DashboardSummary(BaseModel):
    """
    Aggregate view over all saved analyses.

    Not authoritative: every number here can be rebuilt from the analysis
    collection. `average_rentability` is the plain mean of `cap_rate` over all
    analyses, zero placeholders included.
    """
    total_analyses: int = 0
    active_rentals: int = 0       # sent_to_client + published
    total_revenue: float = 0.0    # sum of suggested monthly rents (CLP)
    average_rentability: float = 0.0
    recent_activity: list[ActivityEntry] = Field(default_factory=list)


def new_activity(
    type_: ActivityType,
    *,
    title: str,
    description: str,
    property_address: str | None = None,
    prefix: str = "activity",
) -> ActivityEntry:
    return ActivityEntry(
        id=f"{prefix}_{uuid.uuid4().hex[:12]}",
        type=type_,
        title=title,
        description=description,
        date=utcnow(),
        property_address=property_address,
    )


def derive_recent_activity(analyses: Sequence[SavedAnalysis], limit: int = 20) -> list[ActivityEntry]:
    """
    Rebuild an activity feed from the records alone: one "created" entry per
    analysis plus one "sent" entry for each analysis currently with a client.
    """
    entries: list[ActivityEntry] = []
    for a in analyses:
        entries.append(
            ActivityEntry(
                id=f"analysis_{a.id}",
                type="analysis_created",
                title="Nuevo análisis creado",
                description=f'"{a.title}"',
                date=a.metadata.created_at,
                property_address=a.property.address,
            )
        )
        if a.metadata.status == "sent_to_client":
            entries.append(
                ActivityEntry(
                    id=f"sent_{a.id}",
                    type="rental_sent",
                    title="Propuesta enviada",
                    description=f'Análisis "{a.title}" enviado al cliente',
                    date=a.metadata.updated_at,
                    property_address=a.property.address,
                )
            )

    entries.sort(key=lambda e: e.date, reverse=True)
    return entries[:limit]


def summarize_analyses(
    analyses: Sequence[SavedAnalysis],
    recent_activity: Sequence[ActivityEntry],
) -> DashboardSummary:
    n = len(analyses)
    return DashboardSummary(
        total_analyses=n,
        active_rentals=sum(1 for a in analyses if a.metadata.status in ACTIVE_STATUSES),
        total_revenue=sum(float(a.analysis.suggested_rent_clp or 0.0) for a in analyses),
        average_rentability=(
            sum(float(a.calculations.cap_rate or 0.0) for a in analyses) / n if n else 0.0
        ),
        recent_activity=list(recent_activity),
    )
