# src/rentfolio/analysis/comparables.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from rentfolio.domain.analysis import ComparableProperty, PropertyInfo
from rentfolio.domain.errors import ValidationError

# Area used when the subject property has no size on file
_FALLBACK_SIZE_M2 = 50.0


@dataclass(frozen=True)
class ComparableScore:
    index: int              # position in the caller's list
    rent_clp: float
    size_m2: float
    price_per_m2: float
    similarity: float       # 0..1
    adjusted_price_per_m2: float


@dataclass(frozen=True)
class RentSuggestion:
    suggested_rent_clp: float
    min_rent_clp: float
    max_rent_clp: float
    avg_price_per_m2: float
    weighted_avg_price_per_m2: float
    comparables: list[ComparableScore]  # most similar first


def _parking_similarity(a: int, b: int) -> float:
    d = abs(a - b)
    if d == 0:
        return 1.0
    if d == 1:
        return 0.85
    return 0.7


def similarity_score(subject: PropertyInfo, comp: ComparableProperty) -> float:
    """
    Layout similarity between a comparable and the subject property.

    Bedrooms cost 0.15 per unit of difference, bathrooms 0.10, parking drops
    to 0.85 for one space off and 0.7 beyond; the score is the plain mean.
    """
    subj_beds = subject.bedrooms or 1
    subj_baths = subject.bathrooms or 1
    subj_parking = subject.parking_spaces or 0

    beds = comp.bedrooms if comp.bedrooms is not None else 1
    baths = comp.bathrooms if comp.bathrooms is not None else 1
    parking = comp.parking_spaces if comp.parking_spaces is not None else 0

    beds_sim = 1 - abs(beds - subj_beds) * 0.15
    baths_sim = 1 - abs(baths - subj_baths) * 0.1
    parking_sim = _parking_similarity(parking, subj_parking)

    return (beds_sim + baths_sim + parking_sim) / 3


def suggest_rent(subject: PropertyInfo, comparables: Sequence[ComparableProperty]) -> RentSuggestion:
    """
    Suggest a monthly rent from comparable listings via similarity-adjusted
    price per m2. Comparables without a positive rent and size are skipped.
    """
    scored: list[ComparableScore] = []
    for i, comp in enumerate(comparables, start=1):
        rent = float(comp.rent_clp or 0.0)
        size = float(comp.size_m2 or 0.0)
        if rent <= 0 or size <= 0:
            continue
        sim = similarity_score(subject, comp)
        ppm2 = rent / size
        scored.append(
            ComparableScore(
                index=i,
                rent_clp=rent,
                size_m2=size,
                price_per_m2=ppm2,
                similarity=sim,
                adjusted_price_per_m2=ppm2 * sim,
            )
        )

    if not scored:
        raise ValidationError("At least one comparable with rent and size is required")

    n = len(scored)
    avg_ppm2 = sum(c.price_per_m2 for c in scored) / n
    weighted_ppm2 = sum(c.adjusted_price_per_m2 for c in scored) / n

    size = float(subject.size_m2 or 0.0)
    suggested = weighted_ppm2 * (size if size > 0 else _FALLBACK_SIZE_M2)

    return RentSuggestion(
        suggested_rent_clp=round(suggested),
        min_rent_clp=round(min(c.price_per_m2 for c in scored) * size),
        max_rent_clp=round(max(c.price_per_m2 for c in scored) * size),
        avg_price_per_m2=avg_ppm2,
        weighted_avg_price_per_m2=weighted_ppm2,
        comparables=sorted(scored, key=lambda c: c.similarity, reverse=True),
    )
