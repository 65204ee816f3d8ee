# src/rentfolio/analysis/finance.py
from __future__ import annotations

from rentfolio.adapters.config import config
from rentfolio.domain.analysis import Calculations, PropertyInfo, RentalInputs


def monthly_rent_clp(inputs: RentalInputs) -> float:
    """
    Suggested monthly rent in CLP. UF rents are converted with the stored
    UF rate; a CLP figure, when present, wins for CLP-denominated rents.
    """
    if inputs.rent_currency == "UF" and inputs.suggested_rent_uf:
        return float(inputs.suggested_rent_uf) * float(inputs.uf_value_clp or 0.0)
    if inputs.suggested_rent_clp:
        return float(inputs.suggested_rent_clp)
    if inputs.suggested_rent_uf:
        return float(inputs.suggested_rent_uf) * float(inputs.uf_value_clp or 0.0)
    return 0.0


def compute_calculations(
    prop: PropertyInfo,
    inputs: RentalInputs,
    *,
    vacancy_months_per_year: float | None = None,
) -> Calculations:
    """
    Derive the headline ratios for a rental.

    Returned fields:
        cap_rate:                   NOI / property value, percent
        annual_rental_yield:        gross annual rent / property value, percent
        monthly_net_income:         NOI / 12
        vacancy_cost_per_month:     expected empty months' rent spread over the year
        break_even_rent_reduction:  vacancy cost as a percent of monthly rent
    """
    vacancy_months = (
        config.VACANCY_MONTHS_PER_YEAR if vacancy_months_per_year is None else vacancy_months_per_year
    )

    rent = monthly_rent_clp(inputs)
    value = float(prop.value_clp or 0.0)

    gross_rent_annual = rent * 12
    noi = gross_rent_annual - inputs.annual_expenses.total_clp

    cap_rate = noi / value * 100 if value > 0 else 0.0
    annual_yield = gross_rent_annual / value * 100 if value > 0 else 0.0

    vacancy_cost = rent * vacancy_months / 12
    break_even = vacancy_cost / rent * 100 if rent > 0 else 0.0

    return Calculations(
        cap_rate=round(cap_rate, 2),
        annual_rental_yield=round(annual_yield, 2),
        monthly_net_income=round(noi / 12, 2),
        vacancy_cost_per_month=round(vacancy_cost, 2),
        break_even_rent_reduction=round(break_even, 2),
        plan_comparisons=[],
    )
