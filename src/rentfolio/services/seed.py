# src/rentfolio/services/seed.py
from __future__ import annotations

from datetime import timedelta

from loguru import logger

from rentfolio.adapters.analysis_storage import AnalysisStorage
from rentfolio.domain.analysis import (
    AnalysisMetadata,
    AnnualExpenses,
    Calculations,
    PropertyInfo,
    RentalInputs,
    SavedAnalysis,
    generate_analysis_id,
    utcnow,
)

EXAMPLE_BROKER = "corredor@ejemplo.com"


def example_analyses() -> list[SavedAnalysis]:
    """Two demo analyses for a fresh install: one draft, one sent a day ago."""
    now = utcnow()
    yesterday = now - timedelta(days=1)

    return [
        SavedAnalysis(
            id=generate_analysis_id(),
            title="Departamento Las Condes - Av. Providencia",
            property=PropertyInfo(
                address="Av. Providencia 123, Las Condes, Santiago",
                value_clp=95_000_000,
                value_uf=2500,
                size_m2=75,
                bedrooms=2,
                bathrooms=2,
                parking_spaces=1,
                storage_units=1,
            ),
            analysis=RentalInputs(
                suggested_rent_clp=850_000,
                rent_currency="CLP",
                capture_price_clp=850_000,
                capture_price_currency="CLP",
                annual_expenses=AnnualExpenses(
                    maintenance_clp=1_200_000,
                    property_tax_clp=800_000,
                    insurance_clp=300_000,
                ),
                uf_value_clp=38_000,
            ),
            calculations=Calculations(
                cap_rate=8.5,
                annual_rental_yield=10.7,
                monthly_net_income=658_333,
                vacancy_cost_per_month=70_833,
                break_even_rent_reduction=8.33,
            ),
            metadata=AnalysisMetadata(
                created_at=now,
                updated_at=now,
                broker_email=EXAMPLE_BROKER,
                status="draft",
                tags=["departamento", "las-condes"],
                notes="Análisis inicial para propiedad en excelente ubicación",
            ),
        ),
        SavedAnalysis(
            id=generate_analysis_id(),
            title="Casa Providencia - Zona Residencial",
            property=PropertyInfo(
                address="Calle Los Leones 456, Providencia, Santiago",
                value_clp=120_000_000,
                size_m2=120,
                bedrooms=3,
                bathrooms=2,
                parking_spaces=2,
                storage_units=0,
            ),
            analysis=RentalInputs(
                suggested_rent_clp=1_200_000,
                rent_currency="CLP",
                annual_expenses=AnnualExpenses(
                    maintenance_clp=1_500_000,
                    property_tax_clp=1_000_000,
                    insurance_clp=400_000,
                ),
                uf_value_clp=38_000,
            ),
            calculations=Calculations(
                cap_rate=9.2,
                annual_rental_yield=12.0,
                monthly_net_income=958_333,
                vacancy_cost_per_month=100_000,
                break_even_rent_reduction=8.33,
            ),
            metadata=AnalysisMetadata(
                created_at=yesterday,
                updated_at=yesterday,
                broker_email=EXAMPLE_BROKER,
                status="sent_to_client",
                tags=["casa", "providencia"],
            ),
        ),
    ]


def seed_example_analyses(storage: AnalysisStorage) -> int:
    """Write the demo analyses if the store holds none. Returns how many were written."""
    if storage.get_all():
        return 0

    written = 0
    for record in example_analyses():
        if storage.save(record):
            written += 1
    logger.info("Seeded example analyses", count=written)
    return written
