import os
import tempfile
from datetime import datetime, timezone

# keep the module-level app away from the working directory
os.environ.setdefault(
    "RENTFOLIO_STORE_URI",
    f"sqlite:///{tempfile.mkdtemp(prefix='rentfolio-tests-')}/app.db",
)

import pytest
from fastapi.testclient import TestClient

from rentfolio.adapters.analysis_storage import AnalysisStorage
from rentfolio.adapters.kv_store import InMemoryKeyValueStore
from rentfolio.api.http import create_app
from rentfolio.domain.analysis import (
    AnalysisMetadata,
    AnnualExpenses,
    Calculations,
    PropertyInfo,
    RentalInputs,
    SavedAnalysis,
)
from rentfolio.services.analysis_repository import AnalysisRepository
from rentfolio.services.cache import AnalysisCache

BASE_TS = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """Monotonic seconds that only move when told to."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def build_analysis(
    analysis_id: str = "a1",
    *,
    title: str = "Depto Ñuñoa",
    address: str = "Irarrázaval 1000, Ñuñoa",
    value_clp: float = 100_000_000,
    bedrooms: int = 2,
    bathrooms: int = 1,
    status: str = "draft",
    tags: list[str] | None = None,
    cap_rate: float = 0.0,
    rent_clp: float | None = 800_000,
    created_at: datetime = BASE_TS,
    updated_at: datetime | None = None,
) -> SavedAnalysis:
    return SavedAnalysis(
        id=analysis_id,
        title=title,
        property=PropertyInfo(
            address=address,
            value_clp=value_clp,
            size_m2=60,
            bedrooms=bedrooms,
            bathrooms=bathrooms,
            parking_spaces=1,
            storage_units=0,
        ),
        analysis=RentalInputs(
            suggested_rent_clp=rent_clp,
            annual_expenses=AnnualExpenses(
                maintenance_clp=1_000_000,
                property_tax_clp=500_000,
                insurance_clp=200_000,
            ),
            uf_value_clp=37_000,
        ),
        calculations=Calculations(cap_rate=cap_rate),
        metadata=AnalysisMetadata(
            created_at=created_at,
            updated_at=updated_at or created_at,
            broker_email="broker@example.com",
            status=status,
            tags=tags,
        ),
    )


@pytest.fixture
def make_analysis():
    return build_analysis


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def kv():
    return InMemoryKeyValueStore()


@pytest.fixture
def storage(kv):
    return AnalysisStorage(kv)


@pytest.fixture
def cache(clock):
    return AnalysisCache(ttl_seconds=300, enabled=True, clock=clock)


@pytest.fixture
def repo(storage, cache):
    return AnalysisRepository(storage, cache)


@pytest.fixture
def client(repo):
    return TestClient(create_app(repo))


@pytest.fixture
def form_payload():
    return {
        "title": "Depto Providencia",
        "property_address": "Av. Providencia 2000, Providencia",
        "property_value_clp": "95000000",
        "property_size_m2": "75",
        "bedrooms": "2",
        "bathrooms": "2",
        "parking_spaces": "1",
        "storage_units": "1",
        "suggested_rent_clp": "850000",
        "rent_currency": "CLP",
        "annual_maintenance_clp": "1200000",
        "annual_property_tax_clp": "800000",
        "annual_insurance_clp": "300000",
        "uf_value_clp": "38000",
        "broker_email": "corredor@example.com",
        "tags": ["departamento"],
        "comparables": [
            {"address": "Los Leones 100", "size_m2": 70, "bedrooms": 2, "rent_clp": 800000},
            {"size_m2": 80, "rent_clp": 900000},
        ],
    }


