# src/rentfolio/api/http.py
from __future__ import annotations

import json
from dataclasses import asdict
from datetime import datetime
from typing import Any

from fastapi import Body, FastAPI, HTTPException, Query
from pydantic import ValidationError as PydanticValidationError

from rentfolio.adapters.analysis_storage import AnalysisStorage
from rentfolio.adapters.config import config
from rentfolio.adapters.kv_store import SqlKeyValueStore
from rentfolio.analysis.comparables import suggest_rent
from rentfolio.analysis.finance import compute_calculations
from rentfolio.domain.dashboard import DashboardSummary
from rentfolio.domain.errors import (
    ForbiddenError,
    NotFoundError,
    RentfolioError,
    StorageError,
    ValidationError,
)
from rentfolio.services.analyses import (
    create_analysis,
    delete_analysis,
    get_analysis,
    list_analyses,
    patch_analysis,
    replace_analysis,
)
from rentfolio.services.analysis_repository import AnalysisRepository
from rentfolio.services.cache import AnalysisCache
from rentfolio.services.intake import AnalysisForm, form_to_parts, validate_form
from rentfolio.services.query import AnalysisQuery
from rentfolio.services.seed import seed_example_analyses
from .schemas import (
    AnalysisDetail,
    AnalysisEnvelope,
    AnalysisListResponse,
    CalculationsResponse,
    ComparablesRequest,
    DeletedAnalysisItem,
    DeleteResponse,
    ImportResponse,
    RentSuggestionResponse,
    StatusUpdate,
    StatusUpdateResponse,
)

_STATUS_BY_ERROR: list[tuple[type[RentfolioError], int]] = [
    (ValidationError, 400),
    (NotFoundError, 404),
    (ForbiddenError, 403),
    (StorageError, 500),
]


def _http_error(err: RentfolioError) -> HTTPException:
    for cls, status in _STATUS_BY_ERROR:
        if isinstance(err, cls):
            return HTTPException(status_code=status, detail=str(err))
    return HTTPException(status_code=500, detail=str(err))


def _split_tags(tags: str | None) -> list[str] | None:
    if tags is None:
        return None
    return [t.strip() for t in tags.split(",") if t.strip()]


def build_default_repository() -> AnalysisRepository:
    storage = AnalysisStorage(SqlKeyValueStore(config.STORE_URI))
    if config.SEED_EXAMPLES:
        seed_example_analyses(storage)
    return AnalysisRepository(storage, AnalysisCache())


def create_app(repository: AnalysisRepository | None = None) -> FastAPI:
    repo = repository or build_default_repository()
    app = FastAPI(title="rentfolio")
    app.state.repository = repo

    # -----------------------------
    # Saved analyses
    # -----------------------------
    @app.get("/analyses", response_model=AnalysisListResponse)
    def list_endpoint(
        search: str | None = Query(None),
        status: str | None = Query(None),
        date_from: datetime | None = Query(None),
        date_to: datetime | None = Query(None),
        min_value: float | None = Query(None),
        max_value: float | None = Query(None),
        bedrooms: int | None = Query(None),
        bathrooms: int | None = Query(None),
        tags: str | None = Query(None, description="Comma-separated; matches any"),
        sort_by: str = Query("updated_at"),
        sort_order: str = Query("desc"),
        page: int = Query(1),
        page_size: int = Query(config.DEFAULT_PAGE_SIZE),
    ) -> AnalysisListResponse:
        try:
            query = AnalysisQuery(
                search=search,
                status=status,
                date_from=date_from,
                date_to=date_to,
                min_value=min_value,
                max_value=max_value,
                bedrooms=bedrooms,
                bathrooms=bathrooms,
                tags=_split_tags(tags),
                sort_by=sort_by,
                sort_order=sort_order,
                page=page,
                page_size=page_size,
            )
        except PydanticValidationError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e

        result = list_analyses(repo, query)
        return AnalysisListResponse(**asdict(result))

    @app.post("/analyses", response_model=AnalysisEnvelope, status_code=201)
    def create_endpoint(form: AnalysisForm) -> AnalysisEnvelope:
        try:
            created = create_analysis(repo, form)
        except RentfolioError as e:
            raise _http_error(e) from e
        return AnalysisEnvelope(analysis=created, message="Análisis guardado exitosamente")

    @app.get("/analyses/export")
    def export_endpoint() -> dict[str, Any]:
        return json.loads(repo.export_all())

    @app.post("/analyses/import", response_model=ImportResponse)
    def import_endpoint(payload: Any = Body(...)) -> ImportResponse:
        if not repo.import_all(json.dumps(payload, default=str)):
            raise HTTPException(status_code=400, detail="Invalid import payload")
        return ImportResponse(success=True, total=len(repo.list_all()))

    @app.post("/analyses/calculate", response_model=CalculationsResponse)
    def calculate_endpoint(form: AnalysisForm) -> CalculationsResponse:
        try:
            validate_form(form)
        except ValidationError as e:
            raise _http_error(e) from e
        prop, inputs = form_to_parts(form)
        return CalculationsResponse(calculations=compute_calculations(prop, inputs))

    @app.get("/analyses/{analysis_id}", response_model=AnalysisDetail)
    def get_endpoint(analysis_id: str) -> AnalysisDetail:
        try:
            return AnalysisDetail(analysis=get_analysis(repo, analysis_id))
        except RentfolioError as e:
            raise _http_error(e) from e

    @app.put("/analyses/{analysis_id}", response_model=AnalysisEnvelope)
    def replace_endpoint(analysis_id: str, form: AnalysisForm) -> AnalysisEnvelope:
        try:
            updated = replace_analysis(repo, analysis_id, form)
        except RentfolioError as e:
            raise _http_error(e) from e
        return AnalysisEnvelope(analysis=updated, message="Análisis actualizado exitosamente")

    @app.patch("/analyses/{analysis_id}", response_model=AnalysisEnvelope)
    def patch_endpoint(analysis_id: str, fields: dict[str, Any] = Body(...)) -> AnalysisEnvelope:
        try:
            updated = patch_analysis(repo, analysis_id, fields)
        except RentfolioError as e:
            raise _http_error(e) from e
        return AnalysisEnvelope(analysis=updated, message="Análisis actualizado exitosamente")

    @app.post("/analyses/{analysis_id}/status", response_model=StatusUpdateResponse)
    def status_endpoint(analysis_id: str, payload: StatusUpdate) -> StatusUpdateResponse:
        try:
            get_analysis(repo, analysis_id)
        except RentfolioError as e:
            raise _http_error(e) from e
        if not repo.update_status(analysis_id, payload.status):
            raise HTTPException(status_code=500, detail=f"Failed to update status of {analysis_id}")
        return StatusUpdateResponse(success=True)

    @app.delete("/analyses/{analysis_id}", response_model=DeleteResponse)
    def delete_endpoint(analysis_id: str) -> DeleteResponse:
        try:
            deleted = delete_analysis(repo, analysis_id)
        except RentfolioError as e:
            raise _http_error(e) from e
        return DeleteResponse(
            message="Análisis eliminado exitosamente",
            deleted_analysis=DeletedAnalysisItem(**asdict(deleted)),
        )

    # -----------------------------
    # Dashboard & pricing helpers
    # -----------------------------
    @app.get("/dashboard", response_model=DashboardSummary)
    def dashboard_endpoint() -> DashboardSummary:
        return repo.dashboard()

    @app.post("/comparables/suggest", response_model=RentSuggestionResponse)
    def comparables_endpoint(payload: ComparablesRequest) -> RentSuggestionResponse:
        try:
            suggestion = suggest_rent(payload.property, payload.comparables)
        except ValidationError as e:
            raise _http_error(e) from e
        return RentSuggestionResponse(**asdict(suggestion))

    return app


app = create_app()
