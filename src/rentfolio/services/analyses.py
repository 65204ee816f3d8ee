# src/rentfolio/services/analyses.py
"""
Caller-facing operations on saved analyses.

These wrap the repository with the intake rules: required fields, initial
status, which fields each kind of update may touch, and the delete guard.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

from loguru import logger
from pydantic import ValidationError as PydanticValidationError

from rentfolio.domain.analysis import (
    AnalysisChanges,
    AnalysisMetadata,
    Calculations,
    MetadataChanges,
    SavedAnalysis,
    generate_analysis_id,
    utcnow,
)
from rentfolio.domain.errors import NotFoundError, StorageError, ValidationError
from rentfolio.domain.ports import SavedAnalysisRepository
from rentfolio.services.intake import AnalysisForm, form_to_parts, validate_form
from rentfolio.services.query import AnalysisPage, AnalysisQuery, query_analyses

# The only keys a partial update reads; anything else is ignored.
PATCHABLE_FIELDS = ("status", "tags", "notes", "title")


@dataclass(frozen=True)
class DeletedAnalysis:
    id: str
    title: str
    address: str


def list_analyses(repo: SavedAnalysisRepository, query: AnalysisQuery | None = None) -> AnalysisPage:
    return query_analyses(repo.list_all(), query)


def get_analysis(repo: SavedAnalysisRepository, analysis_id: str) -> SavedAnalysis:
    found = repo.get_by_id(analysis_id)
    if found is None:
        raise NotFoundError(f"Analysis not found: {analysis_id}")
    return found


def create_analysis(repo: SavedAnalysisRepository, form: AnalysisForm) -> SavedAnalysis:
    """New analyses always start as drafts, whatever the caller sent."""
    validate_form(form)
    prop, inputs = form_to_parts(form)

    now = utcnow()
    record = SavedAnalysis(
        id=generate_analysis_id(),
        title=(form.title or "").strip(),
        property=prop,
        analysis=inputs,
        calculations=form.calculations or Calculations(),
        metadata=AnalysisMetadata(
            created_at=now,
            updated_at=now,
            broker_email=form.broker_email or "",
            status="draft",
            tags=list(form.tags or []),
            notes=form.notes,
        ),
    )
    return repo.create(record)


def replace_analysis(repo: SavedAnalysisRepository, analysis_id: str, form: AnalysisForm) -> SavedAnalysis:
    """
    Full replace of title, property and rental inputs. Status and creation
    time are kept; calculations are kept unless the form carries new ones.
    Notes change only when the form sends the key; an explicit null clears them.
    """
    validate_form(form)

    existing = repo.get_by_id(analysis_id)
    if existing is None:
        raise NotFoundError(f"Analysis not found: {analysis_id}")

    prop, inputs = form_to_parts(form)

    meta_fields: dict[str, Any] = {
        "broker_email": form.broker_email or existing.metadata.broker_email,
        "tags": form.tags if form.tags is not None else existing.metadata.tags,
    }
    if "notes" in form.model_fields_set:
        meta_fields["notes"] = form.notes

    replaced: dict[str, Any] = {
        "title": (form.title or "").strip(),
        "property": prop,
        "analysis": inputs,
        "metadata": MetadataChanges(**meta_fields),
    }
    if form.calculations is not None:
        replaced["calculations"] = form.calculations

    updated = repo.update(analysis_id, AnalysisChanges(**replaced))
    if updated is None:
        raise StorageError(f"Failed to update analysis {analysis_id}")
    return updated


def patch_analysis(repo: SavedAnalysisRepository, analysis_id: str, fields: Mapping[str, Any]) -> SavedAnalysis:
    """Update any of status, tags, notes and title. Unknown keys are ignored."""
    picked = {k: fields[k] for k in PATCHABLE_FIELDS if k in fields}

    meta = {k: v for k, v in picked.items() if k != "title"}
    try:
        changes = AnalysisChanges.model_validate(
            {
                **({"title": picked["title"]} if "title" in picked else {}),
                **({"metadata": meta} if meta else {}),
            }
        )
    except PydanticValidationError as e:
        raise ValidationError(str(e)) from e

    if "title" in picked and not (changes.title or "").strip():
        raise ValidationError("Missing required field: title")

    updated = repo.update(analysis_id, changes)
    if updated is None:
        raise StorageError(f"Failed to update analysis {analysis_id}")
    logger.debug("Analysis patched", analysis_id=analysis_id, fields=sorted(picked))
    return updated


def delete_analysis(repo: SavedAnalysisRepository, analysis_id: str) -> DeletedAnalysis:
    existing = get_analysis(repo, analysis_id)

    # ForbiddenError for published records propagates from the repository
    if not repo.delete(analysis_id):
        raise StorageError(f"Failed to delete analysis {analysis_id}")

    return DeletedAnalysis(
        id=existing.id,
        title=existing.title,
        address=existing.property.address,
    )
