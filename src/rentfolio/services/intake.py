# src/rentfolio/services/intake.py
from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from rentfolio.domain.analysis import (
    AnnualExpenses,
    Calculations,
    ComparableProperty,
    Currency,
    PropertyInfo,
    RentalInputs,
    SavedAnalysis,
)
from rentfolio.domain.errors import ValidationError

REQUIRED_FORM_FIELDS = [
    "title",
    "property_address",
    "property_value_clp",
]


def _to_num_optional(val: Any) -> float | None:
    """
    Lenient converter for optional numeric fields: numbers pass through,
    numeric strings are parsed (thousands separators dropped), blanks and
    garbage become None.
    """
    if val is None or isinstance(val, bool):
        return None
    if isinstance(val, (int, float)):
        return float(val)
    if isinstance(val, str):
        s = val.strip().replace(",", "").replace("_", "")
        if not s:
            return None
        try:
            return float(s)
        except ValueError:
            return None
    return None


class AnalysisForm(BaseModel):
    """
    Flat intake payload for creating or replacing an analysis, as a broker
    fills it in. Numeric fields accept numbers or numeric strings.
    """
    model_config = ConfigDict(extra="ignore")

    title: str | None = None

    property_address: str | None = None
    property_value_clp: float | None = None
    property_value_uf: float | None = None
    property_size_m2: float | None = None
    bedrooms: float | None = None
    bathrooms: float | None = None
    parking_spaces: float | None = None
    storage_units: float | None = None

    suggested_rent_clp: float | None = None
    suggested_rent_uf: float | None = None
    rent_currency: Currency = "CLP"
    capture_price_clp: float | None = None
    capture_price_uf: float | None = None
    capture_price_currency: Currency | None = None

    comparables: list[ComparableProperty] = Field(default_factory=list)

    annual_maintenance_clp: float | None = None
    annual_property_tax_clp: float | None = None
    annual_insurance_clp: float | None = None
    uf_value_clp: float | None = None

    broker_email: str | None = None
    notes: str | None = None
    tags: list[str] | None = None

    calculations: Calculations | None = None

    @field_validator(
        "property_value_clp",
        "property_value_uf",
        "property_size_m2",
        "bedrooms",
        "bathrooms",
        "parking_spaces",
        "storage_units",
        "suggested_rent_clp",
        "suggested_rent_uf",
        "capture_price_clp",
        "capture_price_uf",
        "annual_maintenance_clp",
        "annual_property_tax_clp",
        "annual_insurance_clp",
        "uf_value_clp",
        mode="before",
    )
    @classmethod
    def _lenient_number(cls, v: Any) -> Any:
        return _to_num_optional(v)


def validate_form(form: AnalysisForm) -> None:
    """Raise ValidationError unless title, address and a positive value are present."""
    for field in REQUIRED_FORM_FIELDS:
        value = getattr(form, field)
        if value is None or (isinstance(value, str) and not value.strip()):
            raise ValidationError(f"Missing required field: {field}")
    if (form.property_value_clp or 0.0) <= 0:
        raise ValidationError("Missing required field: property_value_clp")


def _int(v: float | None) -> int:
    return int(v or 0)


def form_to_parts(form: AnalysisForm) -> tuple[PropertyInfo, RentalInputs]:
    """Build the property and rental-input sections from a validated form."""
    prop = PropertyInfo(
        address=(form.property_address or "").strip(),
        value_clp=float(form.property_value_clp or 0.0),
        value_uf=form.property_value_uf,
        size_m2=float(form.property_size_m2 or 0.0),
        bedrooms=_int(form.bedrooms),
        bathrooms=_int(form.bathrooms),
        parking_spaces=_int(form.parking_spaces),
        storage_units=_int(form.storage_units),
    )

    inputs = RentalInputs(
        suggested_rent_clp=form.suggested_rent_clp,
        suggested_rent_uf=form.suggested_rent_uf,
        rent_currency=form.rent_currency,
        capture_price_clp=form.capture_price_clp,
        capture_price_uf=form.capture_price_uf,
        capture_price_currency=form.capture_price_currency,
        # only comparables the broker actually identified
        comparable_properties=[c for c in form.comparables if c.address],
        annual_expenses=AnnualExpenses(
            maintenance_clp=form.annual_maintenance_clp or 0.0,
            property_tax_clp=form.annual_property_tax_clp or 0.0,
            insurance_clp=form.annual_insurance_clp or 0.0,
        ),
        uf_value_clp=form.uf_value_clp or 0.0,
    )
    return prop, inputs


def analysis_to_form(analysis: SavedAnalysis) -> AnalysisForm:
    """Inverse of the intake mapping, used to pre-fill an edit form."""
    p = analysis.property
    a = analysis.analysis
    return AnalysisForm(
        title=analysis.title,
        property_address=p.address,
        property_value_clp=p.value_clp,
        property_value_uf=p.value_uf,
        property_size_m2=p.size_m2,
        bedrooms=p.bedrooms,
        bathrooms=p.bathrooms,
        parking_spaces=p.parking_spaces,
        storage_units=p.storage_units,
        suggested_rent_clp=a.suggested_rent_clp,
        suggested_rent_uf=a.suggested_rent_uf,
        rent_currency=a.rent_currency,
        capture_price_clp=a.capture_price_clp,
        capture_price_uf=a.capture_price_uf,
        capture_price_currency=a.capture_price_currency,
        comparables=[c.model_copy() for c in a.comparable_properties],
        annual_maintenance_clp=a.annual_expenses.maintenance_clp,
        annual_property_tax_clp=a.annual_expenses.property_tax_clp,
        annual_insurance_clp=a.annual_expenses.insurance_clp,
        uf_value_clp=a.uf_value_clp,
        broker_email=analysis.metadata.broker_email,
        notes=analysis.metadata.notes,
        tags=list(analysis.metadata.tags) if analysis.metadata.tags is not None else None,
        calculations=analysis.calculations.model_copy(deep=True),
    )
