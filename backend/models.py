"""
OptiTax - Data Models
=====================
Pydantic models for the analysis request and the structured audit result.

These models serve as the contract between:
- File upload (Streamlit or HTTP)
- The generative-AI service (request parts and response schema)
- The dashboard

Wire names are camelCase and must match the response schema exactly.
Python attributes are snake_case and bound to the wire names by alias.
"""

import logging
import uuid
from dataclasses import dataclass, field
from typing import Annotated, Any, Dict, List, Optional, Union

from pydantic import (
    AfterValidator,
    BaseModel,
    ConfigDict,
    Field,
    StrictFloat,
    StrictInt,
    ValidationError,
    field_validator,
)

from tax_constants import (
    AUDIT_RULES_VERSION,
    TMI_RATES,
    Complexity,
    FinancialRegime,
    OptimizationCategory,
    RealEstateRegime,
    RealEstateType,
)

logger = logging.getLogger(__name__)


def _non_negative(v):
    if v < 0:
        raise ValueError("must be >= 0")
    return v


def _positive(v):
    if v <= 0:
        raise ValueError("must be > 0")
    return v


# Numbers are kept as received: no string parsing, no int -> float drift
Number = Union[StrictInt, StrictFloat]
Amount = Annotated[Number, AfterValidator(_non_negative)]
PositiveNumber = Annotated[Number, AfterValidator(_positive)]


# =============================================================================
# UPLOADS
# =============================================================================

@dataclass
class UploadedFile:
    """
    An uploaded document held in memory.

    Mirrors the reading contract of Streamlit's UploadedFile (name, type,
    getvalue) so HTTP uploads and browser uploads go through the same encoder.
    """
    name: str
    type: str
    data: bytes = field(repr=False, default=b"")
    file_id: str = field(default_factory=lambda: str(uuid.uuid4()))

    @property
    def size(self) -> int:
        return len(self.data)

    def getvalue(self) -> bytes:
        return self.data


class EncodedPayload(BaseModel):
    """Base64 text of one document plus its MIME type."""
    model_config = ConfigDict(frozen=True)

    data: str
    mime_type: str
    name: str = ""


class AnalysisRequest(BaseModel):
    """
    Everything sent to the AI service for one run.

    At least one payload is required - a request without documents is never sent.
    """
    model_config = ConfigDict(frozen=True)

    payloads: List[EncodedPayload] = Field(min_length=1)
    user_context: str = ""
    prompt: str
    response_schema: Dict[str, Any]
    temperature: float = Field(default=0.1, ge=0, le=2)
    rules_version: str = AUDIT_RULES_VERSION


# =============================================================================
# AUDIT RESULT
# =============================================================================

class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    def to_wire(self) -> Dict[str, Any]:
        """Dump with the wire (camelCase) names, leaving out fields never received."""
        return self.model_dump(mode="json", by_alias=True, exclude_unset=True)


class RealEstateIncome(_WireModel):
    amount: Amount
    regime: RealEstateRegime
    type: RealEstateType


class FinancialIncome(_WireModel):
    dividends: Optional[Amount] = None
    capital_gains: Optional[Number] = Field(default=None, alias="capitalGains")
    regime: Optional[FinancialRegime] = None


class TaxData(_WireModel):
    """
    Fact sheet extracted from the client's documents.

    Only full_name, taxable_income and tmi are required. Every other field is
    optional; a malformed optional value is dropped (set to None) rather than
    failing the whole result.
    """
    full_name: str = Field(alias="fullName", strict=True)
    taxable_income: Amount = Field(alias="taxableIncome")
    tmi: int = Field(strict=True)

    year: Optional[int] = None
    household_parts: Optional[PositiveNumber] = Field(default=None, alias="householdParts")
    total_tax_paid: Optional[Amount] = Field(default=None, alias="totalTaxPaid")
    per_ceiling_available: Optional[Amount] = Field(default=None, alias="perCeilingAvailable")
    real_estate_income: List[RealEstateIncome] = Field(default_factory=list, alias="realEstateIncome")
    financial_income: Optional[FinancialIncome] = Field(default=None, alias="financialIncome")

    @field_validator("tmi")
    @classmethod
    def tmi_in_brackets(cls, v: int) -> int:
        if v not in TMI_RATES:
            raise ValueError(f"tmi must be one of {TMI_RATES}, got {v}")
        return v

    @field_validator(
        "year", "household_parts", "total_tax_paid",
        "per_ceiling_available", "financial_income",
        mode="wrap",
    )
    @classmethod
    def drop_invalid_optional(cls, value, handler, info):
        try:
            return handler(value)
        except ValidationError as e:
            logger.warning(f"Dropping invalid optional field '{info.field_name}': {e.error_count()} error(s)")
            return None

    @field_validator("real_estate_income", mode="before")
    @classmethod
    def keep_valid_real_estate(cls, value):
        if value is None:
            return []
        if not isinstance(value, list):
            logger.warning("Dropping realEstateIncome: not a list")
            return []
        return _keep_valid(value, RealEstateIncome, "realEstateIncome")


class OptimizationSuggestion(_WireModel):
    category: OptimizationCategory
    title: str
    description: str = ""
    estimated_gain: str = Field(default="", alias="estimatedGain")
    complexity: Complexity = Complexity.MEDIUM
    actionable: str = ""

    @field_validator("estimated_gain", mode="before")
    @classmethod
    def gain_as_text(cls, v):
        # The model sometimes answers with a bare number
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return f"{v:,.0f} €".replace(",", " ")
        return "" if v is None else v


class AnalysisResult(_WireModel):
    """
    The audit handed to the dashboard.

    Created only by parsing a successful AI response. Replaced wholesale on a
    new run.
    """
    extracted_data: TaxData = Field(alias="extractedData")
    optimizations: List[OptimizationSuggestion] = Field(default_factory=list)
    summary: str = ""

    @field_validator("optimizations", mode="before")
    @classmethod
    def keep_valid_optimizations(cls, value):
        if value is None:
            return []
        if not isinstance(value, list):
            logger.warning("Dropping optimizations: not a list")
            return []
        return _keep_valid(value, OptimizationSuggestion, "optimizations")

    @field_validator("summary", mode="before")
    @classmethod
    def summary_as_text(cls, v):
        return "" if v is None else v


def _keep_valid(items: List[Any], model: type, label: str) -> List[Any]:
    """Validate list entries one by one and drop the malformed ones."""
    kept = []
    for i, item in enumerate(items):
        try:
            kept.append(model.model_validate(item))
        except ValidationError as e:
            logger.warning(f"Dropping {label}[{i}]: {e.error_count()} validation error(s)")
    return kept
