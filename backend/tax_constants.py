"""
OptiTax - French Tax Reference Data
===================================
Closed sets and reference values for French income tax (impôt sur le revenu).

CRITICAL: These values only constrain and describe what the AI returns.
No tax is computed locally - the model reads the documents, the app checks
that the answer fits these sets.

Last Updated: Barème 2024 (revenus 2023)
"""

from enum import Enum
from typing import Dict, List, Tuple


# =============================================================================
# MARGINAL RATE (TMI)
# =============================================================================

# Tranche Marginale d'Imposition, in percent
TMI_RATES: Tuple[int, ...] = (0, 11, 30, 41, 45)

# Upper limit of each bracket for one household part.
# Used for positioning on the dashboard only.
TMI_BRACKETS_2024: List[Tuple[float, int]] = [
    (11294, 0),
    (28797, 11),
    (82341, 30),
    (177106, 41),
    (float('inf'), 45),
]


# =============================================================================
# CLOSED SETS RETURNED BY THE MODEL
# =============================================================================

class RealEstateRegime(str, Enum):
    MICRO = "Micro"
    REEL = "Reel"


class RealEstateType(str, Enum):
    FONCIER = "Foncier"
    LMNP = "LMNP"


class FinancialRegime(str, Enum):
    PFU = "PFU"
    SCALE = "Scale"


class OptimizationCategory(str, Enum):
    RETIREMENT = "Retirement"
    INVESTMENT = "Investment"
    REAL_ESTATE = "RealEstate"
    TAX_REGIME = "TaxRegime"
    FAMILY = "Family"


class Complexity(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


CATEGORY_LABELS: Dict[OptimizationCategory, str] = {
    OptimizationCategory.RETIREMENT: "Retraite",
    OptimizationCategory.INVESTMENT: "Investissement",
    OptimizationCategory.REAL_ESTATE: "Immobilier",
    OptimizationCategory.TAX_REGIME: "Régime fiscal",
    OptimizationCategory.FAMILY: "Famille",
}

COMPLEXITY_LABELS: Dict[Complexity, str] = {
    Complexity.LOW: "Faible",
    Complexity.MEDIUM: "Moyenne",
    Complexity.HIGH: "Élevée",
}


# =============================================================================
# AUDIT CHECKLIST
# Mechanisms the model must scan, grouped by family, with their form boxes
# =============================================================================

AUDIT_RULES_VERSION = "2024.1"

TAX_NICHE_CHECKLIST: Dict[str, List[str]] = {
    "Famille": ["Frais de garde (7GA)", "Scolarité (7EA)", "Emploi domicile (7DB)"],
    "Investissement": ["Girardin (G3)", "IR-PME/FIP/FCPI", "SOFICA"],
    "Retraite": ["PER (vérifier reliquat plafonds 6PS/6PT/6PU)"],
    "Arbitrage financier": ["PFU vs Barème (case 2OP)"],
}


# =============================================================================
# ACCEPTED DOCUMENTS
# =============================================================================

DEFAULT_MIME_TYPE = "image/png"

SUPPORTED_UPLOAD_EXTENSIONS: List[str] = ["pdf", "png", "jpg", "jpeg", "webp", "heic", "heif"]


def is_supported_mime_type(mime_type: str) -> bool:
    """Images of any kind and PDF are accepted."""
    if not mime_type:
        return False
    return mime_type.startswith("image/") or mime_type == "application/pdf"


def get_tmi_bracket_info() -> str:
    """Format the bracket thresholds as plain text."""
    lines = []
    lower = 0.0
    for upper, rate in TMI_BRACKETS_2024:
        if upper == float('inf'):
            lines.append(f"- {rate}% au-delà de {lower:,.0f} €".replace(",", " "))
        else:
            lines.append(f"- {rate}% de {lower:,.0f} € à {upper:,.0f} €".replace(",", " "))
        lower = upper
    return "\n".join(lines)


def get_checklist_for_prompt() -> str:
    """Render the niche checklist, one line per family."""
    return "\n".join(
        f"- {family} : {', '.join(mechanisms)}."
        for family, mechanisms in TAX_NICHE_CHECKLIST.items()
    )
