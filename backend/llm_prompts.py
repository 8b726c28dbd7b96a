"""
OptiTax - LLM Prompts
=====================
Audit instructions and response schema for the generative-AI service.

CRITICAL RULES FOR LLM USAGE:
1. The model reads the documents and does the tax reasoning
2. The model MUST answer with JSON matching RESPONSE_SCHEMA - field names are
   never renamed or fuzzy-matched on our side
3. Advisor context, when given, outranks the generic heuristics
4. Sampling temperature stays low: literal extraction over creativity

The audit rules below are product policy and must be kept word for word.
"""

import copy
from typing import Any, Dict, List, Optional, Sequence

from errors import DocumentValidationError
from models import AnalysisRequest, EncodedPayload
from tax_constants import (
    AUDIT_RULES_VERSION,
    Complexity,
    FinancialRegime,
    OptimizationCategory,
    RealEstateRegime,
    RealEstateType,
    get_checklist_for_prompt,
)

ANALYSIS_TEMPERATURE = 0.1
RESPONSE_MIME_TYPE = "application/json"


# =============================================================================
# AUDIT PROMPT
# =============================================================================

AUDIT_PROMPT_HEADER = """Agis en tant qu'expert en fiscalité française et Conseiller en Gestion de Patrimoine (CGP) senior.
Analyse les documents d'imposition fournis (avis d'imposition, déclaration de revenus)."""

USER_CONTEXT_TEMPLATE = 'CONTEXTE CLIENT SPÉCIFIQUE (À PRENDRE EN COMPTE PRIORITAIREMENT) : "{context}"'

AUDIT_PROMPT_RULES = """1. Extrais les données clés (TMI, Revenus, Charges, Crédits).
2. Calcule la TMI précise.
3. Effectue un audit exhaustif des opportunités d'optimisation.

RÈGLE DE PRIORITÉ SUR LES RÉGIMES :
Même si le client a "déjà implémenté" une stratégie de déclaration (ex: il a déclaré en Micro-Foncier), si cette stratégie repose sur un ABATTEMENT FORFAITAIRE, tu DOIS analyser si le passage au RÉEL (ou amortissement) serait plus bénéfique.

Analyses spécifiques d'arbitrage (Abattement vs Réel) :
- IMMOBILIER FONCIER : Si déclaré en Micro-Foncier (case 4BE - 30% abattement), compare avec le Réel (déduction intérêts, travaux, charges). Si le gain est probable, suggère le passage au Réel.
- MEUBLÉ (LMNP) : Si déclaré en Micro-BIC (case 5ND/5OD - 50% abattement), calcule l'intérêt du passage au LMNP au RÉEL pour pratiquer l'amortissement comptable (souvent bien supérieur à 50% de charges).
- SALAIRES : Si abattement de 10% appliqué par défaut, vérifie si le profil (gros revenus, éloignement géographique probable) justifierait les Frais Réels (kilomètres, repas).

RÈGLE CRITIQUE DE NON-REDUNDANCE :
Ne propose pas de "Verser sur un PER" si le plafond est déjà atteint.
Ne propose pas de "Faire des dons" si le client en fait déjà massivement par rapport à son impôt.
Bref, ne propose pas ce qui est déjà optimisé au maximum."""

CHECKLIST_HEADER = "Niches fiscales et leviers à scanner :"

OUTPUT_INSTRUCTIONS = """La TMI (tmi) est un nombre parmi 0, 11, 30, 41, 45.
Retourne les données UNIQUEMENT au format JSON."""


def build_audit_prompt(user_context: Optional[str] = None) -> str:
    """
    Build the full audit instruction text.

    Args:
        user_context: Free-text notes from the advisor; blank means none

    Returns:
        Prompt text, with the context block placed before the rules when given
    """
    sections = [AUDIT_PROMPT_HEADER]

    context = (user_context or "").strip()
    if context:
        sections.append(USER_CONTEXT_TEMPLATE.format(context=context))

    sections.append(AUDIT_PROMPT_RULES)
    sections.append(f"{CHECKLIST_HEADER}\n{get_checklist_for_prompt()}")
    sections.append(OUTPUT_INSTRUCTIONS)

    return "\n\n".join(sections)


# =============================================================================
# RESPONSE SCHEMA
# OpenAPI subset understood by Gemini (upper-case type names).
# Property names are the wire names of models.AnalysisResult.
# =============================================================================

def _enum(values) -> List[str]:
    return [v.value for v in values]


TAX_DATA_REQUIRED = ["fullName", "taxableIncome", "tmi"]
RESULT_REQUIRED = ["extractedData", "optimizations", "summary"]

RESPONSE_SCHEMA: Dict[str, Any] = {
    "type": "OBJECT",
    "properties": {
        "extractedData": {
            "type": "OBJECT",
            "properties": {
                "fullName": {"type": "STRING"},
                "year": {"type": "INTEGER"},
                "householdParts": {"type": "NUMBER"},
                "taxableIncome": {"type": "NUMBER"},
                "tmi": {"type": "INTEGER"},
                "totalTaxPaid": {"type": "NUMBER"},
                "perCeilingAvailable": {"type": "NUMBER"},
                "realEstateIncome": {
                    "type": "ARRAY",
                    "items": {
                        "type": "OBJECT",
                        "properties": {
                            "amount": {"type": "NUMBER"},
                            "regime": {"type": "STRING", "enum": _enum(RealEstateRegime)},
                            "type": {"type": "STRING", "enum": _enum(RealEstateType)},
                        },
                    },
                },
                "financialIncome": {
                    "type": "OBJECT",
                    "properties": {
                        "dividends": {"type": "NUMBER"},
                        "capitalGains": {"type": "NUMBER"},
                        "regime": {"type": "STRING", "enum": _enum(FinancialRegime)},
                    },
                },
            },
            "required": TAX_DATA_REQUIRED,
        },
        "optimizations": {
            "type": "ARRAY",
            "items": {
                "type": "OBJECT",
                "properties": {
                    "category": {"type": "STRING", "enum": _enum(OptimizationCategory)},
                    "title": {"type": "STRING"},
                    "description": {"type": "STRING"},
                    "estimatedGain": {"type": "STRING"},
                    "complexity": {"type": "STRING", "enum": _enum(Complexity)},
                    "actionable": {"type": "STRING"},
                },
            },
        },
        "summary": {"type": "STRING"},
    },
    "required": RESULT_REQUIRED,
}


def to_json_schema(schema: Dict[str, Any]) -> Dict[str, Any]:
    """
    Convert a Gemini-style schema to standard JSON Schema.

    Type names are lower-cased; everything else is copied as is.
    """
    converted: Dict[str, Any] = {}
    for key, value in schema.items():
        if key == "type" and isinstance(value, str):
            converted[key] = value.lower()
        elif key == "properties":
            converted[key] = {name: to_json_schema(sub) for name, sub in value.items()}
        elif key == "items":
            converted[key] = to_json_schema(value)
        else:
            converted[key] = copy.deepcopy(value)
    return converted


# =============================================================================
# REQUEST BUILDER
# =============================================================================

def build_analysis_request(
    payloads: Sequence[EncodedPayload],
    user_context: Optional[str] = "",
) -> AnalysisRequest:
    """
    Assemble the request for one analysis run.

    Args:
        payloads: Encoded documents, in selection order
        user_context: Optional advisor notes

    Returns:
        AnalysisRequest carrying prompt, schema and temperature

    Raises:
        DocumentValidationError: If there is no document to send
    """
    if not payloads:
        raise DocumentValidationError()

    context = (user_context or "").strip()
    return AnalysisRequest(
        payloads=list(payloads),
        user_context=context,
        prompt=build_audit_prompt(context),
        response_schema=copy.deepcopy(RESPONSE_SCHEMA),
        temperature=ANALYSIS_TEMPERATURE,
        rules_version=AUDIT_RULES_VERSION,
    )
