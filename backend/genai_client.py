"""
Generative-AI Integration for OptiTax
=====================================
Sends the client's tax documents and the audit instructions to the AI
service and turns its JSON answer into an AnalysisResult.

Providers:
- Gemini (primary) - native inline documents, schema-constrained JSON output
- OpenAI - same request mapped onto chat completions with a JSON schema
- Mock - canned demonstration audit, no network

Every failure (transport, non-JSON text, missing required field) is raised
as the same AnalysisError. No retry: the advisor re-triggers the run.
"""

import base64
import json
import logging
from enum import Enum
from typing import Any, Dict, List, Optional

from google import genai
from google.genai import types
from openai import AsyncOpenAI
from pydantic import ValidationError
import streamlit as st

from errors import AnalysisError
from llm_prompts import RESPONSE_MIME_TYPE, to_json_schema
from models import AnalysisRequest, AnalysisResult
from settings import Settings, load_settings

logger = logging.getLogger(__name__)


class AIProvider(Enum):
    GEMINI = "gemini"
    OPENAI = "openai"
    MOCK = "mock"


# Demonstration audit returned by the mock provider
MOCK_RESPONSE: Dict[str, Any] = {
    "extractedData": {
        "fullName": "Jean Dupont",
        "year": 2023,
        "householdParts": 2,
        "taxableIncome": 45000,
        "tmi": 30,
        "totalTaxPaid": 6000,
        "perCeilingAvailable": 3000,
        "realEstateIncome": [
            {"amount": 9600, "regime": "Micro", "type": "Foncier"},
        ],
        "financialIncome": {"dividends": 1200, "capitalGains": 0, "regime": "PFU"},
    },
    "optimizations": [
        {
            "category": "RealEstate",
            "title": "Passage du Micro-Foncier au Réel",
            "description": "Les revenus fonciers sont déclarés en Micro-Foncier (abattement de 30%). "
                           "Si les intérêts d'emprunt et travaux dépassent 30% des loyers, le Réel est plus favorable.",
            "estimatedGain": "500 € à 1 200 € / an",
            "complexity": "Medium",
            "actionable": "Chiffrer les charges réelles de l'année et opter pour le Réel (déclaration 2044).",
        },
        {
            "category": "Retirement",
            "title": "Versement PER dans la limite du plafond disponible",
            "description": "Un plafond de 3 000 € reste disponible. À une TMI de 30%, chaque euro versé réduit l'impôt de 0,30 €.",
            "estimatedGain": "900 €",
            "complexity": "Low",
            "actionable": "Verser 3 000 € sur un PER avant le 31 décembre.",
        },
    ],
    "summary": "Démonstration : foyer à TMI 30% avec un levier immobilier et un reliquat PER à exploiter.",
}


def parse_analysis_response(text: Optional[str]) -> AnalysisResult:
    """
    Parse the raw text returned by the AI service.

    An empty or missing body is read as an empty object, which then fails
    validation on the required fields.

    Raises:
        AnalysisError: If the text is not a JSON object matching AnalysisResult
    """
    raw = (text or "").strip()

    # Clean response
    if "```json" in raw:
        raw = raw.split("```json")[1].split("```")[0].strip()
    elif raw.startswith("```"):
        raw = raw.split("```")[1].split("```")[0].strip()

    try:
        payload = json.loads(raw or "{}")
    except json.JSONDecodeError as e:
        raise AnalysisError(f"AI response is not valid JSON: {e}") from e

    if not isinstance(payload, dict):
        raise AnalysisError(f"AI response is a JSON {type(payload).__name__}, expected an object")

    try:
        return AnalysisResult.model_validate(payload)
    except ValidationError as e:
        missing = [".".join(str(p) for p in err["loc"]) for err in e.errors()]
        raise AnalysisError(f"AI response failed validation: {', '.join(missing)}") from e


class TaxAIClient:
    """
    AI client for tax document analysis.

    Its analyze() coroutine is the capability handed to the workflow:
    AnalysisRequest in, AnalysisResult out, AnalysisError on any failure.
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or load_settings()
        try:
            self.provider = AIProvider(self.settings.provider)
        except ValueError:
            logger.warning(f"Unknown AI provider '{self.settings.provider}', using Gemini")
            self.settings = self.settings.model_copy(update={"provider": "gemini"})
            self.provider = AIProvider.GEMINI
        self.model = self.settings.resolved_model_name

    @property
    def is_connected(self) -> bool:
        """A real provider is configured with a key (the key itself is not checked)."""
        return self.provider != AIProvider.MOCK and bool(self.settings.api_key)

    async def analyze(self, request: AnalysisRequest) -> AnalysisResult:
        """
        Run one analysis.

        Args:
            request: Documents, prompt and schema built by llm_prompts

        Returns:
            Parsed AnalysisResult

        Raises:
            AnalysisError: On transport failure or an unusable response
        """
        logger.info(
            f"Analyzing {len(request.payloads)} document(s) with {self.provider.value}:{self.model} "
            f"(rules {request.rules_version})"
        )
        try:
            if self.provider == AIProvider.GEMINI:
                text = await self._call_gemini(request)
            elif self.provider == AIProvider.OPENAI:
                text = await self._call_openai(request)
            else:
                text = self._mock_response_text()
        except Exception as e:
            raise AnalysisError(f"{self.provider.value} call failed: {e}") from e

        result = parse_analysis_response(text)
        logger.info(f"Analysis returned {len(result.optimizations)} optimization(s)")
        return result

    async def __call__(self, request: AnalysisRequest) -> AnalysisResult:
        return await self.analyze(request)

    async def _call_gemini(self, request: AnalysisRequest) -> str:
        """Make a call to the Gemini API."""
        client = genai.Client(api_key=self.settings.api_key)

        parts = [
            types.Part.from_bytes(data=base64.b64decode(p.data), mime_type=p.mime_type)
            for p in request.payloads
        ]
        parts.append(types.Part.from_text(text=request.prompt))

        response = await client.aio.models.generate_content(
            model=self.model,
            contents=[types.Content(role="user", parts=parts)],
            config=types.GenerateContentConfig(
                response_mime_type=RESPONSE_MIME_TYPE,
                response_schema=request.response_schema,
                temperature=request.temperature,
            ),
        )
        return response.text or ""

    async def _call_openai(self, request: AnalysisRequest) -> str:
        """Make a call to the OpenAI API."""
        client = AsyncOpenAI(api_key=self.settings.api_key)

        content: List[Dict[str, Any]] = []
        for p in request.payloads:
            data_url = f"data:{p.mime_type};base64,{p.data}"
            if p.mime_type == "application/pdf":
                content.append({
                    "type": "file",
                    "file": {"filename": p.name or "document.pdf", "file_data": data_url},
                })
            else:
                content.append({"type": "image_url", "image_url": {"url": data_url}})
        content.append({"type": "text", "text": request.prompt})

        response = await client.chat.completions.create(
            model=self.model,
            messages=[{"role": "user", "content": content}],
            response_format={
                "type": "json_schema",
                "json_schema": {
                    "name": "tax_audit",
                    "schema": to_json_schema(request.response_schema),
                },
            },
            temperature=request.temperature,
        )
        return response.choices[0].message.content or ""

    def _mock_response_text(self) -> str:
        """Canned response when running without a provider."""
        return json.dumps(MOCK_RESPONSE, ensure_ascii=False)


def get_ai_client() -> TaxAIClient:
    """Get or create the AI client singleton for this Streamlit session."""
    if 'ai_client' not in st.session_state:
        st.session_state.ai_client = TaxAIClient()
    return st.session_state.ai_client
