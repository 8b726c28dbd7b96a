"""
OptiTax - FastAPI Backend
=========================
HTTP surface for the tax document audit.

One POST runs the same workflow as the Streamlit page: documents are
encoded, sent with the audit instructions to the AI service, and the
structured AnalysisResult comes back as JSON (wire field names).

Nothing is stored: each request gets its own workflow and drops it afterwards.
"""

import os
import logging
from datetime import datetime, timezone
from typing import List, Optional
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, UploadFile, File, Form, Depends
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from genai_client import TaxAIClient
from models import UploadedFile
from settings import load_settings
from tax_constants import AUDIT_RULES_VERSION, is_supported_mime_type
from workflow import Analyzer, AuditWorkflow, ErrorState, IdleState, SuccessState

# Configure logging
logging.basicConfig(level=load_settings().log_level)
logger = logging.getLogger(__name__)

SERVICE_NAME = "OptiTax"
SERVICE_VERSION = "1.0.0"


# =============================================================================
# APPLICATION SETUP
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    logger.info("OptiTax API starting up...")
    yield
    logger.info("OptiTax API shutting down...")


app = FastAPI(
    title="OptiTax",
    description="AI tax document audit for wealth advisors",
    version=SERVICE_VERSION,
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://localhost:5173", "http://localhost:8501"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =============================================================================
# DEPENDENCIES
# =============================================================================

_ai_client: Optional[TaxAIClient] = None


def get_ai_client() -> TaxAIClient:
    """Process-wide AI client, created on first use."""
    global _ai_client
    if _ai_client is None:
        _ai_client = TaxAIClient()
    return _ai_client


def get_analyzer(client: TaxAIClient = Depends(get_ai_client)) -> Analyzer:
    return client.analyze


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

async def read_uploads(files: List[UploadFile]) -> List[UploadedFile]:
    """Read HTTP uploads into memory, rejecting unsupported types."""
    uploads = []
    for f in files:
        content_type = f.content_type or ""
        if content_type and content_type != "application/octet-stream" and not is_supported_mime_type(content_type):
            raise HTTPException(
                status_code=415,
                detail=f"Unsupported document type '{content_type}' for {f.filename}. Use PDF or images."
            )
        data = await f.read()
        uploads.append(UploadedFile(name=f.filename or "document", type=content_type, data=data))
    return uploads


# =============================================================================
# API ENDPOINTS
# =============================================================================

@app.get("/")
async def root():
    """API health check."""
    return {
        "service": SERVICE_NAME,
        "version": SERVICE_VERSION,
        "status": "healthy",
    }


@app.get("/api/health")
async def health_check(client: TaxAIClient = Depends(get_ai_client)):
    """Detailed health check."""
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "components": {
            "ai_provider": client.provider.value,
            "model": client.model,
            "api_key_configured": client.is_connected,
            "rules_version": AUDIT_RULES_VERSION,
        }
    }


@app.post("/api/analyses")
async def create_analysis(
    files: Optional[List[UploadFile]] = File(None),
    context: str = Form(""),
    analyzer: Analyzer = Depends(get_analyzer),
):
    """
    Audit a client's tax documents.

    Returns the AnalysisResult JSON. The documents are not kept.

    Errors:
    - 400: no document
    - 415: document type other than PDF or image
    - 502: the AI analysis failed (fixed generic message)
    """
    uploads = await read_uploads(files or [])

    workflow = AuditWorkflow(analyzer=analyzer)
    workflow.select_files(uploads)
    workflow.set_context(context)
    state = await workflow.run()

    if isinstance(state, SuccessState):
        return state.result.to_wire()
    if isinstance(state, IdleState):
        raise HTTPException(status_code=400, detail=state.notice)
    if isinstance(state, ErrorState):
        raise HTTPException(status_code=502, detail=state.message)

    # Unreachable: run() always ends outside Loading
    raise HTTPException(status_code=500, detail="Analysis did not complete")


# --- ERROR HANDLERS ---

@app.exception_handler(Exception)
async def global_exception_handler(request, exc):
    logger.error(f"Unhandled exception: {exc}")
    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal server error",
            "detail": str(exc) if os.getenv("DEBUG") else "An error occurred"
        }
    )


# =============================================================================
# MAIN ENTRY POINT
# =============================================================================

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
