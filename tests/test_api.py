import io
import json
import os
import sys

import pytest
from fastapi.testclient import TestClient

sys.path.insert(0, os.path.join(os.path.dirname(os.path.abspath(__file__)), "..", "backend"))

from errors import ANALYSIS_FAILED_MESSAGE, NO_FILES_MESSAGE
from genai_client import MOCK_RESPONSE, TaxAIClient, parse_analysis_response
from main import app, get_ai_client, get_analyzer
from settings import Settings

client = TestClient(app)

received = []


async def stub_analyzer(request):
    received.append(request)
    return parse_analysis_response(json.dumps(MOCK_RESPONSE))


async def failing_analyzer(request):
    received.append(request)
    raise ConnectionError("upstream unavailable")


@pytest.fixture(autouse=True)
def overrides():
    received.clear()
    app.dependency_overrides[get_ai_client] = lambda: TaxAIClient(Settings(provider="mock"))
    app.dependency_overrides[get_analyzer] = lambda: stub_analyzer
    yield
    app.dependency_overrides.clear()


def test_root():
    response = client.get("/")
    assert response.status_code == 200
    assert response.json()["service"] == "OptiTax"


def test_health():
    response = client.get("/api/health")
    assert response.status_code == 200
    components = response.json()["components"]
    assert components["ai_provider"] == "mock"
    assert components["model"] == "mock"
    assert components["api_key_configured"] is False
    assert response.json()["timestamp"].endswith("+00:00")


def test_create_analysis():
    files = [
        ("files", ("avis_2024.png", io.BytesIO(b"fake png"), "image/png")),
        ("files", ("declaration.pdf", io.BytesIO(b"%PDF-1.4"), "application/pdf")),
    ]
    response = client.post("/api/analyses", files=files, data={"context": "Projet d'achat locatif"})
    assert response.status_code == 200
    data = response.json()
    assert data["extractedData"]["fullName"] == "Jean Dupont"
    assert data["extractedData"]["tmi"] == 30
    assert len(data["optimizations"]) == 2

    request = received[0]
    assert [p.mime_type for p in request.payloads] == ["image/png", "application/pdf"]
    assert request.user_context == "Projet d'achat locatif"


def test_create_analysis_without_files():
    response = client.post("/api/analyses", data={"context": "rien"})
    assert response.status_code == 400
    assert response.json()["detail"] == NO_FILES_MESSAGE
    assert received == []


def test_create_analysis_unsupported_type():
    files = {"files": ("notes.txt", io.BytesIO(b"hello"), "text/plain")}
    response = client.post("/api/analyses", files=files)
    assert response.status_code == 415
    assert received == []


def test_create_analysis_failure():
    app.dependency_overrides[get_analyzer] = lambda: failing_analyzer
    files = {"files": ("avis.jpg", io.BytesIO(b"fake jpg"), "image/jpeg")}
    response = client.post("/api/analyses", files=files)
    assert response.status_code == 502
    assert response.json()["detail"] == ANALYSIS_FAILED_MESSAGE
    # The cause stays in the logs
    assert "upstream" not in response.text
