"""
OptiTax - Streamlit entry point
===============================
Run with: streamlit run streamlit_app.py

Secrets (Streamlit Cloud or .streamlit/secrets.toml):
- API_KEY: key for the AI provider
- OPTITAX_AI_PROVIDER: gemini (default), openai or mock
"""

import os
import sys

BACKEND_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), "backend")
if BACKEND_DIR not in sys.path:
    sys.path.insert(0, BACKEND_DIR)

# The audit page renders on import
import app  # noqa: E402,F401
