"""
OptiTax - Settings
==================
Runtime configuration, read from Streamlit secrets first and the process
environment second.

The API key defaults to an empty string and is not validated here: a bad or
missing key surfaces as a normal analysis failure on the first run.
"""

import os
from typing import Any, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field

GEMINI_DEFAULT_MODEL_NAME = "gemini-3-flash-preview"
OPENAI_DEFAULT_MODEL_NAME = "gpt-4.1"


class Settings(BaseModel):
    """Application settings."""
    model_config = ConfigDict(protected_namespaces=())

    api_key: str = Field(default="", repr=False)
    provider: str = Field(
        default="gemini", description="AI provider: 'gemini', 'openai' or 'mock'."
    )
    model_name: Optional[str] = Field(
        default=None, description="Overrides the provider's default model."
    )
    log_level: str = "INFO"

    @property
    def resolved_model_name(self) -> str:
        if self.model_name:
            return self.model_name
        if self.provider == "openai":
            return OPENAI_DEFAULT_MODEL_NAME
        if self.provider == "mock":
            return "mock"
        return GEMINI_DEFAULT_MODEL_NAME


def _streamlit_secrets() -> Mapping[str, Any]:
    """Streamlit secrets, or an empty mapping outside a Streamlit app."""
    try:
        import streamlit as st
        # Accessing st.secrets without a secrets.toml raises
        return dict(st.secrets)
    except Exception:
        return {}


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """
    Build Settings from secrets and environment.

    Args:
        environ: Mapping used instead of os.environ (tests)

    Returns:
        Settings with permissive defaults for anything unset
    """
    env = os.environ if environ is None else environ
    secrets = _streamlit_secrets() if environ is None else {}

    def lookup(key: str, default: Optional[str] = None) -> Optional[str]:
        if key in secrets:
            return str(secrets[key])
        return env.get(key, default)

    return Settings(
        api_key=lookup("API_KEY", "") or "",
        provider=(lookup("OPTITAX_AI_PROVIDER", "gemini") or "gemini").lower(),
        model_name=lookup("OPTITAX_MODEL") or None,
        log_level=(lookup("OPTITAX_LOG_LEVEL", "INFO") or "INFO").upper(),
    )
