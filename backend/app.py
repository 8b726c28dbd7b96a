"""
OptiTax by l'Ingé Patrimoine - Advisor Audit Page
=================================================
Upload a client's tax documents, add context, get an AI audit dashboard.

Flow:
1. Upload avis d'imposition / déclaration (images or PDF)
2. Optional advisor context (projects, family changes...)
3. AI audit (Gemini) → extracted figures + optimization levers
4. Dashboard, JSON export, printable report
"""

import sys
import os

# Path setup for Streamlit Cloud
_current_file = os.path.abspath(__file__)
_backend_dir = os.path.dirname(_current_file)
if _backend_dir not in sys.path:
    sys.path.insert(0, _backend_dir)

import asyncio
import logging

import streamlit as st

from dashboard import build_print_report, export_filename, export_json, render_dashboard
from genai_client import AIProvider, get_ai_client
from settings import load_settings
from tax_constants import SUPPORTED_UPLOAD_EXTENSIONS
from workflow import AuditWorkflow

logging.basicConfig(level=load_settings().log_level)
logger = logging.getLogger(__name__)


# =============================================================================
# PAGE CONFIGURATION
# =============================================================================

st.set_page_config(
    page_title="OptiTax - Audit Patrimonial IA",
    page_icon="📊",
    layout="wide",
    initial_sidebar_state="collapsed"
)


st.markdown("""
<style>
    .main .block-container {
        padding-top: 2rem;
        padding-bottom: 2rem;
        max-width: 1200px;
    }

    .main-header {
        text-align: center;
        padding: 2rem 0 1rem 0;
    }

    .main-header .tag {
        display: inline-block;
        padding: 0.3rem 1rem;
        border-radius: 999px;
        background: #cffafe;
        color: #00B8D9;
        font-size: 0.75rem;
        font-weight: 800;
        letter-spacing: 0.2em;
        text-transform: uppercase;
    }

    .main-header h1 {
        font-size: 3rem;
        color: #0A2540;
        margin: 1rem 0 0.5rem 0;
    }

    .main-header h1 span {
        color: #00D9FF;
    }

    .main-header p {
        color: #64748b;
        font-size: 1.1rem;
    }
</style>
""", unsafe_allow_html=True)


# =============================================================================
# SESSION STATE INITIALIZATION
# =============================================================================

def init_session_state():
    """Initialize all session state variables."""
    if 'workflow' not in st.session_state:
        st.session_state.workflow = AuditWorkflow(analyzer=get_ai_client().analyze)

    # Bumped on reset so the uploader widget forgets its files
    if 'uploader_key' not in st.session_state:
        st.session_state.uploader_key = 0

    if 'context_input' not in st.session_state:
        st.session_state.context_input = ""

init_session_state()

workflow: AuditWorkflow = st.session_state.workflow


# =============================================================================
# CALLBACKS
# =============================================================================

def on_files_selected():
    uploads = st.session_state.get(f"uploader_{st.session_state.uploader_key}") or []
    workflow.select_files(uploads)


def on_context_changed():
    workflow.set_context(st.session_state.context_input)


def on_remove_file(index: int):
    workflow.remove_file(index)


def on_reset():
    workflow.reset()
    st.session_state.uploader_key += 1
    st.session_state.context_input = ""


# =============================================================================
# UPLOAD VIEW
# =============================================================================

def render_upload_view():
    st.markdown("""
    <div class="main-header">
        <span class="tag">Expertise Patrimoniale IA</span>
        <h1>OptiTax <span>by l'Ingé Patrimoine</span></h1>
        <p>Apportez une valeur ajoutée immédiate à vos clients. Analysez leurs avis d'imposition
        et décelez chaque levier d'optimisation en un instant.</p>
    </div>
    """, unsafe_allow_html=True)

    _, center, _ = st.columns([1, 3, 1])

    with center:
        with st.container(border=True):
            st.markdown("#### Documents Fiscaux")
            st.file_uploader(
                "Glissez vos fichiers ici ou cliquez pour parcourir",
                type=SUPPORTED_UPLOAD_EXTENSIONS,
                accept_multiple_files=True,
                help="Avis d'imposition, déclaration de revenus (PDF ou images)",
                key=f"uploader_{st.session_state.uploader_key}",
                on_change=on_files_selected,
                disabled=not workflow.can_trigger,
            )

            if workflow.files:
                st.caption(f"FICHIERS SÉLECTIONNÉS ({len(workflow.files)})")
                for i, f in enumerate(workflow.files):
                    col1, col2 = st.columns([6, 1])
                    with col1:
                        st.markdown(f"📄 **{f.name}**")
                    with col2:
                        st.button("✖", key=f"remove_{i}_{f.name}", on_click=on_remove_file, args=(i,))

            st.text_area(
                "Commentaires & Contexte (Optionnel)",
                key="context_input",
                on_change=on_context_changed,
                height=100,
                placeholder="Ex: Projet d'investissement, changement de situation familiale...",
            )

            if workflow.error_message:
                st.error(workflow.error_message)

            if st.button(
                "Lancer l'Analyse Patrimoniale →",
                type="primary",
                use_container_width=True,
                disabled=not workflow.can_trigger,
            ):
                # Pick up text typed without leaving the field
                workflow.set_context(st.session_state.context_input)
                with st.spinner("Génération de l'Audit... L'IA d'OptiTax analyse vos documents "
                                "et vos commentaires pour maximiser le gain fiscal."):
                    asyncio.run(workflow.run())
                st.rerun()

            st.caption("Analyse propulsée par l'Intelligence Artificielle d'OptiTax")

        col1, col2, col3 = st.columns(3)
        for col, (title, desc) in zip(
            (col1, col2, col3),
            [
                ("Audit Exhaustif", "Scan de toutes les niches fiscales."),
                ("Précision CGP", "Basé sur les barèmes d'imposition."),
                ("Zéro Doublon", "Analyse des choix déjà faits."),
            ],
        ):
            with col:
                st.markdown(f"✅ **{title}**  \n{desc}")


# =============================================================================
# RESULT VIEW
# =============================================================================

def render_result_view():
    result = workflow.result

    col1, _, col2, col3 = st.columns([1, 2, 1, 1])
    with col1:
        st.button("← Nouvel Audit", on_click=on_reset, use_container_width=True)
    with col2:
        st.download_button(
            "Export JSON",
            data=export_json(result),
            file_name=export_filename(result, "json"),
            mime="application/json",
            use_container_width=True,
        )
    with col3:
        st.download_button(
            "Imprimer Rapport",
            data=build_print_report(result),
            file_name=export_filename(result, "html"),
            mime="text/html",
            type="primary",
            use_container_width=True,
        )

    render_dashboard(result)


# =============================================================================
# PAGE
# =============================================================================

if workflow.result is not None:
    render_result_view()
else:
    render_upload_view()


# =============================================================================
# SIDEBAR - MINIMAL
# =============================================================================

with st.sidebar:
    st.markdown("### 📊 OptiTax")
    st.markdown("---")

    ai_client = get_ai_client()
    if ai_client.provider == AIProvider.MOCK:
        st.warning("🟡 Mode démonstration")
        st.caption("Réponses d'exemple, aucun appel IA")
    elif ai_client.is_connected:
        st.success(f"🟢 {ai_client.model}")
    else:
        st.error("🔴 Clé API absente")
        st.caption("Ajoutez API_KEY dans les secrets")

    st.markdown("---")

    st.button("🔄 Recommencer", use_container_width=True, on_click=on_reset)

    st.markdown("---")
    st.caption("© OptiTax by l'Ingé Patrimoine")
