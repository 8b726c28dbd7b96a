"""
OptiTax - Audit Dashboard
=========================
Renders a completed AnalysisResult: client header, key figures, expert
summary, optimization cards, TMI positioning, JSON export and a printable
report.

The result is read-only here. Any optional field the model left out is shown
as a placeholder instead of failing.
"""

import html
import json
from datetime import date
from typing import List, Optional

import pandas as pd
import streamlit as st

from models import AnalysisResult, OptimizationSuggestion, TaxData
from tax_constants import (
    CATEGORY_LABELS,
    COMPLEXITY_LABELS,
    TMI_BRACKETS_2024,
    Complexity,
    get_tmi_bracket_info,
)

PLACEHOLDER = "N/C"

# Width given to the open-ended 45% bracket on the chart
TOP_BRACKET_DISPLAY_WIDTH = 50000

COMPLEXITY_EMOJI = {
    Complexity.LOW: "🟢",
    Complexity.MEDIUM: "🟡",
    Complexity.HIGH: "🔴",
}

NEXT_STEPS = [
    "Générer le rapport PDF pour le client",
    "Simuler un versement PER de 5k€",
    "Prendre rendez-vous de conseil",
]


# =============================================================================
# FORMATTING HELPERS
# =============================================================================

def fmt_euro(amount: Optional[float]) -> str:
    """Format an amount the French way: '45 000 €'."""
    if amount is None:
        return PLACEHOLDER
    return f"{amount:,.0f} €".replace(",", " ")


def fmt_number(value: Optional[float]) -> str:
    """Format a plain number with a French decimal comma (2.5 -> '2,5')."""
    if value is None:
        return PLACEHOLDER
    if float(value).is_integer():
        return str(int(value))
    return f"{value:g}".replace(".", ",")


def tmi_positioning(tmi: int) -> pd.DataFrame:
    """
    Bracket table for the TMI chart.

    One row per bracket with its width and whether the client's TMI reaches it.
    """
    rows = []
    lower = 0.0
    for upper, rate in TMI_BRACKETS_2024:
        width = TOP_BRACKET_DISPLAY_WIDTH if upper == float('inf') else upper - lower
        rows.append({
            "Tranche": f"{rate}%",
            "Largeur": width,
            "Statut": "Atteinte" if tmi >= rate else "Non atteinte",
        })
        lower = upper
    return pd.DataFrame(rows)


def real_estate_frame(tax_data: TaxData) -> pd.DataFrame:
    """Real-estate income lines as a table (empty table when there are none)."""
    rows = [
        {"Type": r.type.value, "Régime": r.regime.value, "Montant": r.amount}
        for r in tax_data.real_estate_income
    ]
    return pd.DataFrame(rows, columns=["Type", "Régime", "Montant"])


def export_json(result: AnalysisResult) -> str:
    """Serialize the result with its wire field names."""
    return json.dumps(result.to_wire(), indent=2, ensure_ascii=False)


def export_filename(result: AnalysisResult, extension: str) -> str:
    name = result.extracted_data.full_name.strip() or "client"
    slug = "_".join(name.split()).lower()
    year = result.extracted_data.year or date.today().year
    return f"optitax_{slug}_{year}.{extension}"


# =============================================================================
# PRINT REPORT
# =============================================================================

def _optimization_html(opt: OptimizationSuggestion) -> str:
    e = html.escape
    return f"""
    <div class="opt">
      <div class="opt-head">
        <span class="badge">{e(CATEGORY_LABELS.get(opt.category, opt.category.value))}</span>
        <span class="gain">Gain est. : {e(opt.estimated_gain or PLACEHOLDER)}</span>
      </div>
      <h3>{e(opt.title)}</h3>
      <p>{e(opt.description)}</p>
      <p><strong>Action :</strong> {e(opt.actionable)}</p>
      <p class="muted">Complexité : {e(COMPLEXITY_LABELS.get(opt.complexity, opt.complexity.value))}</p>
    </div>"""


def build_print_report(result: AnalysisResult) -> str:
    """
    Standalone HTML report, laid out for printing or saving as PDF.

    All text coming from the model is escaped.
    """
    e = html.escape
    data = result.extracted_data

    figures = [
        ("TMI actuelle", f"{data.tmi}%"),
        ("Parts fiscales", fmt_number(data.household_parts)),
        ("Revenu imposable", fmt_euro(data.taxable_income)),
        ("Impôt sur le revenu", fmt_euro(data.total_tax_paid)),
        ("Plafond PER disponible", fmt_euro(data.per_ceiling_available)),
    ]
    figure_rows = "".join(f"<tr><th>{e(label)}</th><td>{e(value)}</td></tr>" for label, value in figures)

    if result.optimizations:
        optimizations = "".join(_optimization_html(o) for o in result.optimizations)
    else:
        optimizations = "<p class=\"muted\">Aucune optimisation supplémentaire identifiée.</p>"

    return f"""<!DOCTYPE html>
<html lang="fr">
<head>
<meta charset="utf-8">
<title>Audit fiscal - {e(data.full_name)}</title>
<style>
  body {{ font-family: Helvetica, Arial, sans-serif; color: #0A2540; max-width: 800px; margin: 2rem auto; }}
  h1 {{ margin-bottom: 0; }}
  table {{ border-collapse: collapse; width: 100%; margin: 1rem 0; }}
  th, td {{ text-align: left; padding: 0.4rem 0.6rem; border-bottom: 1px solid #e2e8f0; }}
  .summary {{ font-style: italic; color: #475569; }}
  .opt {{ border: 1px solid #e2e8f0; border-radius: 8px; padding: 0.8rem 1rem; margin: 0.8rem 0; page-break-inside: avoid; }}
  .opt-head {{ display: flex; justify-content: space-between; }}
  .badge {{ font-size: 0.7rem; text-transform: uppercase; font-weight: bold; }}
  .gain {{ color: #10B981; font-weight: bold; }}
  .muted {{ color: #94a3b8; font-size: 0.8rem; }}
  @media print {{ body {{ margin: 0; }} }}
</style>
</head>
<body>
<h1>{e(data.full_name)}</h1>
<p class="muted">Situation fiscale {e(str(data.year) if data.year else PLACEHOLDER)} - rapport généré le {date.today().strftime('%d/%m/%Y')}</p>
<table>{figure_rows}</table>
<h2>Synthèse de l'expert</h2>
<p class="summary">"{e(result.summary)}"</p>
<h2>Stratégies d'optimisation préconisées</h2>
{optimizations}
<p class="muted">Analyse générée par IA. Ne constitue pas un conseil fiscal personnalisé.</p>
</body>
</html>
"""


# =============================================================================
# STREAMLIT RENDERING
# =============================================================================

def render_header(data: TaxData) -> None:
    col1, col2, col3 = st.columns([3, 1, 1])
    with col1:
        st.markdown(f"## {data.full_name}")
        st.caption(f"Situation Fiscale {data.year or PLACEHOLDER}")
    with col2:
        st.metric("TMI Actuelle", f"{data.tmi}%")
    with col3:
        st.metric("Parts Fiscales", fmt_number(data.household_parts))

    col1, col2, col3 = st.columns(3)
    with col1:
        st.metric("Revenu Imposable", fmt_euro(data.taxable_income))
    with col2:
        st.metric("Impôt sur le Revenu", fmt_euro(data.total_tax_paid))
    with col3:
        st.metric("Plafond PER Dispo.", fmt_euro(data.per_ceiling_available))


def render_optimizations(optimizations: List[OptimizationSuggestion]) -> None:
    st.markdown("### Stratégies d'Optimisation Préconisées")

    if not optimizations:
        st.info("Aucune optimisation supplémentaire identifiée : la situation est déjà optimisée.")
        return

    for opt in optimizations:
        with st.container(border=True):
            col1, col2 = st.columns([3, 1])
            with col1:
                st.caption(CATEGORY_LABELS.get(opt.category, opt.category.value).upper())
                st.markdown(f"**{opt.title}**")
            with col2:
                st.markdown(f"**Gain est. :** {opt.estimated_gain or PLACEHOLDER}")
            if opt.description:
                st.markdown(opt.description)
            if opt.actionable:
                st.markdown(f"➡️ {opt.actionable}")
            st.caption(
                f"Complexité : {COMPLEXITY_EMOJI.get(opt.complexity, '')} "
                f"{COMPLEXITY_LABELS.get(opt.complexity, opt.complexity.value)}"
            )


def render_income_details(data: TaxData) -> None:
    estate = real_estate_frame(data)
    if not estate.empty:
        st.markdown("#### Revenus Immobiliers")
        st.dataframe(estate, hide_index=True, use_container_width=True)

    fin = data.financial_income
    if fin is not None:
        st.markdown("#### Revenus Financiers")
        col1, col2, col3 = st.columns(3)
        with col1:
            st.metric("Dividendes", fmt_euro(fin.dividends))
        with col2:
            st.metric("Plus-values", fmt_euro(fin.capital_gains))
        with col3:
            st.metric("Régime", fin.regime.value if fin.regime else PLACEHOLDER)


def render_dashboard(result: AnalysisResult) -> None:
    """Render the full dashboard for one audit."""
    data = result.extracted_data

    with st.container(border=True):
        render_header(data)

    main_col, side_col = st.columns([2, 1])

    with main_col:
        with st.container(border=True):
            st.markdown("### Synthèse de l'Expert")
            st.markdown(f"*\"{result.summary}\"*" if result.summary else PLACEHOLDER)

        with st.container(border=True):
            render_optimizations(result.optimizations)

        render_income_details(data)

    with side_col:
        with st.container(border=True):
            st.markdown("### Positionnement TMI")
            st.bar_chart(tmi_positioning(data.tmi), x="Tranche", y="Largeur", color="Statut")
            st.markdown(f"**Votre tranche : {data.tmi}%**")
            with st.expander("Barème de référence"):
                st.markdown(get_tmi_bracket_info())

        with st.container(border=True):
            st.markdown("### Prochaines Étapes")
            for i, step in enumerate(NEXT_STEPS, 1):
                st.markdown(f"{i}. {step}")
