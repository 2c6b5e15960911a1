"""
Streamlit dashboard for the hashprice projection model.
Holds the editable parameter set and recomputes the full series on every change.
"""

import streamlit as st
import logging
from datetime import date, datetime
from typing import Dict, Any

import pandas as pd
import plotly.graph_objects as go

from hashprice_model import (
    FloorModel, SimulationResult, load_config, parameters_from_config,
    run_simulation, compute_trends, generate_text_report
)

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Page configuration
st.set_page_config(
    page_title="Hashprice Projection",
    page_icon="⛏️",
    layout="wide",
    initial_sidebar_state="expanded"
)

TICK_EVERY = 3


# ─────────────────────────────────────────────────────────────
# CONFIGURATION LOADING
# ─────────────────────────────────────────────────────────────

@st.cache_data
def load_app_config() -> Dict[str, Any]:
    """Load and validate configuration file."""
    try:
        return load_config()
    except Exception as e:
        st.error(f"❌ Failed to load configuration: {str(e)}")
        st.stop()


# ─────────────────────────────────────────────────────────────
# INPUT CONTROLS
# ─────────────────────────────────────────────────────────────

def render_sidebar() -> Dict[str, Any]:
    """Render shared controls and return user inputs."""

    st.sidebar.markdown("# ⛏️ Hashprice Projection")
    st.sidebar.markdown("---")

    start = st.sidebar.date_input(
        "Start date",
        value=date.today(),
        help="Month 0 of the 36-month horizon"
    )

    flag_ranges = st.sidebar.checkbox(
        "Flag out-of-range fractions",
        value=True,
        help="Warn when premium, uptime, pool fee, tax or salvage fall outside 0–100%"
    )

    return {"start_date": start, "flag_ranges": flag_ranges}


def render_panel_inputs(config: Dict[str, Any], model: FloorModel) -> Dict[str, Any]:
    """Editable fields for one floor model, seeded from its preset."""
    defaults = parameters_from_config(config, model, start_date=date.today())
    key = model.value
    overrides: Dict[str, Any] = {}

    with st.expander("⚙️ Model inputs", expanded=True):
        col1, col2, col3 = st.columns(3)

        with col1:
            st.markdown("**Hashprice**")
            overrides["hashrate_per_unit_th"] = st.number_input(
                "Miner hashrate (TH/s)", value=float(defaults.hashrate_per_unit_th),
                step=1.0, key=f"{key}_thps"
            )
            overrides["premium_0"] = st.number_input(
                "Premium₀", value=float(defaults.premium_0), step=0.01, key=f"{key}_p0"
            )
            if model is FloorModel.ENERGY:
                overrides["use_efficiency_schedule"] = st.toggle(
                    "Use efficiency schedule e(t)",
                    value=defaults.use_efficiency_schedule,
                    key=f"{key}_sched",
                    help=f"Off pins efficiency at e₀={defaults.efficiency_0:g} J/TH"
                )
                overrides["floor_energy_price"] = st.number_input(
                    "Power price cₑ for floor ($/kWh)", value=float(defaults.floor_energy_price),
                    step=0.001, format="%.3f", key=f"{key}_ce"
                )
                overrides["hashprice_additive"] = st.number_input(
                    "Additive ($/TH·day)", value=float(defaults.hashprice_additive),
                    step=0.001, format="%.3f", key=f"{key}_add"
                )

        with col2:
            st.markdown("**Fleet**")
            overrides["quantity"] = st.number_input(
                "Quantity", value=float(defaults.quantity), step=1.0, key=f"{key}_qty"
            )
            overrides["unit_cost"] = st.number_input(
                "Unit cost ($)", value=float(defaults.unit_cost), step=50.0, key=f"{key}_cost"
            )
            overrides["unit_power_kw"] = st.number_input(
                "Miner power (kW)", value=float(defaults.unit_power_kw), step=0.1, key=f"{key}_kw"
            )
            overrides["hosting_price"] = st.number_input(
                "Hosting rate ($/kWh)", value=float(defaults.hosting_price),
                step=0.001, format="%.3f", key=f"{key}_host"
            )
            overrides["setup_fee_per_unit"] = st.number_input(
                "Setup $/miner", value=float(defaults.setup_fee_per_unit), step=1.0, key=f"{key}_setup"
            )

        with col3:
            st.markdown("**Finance**")
            overrides["pool_fee"] = st.slider(
                "Pool fee (%)", 0.0, 5.0, defaults.pool_fee * 100, 0.1, key=f"{key}_pool"
            ) / 100
            if model is FloorModel.ENERGY:
                overrides["uptime"] = st.number_input(
                    "Uptime (0–1)", value=float(defaults.uptime), step=0.001,
                    format="%.3f", key=f"{key}_up"
                )
            overrides["tax_depreciation"] = st.number_input(
                "Tax depreciation (%)", value=defaults.tax_depreciation * 100,
                step=1.0, key=f"{key}_tax"
            ) / 100
            overrides["salvage_fraction"] = st.slider(
                "Salvage (%)", 0.0, 40.0, defaults.salvage_fraction * 100, 1.0, key=f"{key}_salv"
            ) / 100

    return overrides


# ─────────────────────────────────────────────────────────────
# MAIN APPLICATION
# ─────────────────────────────────────────────────────────────

def main():
    """Main application entry point."""

    config = load_app_config()
    inputs = render_sidebar()

    st.markdown("# ⛏️ Hashprice Projection & Mining Profit")
    st.markdown("*36-month hashprice floors, premium decay and cumulative fleet profit*")

    tabs = st.tabs([
        "⚡ Energy-Adjusted Floor",
        "⛓️ Difficulty & Price Driven",
        "📐 Formulas & Trends"
    ])

    with tabs[0]:
        display_model_tab(config, FloorModel.ENERGY, inputs)

    with tabs[1]:
        display_model_tab(config, FloorModel.PROTOCOL, inputs)

    with tabs[2]:
        display_trends_tab(config, inputs)


def display_model_tab(config: Dict[str, Any], model: FloorModel, inputs: Dict[str, Any]):
    """Inputs, headline metrics and charts for one floor model."""

    if model is FloorModel.ENERGY:
        st.markdown("## ⚡ Energy-Adjusted Trend Floor")
        st.caption("Floor = 0.024·e(t)·cₑ; Effective HP = Floor × (1 + premiumₜ) + additive. "
                   "Power billed on uptime; deposit returned at month 36.")
    else:
        st.markdown("## ⛓️ Difficulty & Price Driven Hashprice")
        st.caption("Floor = K·(R+F)·P/D; Effective HP = Floor × (1 + premiumₜ). "
                   "Power billed at nameplate; deposit not returned.")

    overrides = render_panel_inputs(config, model)

    try:
        params = parameters_from_config(config, model, start_date=inputs["start_date"], **overrides)
    except ValueError as e:
        logger.error(f"Invalid inputs: {str(e)}", exc_info=True)
        st.error(f"❌ Invalid inputs: {str(e)}")
        return

    result = run_simulation(params)

    if not result.ok:
        st.error(f"❌ Cannot compute projection: {result.error}")
        return

    if inputs["flag_ranges"]:
        for warning in result.warnings:
            st.warning(f"⚠️ {warning}")

    display_summary(result)

    col1, col2 = st.columns(2)
    with col1:
        st.plotly_chart(profit_chart(result), use_container_width=True, key=f"{model.value}_profit")
    with col2:
        st.plotly_chart(hashprice_chart(result), use_container_width=True, key=f"{model.value}_hp")

    display_export(result, model)


def display_summary(result: SimulationResult):
    """Headline metrics."""
    summary = result.summary

    col1, col2, col3, col4 = st.columns(4)

    with col1:
        st.metric("Bottom Line", f"${summary['Bottom Line (USD)']:,.0f}",
                  f"ROI {summary['ROI (%)']:.0f}%" if summary['ROI (%)'] is not None else None)
    with col2:
        st.metric("Upfront Cost", f"${summary['Upfront Cost (USD)']:,.0f}",
                  f"Deposit ${summary['Security Deposit (USD)']:,.0f}", delta_color="off")
    with col3:
        payback = summary["Payback Month"]
        st.metric("Payback", f"Month {payback}" if payback is not None else "N/A")
    with col4:
        st.metric("Avg Effective HP", f"${summary['Avg Effective Hashprice']:.4f}/TH·day")


def display_trends_tab(config: Dict[str, Any], inputs: Dict[str, Any]):
    """Market-trend curves and both floors side by side."""

    st.markdown("## 📐 Formulas & Trends")
    params = parameters_from_config(config, FloorModel.ENERGY, start_date=inputs["start_date"])

    try:
        trends = compute_trends(params)
    except ValueError as e:
        logger.error(f"Trend computation failed: {str(e)}", exc_info=True)
        st.error(f"❌ Trend computation failed: {str(e)}")
        return

    labels = [d.strftime("%m/%y") for d in trends["date"]]

    st.latex(r"X(t) = X_0 \cdot e^{(g/d)(1 - e^{-d t})}")
    col1, col2 = st.columns(2)
    with col1:
        st.plotly_chart(line_chart(labels, {"Price ($)": trends["price"]}, "BTC Price"),
                        use_container_width=True)
        st.plotly_chart(line_chart(labels, {"Fees (BTC/day)": trends["fees_per_day"]}, "Fees"),
                        use_container_width=True)
    with col2:
        st.plotly_chart(line_chart(labels, {"Difficulty (T)": trends["difficulty_t"]}, "Difficulty"),
                        use_container_width=True)
        st.plotly_chart(line_chart(labels, {"Efficiency (J/TH)": trends["efficiency"]}, "ASIC Efficiency"),
                        use_container_width=True)

    st.markdown("### Hashprice floors")
    col1, col2 = st.columns(2)
    with col1:
        st.caption(f"HP_protocol = K·(R+F)·P/D, R = {params.block_reward_pre} → "
                   f"{params.block_reward_post} ({params.halving_date:%b %Y})")
        st.plotly_chart(line_chart(labels, {
            "Protocol floor": trends["protocol_floor"],
            "Protocol effective": trends["protocol_effective"],
        }, "Protocol-driven HP ($/TH·day)"), use_container_width=True)
    with col2:
        st.caption(f"HP_energy = 0.024·e(t)·cₑ, cₑ = {params.floor_energy_price:.3f} $/kWh")
        st.plotly_chart(line_chart(labels, {
            "Energy floor": trends["energy_floor"],
            "Energy effective": trends["energy_effective"],
        }, "Energy floor HP ($/TH·day)"), use_container_width=True)


def display_export(result: SimulationResult, model: FloorModel):
    """Monthly table and downloads."""

    with st.expander("📋 Monthly detail", expanded=False):
        st.dataframe(result.to_frame(), use_container_width=True, height=400)

    stamp = datetime.now().strftime('%Y%m%d_%H%M%S')
    col1, col2 = st.columns(2)

    with col1:
        st.download_button(
            label="📊 Download Series (CSV)",
            data=result.to_frame().to_csv(),
            file_name=f"hashprice_{model.value}_{stamp}.csv",
            mime="text/csv",
            key=f"{model.value}_csv"
        )

    with col2:
        st.download_button(
            label="📝 Download Report (TXT)",
            data=generate_text_report(result),
            file_name=f"hashprice_{model.value}_report_{stamp}.txt",
            mime="text/plain",
            key=f"{model.value}_txt"
        )


# ─────────────────────────────────────────────────────────────
# CHARTS
# ─────────────────────────────────────────────────────────────

def _tick_layout(fig: go.Figure, labels) -> go.Figure:
    ticks = list(range(0, len(labels), TICK_EVERY))
    fig.update_layout(
        xaxis=dict(tickmode="array", tickvals=ticks, ticktext=[labels[i] for i in ticks]),
        hovermode="x unified",
        height=380
    )
    return fig


def profit_chart(result: SimulationResult) -> go.Figure:
    df = result.to_frame()
    labels = [d.strftime("%m/%y") for d in df["date"]]

    fig = go.Figure()
    fig.add_trace(go.Scatter(
        x=list(df.index),
        y=df["cumulative_profit"],
        mode="lines",
        name="Cumulative Profit ($)",
        line=dict(color="#10b981", width=2)
    ))
    fig.add_hline(y=0, line_dash="dash", line_color="gray")
    fig.update_layout(title="Cumulative Profit", yaxis_title="USD")
    return _tick_layout(fig, labels)


def hashprice_chart(result: SimulationResult) -> go.Figure:
    df = result.to_frame()
    labels = [d.strftime("%m/%y") for d in df["date"]]

    fig = go.Figure()
    fig.add_trace(go.Scatter(
        x=list(df.index), y=df["floor_hashprice"], mode="lines",
        name="Hashprice Floor", line=dict(color="#9ca3af", width=2)
    ))
    fig.add_trace(go.Scatter(
        x=list(df.index), y=df["effective_hashprice"], mode="lines",
        name="Effective Hashprice", line=dict(color="#10b981", width=2)
    ))
    fig.update_layout(title="Hashprice ($/TH·day)")
    return _tick_layout(fig, labels)


def line_chart(labels, series: Dict[str, pd.Series], title: str) -> go.Figure:
    fig = go.Figure()
    for name, values in series.items():
        fig.add_trace(go.Scatter(x=list(range(len(labels))), y=values, mode="lines", name=name))
    fig.update_layout(title=title)
    return _tick_layout(fig, labels)


# ─────────────────────────────────────────────────────────────
# APPLICATION ENTRY POINT
# ─────────────────────────────────────────────────────────────

if __name__ == "__main__":
    main()
