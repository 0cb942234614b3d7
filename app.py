import logging

import streamlit as st
import matplotlib.pyplot as plt

from fraud_model import InvalidParameterError, SimulationParams, make_rng, simulate
from reserve_guidance import build_guidance, build_histogram, fmt_money, reserve_bin_index
from sim_settings import (
    CONFIDENCE_RANGE,
    DEFAULT_SCENARIO,
    EVENTS_RANGE,
    LOSS_RANGE,
    SCENARIOS,
    VOLATILITY_RANGE,
    get_settings,
)

settings = get_settings()
logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
LOGGER = logging.getLogger(__name__)


# =========================================================
# Page config
# =========================================================
st.set_page_config(page_title=settings.app_title, layout="wide")

st.title(f"💳 {settings.app_title}")
st.markdown(
    "**Problem:** What's the distribution of total fraud losses, and what reserve should Finance set "
    "so there's at least a 90–95% chance it's enough?  \n"
    "**For:** Fraud/Risk, Finance/Controlling, Ops."
)


# =========================================================
# Helpers
# =========================================================
def make_distribution_plot(histogram, reserve, confidence_level):
    fig, ax = plt.subplots(figsize=(10, 4.5))
    ax.bar(
        histogram.edges,
        histogram.counts,
        width=histogram.width if histogram.width > 0 else 1.0,
        align="edge",
        color=(13 / 255, 110 / 255, 253 / 255, 0.6),
        edgecolor=(13 / 255, 110 / 255, 253 / 255, 1.0),
    )

    marker = histogram.edges[reserve_bin_index(histogram, reserve)]
    ax.axvline(
        marker,
        color=(220 / 255, 53 / 255, 69 / 255),
        linestyle="dashed",
        linewidth=2,
        label=f"{confidence_level}% Confidence: {fmt_money(reserve)}",
    )

    ax.set_title("Distribution of Simulated Monthly Fraud Losses")
    ax.set_xlabel("Total Monthly Loss ($)")
    ax.set_ylabel("Number of Simulations (Frequency)")
    ax.legend()
    return fig


def apply_scenario():
    key = st.session_state["scenario"]
    if key in SCENARIOS:
        scenario = SCENARIOS[key]
        st.session_state["avg_events"] = int(scenario.avg_events)
        st.session_state["avg_loss"] = int(scenario.avg_loss)
        st.session_state["volatility"] = int(scenario.volatility)


def range_slider(label, bounds, key):
    # Value comes from session state
    low, high, step = bounds
    return st.sidebar.slider(label, min_value=low, max_value=high, step=step, key=key)


def get_results(params, seed):
    """
    Simulate only when the inputs change.

    Widgets that only read the distribution (confidence level) reuse the
    last run instead of resampling it.
    """
    run_key = (params, seed)
    if st.session_state.get("run_key") != run_key:
        with st.spinner("Simulating..."):
            results = simulate(params, make_rng(seed))
        LOGGER.info(
            "Run: trials=%d events=%s loss=%s volatility=%s%% seed=%s -> mean=%.0f",
            params.num_simulations, params.avg_events, params.avg_loss, params.volatility,
            seed, results.mean,
        )
        st.session_state["run_key"] = run_key
        st.session_state["results"] = results
    return st.session_state["results"]


# =========================================================
# Sidebar: Inputs
# =========================================================
baseline = SCENARIOS[DEFAULT_SCENARIO]
if "avg_events" not in st.session_state:
    st.session_state["avg_events"] = int(baseline.avg_events)
    st.session_state["avg_loss"] = int(baseline.avg_loss)
    st.session_state["volatility"] = int(baseline.volatility)

st.sidebar.header("Simulation Controls")

st.sidebar.selectbox(
    "Scenario",
    ["custom", *SCENARIOS],
    format_func=lambda k: "Custom" if k == "custom" else SCENARIOS[k].name,
    key="scenario",
    on_change=apply_scenario,
)

avg_events = range_slider("Avg. Fraud Events/Month", EVENTS_RANGE, "avg_events")
avg_loss = range_slider("Avg. Loss per Event ($)", LOSS_RANGE, "avg_loss")
volatility = range_slider("Loss Volatility (%)", VOLATILITY_RANGE, "volatility")
confidence_level = st.sidebar.slider(
    "Confidence Level (%)",
    min_value=CONFIDENCE_RANGE[0],
    max_value=CONFIDENCE_RANGE[1],
    value=settings.default_confidence,
    step=CONFIDENCE_RANGE[2],
    key="confidence",
)

st.sidebar.markdown("---")
st.sidebar.header("Monte Carlo")
trials = st.sidebar.slider(
    "Monte Carlo Trials",
    settings.min_trials,
    settings.max_trials,
    settings.default_trials,
    step=settings.trials_step,
)
seed_text = st.sidebar.text_input(
    "Random seed (optional)",
    value="" if settings.random_seed is None else str(settings.random_seed),
    help="Fix the seed to reproduce a run exactly.",
)


# =========================================================
# Run simulation
# =========================================================
try:
    seed = int(seed_text) if seed_text.strip() else None
except ValueError:
    st.sidebar.warning("Seed must be a whole number; using a random seed.")
    seed = None

params = SimulationParams(
    num_simulations=trials,
    avg_events=avg_events,
    avg_loss=avg_loss,
    volatility=volatility,
)

try:
    results = get_results(params, seed)
except InvalidParameterError as exc:
    st.error(f"Invalid simulation inputs: {exc}")
    st.stop()

guidance = build_guidance(results, confidence_level, volatility)

# =============================
# Summary cards
# =============================
c1, c2, c3, c4 = st.columns(4)
c1.metric("Average Monthly Loss", fmt_money(results.mean))
c2.metric("Median Monthly Loss", fmt_money(results.median))
c3.metric("75th Percentile", fmt_money(guidance.p75))
c4.metric("Standard Deviation", fmt_money(results.std_dev))

# =============================
# Distribution plot
# =============================
histogram = build_histogram(
    results.monthly_losses,
    num_bins=settings.histogram_bins,
    rounding=settings.histogram_rounding,
)
fig = make_distribution_plot(histogram, guidance.reserve, confidence_level)
st.pyplot(fig)
plt.close(fig)

# =============================
# Decision guidance
# =============================
left, right = st.columns([1, 3])

with left:
    st.subheader("Risk Level")
    if guidance.risk_level == "High":
        st.error(guidance.risk_level)
    elif guidance.risk_level == "Medium":
        st.warning(guidance.risk_level)
    else:
        st.success(guidance.risk_level)

with right:
    st.subheader("Decision Guidance")
    st.write(f"Recommended Monthly Reserve for **{confidence_level}%** confidence:")
    st.markdown(f"## {fmt_money(guidance.reserve)}")
    st.markdown("#### Actionable Insights:")
    st.markdown("\n".join(f"- {line}" for line in guidance.insights))

st.caption("Scenario-based Monte Carlo model. Results depend on the assumptions you select.")
