import math
from dataclasses import dataclass
from typing import List

import numpy as np

from fraud_model import SimulationResult

FALLBACK_CONFIDENCE = 95


@dataclass(frozen=True)
class Histogram:
    edges: np.ndarray    # Left edge of each bin
    counts: np.ndarray
    width: float


@dataclass(frozen=True)
class ReserveGuidance:
    confidence_level: int
    reserve: float
    risk_level: str
    p75: float
    auto_hold_threshold: float
    insights: List[str]


def fmt_money(x: float) -> str:
    return f"${x:,.0f}"


def recommended_reserve(result: SimulationResult, confidence_level: int) -> float:
    """Reserve covering losses in `confidence_level`% of simulated months."""
    reserve = result.percentiles.get(int(confidence_level))
    if reserve is None:
        return result.percentiles[FALLBACK_CONFIDENCE]
    return reserve


def risk_level(volatility: float) -> str:
    if volatility > 70:
        return "High"
    if volatility > 40:
        return "Medium"
    return "Low"


def auto_hold_threshold(result: SimulationResult) -> float:
    return result.mean + 2 * result.std_dev


def build_histogram(losses, num_bins: int = 50, rounding: float = 1000) -> Histogram:
    """
    Equal-width bins over [floor(min), ceil(max)], both rounded to `rounding`.

    The last bin is closed on the right. If the range is empty every sample
    goes in the first bin.
    """
    values = np.asarray(losses, dtype=float)
    if values.size == 0:
        raise ValueError("cannot bin an empty loss sample")

    lo = math.floor(values.min() / rounding) * rounding
    hi = math.ceil(values.max() / rounding) * rounding
    width = (hi - lo) / num_bins
    edges = lo + np.arange(num_bins) * width

    if width == 0:
        idx = np.zeros(values.size, dtype=np.int64)
    else:
        idx = np.minimum(np.floor((values - lo) / width).astype(np.int64), num_bins - 1)
    counts = np.bincount(idx, minlength=num_bins)
    return Histogram(edges=edges, counts=counts, width=width)


def reserve_bin_index(histogram: Histogram, reserve: float) -> int:
    """First bin whose left edge is at or above the reserve, else 0."""
    above = np.nonzero(histogram.edges >= reserve)[0]
    return int(above[0]) if above.size else 0


def build_guidance(result: SimulationResult, confidence_level: int, volatility: float) -> ReserveGuidance:
    reserve = recommended_reserve(result, confidence_level)
    p75 = result.percentiles[75]
    hold = auto_hold_threshold(result)
    insights = [
        "This reserve supports staffing for high-value alerts up to this amount.",
        f"Consider auto-holding transactions above {fmt_money(hold)} to mitigate tail risk.",
        f"Review thresholds if losses consistently exceed the 75th percentile ({fmt_money(p75)}).",
    ]
    return ReserveGuidance(
        confidence_level=int(confidence_level),
        reserve=reserve,
        risk_level=risk_level(volatility),
        p75=p75,
        auto_hold_threshold=hold,
        insights=insights,
    )
