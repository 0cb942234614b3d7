import logging
import math
import time
from dataclasses import dataclass
from typing import Dict, Optional

import numpy as np

LOGGER = logging.getLogger(__name__)

# Event counts are noisy with a fixed 20% relative volatility
EVENT_COUNT_VOLATILITY = 0.2
# Upper bound on per-event draws held in memory at once
EVENT_CHUNK_SIZE = 1_000_000
PERCENTILE_RANKS = range(1, 100)


class InvalidParameterError(ValueError):
    """Raised when simulation inputs violate a documented precondition."""


@dataclass(frozen=True)
class SimulationParams:
    num_simulations: int   # Monthly trials to run
    avg_events: float      # Expected fraud events per month
    avg_loss: float        # Expected loss per event ($)
    volatility: float      # Per-event loss std as % of avg_loss

    def validate(self) -> None:
        n = self.num_simulations
        if isinstance(n, bool) or not isinstance(n, (int, np.integer)):
            raise InvalidParameterError(f"num_simulations must be an integer, got {n!r}")
        if n < 1:
            raise InvalidParameterError(f"num_simulations must be >= 1, got {n}")

        for name in ("avg_events", "avg_loss", "volatility"):
            value = getattr(self, name)
            if not isinstance(value, (int, float, np.integer, np.floating)) or isinstance(value, bool):
                raise InvalidParameterError(f"{name} must be a real number, got {value!r}")
            if not math.isfinite(value) or value < 0:
                raise InvalidParameterError(f"{name} must be finite and >= 0, got {value}")


@dataclass(frozen=True)
class SimulationResult:
    monthly_losses: np.ndarray        # Sorted ascending, read-only
    mean: float
    median: float
    std_dev: float
    percentiles: Dict[int, float]     # Nearest-rank, keys 1..99


def make_rng(seed: Optional[int] = None) -> np.random.Generator:
    return np.random.default_rng(seed)


def _uniform_open(rng, size=None):
    """
    Uniform draw(s) on (0, 1).

    Exact zeros from the source are re-drawn; log(0) would break Box-Muller.
    """
    if size is None:
        u = rng.random()
        while u == 0:
            u = rng.random()
        return float(u)

    u = np.array(rng.random(size), dtype=float)
    zero = u == 0
    while zero.any():
        u[zero] = rng.random(int(zero.sum()))
        zero = u == 0
    return u


def normal_variate(rng, mean: float, std_dev: float) -> float:
    """One Normal(mean, std_dev) sample via the Box-Muller transform."""
    u1 = _uniform_open(rng)
    u2 = _uniform_open(rng)
    z = math.sqrt(-2.0 * math.log(u1)) * math.cos(2.0 * math.pi * u2)
    return mean + std_dev * z


def normal_variates(rng, mean: float, std_dev: float, size: int) -> np.ndarray:
    """Vectorised form of normal_variate: `size` independent samples."""
    u1 = _uniform_open(rng, size)
    u2 = _uniform_open(rng, size)
    z = np.sqrt(-2.0 * np.log(u1)) * np.cos(2.0 * np.pi * u2)
    return mean + std_dev * z


def simulate_monthly_losses(params: SimulationParams, rng) -> np.ndarray:
    """Total loss for each simulated month, in trial order (unsorted)."""
    n = int(params.num_simulations)
    loss_std_dev = params.avg_loss * (params.volatility / 100)

    # Step 1: number of fraud events per month, clamped then rounded half-up
    raw_counts = normal_variates(rng, params.avg_events, params.avg_events * EVENT_COUNT_VOLATILITY, n)
    num_events = np.floor(np.maximum(0.0, raw_counts) + 0.5).astype(np.int64)

    # Step 2: per-event losses, each floored at zero, summed into their month.
    # Drawn over blocks of whole months holding at most EVENT_CHUNK_SIZE events
    # (a single month may exceed it).
    monthly = np.zeros(n, dtype=float)
    cumulative = np.cumsum(num_events)
    start = 0
    while start < n:
        drawn = cumulative[start - 1] if start else 0
        stop = max(int(np.searchsorted(cumulative, drawn + EVENT_CHUNK_SIZE, side="right")), start + 1)
        counts = num_events[start:stop]

        event_losses = np.maximum(0.0, normal_variates(rng, params.avg_loss, loss_std_dev, int(counts.sum())))
        month_of_event = np.repeat(np.arange(stop - start), counts)
        monthly[start:stop] = np.bincount(month_of_event, weights=event_losses, minlength=stop - start)
        start = stop

    return monthly


def compute_loss_statistics(losses) -> SimulationResult:
    values = np.sort(np.asarray(losses, dtype=float))
    n = values.size
    if n == 0:
        raise InvalidParameterError("cannot summarise an empty loss sample")

    mean = float(values.mean())
    # Upper-middle element for even n; percentiles[50] is pinned to this
    median = float(values[n // 2])
    std_dev = float(np.sqrt(np.mean((values - mean) ** 2)))

    percentiles = {p: float(values[min(n * p // 100, n - 1)]) for p in PERCENTILE_RANKS}
    percentiles[50] = median

    values.flags.writeable = False
    return SimulationResult(
        monthly_losses=values,
        mean=mean,
        median=median,
        std_dev=std_dev,
        percentiles=percentiles,
    )


def simulate(params: SimulationParams, rng=None) -> SimulationResult:
    """
    Run the Monte Carlo fraud-loss model and summarise it.

    `rng` is the uniform random source: anything with a numpy-style
    `random(size=None)` method returning floats in [0, 1). A fresh unseeded
    generator is used when omitted.
    """
    params.validate()
    if rng is None:
        rng = make_rng()

    started = time.perf_counter()
    result = compute_loss_statistics(simulate_monthly_losses(params, rng))
    LOGGER.debug(
        "Simulated %d months (events=%.1f, loss=%.2f, volatility=%.1f%%) in %.1f ms: mean=%.2f",
        params.num_simulations,
        params.avg_events,
        params.avg_loss,
        params.volatility,
        (time.perf_counter() - started) * 1000,
        result.mean,
    )
    return result
